"""
Image Generation Backend - Model Profiles
Parameter schemas, defaults and provider identifiers per model family
"""

from dataclasses import dataclass, field
from enum import Enum
import logging
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class ModelName(str, Enum):
    """Known model families"""
    FLUX = "flux"
    PHOTOMAKER = "photomaker"


class FieldKind(str, Enum):
    """Type a form value is coerced to"""
    INT = "int"
    FLOAT = "float"
    BOOL = "bool"
    STR = "str"


@dataclass(frozen=True)
class ProfileField:
    """
    One client-settable provider input.

    `key` is the name sent to the provider, `aliases` the form field names
    accepted from the client (first non-empty one wins). `bounds` is the
    range the UI offers; it is documentation only and never enforced.
    """
    key: str
    kind: FieldKind
    default: Any
    aliases: Tuple[str, ...] = ()
    bounds: Optional[Tuple[float, float]] = None
    choices: Tuple[str, ...] = ()

    @property
    def names(self) -> Tuple[str, ...]:
        return self.aliases or (self.key,)


@dataclass(frozen=True)
class ModelProfile:
    """
    Parameter schema for one provider model.

    Input keys are emitted in the order: prompt, then `fields` and
    `constants` interleaved according to `order`, then seed, then images.
    """
    name: ModelName
    model_id: str
    fields: Tuple[ProfileField, ...]
    constants: Dict[str, Any] = field(default_factory=dict)
    order: Tuple[str, ...] = ()
    image_keys: Tuple[str, ...] = ()

    @property
    def max_images(self) -> int:
        return len(self.image_keys)

    def field_for(self, key: str) -> Optional[ProfileField]:
        for profile_field in self.fields:
            if profile_field.key == key:
                return profile_field
        return None


PHOTOMAKER_NEGATIVE_PROMPT = (
    "nsfw, lowres, bad anatomy, bad hands, text, error, missing fingers, "
    "extra digit, fewer digits, cropped, worst quality, low quality, "
    "normal quality, jpeg artifacts, signature, watermark, username, blurry"
)

# Seed is not declared here: the normalizer attaches it for every profile,
# flux included, whenever the client sends one.
FLUX = ModelProfile(
    name=ModelName.FLUX,
    model_id="black-forest-labs/flux-dev",
    fields=(
        ProfileField("num_outputs", FieldKind.INT, 1,
                     aliases=("numOutputs", "num_outputs"), bounds=(1, 4)),
        ProfileField("aspect_ratio", FieldKind.STR, "16:9",
                     aliases=("aspectRatio", "aspect_ratio"),
                     choices=("16:9", "9:16", "1:1")),
        ProfileField("output_format", FieldKind.STR, "png",
                     aliases=("imageFormat", "outputFormat", "output_format"),
                     choices=("png", "jpg", "webp")),
        ProfileField("output_quality", FieldKind.INT, 50,
                     aliases=("quality", "outputQuality", "output_quality"), bounds=(0, 100)),
        ProfileField("prompt_strength", FieldKind.FLOAT, 0.5,
                     aliases=("promptStrength", "prompt_strength"), bounds=(0, 1)),
        ProfileField("disable_safety_check", FieldKind.BOOL, False,
                     aliases=("disableSafetyCheck", "disable_safety_check")),
    ),
    constants={"guidance": 3.5, "num_inference_steps": 28},
    order=(
        "guidance",
        "num_outputs",
        "aspect_ratio",
        "output_format",
        "output_quality",
        "prompt_strength",
        "num_inference_steps",
        "disable_safety_check",
    ),
    image_keys=("input_image",),
)

PHOTOMAKER = ModelProfile(
    name=ModelName.PHOTOMAKER,
    model_id=(
        "tencentarc/photomaker:"
        "ddfc2b08d209f9fa8c1eca692712918bd449f695dabb4a958da31802a9570fe4"
    ),
    fields=(
        ProfileField("num_steps", FieldKind.INT, 50,
                     aliases=("numSteps", "num_steps"), bounds=(1, 100)),
        ProfileField("style_name", FieldKind.STR, "Photographic (Default)",
                     aliases=("styleName", "style_name")),
        ProfileField("num_outputs", FieldKind.INT, 1,
                     aliases=("numOutputs", "num_outputs"), bounds=(1, 4)),
        ProfileField("guidance_scale", FieldKind.FLOAT, 5,
                     aliases=("guidanceScale", "guidance_scale"), bounds=(1, 10)),
        ProfileField("negative_prompt", FieldKind.STR, PHOTOMAKER_NEGATIVE_PROMPT,
                     aliases=("negativePrompt", "negative_prompt")),
        ProfileField("style_strength_ratio", FieldKind.INT, 20,
                     aliases=("styleStrengthRatio", "style_strength_ratio"), bounds=(15, 50)),
    ),
    order=(
        "num_steps",
        "style_name",
        "num_outputs",
        "guidance_scale",
        "negative_prompt",
        "style_strength_ratio",
    ),
    image_keys=("input_image", "input_image2", "input_image3", "input_image4"),
)

PROFILES: Dict[ModelName, ModelProfile] = {
    ModelName.FLUX: FLUX,
    ModelName.PHOTOMAKER: PHOTOMAKER,
}

DEFAULT_PROFILE = FLUX

# Upload limit for the HTTP layer: the largest image capacity of any profile
MAX_IMAGES = max(profile.max_images for profile in PROFILES.values())


def resolve_profile(name: Optional[str]) -> ModelProfile:
    """
    Select the profile for a client-supplied model name.

    Matching is exact and case-sensitive. Unknown or missing names
    resolve to flux.
    """
    for model_name, profile in PROFILES.items():
        if name == model_name.value:
            return profile

    if name:
        logger.warning(f"Unknown model '{name}', falling back to {DEFAULT_PROFILE.name.value}")
    return DEFAULT_PROFILE
