"""
Image Generation Backend - Request Normalizer
Turns raw form fields and uploads into a provider input for one model profile
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from .errors import MissingPromptError, TransportError
from .profiles import FieldKind, ModelProfile, ProfileField, resolve_profile
from .utils import ImageAttachment, encode_file_data_uri

logger = logging.getLogger(__name__)

_MISSING = object()


@dataclass(frozen=True)
class NormalizedRequest:
    """Provider input ready for dispatch"""
    profile: ModelProfile
    input: Dict[str, Any]

    @property
    def model_id(self) -> str:
        return self.profile.model_id


def _first_present(raw_fields: Mapping[str, Any], names: Sequence[str]) -> Any:
    """Value of the first name carrying a non-empty value, else _MISSING."""
    for name in names:
        value = raw_fields.get(name)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return _MISSING


def _parse_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        pass
    # "4.0" and "4.7" are read as 4
    parsed = _parse_float(value)
    return int(parsed) if parsed is not None else None


def _parse_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        parsed = float(str(value).strip())
    except ValueError:
        return None
    return parsed if math.isfinite(parsed) else None


def coerce_value(profile_field: ProfileField, value: Any) -> Any:
    """
    Coerce one raw value to the field's kind.

    Returns the field default when the value is missing or unparseable.
    Range bounds are not applied.
    """
    if value is _MISSING:
        return profile_field.default

    kind = profile_field.kind
    if kind == FieldKind.INT:
        parsed = _parse_int(value)
    elif kind == FieldKind.FLOAT:
        parsed = _parse_float(value)
    elif kind == FieldKind.BOOL:
        parsed = value if isinstance(value, bool) else str(value).strip() == "true"
    else:
        parsed = str(value)

    if parsed is None:
        logger.debug(f"Could not parse {profile_field.key}={value!r}, using default")
        return profile_field.default
    return parsed


def parse_seed(raw_fields: Mapping[str, Any]) -> Optional[int]:
    """Seed as an int, or None when absent, empty or not a number."""
    value = _first_present(raw_fields, ("seed",))
    if value is _MISSING:
        return None
    return _parse_int(value)


def build_input(profile: ModelProfile, raw_fields: Mapping[str, Any], prompt: str) -> Dict[str, Any]:
    """Provider input for a profile, without images."""
    payload: Dict[str, Any] = {"prompt": prompt}

    for key in profile.order:
        if key in profile.constants:
            payload[key] = profile.constants[key]
            continue
        profile_field = profile.field_for(key)
        payload[key] = coerce_value(profile_field, _first_present(raw_fields, profile_field.names))

    seed = parse_seed(raw_fields)
    if seed is not None:
        payload["seed"] = seed

    return payload


def attach_images(
    profile: ModelProfile,
    payload: Dict[str, Any],
    attachments: Sequence[ImageAttachment],
) -> Dict[str, Any]:
    """
    Encode attachments into the profile's image keys, in upload order.

    Attachments beyond the profile's capacity are not forwarded.

    Raises:
        TransportError: If an attachment cannot be read
    """
    if len(attachments) > profile.max_images:
        logger.warning(
            f"{profile.name.value} accepts {profile.max_images} image(s), "
            f"ignoring {len(attachments) - profile.max_images}"
        )

    for key, attachment in zip(profile.image_keys, attachments):
        try:
            payload[key] = encode_file_data_uri(attachment)
        except OSError as e:
            raise TransportError(f"Failed to encode image {attachment.filename or attachment.path}: {e}") from e

    return payload


def normalize_request(
    raw_fields: Mapping[str, Any],
    attachments: Sequence[ImageAttachment] = (),
    model_name: Optional[str] = None,
) -> NormalizedRequest:
    """
    Validate and default a generation request.

    Args:
        raw_fields: Form fields as received from the client
        attachments: Uploaded images, in upload order
        model_name: Requested model family (unknown names fall back to flux)

    Returns:
        NormalizedRequest with the selected profile and provider input

    Raises:
        MissingPromptError: If the prompt is missing or blank
        TransportError: If an attachment cannot be encoded
    """
    profile = resolve_profile(model_name)

    prompt = raw_fields.get("prompt")
    if not isinstance(prompt, str) or not prompt.strip():
        raise MissingPromptError()

    payload = build_input(profile, raw_fields, prompt)
    if attachments:
        attach_images(profile, payload, attachments)

    return NormalizedRequest(profile=profile, input=payload)


def normalize(
    raw_fields: Mapping[str, Any],
    attachments: Sequence[ImageAttachment] = (),
    model_name: Optional[str] = None,
) -> Tuple[Dict[str, Any], str]:
    """Shorthand for normalize_request returning (provider_input, model_id)."""
    request = normalize_request(raw_fields, attachments, model_name)
    return request.input, request.model_id
