"""
Model profile registry tests
"""

import pytest

from imagegen_backend.profiles import FLUX, MAX_IMAGES, PHOTOMAKER, PROFILES, ModelName, resolve_profile


@pytest.mark.unit
class TestResolveProfile:

    def test_exact_names(self):
        assert resolve_profile("flux") is FLUX
        assert resolve_profile("photomaker") is PHOTOMAKER

    @pytest.mark.parametrize("name", [None, "", "PhotoMaker", " photomaker", "dall-e"])
    def test_fallback_to_flux(self, name):
        assert resolve_profile(name) is FLUX


@pytest.mark.unit
@pytest.mark.parametrize("profile", list(PROFILES.values()), ids=lambda p: p.name.value)
def test_every_ordered_key_is_a_field_or_constant(profile):
    declared = {f.key for f in profile.fields} | set(profile.constants)

    assert set(profile.order) == declared
    assert len(profile.order) == len(declared)


@pytest.mark.unit
def test_image_capacity():
    assert FLUX.image_keys == ("input_image",)
    assert PHOTOMAKER.max_images == 4
    assert MAX_IMAGES == 4


@pytest.mark.unit
def test_registry_is_keyed_by_model_name():
    assert set(PROFILES) == set(ModelName)
    for name, profile in PROFILES.items():
        assert profile.name is name
