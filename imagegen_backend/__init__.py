"""
Image Generation Backend - App Package
"""

from .normalizer import NormalizedRequest, normalize, normalize_request
from .profiles import ModelName, ModelProfile, PROFILES, resolve_profile
from .provider import ProviderClient, ReplicateClient, dispatch

__all__ = [
    "NormalizedRequest",
    "normalize",
    "normalize_request",
    "ModelName",
    "ModelProfile",
    "PROFILES",
    "resolve_profile",
    "ProviderClient",
    "ReplicateClient",
    "dispatch",
]
