"""
Image Generation Backend - Error Types
Exceptions raised while normalizing and dispatching generation requests
"""

from typing import Any, Optional


class GenerationError(Exception):
    """Base class for errors surfaced by the generation backend."""

    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ConfigurationError(GenerationError):
    """Required process configuration is missing. Fatal at startup."""


class ValidationError(GenerationError):
    """A request field is malformed or missing."""

    status_code = 400

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field


class MissingPromptError(ValidationError):
    def __init__(self):
        super().__init__("prompt", "prompt is required")


class TooManyImagesError(ValidationError):
    def __init__(self, count: int, limit: int):
        super().__init__("image", f"At most {limit} images are accepted, got {count}")
        self.count = count
        self.limit = limit


class MalformedBodyError(ValidationError):
    """The request body could not be parsed as a form."""

    def __init__(self, detail: str):
        super().__init__("body", detail)


class ProviderError(GenerationError):
    """The generation provider could not produce a result."""


class UpstreamError(ProviderError):
    """
    The provider answered with a structured error.

    Carries the upstream status code and body so they can be relayed
    to the caller as-is.
    """

    def __init__(self, status_code: int, body: Any):
        super().__init__(f"Provider returned status {status_code}", status_code)
        self.body = body


class TransportError(ProviderError):
    """Network or local failure with no structured provider response."""

    status_code = 500


class IOCleanupError(GenerationError):
    """A transient attachment could not be deleted. Logged, never returned."""

    def __init__(self, path: str, cause: Exception):
        super().__init__(f"Failed to remove attachment {path}: {cause}")
        self.path = path
        self.cause = cause
