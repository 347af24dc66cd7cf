"""
Image Generation Backend - Pydantic Schemas
Response models for the API
"""

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class GenerateImageResponse(BaseModel):
    """Successful generation: provider output relayed as-is"""
    model_config = ConfigDict(populate_by_name=True)

    image_urls: Any = Field(
        ...,
        alias="imageUrls",
        description="Generated image URLs exactly as returned by the provider"
    )


class ErrorResponse(BaseModel):
    """Error envelope for 4xx/5xx responses"""
    error: str = Field(..., description="Short error summary")
    details: Any = Field(None, description="Upstream body or error message")
    status: Optional[int] = Field(None, description="Upstream HTTP status, when there was one")
    field: Optional[str] = Field(None, description="Offending request field for validation errors")


class HealthResponse(BaseModel):
    """Health check response"""
    status: str = "OK"
    message: str = "Server is running"


class BackendTestResponse(BaseModel):
    """Liveness probe used by the frontend"""
    message: str = "Backend is working"


class ParameterInfo(BaseModel):
    """A client-settable parameter and the range the UI should offer"""
    key: str
    aliases: List[str]
    type: str
    default: Any
    min: Optional[float] = None
    max: Optional[float] = None
    choices: List[str] = []


class ModelInfo(BaseModel):
    """One selectable model family"""
    name: str
    model_id: str
    max_images: int
    parameters: List[ParameterInfo] = []


class ModelsResponse(BaseModel):
    models: List[ModelInfo]
    default: str


def error_payload(
    error: str,
    details: Any = None,
    status: Optional[int] = None,
    field: Optional[str] = None
) -> dict:
    """Build the JSON error body, omitting empty members."""
    return ErrorResponse(error=error, details=details, status=status, field=field).model_dump(exclude_none=True)
