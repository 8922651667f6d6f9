"""Common Pydantic schemas shared across the API."""

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Request body accepting camelCase keys (snake_case also allowed)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class ErrorBody(BaseModel):
    code: str = Field(description="Error code for programmatic handling")
    message: str = Field(description="Human readable message")
    path: str
    method: str
    details: Optional[object] = Field(
        None, description="Expected vs provided breakdown for validation failures"
    )
    request_id: Optional[str] = None


class ErrorResponse(BaseModel):
    """Error envelope returned by every failing endpoint."""

    error: ErrorBody


ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid body or business-rule violation"},
    401: {"model": ErrorResponse, "description": "Missing, invalid or expired token"},
    403: {"model": ErrorResponse, "description": "Not permitted for this caller"},
    404: {"model": ErrorResponse, "description": "Referenced entity not found"},
    409: {"model": ErrorResponse, "description": "Conflicting state"},
}
