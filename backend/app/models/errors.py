"""Error envelope returned by the API."""

from enum import Enum

from pydantic import BaseModel, Field


class ErrorCode(str, Enum):
    """Machine-readable error codes."""

    INVALID_INPUT = "INVALID_INPUT"
    RATE_LIMITED = "RATE_LIMITED"
    UPSTREAM_ERROR = "UPSTREAM_ERROR"
    API_ERROR = "API_ERROR"


class AppError(BaseModel):
    """Error details shown to API clients."""

    code: ErrorCode
    message: str = Field(..., description="Technical message")
    user_message: str = Field(..., description="Message safe to show end users")
