"""API response models."""

from api.models.responses import (
    ErrorDetail,
    ErrorResponse,
    HealthResponse,
    VerifyResponse,
)

__all__ = [
    "HealthResponse",
    "VerifyResponse",
    "ErrorDetail",
    "ErrorResponse",
]
