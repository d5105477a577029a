"""
API Response Models

Pydantic models for API response serialization.
"""

from typing import Any

from pydantic import BaseModel, Field

from core.schemas.verification import VerificationOutcome


class HealthResponse(BaseModel):
    """Response for GET /health endpoint."""

    ok: bool = True
    service: str = "docanchor-api"
    version: str = "v1"


class VerifyResponse(BaseModel):
    """Response for the verification endpoints."""

    ok: bool = Field(..., description="True only when the document (or batch) is valid")
    outcome: VerificationOutcome


class ErrorDetail(BaseModel):
    """Error detail structure."""

    code: str = Field(..., description="Error kind")
    message: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    """Standard error response."""

    ok: bool = False
    error: ErrorDetail
