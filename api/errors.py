"""
API Error Handling

Standardized error handling for the API.
"""

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse

from api.models.responses import ErrorDetail, ErrorResponse
from core.schemas.errors import DocAnchorException, ErrorKinds


class APIError(Exception):
    """Base API error with structured response."""

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 400,
        details: dict[str, Any] | None = None,
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(
            ok=False,
            error=ErrorDetail(
                code=self.code,
                message=self.message,
                details=self.details,
            ),
        )


class MissingFileError(APIError):
    """Required file not provided."""

    def __init__(self, message: str = "Required file not provided"):
        super().__init__(
            code="MISSING_FILE",
            message=message,
            status_code=400,
        )


class NotFoundError(APIError):
    """Requested record does not exist."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            code=ErrorKinds.RECORD_NOT_FOUND,
            message=message,
            status_code=404,
            details=details,
        )


# Error kind -> HTTP status for DocAnchorException raised outside verification
_KIND_STATUS = {
    ErrorKinds.RECORD_NOT_FOUND: 404,
    ErrorKinds.LEDGER_UNREACHABLE: 503,
    ErrorKinds.CONFIG_ERROR: 500,
    ErrorKinds.KEY_MATERIAL_MISSING: 500,
    ErrorKinds.INTERNAL_ERROR: 500,
}


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    """Handle APIError exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response().model_dump(),
    )


async def docanchor_error_handler(request: Request, exc: DocAnchorException) -> JSONResponse:
    """Map domain exceptions onto HTTP status codes."""
    return JSONResponse(
        status_code=_KIND_STATUS.get(exc.code, 400),
        content=ErrorResponse(
            ok=False,
            error=ErrorDetail(code=exc.code, message=exc.message, details=exc.details),
        ).model_dump(),
    )


async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            ok=False,
            error=ErrorDetail(
                code=ErrorKinds.INTERNAL_ERROR,
                message="An unexpected error occurred",
                details={"type": type(exc).__name__},
            ),
        ).model_dump(),
    )
