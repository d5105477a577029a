"""
FastAPI Application

Public verification endpoints for issued documents.

Usage:
    uvicorn api.app:app --reload

    # Or run directly
    python -m api.app
"""

import json
import logging
import os
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.errors import (
    APIError,
    api_error_handler,
    docanchor_error_handler,
    generic_error_handler,
)
from api.routes import health, proofs, verify
from core.schemas.errors import DocAnchorException


# Logging respects DOCANCHOR_LOG_LEVEL and docanchor.json log_level
def _resolve_log_level() -> int:
    """Resolve log level from env var or docanchor.json, defaulting to INFO."""
    raw = os.getenv("DOCANCHOR_LOG_LEVEL")
    if raw is None:
        cfg_path = Path.cwd() / "docanchor.json"
        if cfg_path.exists():
            try:
                with open(cfg_path) as f:
                    raw = json.load(f).get("log_level")
            except (OSError, ValueError, AttributeError):
                raw = None
    return getattr(logging, (raw or "INFO").upper(), logging.INFO)


logging.basicConfig(
    level=_resolve_log_level(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(
        title="docanchor API",
        description="""
Verification API for ledger-anchored documents.

## Endpoints

- **POST /verify** - Verify an uploaded document (multipart `file`)
- **GET /verify/root/{merkle_root}** - Verify a stored batch by its root
- **GET /proofs/{merkle_root}** - Download the stored proof record
- **GET /health** - Health check

Verification outcomes are returned with HTTP 200; `outcome.status` is
`valid`, `invalid` or `error` and names the failing gate when not valid.
        """,
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(DocAnchorException, docanchor_error_handler)
    app.add_exception_handler(Exception, generic_error_handler)

    app.include_router(health.router)
    app.include_router(verify.router)
    app.include_router(proofs.router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
