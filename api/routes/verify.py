"""
Verify Routes

- POST /verify                    verify an uploaded document
- GET  /verify/root/{merkle_root} verify a stored batch by its root

A document that fails verification is still a 200 response: the outcome
names the failing gate. Errors are reserved for bad requests.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, UploadFile
from starlette.concurrency import run_in_threadpool

from api.deps import Services, get_services
from api.errors import MissingFileError
from api.models.responses import VerifyResponse


logger = logging.getLogger(__name__)

router = APIRouter(tags=["verification"])


@router.post("/verify", response_model=VerifyResponse)
async def verify_document(
    file: UploadFile = File(..., description="Issued document"),
    services: Services = Depends(get_services),
) -> VerifyResponse:
    data = await file.read()
    if not data:
        raise MissingFileError("Uploaded file is empty")

    logger.info(f"Verifying upload {file.filename!r} ({len(data)} bytes)")
    outcome = await run_in_threadpool(services.engine.verify, data)
    return VerifyResponse(ok=outcome.valid, outcome=outcome)


@router.get("/verify/root/{merkle_root}", response_model=VerifyResponse)
def verify_root(
    merkle_root: str,
    services: Services = Depends(get_services),
) -> VerifyResponse:
    outcome = services.engine.verify_root(merkle_root, services.store)
    return VerifyResponse(ok=outcome.valid, outcome=outcome)
