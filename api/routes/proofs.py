"""
Proof Record Download

GET /proofs/{merkle_root} returns the stored proof record as a JSON
attachment.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from api.deps import Services, get_services
from api.errors import NotFoundError
from core.crypto.hashing import normalize_hex
from core.storage.records import find_proof_by_root
from orchestrator.artifacts.bundle import sanitize_filename


router = APIRouter(tags=["proofs"])


@router.get("/proofs/{merkle_root}")
def download_proof(
    merkle_root: str,
    services: Services = Depends(get_services),
) -> JSONResponse:
    record = find_proof_by_root(services.store, merkle_root)
    if record is None:
        raise NotFoundError(
            f"No proof record found for Merkle root {merkle_root}",
            details={"merkle_root": normalize_hex(merkle_root)},
        )
    filename = f"{sanitize_filename(record.batch) or 'proof'}_proof.json"
    return JSONResponse(
        content=record.to_json_dict(),
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
