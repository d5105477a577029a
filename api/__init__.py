"""
HTTP API for document verification:
- POST /verify - Verify an uploaded document
- GET /verify/root/{merkle_root} - Verify a stored batch
- GET /proofs/{merkle_root} - Download a proof record
- GET /health - Health check

Usage:
    uvicorn api.app:app --reload
"""

__version__ = "0.1.0"
