"""
Test fixtures package for docanchor tests.

Usage:
    from fixtures.common import make_environment, make_pdf

    def test_something():
        env = make_environment()
        result = env.issue({"a.pdf": make_pdf("a")})
"""

from .common import (
    FIXED_NOW,
    ISSUER_ID,
    ISSUER_KEY,
    OTHER_KEY,
    WORKER_KEY,
    Environment,
    make_docx,
    make_environment,
    make_proof_record,
    make_pdf,
    make_text,
)

__all__ = [
    "FIXED_NOW",
    "ISSUER_ID",
    "ISSUER_KEY",
    "OTHER_KEY",
    "WORKER_KEY",
    "Environment",
    "make_docx",
    "make_environment",
    "make_proof_record",
    "make_pdf",
    "make_text",
]
