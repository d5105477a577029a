"""API route handlers."""

from api.routes import health, proofs, verify

__all__ = ["health", "verify", "proofs"]
