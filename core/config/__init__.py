"""
Runtime Configuration Module

Provides configuration loading and management for issuance and verification.
"""

from .runtime import (
    ENV_PREFIX,
    HttpConfig,
    IssuanceConfig,
    LedgerConfig,
    RuntimeConfig,
    StorageConfig,
    VerificationConfig,
)

__all__ = [
    "ENV_PREFIX",
    "RuntimeConfig",
    "LedgerConfig",
    "HttpConfig",
    "IssuanceConfig",
    "VerificationConfig",
    "StorageConfig",
]
