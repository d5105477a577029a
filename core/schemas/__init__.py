"""
Schemas & Canonicalization
File: __init__.py

Purpose: Export the public API for the schemas module.
This is the main entry point for other modules to import schema definitions.
"""

# Error models and exceptions
from .errors import (
    AlreadyAnchoredException,
    CanonicalizationException,
    ConfigException,
    DocAnchorException,
    ErrorKinds,
    InvalidBatchException,
    InvalidatedException,
    IssuerUnknownException,
    KeyMaterialMissingException,
    LeafNotFoundException,
    LedgerRevertException,
    LedgerTransactionFailedException,
    MalformedProofException,
    MerkleProofInvalidException,
    NetworkException,
    NotAnchoredException,
    PartialBatchException,
    ProofAlreadyEmbeddedException,
    RecordNotFoundException,
    SignatureInvalidException,
    WorkerNotAuthorizedException,
)

# Canonical serialization API
from .canonical import (
    CANONICAL_JSON_SEPARATORS,
    RECORD_CANONICAL_VERSION,
    canonical_record_string,
    canonicalize_value,
    dumps_canonical,
    ensure_utc,
    format_timestamp,
    parse_timestamp,
)

# Proof record schemas
from .proof import (
    BatchProof,
    ProofJson,
    ProofRecord,
)

# Verification schemas
from .verification import (
    CheckResult,
    CheckSeverity,
    OutcomeStatus,
    VerificationGate,
    VerificationOutcome,
)


__all__ = [
    # Canonical serialization
    "dumps_canonical",
    "canonicalize_value",
    "canonical_record_string",
    "ensure_utc",
    "format_timestamp",
    "parse_timestamp",
    "CANONICAL_JSON_SEPARATORS",
    "RECORD_CANONICAL_VERSION",
    # Errors
    "ErrorKinds",
    "DocAnchorException",
    "CanonicalizationException",
    "MalformedProofException",
    "ProofAlreadyEmbeddedException",
    "KeyMaterialMissingException",
    "SignatureInvalidException",
    "NetworkException",
    "AlreadyAnchoredException",
    "WorkerNotAuthorizedException",
    "LedgerRevertException",
    "LedgerTransactionFailedException",
    "IssuerUnknownException",
    "ConfigException",
    "LeafNotFoundException",
    "MerkleProofInvalidException",
    "NotAnchoredException",
    "InvalidatedException",
    "RecordNotFoundException",
    "InvalidBatchException",
    "PartialBatchException",
    # Proof records
    "BatchProof",
    "ProofJson",
    "ProofRecord",
    # Verification
    "CheckResult",
    "CheckSeverity",
    "OutcomeStatus",
    "VerificationGate",
    "VerificationOutcome",
]
