"""
Schemas & Canonicalization
File: errors.py

Purpose: Standard error taxonomy across issuance and verification:
stable error kinds plus the exception hierarchy that carries them.
"""

from typing import Any


# =============================================================================
# Error Kinds (Machine-Readable Constants)
# =============================================================================

class ErrorKinds:
    """Stable machine-readable error kinds used across the proof lifecycle."""

    # Proof content
    MALFORMED_PROOF = "MalformedProof"
    PROOF_ALREADY_EMBEDDED = "ProofAlreadyEmbedded"
    CANONICALIZATION_ERROR = "CanonicalizationError"

    # Cryptography
    SIGNATURE_INVALID = "SignatureInvalid"
    KEY_MATERIAL_MISSING = "KeyMaterialMissing"
    ISSUER_UNKNOWN = "IssuerUnknown"

    # Merkle commitments
    LEAF_NOT_FOUND = "LeafNotFound"
    MERKLE_PROOF_INVALID = "MerkleProofInvalid"

    # Ledger
    NOT_ANCHORED = "NotAnchored"
    ALREADY_ANCHORED = "AlreadyAnchored"
    LEDGER_UNREACHABLE = "LedgerUnreachable"
    LEDGER_REVERT = "LedgerRevert"
    LEDGER_TRANSACTION_FAILED = "LedgerTransactionFailed"
    WORKER_NOT_AUTHORIZED = "WorkerNotAuthorized"
    INVALIDATED = "Invalidated"

    # Orchestration
    RECORD_NOT_FOUND = "RecordNotFound"
    INVALID_BATCH = "InvalidBatch"
    PARTIAL_BATCH = "PartialBatch"
    CONFIG_ERROR = "ConfigError"
    INTERNAL_ERROR = "InternalError"


# =============================================================================
# Python Exceptions (Control Flow)
# =============================================================================

class DocAnchorException(Exception):
    """
    Base exception for all proof lifecycle errors.

    Carries a stable error kind, structured details and a retryable flag.
    """

    def __init__(
        self,
        message: str,
        code: str = ErrorKinds.INTERNAL_ERROR,
        details: dict[str, Any] | None = None,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}
        self.retryable = retryable

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


class CanonicalizationException(DocAnchorException):
    """Exception raised when canonical serialization fails."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            code=ErrorKinds.CANONICALIZATION_ERROR,
            details=details,
        )


class MalformedProofException(DocAnchorException):
    """Embedded proof block is missing, truncated or unparseable."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            code=ErrorKinds.MALFORMED_PROOF,
            details=details,
        )


class ProofAlreadyEmbeddedException(DocAnchorException):
    """A flat container already carries a proof block."""

    def __init__(self, message: str = "Document already carries an embedded proof block") -> None:
        super().__init__(message=message, code=ErrorKinds.PROOF_ALREADY_EMBEDDED)


class KeyMaterialMissingException(DocAnchorException):
    """Signer invoked without present, well-formed key material."""

    def __init__(
        self,
        message: str = "Signing key is missing or malformed",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            code=ErrorKinds.KEY_MATERIAL_MISSING,
            details=details,
        )


class SignatureInvalidException(DocAnchorException):
    """Signature does not recover to the expected issuer identity."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            code=ErrorKinds.SIGNATURE_INVALID,
            details=details,
        )


class NetworkException(DocAnchorException):
    """Remote call failed after bounded retries or timed out."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            code=ErrorKinds.LEDGER_UNREACHABLE,
            details=details,
            retryable=True,
        )


class AlreadyAnchoredException(DocAnchorException):
    """Batch root already has a non-zero ledger timestamp."""

    def __init__(self, root: str, timestamp: int) -> None:
        super().__init__(
            message=f"Merkle root {root} is already anchored on the ledger",
            code=ErrorKinds.ALREADY_ANCHORED,
            details={"merkle_root": root, "timestamp": timestamp},
        )


class WorkerNotAuthorizedException(DocAnchorException):
    """Submitting account is not a ledger worker."""

    def __init__(self, address: str) -> None:
        super().__init__(
            message=f"Address {address} is not an authorized worker on the ledger",
            code=ErrorKinds.WORKER_NOT_AUTHORIZED,
            details={"address": address},
        )


class LedgerRevertException(DocAnchorException):
    """Dry-run of a ledger write reports the transaction would revert."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            code=ErrorKinds.LEDGER_REVERT,
            details=details,
        )


class LedgerTransactionFailedException(DocAnchorException):
    """A submitted ledger transaction reached a failed terminal state."""

    def __init__(self, tx_hash: str, details: dict[str, Any] | None = None) -> None:
        full_details = details or {}
        full_details["tx_hash"] = tx_hash
        super().__init__(
            message=f"Ledger transaction {tx_hash} failed",
            code=ErrorKinds.LEDGER_TRANSACTION_FAILED,
            details=full_details,
        )


class IssuerUnknownException(DocAnchorException):
    """No public key could be found for an issuer."""

    def __init__(self, issuer_id: str) -> None:
        super().__init__(
            message=f"Issuer public key not found for issuer {issuer_id!r}",
            code=ErrorKinds.ISSUER_UNKNOWN,
            details={"issuer_id": issuer_id},
        )


class ConfigException(DocAnchorException):
    """Configuration is incomplete for the requested operation."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            message=message,
            code=ErrorKinds.CONFIG_ERROR,
            details=details,
        )


class LeafNotFoundException(DocAnchorException):
    """Recomputed document hash is not in the batch's leaf set."""

    def __init__(self, document_hash: str, details: dict[str, Any] | None = None) -> None:
        full_details = details or {}
        full_details["document_hash"] = document_hash
        super().__init__(
            message=f"Document hash {document_hash} is not part of this batch",
            code=ErrorKinds.LEAF_NOT_FOUND,
            details=full_details,
        )


class MerkleProofInvalidException(DocAnchorException):
    """Inclusion proof does not reproduce the batch root."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            message=message,
            code=ErrorKinds.MERKLE_PROOF_INVALID,
            details=details,
        )


class NotAnchoredException(DocAnchorException):
    """Ledger reports a zero timestamp for the batch root."""

    def __init__(self, root: str) -> None:
        super().__init__(
            message=f"Merkle root {root} is not anchored on the ledger",
            code=ErrorKinds.NOT_ANCHORED,
            details={"merkle_root": root},
        )


class InvalidatedException(DocAnchorException):
    """Ledger reports the document or its root as invalidated or expired."""

    def __init__(self, status: str, timestamp: int) -> None:
        super().__init__(
            message=f"Ledger reports status {status}",
            code=ErrorKinds.INVALIDATED,
            details={"status": status, "timestamp": timestamp},
        )


class RecordNotFoundException(DocAnchorException):
    """No stored proof record for the requested Merkle root."""

    def __init__(self, root: str) -> None:
        super().__init__(
            message=f"No proof record found for Merkle root {root}",
            code=ErrorKinds.RECORD_NOT_FOUND,
            details={"merkle_root": root},
        )


class InvalidBatchException(DocAnchorException):
    """Issuance request is empty, too large or otherwise unusable."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            message=message,
            code=ErrorKinds.INVALID_BATCH,
            details=details,
        )


class PartialBatchException(DocAnchorException):
    """Some documents of an anchored batch could not carry the embedded proof."""

    def __init__(self, succeeded: list[str], failed: dict[str, str]) -> None:
        super().__init__(
            message=(
                f"Proof embedded in {len(succeeded)} of "
                f"{len(succeeded) + len(failed)} documents"
            ),
            code=ErrorKinds.PARTIAL_BATCH,
            details={"succeeded": succeeded, "failed": failed},
        )
