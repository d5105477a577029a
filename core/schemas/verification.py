"""
Schemas & Canonicalization
File: verification.py

Purpose: Structured verification outcome. The verification engine never
raises to its caller; every run ends in one VerificationOutcome naming the
gate that failed (or ``Valid``) and the error kind.
"""

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


# Severity levels for checks
CheckSeverity = Literal["info", "warn", "error"]

# Overall outcome status
OutcomeStatus = Literal["valid", "invalid", "error"]


class VerificationGate(str, Enum):
    """Verification states in evaluation order."""

    EXTRACTED = "Extracted"
    RECORD_SIGNATURE_VALID = "RecordSignatureValid"
    HASH_COMPUTED = "HashComputed"
    LEAF_LOCATED = "LeafLocated"
    MERKLE_PROOF_VALID = "MerkleProofValid"
    ON_CHAIN_ANCHORED = "OnChainAnchored"
    ROOT_SIGNATURE_VALID = "RootSignatureValid"
    NOT_INVALIDATED = "NotInvalidated"
    VALID = "Valid"


class CheckResult(BaseModel):
    """
    Result of a single verification gate.

    Checks are atomic verification steps that can pass or fail.
    """

    model_config = ConfigDict(extra="forbid")

    check_id: str = Field(
        ...,
        description="Gate name this check belongs to",
        min_length=1,
    )
    ok: bool = Field(
        ...,
        description="Whether the check passed",
    )
    severity: CheckSeverity = Field(
        ...,
        description="Severity level of this check",
    )
    message: str = Field(
        ...,
        description="Human-readable message describing the result",
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional details about the check",
    )

    @property
    def is_warning(self) -> bool:
        return self.severity == "warn"

    @classmethod
    def passed(
        cls,
        check_id: str,
        message: str = "Check passed",
        details: dict[str, Any] | None = None,
    ) -> "CheckResult":
        """Create a passed check result."""
        return cls(
            check_id=check_id,
            ok=True,
            severity="info",
            message=message,
            details=details or {},
        )

    @classmethod
    def warning(
        cls,
        check_id: str,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> "CheckResult":
        """Create a passed-with-warning check result."""
        return cls(
            check_id=check_id,
            ok=True,  # Warnings don't fail the check
            severity="warn",
            message=message,
            details=details or {},
        )

    @classmethod
    def failed(
        cls,
        check_id: str,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> "CheckResult":
        """Create a failed check result."""
        return cls(
            check_id=check_id,
            ok=False,
            severity="error",
            message=message,
            details=details or {},
        )


class VerificationOutcome(BaseModel):
    """
    Complete result of verifying one document (or one Merkle root).

    ``gate`` is the failing gate for invalid/error outcomes and ``Valid``
    for a successful run. ``checks`` lists every gate evaluated, in order;
    gates after the failing one are never evaluated.
    """

    model_config = ConfigDict(extra="forbid")

    status: OutcomeStatus = Field(..., description="valid, invalid or error")
    gate: VerificationGate = Field(..., description="Failing gate, or Valid")
    kind: str | None = Field(default=None, description="Error kind when not valid")
    message: str = Field(default="")
    checks: list[CheckResult] = Field(default_factory=list)

    merkle_root: str | None = None
    leaf_index: int | None = None
    document_hash: str | None = None
    issuer_id: str | None = None
    anchored_at: int | None = Field(
        default=None,
        description="Ledger timestamp (epoch seconds) of the root",
    )
    explorer_url: str | None = None
    used_newline_fallback: bool = False
    details: dict[str, Any] = Field(default_factory=dict)

    @property
    def valid(self) -> bool:
        return self.status == "valid"

    @property
    def has_warnings(self) -> bool:
        return any(check.is_warning for check in self.checks)

    @classmethod
    def success(cls, checks: list[CheckResult], **context: Any) -> "VerificationOutcome":
        return cls(
            status="valid",
            gate=VerificationGate.VALID,
            message="Document is authentic",
            checks=checks,
            **context,
        )

    @classmethod
    def invalid(
        cls,
        gate: VerificationGate,
        kind: str,
        message: str,
        checks: list[CheckResult] | None = None,
        **context: Any,
    ) -> "VerificationOutcome":
        return cls(
            status="invalid",
            gate=gate,
            kind=kind,
            message=message,
            checks=checks or [],
            **context,
        )

    @classmethod
    def from_error(
        cls,
        gate: VerificationGate,
        kind: str,
        message: str,
        checks: list[CheckResult] | None = None,
        **context: Any,
    ) -> "VerificationOutcome":
        """Outcome for a run that could not reach a verdict (e.g. ledger unreachable)."""
        return cls(
            status="error",
            gate=gate,
            kind=kind,
            message=message,
            checks=checks or [],
            **context,
        )
