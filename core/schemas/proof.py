"""
Schemas & Canonicalization
File: proof.py

Purpose: The durable proof record produced once per issued batch and
embedded into every document of that batch.

Wire format (downloadable JSON):
{
  issuer_id, batch, merkle_root, signature,
  proof_json: {
    proofs: [{ merkleRoot, leaves[], files[], proofs[][], signature,
               timestamp, fileLengths[], leafAlgorithm, nodeAlgorithm }],
    network, explorerUrl, issuerPublicKey, canonicalVersion
  },
  file_paths[], description?, expiry_date?, created_at, proof_signature
}
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .canonical import RECORD_CANONICAL_VERSION


# Records keep unknown fields so the record signature still covers them.
_RECORD_CONFIG = ConfigDict(extra="allow", populate_by_name=True)


class BatchProof(BaseModel):
    """Merkle commitment for one batch: leaves, per-leaf proofs and root signature."""

    model_config = _RECORD_CONFIG

    merkle_root: str = Field(..., alias="merkleRoot")
    leaves: list[str] = Field(..., min_length=1)
    files: list[str] = Field(default_factory=list)
    proofs: list[list[str]] = Field(default_factory=list)
    signature: str | None = None
    timestamp: str
    file_lengths: list[int] = Field(default_factory=list, alias="fileLengths")
    leaf_algorithm: str = Field(..., alias="leafAlgorithm")
    node_algorithm: str = Field(..., alias="nodeAlgorithm")

    @model_validator(mode="after")
    def _check_lengths(self) -> "BatchProof":
        if len(self.proofs) != len(self.leaves):
            raise ValueError(
                f"Batch has {len(self.leaves)} leaves but {len(self.proofs)} proofs"
            )
        if self.files and len(self.files) != len(self.leaves):
            raise ValueError(
                f"Batch has {len(self.leaves)} leaves but {len(self.files)} file names"
            )
        return self


class ProofJson(BaseModel):
    """Embedded sub-object carrying the batch commitment and ledger pointers."""

    model_config = _RECORD_CONFIG

    proofs: list[BatchProof] = Field(..., min_length=1)
    network: str
    explorer_url: str | None = Field(default=None, alias="explorerUrl")
    issuer_public_key: str | None = Field(default=None, alias="issuerPublicKey")
    canonical_version: str = Field(default=RECORD_CANONICAL_VERSION, alias="canonicalVersion")


class ProofRecord(BaseModel):
    """
    Durable, append-only proof artifact for one issued batch.

    ``proof_signature`` covers the canonical serialization of every other
    field (see core.schemas.canonical.canonical_record_string).
    """

    model_config = _RECORD_CONFIG

    id: str = Field(..., min_length=1)
    issuer_id: str = Field(..., min_length=1)
    batch: str
    merkle_root: str
    signature: str | None = None
    proof_json: ProofJson
    file_paths: list[str] = Field(default_factory=list)
    description: str | None = None
    expiry_date: str | None = None
    created_at: str
    proof_signature: str | None = None

    @property
    def batch_proof(self) -> BatchProof:
        """The batch commitment (records carry exactly one)."""
        return self.proof_json.proofs[0]

    @property
    def root_signature(self) -> str | None:
        """Root signature, preferring the top-level copy."""
        return self.signature or self.batch_proof.signature

    def to_json_dict(self) -> dict[str, Any]:
        """JSON form by alias, with explicit nulls."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_json_dict(cls, data: dict[str, Any]) -> "ProofRecord":
        return cls.model_validate(data)


__all__ = [
    "BatchProof",
    "ProofJson",
    "ProofRecord",
]
