"""
Verification Engine

Checks one document (or one stored Merkle root) against its proof record.
Gates run in order and short-circuit on the first failure:

    Extracted -> RecordSignatureValid -> HashComputed -> LeafLocated
        -> MerkleProofValid -> OnChainAnchored -> RootSignatureValid
        -> NotInvalidated -> Valid

The engine never raises to its caller. Every run ends in a
VerificationOutcome naming the failing gate and error kind. Network
exhaustion and internal faults end with status ``error``, never ``invalid``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from core.codec import FORMAT_FLAT, ContainerCodec, get_codec
from core.config.runtime import VerificationConfig
from core.crypto.hashing import ContentHasher, digest_from_hex, normalize_hex, to_hex
from core.crypto.signatures import address_from_public_key, record_digest, signature_matches
from core.ledger.client import InvalidationState, LedgerClient
from core.merkle.merkle_tree import MerkleEngine
from core.schemas.canonical import parse_timestamp
from core.schemas.errors import (
    ErrorKinds,
    InvalidatedException,
    IssuerUnknownException,
    LeafNotFoundException,
    MalformedProofException,
    MerkleProofInvalidException,
    NotAnchoredException,
    RecordNotFoundException,
    SignatureInvalidException,
)
from core.schemas.proof import BatchProof, ProofRecord
from core.schemas.verification import CheckResult, VerificationGate, VerificationOutcome
from core.storage.records import IssuerDirectory, RecordStore, find_proof_by_root

from orchestrator.sop_executor import PipelineState, SOPExecutor, make_step


logger = logging.getLogger(__name__)

ZERO_HASH = "0x" + "00" * 32

# Kinds that mean "no verdict could be reached" rather than "not authentic"
_ERROR_KINDS = {
    ErrorKinds.LEDGER_UNREACHABLE,
    ErrorKinds.LEDGER_REVERT,
    ErrorKinds.INTERNAL_ERROR,
}


@dataclass
class VerificationState(PipelineState):
    data: bytes = b""
    codec: Optional[ContainerCodec] = None
    original: Optional[bytes] = None
    record: Optional[ProofRecord] = None
    issuer_address: Optional[str] = None
    document_hash: Optional[str] = None
    leaf_index: Optional[int] = None
    used_newline_fallback: bool = False
    anchored_at: Optional[int] = None
    invalidation: Optional[InvalidationState] = None
    checks: list[CheckResult] = field(default_factory=list)

    def passed(self, gate: VerificationGate, message: str, **details) -> None:
        self.checks.append(CheckResult.passed(gate.value, message, details or None))


def _epoch_seconds(value: Optional[str], label: str) -> int:
    if not value:
        return 0
    try:
        return int(parse_timestamp(value).timestamp())
    except ValueError as e:
        raise MalformedProofException(
            f"Record {label} is not an ISO-8601 date: {value!r}",
            details={label: value},
        ) from e


def _batch_engine(batch: BatchProof) -> tuple[ContentHasher, MerkleEngine]:
    try:
        return ContentHasher(batch.leaf_algorithm), MerkleEngine(node_algorithm=batch.node_algorithm)
    except ValueError as e:
        raise MalformedProofException(
            f"Record names an unsupported hash algorithm: {e}",
            details={"leaf_algorithm": batch.leaf_algorithm, "node_algorithm": batch.node_algorithm},
        ) from e


def _decode_digest(value: str, label: str) -> bytes:
    try:
        return digest_from_hex(value)
    except ValueError as e:
        raise MalformedProofException(f"Record {label} is not a 32-byte hex digest: {e}") from e


class VerificationEngine:
    """
    Stateless verifier; safe to share across concurrent requests.

    Issuer keys come from the IssuerDirectory only. The issuer public key
    carried inside the record is informational and never trusted.
    """

    def __init__(
        self,
        *,
        ledger: LedgerClient,
        issuers: IssuerDirectory,
        check_invalidation: bool = True,
        newline_fallback: bool = True,
    ) -> None:
        self.ledger = ledger
        self.issuers = issuers
        self.check_invalidation = check_invalidation
        self.newline_fallback = newline_fallback

    @classmethod
    def from_config(
        cls,
        config: VerificationConfig,
        ledger: LedgerClient,
        issuers: IssuerDirectory,
    ) -> "VerificationEngine":
        return cls(
            ledger=ledger,
            issuers=issuers,
            check_invalidation=config.check_invalidation,
            newline_fallback=config.newline_fallback,
        )

    # -- entry points ------------------------------------------------------

    def verify(self, data: bytes) -> VerificationOutcome:
        """Verify a document carrying an embedded proof."""
        state = VerificationState(data=data)
        steps = [
            make_step(VerificationGate.EXTRACTED.value, self._step_extract),
            make_step(VerificationGate.RECORD_SIGNATURE_VALID.value, self._step_record_signature),
            make_step(VerificationGate.HASH_COMPUTED.value, self._step_hash),
            make_step(VerificationGate.LEAF_LOCATED.value, self._step_locate_leaf),
            make_step(VerificationGate.MERKLE_PROOF_VALID.value, self._step_merkle_proof),
            make_step(VerificationGate.ON_CHAIN_ANCHORED.value, self._step_anchored),
            make_step(VerificationGate.ROOT_SIGNATURE_VALID.value, self._step_root_signature),
            make_step(VerificationGate.NOT_INVALIDATED.value, self._step_not_invalidated),
        ]
        return self._run(steps, state)

    def verify_root(self, merkle_root: str, store: RecordStore) -> VerificationOutcome:
        """Verify a stored batch by its Merkle root, without a document."""

        def lookup(state: VerificationState) -> VerificationState:
            record = find_proof_by_root(store, merkle_root)
            if record is None:
                raise RecordNotFoundException(normalize_hex(merkle_root))
            state.record = record
            state.passed(VerificationGate.EXTRACTED, "Proof record found", batch=record.batch)
            return state

        state = VerificationState()
        steps = [
            make_step(VerificationGate.EXTRACTED.value, lookup),
            make_step(VerificationGate.RECORD_SIGNATURE_VALID.value, self._step_record_signature),
            make_step(VerificationGate.MERKLE_PROOF_VALID.value, self._step_batch_consistent),
            make_step(VerificationGate.ON_CHAIN_ANCHORED.value, self._step_anchored),
            make_step(VerificationGate.ROOT_SIGNATURE_VALID.value, self._step_root_signature),
            make_step(VerificationGate.NOT_INVALIDATED.value, self._step_not_invalidated),
        ]
        return self._run(steps, state)

    def _run(self, steps: list, state: VerificationState) -> VerificationOutcome:
        state = SOPExecutor(stop_on_error=True).execute(steps, state)
        outcome = self._state_to_outcome(state)
        if outcome.valid:
            logger.info(f"Verified document under root {outcome.merkle_root}")
        else:
            logger.info(f"Verification {outcome.status} at {outcome.gate.value}: {outcome.kind}")
        return outcome

    # -- gates -------------------------------------------------------------

    def _step_extract(self, state: VerificationState) -> VerificationState:
        state.codec = get_codec(state.data)
        state.original, state.record = state.codec.extract(state.data)
        state.passed(
            VerificationGate.EXTRACTED,
            f"Proof record extracted ({state.codec.format_name})",
            batch=state.record.batch,
        )
        return state

    def _issuer_address(self, issuer_id: str) -> str:
        public_key = self.issuers.get_public_key(issuer_id)
        if not public_key:
            raise IssuerUnknownException(issuer_id)
        try:
            return address_from_public_key(public_key)
        except ValueError as e:
            raise SignatureInvalidException(
                f"Issuer key for {issuer_id!r} is malformed: {e}",
                details={"issuer_id": issuer_id},
            ) from e

    def _step_record_signature(self, state: VerificationState) -> VerificationState:
        record = state.record
        state.issuer_address = self._issuer_address(record.issuer_id)
        version = record.proof_json.canonical_version
        digest = record_digest(record, version)
        if not signature_matches(digest, record.proof_signature, state.issuer_address):
            raise SignatureInvalidException(
                "Record signature does not match the issuer",
                details={"issuer_id": record.issuer_id, "canonical_version": version},
            )
        state.passed(VerificationGate.RECORD_SIGNATURE_VALID, "Record signature matches issuer")
        return state

    def _step_hash(self, state: VerificationState) -> VerificationState:
        hasher, _ = _batch_engine(state.record.batch_proof)
        digest = hasher.hash(state.codec.canonicalize_for_hash(state.original))
        state.document_hash = to_hex(digest)
        state.passed(VerificationGate.HASH_COMPUTED, "Document hash computed", hash=state.document_hash)
        return state

    def _step_locate_leaf(self, state: VerificationState) -> VerificationState:
        hasher, _ = _batch_engine(state.record.batch_proof)
        leaves = [normalize_hex(leaf) for leaf in state.record.batch_proof.leaves]

        if state.document_hash in leaves:
            # Duplicate leaves resolve to the first index.
            state.leaf_index = leaves.index(state.document_hash)
        elif (
            self.newline_fallback
            and state.codec.format_name == FORMAT_FLAT
            and state.original.endswith(b"\n")
        ):
            retry_hash = hasher.hash_hex(state.original[:-1])
            logger.warning(
                f"Hash {state.document_hash} not in leaf set; retrying without trailing "
                f"line feed gives {retry_hash}"
            )
            if retry_hash not in leaves:
                raise LeafNotFoundException(state.document_hash, details={"retry_hash": retry_hash})
            state.document_hash = retry_hash
            state.leaf_index = leaves.index(retry_hash)
            state.used_newline_fallback = True
        else:
            raise LeafNotFoundException(state.document_hash)

        state.passed(
            VerificationGate.LEAF_LOCATED,
            f"Document is leaf {state.leaf_index} of the batch",
            used_newline_fallback=state.used_newline_fallback,
        )
        return state

    def _root_bytes(self, record: ProofRecord) -> bytes:
        root = _decode_digest(record.merkle_root, "merkle_root")
        if normalize_hex(record.batch_proof.merkle_root) != normalize_hex(record.merkle_root):
            raise MerkleProofInvalidException(
                "Batch proof root differs from record root",
                details={"record_root": record.merkle_root, "batch_root": record.batch_proof.merkle_root},
            )
        return root

    def _step_merkle_proof(self, state: VerificationState) -> VerificationState:
        batch = state.record.batch_proof
        _, engine = _batch_engine(batch)
        root = self._root_bytes(state.record)
        siblings = [_decode_digest(s, "proof entry") for s in batch.proofs[state.leaf_index]]
        if not engine.verify(digest_from_hex(state.document_hash), siblings, root):
            raise MerkleProofInvalidException(
                "Inclusion proof does not reproduce the Merkle root",
                details={"leaf_index": state.leaf_index},
            )
        state.passed(VerificationGate.MERKLE_PROOF_VALID, "Inclusion proof reproduces root")
        return state

    def _step_batch_consistent(self, state: VerificationState) -> VerificationState:
        batch = state.record.batch_proof
        _, engine = _batch_engine(batch)
        root = self._root_bytes(state.record)
        for index, leaf in enumerate(batch.leaves):
            siblings = [_decode_digest(s, "proof entry") for s in batch.proofs[index]]
            if not engine.verify(_decode_digest(leaf, "leaf"), siblings, root):
                raise MerkleProofInvalidException(
                    f"Inclusion proof for leaf {index} does not reproduce the Merkle root",
                    details={"leaf_index": index},
                )
        state.passed(VerificationGate.MERKLE_PROOF_VALID, f"All {len(batch.leaves)} proofs reproduce root")
        return state

    def _step_anchored(self, state: VerificationState) -> VerificationState:
        root = normalize_hex(state.record.merkle_root)
        timestamp = self.ledger.get_root_timestamp(root)
        if not timestamp:
            raise NotAnchoredException(root)
        state.anchored_at = timestamp
        state.passed(VerificationGate.ON_CHAIN_ANCHORED, "Root is anchored", timestamp=timestamp)
        return state

    def _step_root_signature(self, state: VerificationState) -> VerificationState:
        root = _decode_digest(state.record.merkle_root, "merkle_root")
        if not signature_matches(root, state.record.root_signature, state.issuer_address):
            raise SignatureInvalidException(
                "Root signature does not match the issuer",
                details={"issuer_id": state.record.issuer_id},
            )
        state.passed(VerificationGate.ROOT_SIGNATURE_VALID, "Root signature matches issuer")
        return state

    def _step_not_invalidated(self, state: VerificationState) -> VerificationState:
        if not self.check_invalidation:
            state.checks.append(CheckResult.warning(
                VerificationGate.NOT_INVALIDATED.value,
                "Invalidation check disabled",
            ))
            return state

        record = state.record
        status = self.ledger.is_invalidated(
            state.document_hash or ZERO_HASH,
            normalize_hex(record.merkle_root),
            record.issuer_id,
            _epoch_seconds(record.expiry_date, "expiry_date"),
            _epoch_seconds(record.created_at, "created_at"),
        )
        state.invalidation = status
        if not status.is_valid:
            raise InvalidatedException(status.status, status.timestamp)
        state.passed(VerificationGate.NOT_INVALIDATED, "Not invalidated")
        return state

    # -- result ------------------------------------------------------------

    def _state_to_outcome(self, state: VerificationState) -> VerificationOutcome:
        record = state.record
        context = {
            "merkle_root": normalize_hex(record.merkle_root) if record else None,
            "leaf_index": state.leaf_index,
            "document_hash": state.document_hash,
            "issuer_id": record.issuer_id if record else None,
            "anchored_at": state.anchored_at,
            "explorer_url": record.proof_json.explorer_url if record else None,
            "used_newline_fallback": state.used_newline_fallback,
        }

        if state.error is None:
            return VerificationOutcome.success(list(state.checks), **context)

        error = state.error
        gate = VerificationGate(state.failed_step)
        checks = list(state.checks) + [CheckResult.failed(gate.value, error.message, error.details)]
        build = VerificationOutcome.from_error if error.code in _ERROR_KINDS else VerificationOutcome.invalid
        return build(gate, error.code, error.message, checks, details=error.details, **context)


__all__ = [
    "VerificationState",
    "VerificationEngine",
]
