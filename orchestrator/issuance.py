"""
Issuance Orchestrator

Drives one batch of documents through the issuance state machine:

    Hashing -> TreeBuilt -> RootCheckedAbsent -> Anchored -> RootSigned
            -> RecordSigned -> Embedded -> Persisted -> Done

Each state is one SOPStep. A failing step ends the run with the step name
and an error kind; no later step runs. The only exception is a partial
embed failure: the root is already anchored and signed, so the record is
still persisted and the run then fails at ``Embedded`` with PartialBatch.
"""

from __future__ import annotations

import logging
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from core.codec import FORMAT_OOXML, BadgeDecorator, canonical_package, detect_format, get_codec
from core.config.runtime import IssuanceConfig
from core.crypto.hashing import ContentHasher, to_hex
from core.crypto.signatures import ProofSigner
from core.ledger.client import LedgerClient, TxReceipt
from core.merkle.merkle_tree import MerkleEngine, MerkleProof
from core.schemas.canonical import RECORD_CANONICAL_VERSION, format_timestamp
from core.schemas.errors import (
    AlreadyAnchoredException,
    DocAnchorException,
    InvalidBatchException,
    KeyMaterialMissingException,
    PartialBatchException,
    ProofAlreadyEmbeddedException,
    WorkerNotAuthorizedException,
)
from core.schemas.proof import BatchProof, ProofJson, ProofRecord
from core.storage.records import ISSUER_DOCUMENTS, RecordStore, save_proof_record

from orchestrator.artifacts.bundle import output_name
from orchestrator.sop_executor import PipelineState, SOPExecutor, make_step


logger = logging.getLogger(__name__)


class IssuanceStep:
    """Issuance state names, in order."""
    HASHING = "Hashing"
    TREE_BUILT = "TreeBuilt"
    ROOT_CHECKED_ABSENT = "RootCheckedAbsent"
    ANCHORED = "Anchored"
    ROOT_SIGNED = "RootSigned"
    RECORD_SIGNED = "RecordSigned"
    EMBEDDED = "Embedded"
    PERSISTED = "Persisted"
    DONE = "Done"


# =============================================================================
# Request / Result
# =============================================================================

@dataclass
class IssueDocument:
    """One input file."""
    name: str
    data: bytes


@dataclass
class IssuedDocument:
    """One output file carrying the embedded proof."""
    name: str
    output_name: str
    data: bytes
    leaf: str
    index: int


@dataclass
class IssuanceRequest:
    issuer_id: str
    batch: str
    documents: list[IssueDocument]
    description: Optional[str] = None
    expiry_date: Optional[str] = None


@dataclass
class IssuanceFailure:
    """Where and why an issuance run stopped."""
    step: str
    kind: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "step": self.step,
            "kind": self.kind,
            "message": self.message,
            "details": self.details,
        }


@dataclass
class PreparedDocument:
    """Input after decoration and repacking: the bytes that get embedded into."""
    name: str
    data: bytes
    format: str
    leaf: bytes


@dataclass
class IssuanceState(PipelineState):
    request: Optional[IssuanceRequest] = None
    prepared: list[PreparedDocument] = field(default_factory=list)
    proofs: list[MerkleProof] = field(default_factory=list)
    root: Optional[bytes] = None
    receipt: Optional[TxReceipt] = None
    root_signature: Optional[str] = None
    issued_at: Optional[str] = None
    record: Optional[ProofRecord] = None
    issued: list[IssuedDocument] = field(default_factory=list)
    embed_failures: dict[str, str] = field(default_factory=dict)
    persisted: bool = False

    @property
    def root_hex(self) -> Optional[str]:
        return to_hex(self.root) if self.root is not None else None


@dataclass
class IssuanceResult:
    """Outcome of one issuance run."""
    ok: bool
    completed_steps: list[str] = field(default_factory=list)
    record: Optional[ProofRecord] = None
    documents: list[IssuedDocument] = field(default_factory=list)
    receipt: Optional[TxReceipt] = None
    failure: Optional[IssuanceFailure] = None
    persisted: bool = False

    @property
    def merkle_root(self) -> Optional[str]:
        return self.record.merkle_root if self.record else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "completed_steps": self.completed_steps,
            "merkle_root": self.merkle_root,
            "record_id": self.record.id if self.record else None,
            "tx_hash": self.receipt.tx_hash if self.receipt else None,
            "explorer_url": self.receipt.explorer_url if self.receipt else None,
            "documents": [doc.output_name for doc in self.documents],
            "persisted": self.persisted,
            "failure": self.failure.to_dict() if self.failure else None,
        }


# =============================================================================
# Orchestrator
# =============================================================================

def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class IssuanceOrchestrator:
    """
    Issues batches: hash, build tree, anchor, sign, embed, persist.

    Example:
        >>> orchestrator = IssuanceOrchestrator(
        ...     ledger=ledger, signer=ProofSigner(LocalKeyProvider(key)), store=store,
        ... )
        >>> result = orchestrator.issue(IssuanceRequest("acme", "2024-Q1", docs))
        >>> result.ok, result.merkle_root
    """

    def __init__(
        self,
        *,
        ledger: LedgerClient,
        signer: ProofSigner,
        store: RecordStore,
        config: Optional[IssuanceConfig] = None,
        badge: Optional[BadgeDecorator] = None,
        clock: Callable[[], datetime] = _utc_now,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ) -> None:
        self.ledger = ledger
        self.signer = signer
        self.store = store
        self.config = config or IssuanceConfig()
        if badge is None and self.config.badge_enabled:
            badge = BadgeDecorator(self.config.verification_url)
        self.badge = badge
        self.clock = clock
        self.id_factory = id_factory
        self.hasher = ContentHasher(self.config.leaf_algorithm)
        self.engine = MerkleEngine(node_algorithm=self.config.node_algorithm)

    def issue(self, request: IssuanceRequest) -> IssuanceResult:
        logger.info(
            f"Issuing batch {request.batch!r} for {request.issuer_id!r} "
            f"({len(request.documents)} document(s))"
        )
        state = IssuanceState(request=request)
        executor = SOPExecutor(stop_on_error=True)
        state = executor.execute(self._build_steps(), state)
        result = self._state_to_result(state)

        if result.ok:
            logger.info(f"Batch {request.batch!r} issued under root {result.merkle_root}")
        else:
            logger.warning(
                f"Issuance of batch {request.batch!r} stopped at {result.failure.step}: "
                f"{result.failure.kind}"
            )
        return result

    def _build_steps(self) -> list:
        return [
            make_step(IssuanceStep.HASHING, self._step_hash),
            make_step(IssuanceStep.TREE_BUILT, self._step_build_tree),
            make_step(IssuanceStep.ROOT_CHECKED_ABSENT, self._step_check_root_absent),
            make_step(IssuanceStep.ANCHORED, self._step_anchor),
            make_step(IssuanceStep.ROOT_SIGNED, self._step_sign_root),
            make_step(IssuanceStep.RECORD_SIGNED, self._step_sign_record),
            make_step(IssuanceStep.EMBEDDED, self._step_embed),
            make_step(IssuanceStep.PERSISTED, self._step_persist),
            make_step(IssuanceStep.DONE, self._step_done),
        ]

    # -- Hashing -----------------------------------------------------------

    def _validate_batch(self, request: IssuanceRequest) -> None:
        count = len(request.documents)
        if count == 0:
            raise InvalidBatchException("Batch contains no documents")
        if count > self.config.max_batch_size:
            raise InvalidBatchException(
                f"Batch of {count} documents exceeds the maximum of {self.config.max_batch_size}",
                details={"count": count, "max_batch_size": self.config.max_batch_size},
            )
        if not request.issuer_id:
            raise InvalidBatchException("Issuer id is required")
        for doc in request.documents:
            if get_codec(doc.data).has_proof(doc.data):
                raise ProofAlreadyEmbeddedException(
                    f"Document {doc.name!r} already carries an embedded proof"
                )

    def _decorate(self, doc: IssueDocument) -> bytes:
        if self.badge is None:
            return doc.data
        try:
            return self.badge.decorate(doc.data)
        except Exception:
            logger.exception(f"Badge could not be added to {doc.name!r}; using undecorated bytes")
            return doc.data

    def _prepare(self, doc: IssueDocument) -> PreparedDocument:
        # decorate -> canonicalize -> hash; nothing touches the bytes after hashing
        data = self._decorate(doc)
        fmt = detect_format(data)
        if fmt == FORMAT_OOXML:
            data = canonical_package(data)
        codec = get_codec(data)
        leaf = self.hasher.hash(codec.canonicalize_for_hash(data))
        logger.debug(f"{doc.name}: {fmt} leaf {to_hex(leaf)}")
        return PreparedDocument(name=doc.name, data=data, format=fmt, leaf=leaf)

    def _step_hash(self, state: IssuanceState) -> IssuanceState:
        request = state.request
        self._validate_batch(request)
        workers = max(1, min(self.config.hash_workers, len(request.documents)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            state.prepared = list(pool.map(self._prepare, request.documents))
        return state

    # -- Tree / ledger -----------------------------------------------------

    def _step_build_tree(self, state: IssuanceState) -> IssuanceState:
        leaves = [doc.leaf for doc in state.prepared]
        state.proofs = self.engine.build_all_proofs(leaves)
        state.root = state.proofs[0].root
        logger.info(f"Merkle root {state.root_hex} over {len(leaves)} leaf(s)")
        return state

    def _step_check_root_absent(self, state: IssuanceState) -> IssuanceState:
        sender = self.ledger.sender_address()
        if not sender:
            raise KeyMaterialMissingException("No worker key configured for ledger writes")
        if not self.ledger.is_worker(sender):
            raise WorkerNotAuthorizedException(sender)

        timestamp = self.ledger.get_root_timestamp(state.root_hex)
        if timestamp:
            raise AlreadyAnchoredException(state.root_hex, timestamp)
        return state

    def _step_anchor(self, state: IssuanceState) -> IssuanceState:
        state.receipt = self.ledger.put_root(state.root_hex)
        return state

    # -- Signing -----------------------------------------------------------

    def _step_sign_root(self, state: IssuanceState) -> IssuanceState:
        state.root_signature = self.signer.sign_root(state.root)
        state.issued_at = format_timestamp(self.clock())
        return state

    def _file_paths(self, request: IssuanceRequest) -> list[str]:
        size = len(request.documents)
        return [
            output_name(doc.name, batch=request.batch, index=i, batch_size=size)
            for i, doc in enumerate(request.documents)
        ]

    def _step_sign_record(self, state: IssuanceState) -> IssuanceState:
        request = state.request
        batch_proof = BatchProof(
            merkle_root=state.root_hex,
            leaves=[to_hex(doc.leaf) for doc in state.prepared],
            files=[doc.name for doc in state.prepared],
            proofs=[[to_hex(s) for s in proof.siblings] for proof in state.proofs],
            signature=state.root_signature,
            timestamp=state.issued_at,
            file_lengths=[len(doc.data) for doc in state.prepared],
            leaf_algorithm=self.hasher.algorithm,
            node_algorithm=self.engine.node_algorithm,
        )
        record = ProofRecord(
            id=self.id_factory(),
            issuer_id=request.issuer_id,
            batch=request.batch,
            merkle_root=state.root_hex,
            signature=state.root_signature,
            proof_json=ProofJson(
                proofs=[batch_proof],
                network=self.ledger.network,
                explorer_url=state.receipt.explorer_url if state.receipt else None,
                issuer_public_key=self.signer.public_key,
                canonical_version=RECORD_CANONICAL_VERSION,
            ),
            file_paths=self._file_paths(request),
            description=request.description,
            expiry_date=request.expiry_date,
            created_at=state.issued_at,
        )
        signature = self.signer.sign_record(record, RECORD_CANONICAL_VERSION)
        state.record = record.model_copy(update={"proof_signature": signature})
        return state

    # -- Embedding / persistence -------------------------------------------

    def _step_embed(self, state: IssuanceState) -> IssuanceState:
        record = state.record
        for index, doc in enumerate(state.prepared):
            try:
                data = get_codec(doc.data).embed(doc.data, record)
            except DocAnchorException as e:
                logger.error(f"Embedding proof into {doc.name!r} failed: {e.message}")
                state.embed_failures[doc.name] = e.message
                continue
            except Exception as e:
                logger.exception(f"Embedding proof into {doc.name!r} failed")
                state.embed_failures[doc.name] = str(e)
                continue
            state.issued.append(IssuedDocument(
                name=doc.name,
                output_name=record.file_paths[index],
                data=data,
                leaf=to_hex(doc.leaf),
                index=index,
            ))
        return state

    def _step_persist(self, state: IssuanceState) -> IssuanceState:
        record = state.record
        save_proof_record(self.store, record)
        self.store.put(ISSUER_DOCUMENTS, record.id, {
            "id": record.id,
            "issuer_id": record.issuer_id,
            "batch": record.batch,
            "merkle_root": record.merkle_root,
            "tx_hash": state.receipt.tx_hash if state.receipt else None,
            "file_paths": record.file_paths,
            "description": record.description,
            "expiry_date": record.expiry_date,
            "created_at": record.created_at,
            "embedded": [doc.name for doc in state.issued],
            "failed": sorted(state.embed_failures),
        })
        state.persisted = True
        return state

    def _step_done(self, state: IssuanceState) -> IssuanceState:
        if state.embed_failures:
            # The batch is anchored and persisted; report where it went wrong
            state.fail(
                IssuanceStep.EMBEDDED,
                PartialBatchException(
                    succeeded=[doc.name for doc in state.issued],
                    failed=dict(state.embed_failures),
                ),
            )
        return state

    def _state_to_result(self, state: IssuanceState) -> IssuanceResult:
        failure = None
        if state.error is not None:
            failure = IssuanceFailure(
                step=state.failed_step,
                kind=state.error.code,
                message=state.error.message,
                details=state.error.details,
            )
        return IssuanceResult(
            ok=state.ok and failure is None,
            completed_steps=list(state.completed_steps),
            record=state.record,
            documents=list(state.issued),
            receipt=state.receipt,
            failure=failure,
            persisted=state.persisted,
        )


__all__ = [
    "IssuanceStep",
    "IssueDocument",
    "IssuedDocument",
    "IssuanceRequest",
    "IssuanceFailure",
    "IssuanceState",
    "IssuanceResult",
    "IssuanceOrchestrator",
]
