"""
Issuance Orchestrator Unit Tests
Tests for orchestrator/issuance.py

- the full state sequence on success
- each pre-anchor failure stops before any ledger write
- partial embed failures still persist the anchored record
"""
import io

import pytest
from pypdf import PdfReader

from core.codec import FlatAppendCodec
from core.codec.badge import PDF_BADGE_KEY
from core.config.runtime import IssuanceConfig
from core.ledger.memory import InMemoryLedgerClient
from core.schemas.errors import ErrorKinds, MalformedProofException
from core.storage.records import ISSUER_DOCUMENTS, find_proof_by_root
from orchestrator.issuance import IssuanceOrchestrator, IssuanceRequest, IssuanceStep, IssueDocument

from fixtures.common import ISSUER_ID, make_docx, make_environment, make_pdf, make_text

ALL_STEPS = [
    IssuanceStep.HASHING,
    IssuanceStep.TREE_BUILT,
    IssuanceStep.ROOT_CHECKED_ABSENT,
    IssuanceStep.ANCHORED,
    IssuanceStep.ROOT_SIGNED,
    IssuanceStep.RECORD_SIGNED,
    IssuanceStep.EMBEDDED,
    IssuanceStep.PERSISTED,
    IssuanceStep.DONE,
]


def put_root_calls(ledger):
    return [call for call in ledger.submitted if call[0] == "putRoot"]


class TestSuccessfulIssuance:
    def test_batch_of_three(self, env):
        result = env.issue({
            "a.pdf": make_pdf("a"),
            "b.docx": make_docx("b"),
            "c.txt": make_text(),
        })

        assert result.ok, result.failure
        assert result.completed_steps == ALL_STEPS
        assert result.persisted
        assert [doc.output_name for doc in result.documents] == [
            "2026-spring_1_a.pdf",
            "2026-spring_2_b.docx",
            "2026-spring_3_c.txt",
        ]

        record = result.record
        assert record.issuer_id == ISSUER_ID
        assert record.created_at == "2026-01-27T21:35:00.000Z"
        assert record.proof_signature
        assert record.signature == record.batch_proof.signature
        assert record.batch_proof.files == ["a.pdf", "b.docx", "c.txt"]
        assert len(record.batch_proof.leaves) == 3
        assert [doc.leaf for doc in result.documents] == record.batch_proof.leaves
        assert env.ledger.get_root_timestamp(record.merkle_root) > 0

    def test_record_is_persisted(self, env):
        result = env.issue({"a.pdf": make_pdf("a"), "b.pdf": make_pdf("b")}, description="Spring transcripts")

        stored = find_proof_by_root(env.store, result.merkle_root)
        assert stored == result.record
        row = env.store.get(ISSUER_DOCUMENTS, result.record.id)
        assert row["merkle_root"] == result.merkle_root
        assert row["description"] == "Spring transcripts"
        assert row["tx_hash"] == result.receipt.tx_hash
        assert row["failed"] == []

    def test_single_document_keeps_name(self, env):
        result = env.issue({"Final Report.pdf": make_pdf()})

        assert result.documents[0].output_name == "Final-Report.pdf"
        assert result.record.merkle_root == result.record.batch_proof.leaves[0]
        assert result.record.batch_proof.proofs == [[]]

    def test_leaves_follow_submission_order(self, env):
        docs = {f"doc{i}.txt": make_text(f"document {i}\n") for i in range(8)}
        result = env.issue(docs)

        assert [doc.index for doc in result.documents] == list(range(8))
        assert result.record.batch_proof.files == list(docs)

    def test_embedded_record_matches_persisted(self, env):
        result = env.issue({"a.txt": make_text()})
        _, embedded = FlatAppendCodec().extract(result.documents[0].data)

        assert embedded == result.record

    def test_to_dict(self, env):
        summary = env.issue({"a.txt": make_text()}).to_dict()

        assert summary["ok"] is True
        assert summary["failure"] is None
        assert summary["documents"] == ["a.txt"]


class TestPreAnchorFailures:
    def test_empty_batch(self, env):
        result = env.issue({})

        assert not result.ok
        assert result.failure.step == IssuanceStep.HASHING
        assert result.failure.kind == ErrorKinds.INVALID_BATCH
        assert env.ledger.submitted == []

    def test_batch_too_large(self):
        env = make_environment(config=IssuanceConfig(badge_enabled=False, max_batch_size=2))
        result = env.issue({f"{i}.txt": make_text(str(i)) for i in range(3)})

        assert result.failure.kind == ErrorKinds.INVALID_BATCH
        assert result.failure.details["max_batch_size"] == 2

    def test_already_embedded_input(self, env):
        issued = env.issue({"a.txt": make_text()}).documents[0].data
        result = env.issue({"a.txt": issued}, batch="again")

        assert result.failure.step == IssuanceStep.HASHING
        assert result.failure.kind == ErrorKinds.PROOF_ALREADY_EMBEDDED

    def test_already_anchored(self, env):
        docs = {"a.pdf": make_pdf("a"), "b.pdf": make_pdf("b")}
        first = env.issue(docs)
        anchors = len(put_root_calls(env.ledger))

        second = env.issue(docs, batch="2026-spring-retry")

        assert first.ok
        assert not second.ok
        assert second.failure.step == IssuanceStep.ROOT_CHECKED_ABSENT
        assert second.failure.kind == ErrorKinds.ALREADY_ANCHORED
        assert second.completed_steps == ALL_STEPS[:2]
        assert len(put_root_calls(env.ledger)) == anchors
        assert second.record is None

    def test_worker_not_authorized(self):
        env = make_environment(worker_authorized=False)
        result = env.issue({"a.txt": make_text()})

        assert result.failure.step == IssuanceStep.ROOT_CHECKED_ABSENT
        assert result.failure.kind == ErrorKinds.WORKER_NOT_AUTHORIZED
        assert env.ledger.submitted == []

    def test_no_worker_key(self, env):
        env.orchestrator.ledger = InMemoryLedgerClient(None)
        result = env.issue({"a.txt": make_text()})

        assert result.failure.kind == ErrorKinds.KEY_MATERIAL_MISSING


class TestLedgerFailures:
    def test_failed_anchor_transaction(self, env):
        env.ledger.fail_next_transaction = True
        result = env.issue({"a.txt": make_text()})

        assert result.failure.step == IssuanceStep.ANCHORED
        assert result.failure.kind == ErrorKinds.LEDGER_TRANSACTION_FAILED
        assert not result.persisted
        assert env.store.query(ISSUER_DOCUMENTS) == []


class TestPartialBatch:
    def test_embed_failure_keeps_record(self, env, monkeypatch):
        original_embed = FlatAppendCodec.embed

        def flaky_embed(self, data, record):
            if b"broken" in data:
                raise MalformedProofException("cannot embed")
            return original_embed(self, data, record)

        monkeypatch.setattr(FlatAppendCodec, "embed", flaky_embed)
        result = env.issue({"good.txt": make_text("fine\n"), "bad.txt": make_text("broken\n")})

        assert not result.ok
        assert result.failure.step == IssuanceStep.EMBEDDED
        assert result.failure.kind == ErrorKinds.PARTIAL_BATCH
        assert result.failure.details["failed"] == {"bad.txt": "cannot embed"}
        assert [doc.name for doc in result.documents] == ["good.txt"]
        assert result.persisted
        assert find_proof_by_root(env.store, result.merkle_root) is not None
        assert env.store.get(ISSUER_DOCUMENTS, result.record.id)["failed"] == ["bad.txt"]


class TestBadge:
    def test_pdf_badge_then_verifies(self):
        env = make_environment(config=IssuanceConfig(verification_url="https://verify.example.org"))
        result = env.issue({"a.pdf": make_pdf("a")})
        issued = result.documents[0].data

        original, _ = FlatAppendCodec().extract(issued)
        assert PdfReader(io.BytesIO(original)).metadata[PDF_BADGE_KEY] == "https://verify.example.org"
        assert env.engine.verify(issued).valid

    def test_docx_badge_then_verifies(self):
        env = make_environment(config=IssuanceConfig())
        result = env.issue({"a.docx": make_docx("a")})

        assert result.ok
        assert env.engine.verify(result.documents[0].data).valid

    def test_badge_failure_uses_undecorated_bytes(self, env):
        class ExplodingBadge:
            def decorate(self, data):
                raise RuntimeError("no fonts")

        orchestrator = IssuanceOrchestrator(
            ledger=env.ledger,
            signer=env.signer,
            store=env.store,
            config=IssuanceConfig(),
            badge=ExplodingBadge(),
        )
        text = make_text()
        result = orchestrator.issue(IssuanceRequest(ISSUER_ID, "b", [IssueDocument("a.txt", text)]))

        assert result.ok
        assert FlatAppendCodec().extract(result.documents[0].data).original == text
