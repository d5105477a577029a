"""
Invalidation Service Unit Tests
Tests for orchestrator/invalidation.py
"""
import pytest

from core.codec import FlatAppendCodec
from core.schemas.errors import (
    ErrorKinds,
    LeafNotFoundException,
    LedgerRevertException,
    MalformedProofException,
)
from core.storage.records import InMemoryRecordStore, StoreIssuerDirectory

from fixtures.common import ISSUER_ID, make_text


@pytest.fixture
def batch(env):
    result = env.issue({
        "alice.txt": make_text("Grade report\nAlice: A\n"),
        "bob.txt": make_text("Grade report\nBob: B\n"),
    })
    assert result.ok
    return result


@pytest.fixture
def service(env):
    svc = env.invalidation()
    svc.register_issuer("Acme University")
    return svc


class TestRegisterIssuer:
    def test_registers_address_on_ledger(self, env):
        receipt = env.invalidation().register_issuer("Acme University")

        assert receipt.status == "confirmed"
        assert env.ledger.state.issuers[ISSUER_ID] == (env.signer.address, "Acme University")

    def test_registers_public_key_in_directory(self, env):
        directory = StoreIssuerDirectory(InMemoryRecordStore())
        env.invalidation().register_issuer("Acme University", directory=directory)

        assert directory.get_public_key(ISSUER_ID) == env.signer.public_key

    def test_second_registration_reverts(self, env, service):
        with pytest.raises(LedgerRevertException):
            service.register_issuer("Acme University")


class TestInvalidateDocument:
    def test_only_that_document_is_invalidated(self, env, batch, service):
        service.invalidate_document_file(batch.documents[0].data)

        first = env.engine.verify(batch.documents[0].data)
        second = env.engine.verify(batch.documents[1].data)

        assert first.kind == ErrorKinds.INVALIDATED
        assert first.details["status"] == "DOCUMENT_INVALIDATED"
        assert second.valid

    def test_by_hash(self, env, batch, service):
        receipt = service.invalidate_document(batch.documents[1].leaf)

        assert receipt.status == "confirmed"
        assert env.engine.verify(batch.documents[1].data).kind == ErrorKinds.INVALIDATED

    def test_tampered_file(self, batch, service):
        tampered = batch.documents[0].data.replace(b"Alice: A", b"Alice: F", 1)

        with pytest.raises(LeafNotFoundException):
            service.invalidate_document_file(tampered)

    def test_bad_hash(self, service):
        with pytest.raises(MalformedProofException):
            service.invalidate_document("0x1234")

    def test_unregistered_issuer(self, env, batch):
        with pytest.raises(LedgerRevertException):
            env.invalidation().invalidate_document(batch.documents[0].leaf)
        assert env.engine.verify(batch.documents[0].data).valid


class TestInvalidateRoot:
    def test_every_document_is_invalidated(self, env, batch, service):
        service.invalidate_root(batch.merkle_root)

        for doc in batch.documents:
            outcome = env.engine.verify(doc.data)
            assert outcome.kind == ErrorKinds.INVALIDATED
            assert outcome.details["status"] == "ROOT_INVALIDATED"

    def test_root_without_prefix(self, env, batch, service):
        service.invalidate_root(batch.merkle_root[2:].upper())

        assert env.engine.verify(batch.documents[0].data).kind == ErrorKinds.INVALIDATED

    def test_signature_from_another_key_reverts(self, env, batch):
        from core.crypto.signatures import LocalKeyProvider, ProofSigner
        from orchestrator.invalidation import InvalidationService

        from fixtures.common import OTHER_KEY

        env.invalidation().register_issuer("Acme University")
        impostor = InvalidationService(
            ledger=env.ledger,
            signer=ProofSigner(LocalKeyProvider(OTHER_KEY)),
            issuer_id=ISSUER_ID,
        )

        with pytest.raises(LedgerRevertException):
            impostor.invalidate_root(batch.merkle_root)


class TestNewlineFallback:
    @pytest.fixture
    def carrier(self, env):
        """Document issued without a trailing LF, later saved with one."""
        result = env.issue({"note.txt": b"signed statement"})
        _, record = FlatAppendCodec().extract(result.documents[0].data)
        return result, FlatAppendCodec().embed(b"signed statement\n", record)

    def test_retry_without_trailing_newline(self, env, service, carrier, caplog):
        result, data = carrier
        with caplog.at_level("WARNING", logger="orchestrator.invalidation"):
            receipt = service.invalidate_document_file(data)

        assert receipt.status == "confirmed"
        assert "retrying without trailing" in caplog.text
        outcome = env.engine.verify(result.documents[0].data)
        assert outcome.kind == ErrorKinds.INVALIDATED
        assert outcome.details["status"] == "DOCUMENT_INVALIDATED"

    def test_fallback_disabled(self, env, service, carrier):
        _, data = carrier
        service.newline_fallback = False

        with pytest.raises(LeafNotFoundException):
            service.invalidate_document_file(data)

    def test_only_one_newline_stripped(self, env, service):
        result = env.issue({"note.txt": b"signed statement"})
        _, record = FlatAppendCodec().extract(result.documents[0].data)

        with pytest.raises(LeafNotFoundException) as excinfo:
            service.invalidate_document_file(FlatAppendCodec().embed(b"signed statement\n\n", record))
        assert "retry_hash" in excinfo.value.details
