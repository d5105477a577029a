"""
Signature Unit Tests
Tests for core/crypto/signatures.py

- personal-message signatures recover to the signer's address
- record signatures cover the canonical record string, not proof_signature
- key material validation fails fast
"""
import pytest

from core.crypto.hashing import keccak256
from core.crypto.signatures import (
    LocalKeyProvider,
    ProofSigner,
    address_from_public_key,
    generate_keypair,
    record_digest,
    recover_signer,
    signature_matches,
    validate_private_key,
)
from core.schemas.errors import KeyMaterialMissingException, SignatureInvalidException

from fixtures.common import ISSUER_KEY, OTHER_KEY


@pytest.fixture
def signer():
    return ProofSigner(LocalKeyProvider(ISSUER_KEY))


class TestKeyMaterial:
    def test_missing_key(self):
        with pytest.raises(KeyMaterialMissingException):
            LocalKeyProvider(None)

    def test_short_key(self):
        with pytest.raises(KeyMaterialMissingException, match="32 bytes"):
            LocalKeyProvider("0x1234")

    def test_prefix_optional(self):
        assert validate_private_key(ISSUER_KEY[2:]) == ISSUER_KEY

    def test_signer_requires_provider(self):
        with pytest.raises(KeyMaterialMissingException):
            ProofSigner(None)

    def test_repr_hides_key(self):
        provider = LocalKeyProvider(ISSUER_KEY)

        assert ISSUER_KEY[2:] not in repr(provider)


class TestRootSignature:
    def test_recovers_signer(self, signer):
        root = keccak256(b"root")
        signature = signer.sign_root(root)

        assert recover_signer(root, signature) == signer.address
        assert signature_matches(root, signature, signer.address)

    def test_other_key_does_not_match(self, signer):
        root = keccak256(b"root")
        other = ProofSigner(LocalKeyProvider(OTHER_KEY))

        assert not signature_matches(root, other.sign_root(root), signer.address)

    def test_other_message_does_not_match(self, signer):
        signature = signer.sign_root(keccak256(b"root"))

        assert not signature_matches(keccak256(b"other"), signature, signer.address)

    def test_garbage_signature(self, signer):
        assert not signature_matches(b"x" * 32, "0x1234", signer.address)
        assert not signature_matches(b"x" * 32, None, signer.address)
        with pytest.raises(SignatureInvalidException):
            recover_signer(b"x" * 32, "0x1234")


class TestRecordSignature:
    def test_ignores_proof_signature_field(self, signer):
        record = {"id": "1", "batch": "b", "proof_signature": None}
        signature = signer.sign_record(record)
        signed = dict(record, proof_signature=signature)

        assert signature_matches(record_digest(signed), signature, signer.address)

    def test_content_change_breaks_signature(self, signer):
        record = {"id": "1", "batch": "b"}
        signature = signer.sign_record(record)

        assert not signature_matches(record_digest({"id": "1", "batch": "c"}), signature, signer.address)

    def test_sign_digest_requires_32_bytes(self, signer):
        with pytest.raises(ValueError):
            signer.sign_digest(b"short")


class TestPublicKeys:
    def test_address_from_uncompressed_key(self, signer):
        assert address_from_public_key(signer.public_key) == signer.address

    def test_address_from_04_prefixed_key(self, signer):
        prefixed = "0x04" + signer.public_key[2:]

        assert address_from_public_key(prefixed) == signer.address

    def test_address_passthrough(self, signer):
        assert address_from_public_key(signer.address.lower()) == signer.address

    def test_bad_length(self):
        with pytest.raises(ValueError, match="Unrecognized public key"):
            address_from_public_key("0x" + "ab" * 10)

    def test_generate_keypair(self):
        pair = generate_keypair()
        provider = LocalKeyProvider(pair.private_key)

        assert provider.address() == pair.address
        assert address_from_public_key(pair.public_key) == pair.address
