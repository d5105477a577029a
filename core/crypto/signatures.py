"""
Signatures
Personal-message signing of batch roots and proof records.

Both signatures use the EIP-191 personal-message scheme: the signer hashes
"\\x19Ethereum Signed Message:\\n<len>" + message before applying secp256k1,
so recovered signers map to wallet-style addresses.

- Root signature:   sign(root bytes)
- Record signature: sign(keccak256(canonical_record_string(record)))
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Protocol

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_keys import keys
from eth_utils import is_address, to_checksum_address

from core.crypto.hashing import from_hex, keccak256, normalize_hex, to_hex
from core.schemas.canonical import RECORD_CANONICAL_VERSION, canonical_record_string
from core.schemas.errors import (
    KeyMaterialMissingException,
    SignatureInvalidException,
)


logger = logging.getLogger(__name__)

_PRIVATE_KEY_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")


class KeyProvider(Protocol):
    """
    Source of signing capability for an identity.

    Implementations must never expose the private key itself.
    """

    def address(self) -> str:
        """Checksum address of the signing identity."""
        ...

    def public_key(self) -> str:
        """Public key (or address) published for verifiers."""
        ...

    def sign(self, message: bytes) -> str:
        """Personal-message signature over ``message`` as 0x hex."""
        ...

    def sign_transaction(self, transaction: dict[str, Any]) -> bytes:
        """Sign a ledger transaction and return the raw encoded bytes."""
        ...


def validate_private_key(private_key: str | None) -> str:
    """
    Confirm key material is present and well formed.

    Raises:
        KeyMaterialMissingException: If the key is absent or not 32 bytes of hex
    """
    if not private_key:
        raise KeyMaterialMissingException("No signing key configured")
    candidate = private_key.strip()
    if not candidate.startswith("0x"):
        candidate = "0x" + candidate
    if not _PRIVATE_KEY_RE.match(candidate):
        raise KeyMaterialMissingException(
            "Signing key must be 32 bytes of hex (0x + 64 characters)",
            details={"length": len(candidate)},
        )
    return candidate


class LocalKeyProvider:
    """KeyProvider backed by an in-process secp256k1 private key."""

    def __init__(self, private_key: str | None) -> None:
        self._account = Account.from_key(validate_private_key(private_key))

    def __repr__(self) -> str:
        return f"LocalKeyProvider(address={self._account.address!r})"

    def address(self) -> str:
        return self._account.address

    def public_key(self) -> str:
        """Uncompressed public key (64 bytes, 0x hex, no 04 prefix)."""
        pk = keys.PrivateKey(bytes(self._account.key)).public_key
        return to_hex(pk.to_bytes())

    def sign(self, message: bytes) -> str:
        signed = self._account.sign_message(encode_defunct(primitive=message))
        return to_hex(bytes(signed.signature))

    def sign_transaction(self, transaction: dict[str, Any]) -> bytes:
        signed = self._account.sign_transaction(transaction)
        return bytes(signed.raw_transaction)


@dataclass(frozen=True)
class GeneratedKeyPair:
    """Fresh issuer key material."""
    private_key: str
    public_key: str
    address: str


def generate_keypair() -> GeneratedKeyPair:
    """Create a new random secp256k1 key pair."""
    account = Account.create()
    pk = keys.PrivateKey(bytes(account.key)).public_key
    return GeneratedKeyPair(
        private_key=to_hex(bytes(account.key)),
        public_key=to_hex(pk.to_bytes()),
        address=account.address,
    )


def address_from_public_key(public_key: str) -> str:
    """
    Derive the checksum address for an issuer public key.

    Accepts uncompressed keys (64 bytes, or 65 bytes with 0x04 prefix),
    compressed keys (33 bytes), or an address given directly.

    Raises:
        ValueError: If the value is none of the above
    """
    if is_address(public_key) and len(normalize_hex(public_key)) == 42:
        return to_checksum_address(public_key)

    raw = from_hex(normalize_hex(public_key))
    if len(raw) == 65 and raw[0] == 0x04:
        raw = raw[1:]
    if len(raw) == 64:
        return keys.PublicKey(raw).to_checksum_address()
    if len(raw) == 33:
        return keys.PublicKey.from_compressed_bytes(raw).to_checksum_address()
    raise ValueError(f"Unrecognized public key length: {len(raw)} bytes")


def recover_signer(message: bytes, signature: str) -> str:
    """
    Recover the checksum address that personal-signed ``message``.

    Raises:
        SignatureInvalidException: If the signature cannot be decoded
    """
    try:
        return Account.recover_message(
            encode_defunct(primitive=message),
            signature=from_hex(normalize_hex(signature)),
        )
    except Exception as e:
        raise SignatureInvalidException(
            f"Signature could not be recovered: {e}",
            details={"signature": signature[:20]},
        ) from e


def signature_matches(message: bytes, signature: str | None, expected_address: str) -> bool:
    """True when ``signature`` over ``message`` recovers to ``expected_address``."""
    if not signature:
        return False
    try:
        recovered = recover_signer(message, signature)
    except SignatureInvalidException:
        return False
    return recovered.lower() == expected_address.lower()


def record_digest(record: Any, version: str = RECORD_CANONICAL_VERSION) -> bytes:
    """Keccak-256 digest of the canonical record string."""
    return keccak256(canonical_record_string(record, version).encode("utf-8"))


class ProofSigner:
    """
    Produces the two signatures carried by every proof record.

    Signing is a pure function of (key, message bytes); the key provider is
    checked on construction so a missing key fails before any work starts.
    """

    def __init__(self, key_provider: KeyProvider | None) -> None:
        if key_provider is None:
            raise KeyMaterialMissingException("ProofSigner requires a key provider")
        self.key_provider = key_provider

    @property
    def address(self) -> str:
        return self.key_provider.address()

    @property
    def public_key(self) -> str:
        return self.key_provider.public_key()

    def sign_root(self, root: bytes) -> str:
        """Personal-sign the raw batch root bytes."""
        return self.key_provider.sign(root)

    def sign_record(self, record: Any, version: str = RECORD_CANONICAL_VERSION) -> str:
        """Personal-sign the digest of the canonical record serialization."""
        digest = record_digest(record, version)
        logger.debug(f"Record digest {to_hex(digest)} (canonical {version})")
        return self.key_provider.sign(digest)

    def sign_digest(self, digest: bytes) -> str:
        """Personal-sign a 32-byte hash, as used by invalidation requests."""
        if len(digest) != 32:
            raise ValueError(f"Expected a 32-byte digest, got {len(digest)} bytes")
        return self.key_provider.sign(digest)


__all__ = [
    "KeyProvider",
    "LocalKeyProvider",
    "GeneratedKeyPair",
    "ProofSigner",
    "generate_keypair",
    "validate_private_key",
    "address_from_public_key",
    "recover_signer",
    "signature_matches",
    "record_digest",
]
