"""
Hashing Utilities
Content hashing and hex helpers for leaves, Merkle nodes and record digests.

This module provides:
- SHA-256 and Keccak-256 over raw bytes
- A closed registry of named hash algorithms
- ContentHasher: the fixed byte-to-digest function used for every leaf
- Hex encoding/decoding with 0x prefix

Security/Determinism Notes:
- Always hash raw bytes exactly as given
- No whitespace trimming or text normalization here; the single trailing
  newline retry lives in the verification engine and is logged there
"""
from __future__ import annotations

import hashlib
from typing import Callable

from eth_utils import keccak


HashFunction = Callable[[bytes], bytes]

DIGEST_SIZE = 32

# Algorithm identifiers persisted inside proof records
SHA256 = "sha256"
KECCAK256 = "keccak256"

DEFAULT_LEAF_ALGORITHM = KECCAK256
DEFAULT_NODE_ALGORITHM = SHA256


def sha256(data: bytes) -> bytes:
    """
    Compute SHA-256 hash of raw bytes.

    Example:
        >>> sha256(b"hello").hex()
        '2cf24dba5fb0a30e26e83b2ac5b9e29e1b161e5c1fa7425e73043362938b9824'
    """
    return hashlib.sha256(data).digest()


def keccak256(data: bytes) -> bytes:
    """
    Compute Keccak-256 (the Ethereum variant, not NIST SHA3-256) of raw bytes.

    Example:
        >>> keccak256(b"").hex()
        'c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470'
    """
    return keccak(primitive=data)


HASH_ALGORITHMS: dict[str, HashFunction] = {
    SHA256: sha256,
    KECCAK256: keccak256,
}


def get_hash_function(algorithm: str) -> HashFunction:
    """
    Look up a hash function by its persisted identifier.

    Raises:
        ValueError: If the identifier is not registered
    """
    try:
        return HASH_ALGORITHMS[algorithm]
    except KeyError:
        raise ValueError(
            f"Unsupported hash algorithm {algorithm!r}; "
            f"expected one of {sorted(HASH_ALGORITHMS)}"
        ) from None


class ContentHasher:
    """
    Deterministic byte-to-digest function for document leaves.

    The hash is taken over the exact byte sequence handed in. Container
    specific canonicalization happens before this call, in the codec.
    """

    def __init__(self, algorithm: str = DEFAULT_LEAF_ALGORITHM) -> None:
        self.algorithm = algorithm
        self._fn = get_hash_function(algorithm)

    def hash(self, data: bytes) -> bytes:
        """Return the 32-byte digest of ``data``."""
        return self._fn(data)

    def hash_hex(self, data: bytes) -> str:
        """Return the digest of ``data`` as 0x-prefixed hex."""
        return to_hex(self._fn(data))


def to_hex(data: bytes) -> str:
    """
    Convert bytes to lowercase hexadecimal string with 0x prefix.

    Example:
        >>> to_hex(bytes.fromhex("deadbeef"))
        '0xdeadbeef'
    """
    return "0x" + data.hex()


def from_hex(hex_string: str) -> bytes:
    """
    Convert hexadecimal string (with 0x prefix) to bytes.

    Raises:
        ValueError: If string doesn't start with 0x, has odd length,
                   or contains invalid hex characters
    """
    if not hex_string.startswith("0x"):
        raise ValueError(
            f"Hex string must start with '0x' prefix, got: {hex_string[:10]}..."
        )

    hex_content = hex_string[2:]

    if len(hex_content) % 2 != 0:
        raise ValueError(
            f"Hex string must have even length after 0x prefix, "
            f"got length {len(hex_content)}"
        )

    try:
        return bytes.fromhex(hex_content)
    except ValueError as e:
        raise ValueError(f"Invalid hex characters in string: {e}") from e


def normalize_hex(value: str) -> str:
    """
    Normalize a hex string to lowercase with exactly one 0x prefix.

    Tolerates missing or repeated prefixes ("abcd", "0x0xABCD").
    """
    stripped = value.strip()
    while stripped[:2].lower() == "0x":
        stripped = stripped[2:]
    return "0x" + stripped.lower()


def digest_from_hex(value: str) -> bytes:
    """
    Decode a 32-byte digest from hex, normalizing the prefix first.

    Raises:
        ValueError: If the value is not 32 bytes of valid hex
    """
    raw = from_hex(normalize_hex(value))
    if len(raw) != DIGEST_SIZE:
        raise ValueError(f"Digest must be {DIGEST_SIZE} bytes, got {len(raw)}")
    return raw


__all__ = [
    "DIGEST_SIZE",
    "SHA256",
    "KECCAK256",
    "DEFAULT_LEAF_ALGORITHM",
    "DEFAULT_NODE_ALGORITHM",
    "HASH_ALGORITHMS",
    "ContentHasher",
    "sha256",
    "keccak256",
    "get_hash_function",
    "to_hex",
    "from_hex",
    "normalize_hex",
    "digest_from_hex",
]
