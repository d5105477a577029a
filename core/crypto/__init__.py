"""
Core cryptographic utilities.

Hashing for leaves and Merkle nodes, and personal-message signing
for batch roots and proof records.
"""
from .hashing import (
    ContentHasher,
    sha256,
    keccak256,
    get_hash_function,
    to_hex,
    from_hex,
    normalize_hex,
    digest_from_hex,
)
from .signatures import (
    KeyProvider,
    LocalKeyProvider,
    ProofSigner,
    generate_keypair,
    address_from_public_key,
    recover_signer,
    signature_matches,
    record_digest,
)

__all__ = [
    "ContentHasher",
    "sha256",
    "keccak256",
    "get_hash_function",
    "to_hex",
    "from_hex",
    "normalize_hex",
    "digest_from_hex",
    "KeyProvider",
    "LocalKeyProvider",
    "ProofSigner",
    "generate_keypair",
    "address_from_public_key",
    "recover_signer",
    "signature_matches",
    "record_digest",
]
