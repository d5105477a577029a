"""
Invalidation and issuer registration.

The issuer personal-signs the 32-byte hash being invalidated (a batch root
or one document hash); the worker account submits the transaction. The
ledger checks the signature against the registered issuer address.
"""

from __future__ import annotations

import logging
from typing import Optional

from core.codec import FORMAT_FLAT, get_codec
from core.crypto.hashing import ContentHasher, digest_from_hex, normalize_hex, to_hex
from core.crypto.signatures import ProofSigner
from core.ledger.client import LedgerClient, TxReceipt
from core.schemas.errors import LeafNotFoundException, MalformedProofException
from core.storage.records import StoreIssuerDirectory


logger = logging.getLogger(__name__)


class InvalidationService:
    """Issuer-side ledger writes other than anchoring."""

    def __init__(
        self,
        *,
        ledger: LedgerClient,
        signer: ProofSigner,
        issuer_id: str,
        newline_fallback: bool = True,
    ) -> None:
        self.ledger = ledger
        self.signer = signer
        self.issuer_id = issuer_id
        self.newline_fallback = newline_fallback

    def _signed(self, value: str, label: str) -> tuple[str, str]:
        try:
            digest = digest_from_hex(value)
        except ValueError as e:
            raise MalformedProofException(f"{label} must be a 32-byte hex digest: {e}") from e
        return to_hex(digest), self.signer.sign_digest(digest)

    def invalidate_root(self, merkle_root: str) -> TxReceipt:
        """Invalidate every document of the batch anchored under ``merkle_root``."""
        root, signature = self._signed(merkle_root, "Merkle root")
        logger.info(f"Invalidating root {root} for issuer {self.issuer_id!r}")
        return self.ledger.invalidate_root(root, signature, self.issuer_id)

    def invalidate_document(self, document_hash: str) -> TxReceipt:
        """Invalidate a single document by its leaf hash."""
        doc_hash, signature = self._signed(document_hash, "Document hash")
        logger.info(f"Invalidating document {doc_hash} for issuer {self.issuer_id!r}")
        return self.ledger.invalidate_document(doc_hash, signature, self.issuer_id)

    def invalidate_document_file(self, data: bytes) -> TxReceipt:
        """
        Invalidate an issued document given its bytes.

        The leaf hash is recomputed from the embedded record's algorithm and
        must appear in the record's leaf set. Flat documents get the same
        single trailing line feed retry as verification.

        Raises:
            LeafNotFoundException: If the recomputed hash is not a leaf of the batch
        """
        codec = get_codec(data)
        original, record = codec.extract(data)
        hasher = ContentHasher(record.batch_proof.leaf_algorithm)
        doc_hash = hasher.hash_hex(codec.canonicalize_for_hash(original))
        leaves = {normalize_hex(leaf) for leaf in record.batch_proof.leaves}
        if doc_hash in leaves:
            return self.invalidate_document(doc_hash)

        details = {"merkle_root": record.merkle_root}
        if self.newline_fallback and codec.format_name == FORMAT_FLAT and original.endswith(b"\n"):
            retry_hash = hasher.hash_hex(original[:-1])
            logger.warning(
                f"Hash {doc_hash} not in leaf set; retrying without trailing line feed gives {retry_hash}"
            )
            if retry_hash in leaves:
                return self.invalidate_document(retry_hash)
            details["retry_hash"] = retry_hash
        raise LeafNotFoundException(doc_hash, details=details)

    def register_issuer(
        self,
        name: str,
        directory: Optional[StoreIssuerDirectory] = None,
    ) -> TxReceipt:
        """
        Register this issuer's signing address on the ledger, and in the
        local issuer directory when one is given.
        """
        address = self.signer.address
        logger.info(f"Registering issuer {self.issuer_id!r} as {address}")
        receipt = self.ledger.register_issuer(self.issuer_id, address, name)
        if directory is not None:
            directory.register(
                self.issuer_id,
                self.signer.public_key,
                name=name,
                address=address,
            )
        return receipt


__all__ = ["InvalidationService"]
