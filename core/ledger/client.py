"""
Ledger Client Interface

Thin adapter over the anchoring contract:

    putRoot(bytes32)
    getRootTimestamp(bytes32) -> uint256
    isWorker(address) -> bool
    registerIssuer(string, address, string)
    invalidateDocument(bytes32, bytes, string)
    invalidateRoot(bytes32, bytes, string)
    isInvalidated(bytes32, bytes32, string, uint256, uint256) -> (string, uint256)

Every write follows the same sequence: dry-run (simulate), submit, then
block until the transaction reaches a terminal state. A dry-run revert
raises LedgerRevertException and nothing is submitted; a failed receipt
raises LedgerTransactionFailedException.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from core.schemas.errors import LedgerTransactionFailedException


logger = logging.getLogger(__name__)


class InvalidationStatus(str, Enum):
    """Status strings returned by isInvalidated."""
    VALID = "VALID"
    DOCUMENT_INVALIDATED = "DOCUMENT_INVALIDATED"
    ROOT_INVALIDATED = "ROOT_INVALIDATED"
    EXPIRED = "EXPIRED"


@dataclass(frozen=True)
class InvalidationState:
    status: str
    timestamp: int = 0

    @property
    def is_valid(self) -> bool:
        return self.status == InvalidationStatus.VALID.value


@dataclass(frozen=True)
class TxReceipt:
    """Terminal state of a submitted ledger transaction."""
    tx_hash: str
    status: str  # "confirmed" or "failed"
    block_number: Optional[int] = None
    explorer_url: Optional[str] = None

    @property
    def confirmed(self) -> bool:
        return self.status == "confirmed"


class LedgerClient(ABC):
    """
    Read/write access to the anchoring contract.

    Subclasses implement the three transport primitives (simulate, submit,
    wait_for_receipt) and the read calls; the write sequence lives here.
    """

    def __init__(self, *, network: str, explorer_base: Optional[str] = None) -> None:
        self.network = network
        self.explorer_base = explorer_base

    def sender_address(self) -> Optional[str]:
        """Address that signs and submits writes, if any."""
        return None

    def explorer_url(self, tx_hash: str) -> Optional[str]:
        if not self.explorer_base:
            return None
        return f"{self.explorer_base.rstrip('/')}/tx/{tx_hash}"

    # -- reads -------------------------------------------------------------

    @abstractmethod
    def is_worker(self, address: str) -> bool:
        """True when ``address`` may anchor roots."""

    @abstractmethod
    def get_root_timestamp(self, root: str) -> int:
        """Anchoring time of ``root`` in epoch seconds; 0 means not anchored."""

    @abstractmethod
    def is_invalidated(
        self,
        doc_hash: str,
        root: str,
        issuer_id: str,
        invalidation_expiry: int = 0,
        issued_at: int = 0,
    ) -> InvalidationState:
        """Invalidation status of a document under ``root``."""

    # -- transport ---------------------------------------------------------

    @abstractmethod
    def simulate(self, method: str, args: tuple[Any, ...]) -> None:
        """
        Dry-run a write.

        Raises:
            LedgerRevertException: If the call would revert
        """

    @abstractmethod
    def submit(self, method: str, args: tuple[Any, ...]) -> str:
        """Submit a write and return its transaction hash."""

    @abstractmethod
    def wait_for_receipt(self, tx_hash: str) -> TxReceipt:
        """Block until ``tx_hash`` is confirmed or failed."""

    # -- writes ------------------------------------------------------------

    def _write(self, method: str, args: tuple[Any, ...]) -> TxReceipt:
        self.simulate(method, args)
        tx_hash = self.submit(method, args)
        logger.info(f"Submitted {method} transaction {tx_hash}; waiting for confirmation")
        receipt = self.wait_for_receipt(tx_hash)
        if not receipt.confirmed:
            raise LedgerTransactionFailedException(
                tx_hash,
                details={"method": method, "block_number": receipt.block_number},
            )
        logger.info(f"{method} confirmed in block {receipt.block_number} ({tx_hash})")
        return receipt

    def put_root(self, root: str) -> TxReceipt:
        """Anchor a batch root."""
        return self._write("putRoot", (root,))

    def register_issuer(self, issuer_id: str, address: str, name: str) -> TxReceipt:
        """Register an issuer identity and its signing address."""
        return self._write("registerIssuer", (issuer_id, address, name))

    def invalidate_root(self, root: str, signature: str, issuer_id: str) -> TxReceipt:
        """Invalidate every document anchored under ``root``."""
        return self._write("invalidateRoot", (root, signature, issuer_id))

    def invalidate_document(self, doc_hash: str, signature: str, issuer_id: str) -> TxReceipt:
        """Invalidate a single document by its content hash."""
        return self._write("invalidateDocument", (doc_hash, signature, issuer_id))
