"""
In-Memory Ledger

Deterministic LedgerClient with the contract's observable rules:

- only workers may anchor roots; a root can be anchored once
  ("Root already exists")
- invalidations must be signed by the registered issuer's key over the
  32-byte hash being invalidated
- isInvalidated reports document invalidation before root invalidation,
  then expiry

Used by tests and by the ``memory`` ledger backend for local dry runs.
"""

from __future__ import annotations

import itertools
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from core.crypto.hashing import digest_from_hex, keccak256, normalize_hex, to_hex
from core.crypto.signatures import signature_matches
from core.schemas.errors import LedgerRevertException

from .client import InvalidationState, InvalidationStatus, LedgerClient, TxReceipt


logger = logging.getLogger(__name__)


@dataclass
class LedgerState:
    """Contract storage."""
    workers: set[str] = field(default_factory=set)
    roots: dict[str, int] = field(default_factory=dict)
    issuers: dict[str, tuple[str, str]] = field(default_factory=dict)
    invalidated_documents: dict[tuple[str, str], int] = field(default_factory=dict)
    invalidated_roots: dict[tuple[str, str], int] = field(default_factory=dict)


class InMemoryLedgerClient(LedgerClient):
    """
    LedgerClient backed by a LedgerState held in process.

    Args:
        sender: Address that submits writes (the worker identity)
        workers: Addresses authorized to anchor roots
        clock: Returns the current epoch seconds
    """

    def __init__(
        self,
        sender: Optional[str] = None,
        *,
        workers: Optional[list[str]] = None,
        state: Optional[LedgerState] = None,
        clock: Callable[[], float] = time.time,
        network: str = "memory",
        explorer_base: Optional[str] = "https://explorer.invalid",
    ) -> None:
        super().__init__(network=network, explorer_base=explorer_base)
        self.sender = sender
        self.state = state or LedgerState()
        for worker in workers or []:
            self.state.workers.add(worker.lower())
        self.clock = clock
        self.receipts: dict[str, TxReceipt] = {}
        self.submitted: list[tuple[str, tuple[Any, ...]]] = []
        self.fail_next_transaction = False
        self._nonce = itertools.count(1)

    def sender_address(self) -> Optional[str]:
        return self.sender

    def _now(self) -> int:
        return int(self.clock())

    # -- test helpers ------------------------------------------------------

    def add_worker(self, address: str) -> None:
        self.state.workers.add(address.lower())

    def anchor(self, root: str, timestamp: Optional[int] = None) -> None:
        """Record ``root`` as anchored without going through a transaction."""
        self.state.roots[normalize_hex(root)] = timestamp or self._now()

    # -- reads -------------------------------------------------------------

    def is_worker(self, address: str) -> bool:
        return address.lower() in self.state.workers

    def get_root_timestamp(self, root: str) -> int:
        return self.state.roots.get(normalize_hex(root), 0)

    def is_invalidated(
        self,
        doc_hash: str,
        root: str,
        issuer_id: str,
        invalidation_expiry: int = 0,
        issued_at: int = 0,
    ) -> InvalidationState:
        doc_ts = self.state.invalidated_documents.get((issuer_id, normalize_hex(doc_hash)))
        if doc_ts:
            return InvalidationState(InvalidationStatus.DOCUMENT_INVALIDATED.value, doc_ts)
        root_ts = self.state.invalidated_roots.get((issuer_id, normalize_hex(root)))
        if root_ts:
            return InvalidationState(InvalidationStatus.ROOT_INVALIDATED.value, root_ts)
        if invalidation_expiry and self._now() > invalidation_expiry:
            return InvalidationState(InvalidationStatus.EXPIRED.value, invalidation_expiry)
        return InvalidationState(InvalidationStatus.VALID.value, 0)

    # -- transport ---------------------------------------------------------

    def _check(self, method: str, args: tuple[Any, ...]) -> None:
        if self.sender is None:
            raise LedgerRevertException(f"{method} would revert: no sender configured")

        if method == "putRoot":
            (root,) = args
            digest_from_hex(root)
            if not self.is_worker(self.sender):
                raise LedgerRevertException(f"{method} would revert: Not a worker")
            if self.get_root_timestamp(root):
                raise LedgerRevertException(f"{method} would revert: Root already exists")
        elif method == "registerIssuer":
            issuer_id, _address, _name = args
            if issuer_id in self.state.issuers:
                raise LedgerRevertException(f"{method} would revert: Issuer already registered")
        elif method in ("invalidateRoot", "invalidateDocument"):
            target, signature, issuer_id = args
            issuer = self.state.issuers.get(issuer_id)
            if issuer is None:
                raise LedgerRevertException(f"{method} would revert: Issuer not registered")
            if not signature_matches(digest_from_hex(target), signature, issuer[0]):
                raise LedgerRevertException(f"{method} would revert: Invalid issuer signature")
        else:
            raise LedgerRevertException(f"Unknown contract method {method}")

    def simulate(self, method: str, args: tuple[Any, ...]) -> None:
        self._check(method, args)

    def submit(self, method: str, args: tuple[Any, ...]) -> str:
        nonce = next(self._nonce)
        tx_hash = to_hex(keccak256(f"{method}:{nonce}".encode("utf-8")))
        self.submitted.append((method, args))

        if self.fail_next_transaction:
            self.fail_next_transaction = False
            status = "failed"
        else:
            self._apply(method, args)
            status = "confirmed"

        self.receipts[tx_hash] = TxReceipt(
            tx_hash=tx_hash,
            status=status,
            block_number=nonce,
            explorer_url=self.explorer_url(tx_hash),
        )
        return tx_hash

    def _apply(self, method: str, args: tuple[Any, ...]) -> None:
        now = self._now()
        if method == "putRoot":
            self.state.roots[normalize_hex(args[0])] = now
        elif method == "registerIssuer":
            issuer_id, address, name = args
            self.state.issuers[issuer_id] = (address, name)
        elif method == "invalidateRoot":
            root, _signature, issuer_id = args
            self.state.invalidated_roots[(issuer_id, normalize_hex(root))] = now
        elif method == "invalidateDocument":
            doc_hash, _signature, issuer_id = args
            self.state.invalidated_documents[(issuer_id, normalize_hex(doc_hash))] = now

    def wait_for_receipt(self, tx_hash: str) -> TxReceipt:
        return self.receipts[tx_hash]
