"""
Ledger Module

Adapters over the external anchoring contract.
"""

from .client import (
    InvalidationState,
    InvalidationStatus,
    LedgerClient,
    TxReceipt,
)
from .jsonrpc import JsonRpcLedgerClient, RpcError, encode_call
from .memory import InMemoryLedgerClient, LedgerState

__all__ = [
    "InvalidationState",
    "InvalidationStatus",
    "LedgerClient",
    "TxReceipt",
    "JsonRpcLedgerClient",
    "RpcError",
    "encode_call",
    "InMemoryLedgerClient",
    "LedgerState",
]
