"""
JSON-RPC Ledger Client

Talks to the anchoring contract through a standard Ethereum JSON-RPC
endpoint. Calls are ABI-encoded with eth_abi; writes are signed locally by
the worker KeyProvider and broadcast with eth_sendRawTransaction.
"""

from __future__ import annotations

import itertools
import logging
import time
from typing import Any, Callable, Optional

from eth_abi import decode, encode
from eth_utils import function_signature_to_4byte_selector, to_checksum_address

from core.crypto.hashing import digest_from_hex, from_hex, normalize_hex, to_hex
from core.crypto.signatures import KeyProvider
from core.http.client import HttpClient
from core.schemas.errors import (
    KeyMaterialMissingException,
    LedgerRevertException,
    NetworkException,
)

from .client import InvalidationState, LedgerClient, TxReceipt


logger = logging.getLogger(__name__)


# Contract functions: name -> (signature, argument types)
CONTRACT_FUNCTIONS: dict[str, tuple[str, list[str]]] = {
    "putRoot": ("putRoot(bytes32)", ["bytes32"]),
    "getRootTimestamp": ("getRootTimestamp(bytes32)", ["bytes32"]),
    "isWorker": ("isWorker(address)", ["address"]),
    "registerIssuer": ("registerIssuer(string,address,string)", ["string", "address", "string"]),
    "invalidateDocument": ("invalidateDocument(bytes32,bytes,string)", ["bytes32", "bytes", "string"]),
    "invalidateRoot": ("invalidateRoot(bytes32,bytes,string)", ["bytes32", "bytes", "string"]),
    "isInvalidated": (
        "isInvalidated(bytes32,bytes32,string,uint256,uint256)",
        ["bytes32", "bytes32", "string", "uint256", "uint256"],
    ),
}


class RpcError(Exception):
    """Error object returned by a JSON-RPC endpoint."""

    def __init__(self, code: int, message: str, data: Any = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data


def _coerce_arg(abi_type: str, value: Any) -> Any:
    if abi_type == "bytes32":
        return digest_from_hex(value) if isinstance(value, str) else value
    if abi_type == "bytes":
        return from_hex(normalize_hex(value)) if isinstance(value, str) else value
    if abi_type == "address":
        return to_checksum_address(value)
    return value


def encode_call(method: str, args: tuple[Any, ...]) -> str:
    """ABI-encode a contract call as 0x hex calldata."""
    signature, types = CONTRACT_FUNCTIONS[method]
    selector = function_signature_to_4byte_selector(signature)
    values = [_coerce_arg(t, v) for t, v in zip(types, args)]
    return to_hex(selector + encode(types, values))


class JsonRpcLedgerClient(LedgerClient):
    """
    LedgerClient over Ethereum JSON-RPC.

    Example:
        >>> client = JsonRpcLedgerClient(
        ...     rpc_url="https://rpc-amoy.polygon.technology",
        ...     contract_address="0x...",
        ...     signer=LocalKeyProvider(worker_key),
        ...     http=HttpClient(timeout=30, max_retries=3),
        ... )
        >>> client.get_root_timestamp(root)
    """

    def __init__(
        self,
        *,
        rpc_url: str,
        contract_address: str,
        http: HttpClient,
        signer: Optional[KeyProvider] = None,
        chain_id: int = 80002,
        network: str = "amoy",
        explorer_base: Optional[str] = None,
        gas_buffer_percent: int = 20,
        confirmation_timeout: float = 120.0,
        poll_interval: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        super().__init__(network=network, explorer_base=explorer_base)
        self.rpc_url = rpc_url
        self.contract_address = to_checksum_address(contract_address)
        self.http = http
        self.signer = signer
        self.chain_id = chain_id
        self.gas_buffer_percent = gas_buffer_percent
        self.confirmation_timeout = confirmation_timeout
        self.poll_interval = poll_interval
        self._sleep = sleep
        self._ids = itertools.count(1)

    @classmethod
    def from_config(
        cls,
        ledger_config: Any,
        http: HttpClient,
        signer: Optional[KeyProvider] = None,
    ) -> "JsonRpcLedgerClient":
        return cls(
            rpc_url=ledger_config.rpc_url,
            contract_address=ledger_config.contract_address,
            http=http,
            signer=signer,
            chain_id=ledger_config.chain_id,
            network=ledger_config.network,
            explorer_base=ledger_config.explorer_base,
            gas_buffer_percent=ledger_config.gas_buffer_percent,
            confirmation_timeout=ledger_config.confirmation_timeout,
            poll_interval=ledger_config.poll_interval,
        )

    # -- JSON-RPC ----------------------------------------------------------

    def rpc(self, method: str, params: list[Any]) -> Any:
        """
        Perform one JSON-RPC call.

        Raises:
            NetworkException: On transport failure after retries or a non-2xx reply
            RpcError: If the node returned a JSON-RPC error object
        """
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        response = self.http.post(self.rpc_url, json=payload)
        if not response.ok:
            raise NetworkException(
                f"Ledger RPC {method} returned HTTP {response.status_code}",
                details={"method": method, "status_code": response.status_code},
            )
        body = response.json()
        if body.get("error"):
            error = body["error"]
            raise RpcError(error.get("code", -1), error.get("message", ""), error.get("data"))
        return body.get("result")

    def sender_address(self) -> Optional[str]:
        return self.signer.address() if self.signer else None

    def _sender(self) -> str:
        if self.signer is None:
            raise KeyMaterialMissingException("Ledger writes require a worker key provider")
        return self.signer.address()

    def _call(self, method: str, args: tuple[Any, ...], out_types: list[str]) -> tuple[Any, ...]:
        tx = {"to": self.contract_address, "data": encode_call(method, args)}
        try:
            result = self.rpc("eth_call", [tx, "latest"])
        except RpcError as e:
            raise LedgerRevertException(
                f"Ledger call {method} failed: {e.message}",
                details={"method": method, "rpc_code": e.code},
            ) from e
        return decode(out_types, from_hex(normalize_hex(result or "0x")))

    # -- reads -------------------------------------------------------------

    def is_worker(self, address: str) -> bool:
        (flag,) = self._call("isWorker", (address,), ["bool"])
        return bool(flag)

    def get_root_timestamp(self, root: str) -> int:
        (timestamp,) = self._call("getRootTimestamp", (root,), ["uint256"])
        return int(timestamp)

    def is_invalidated(
        self,
        doc_hash: str,
        root: str,
        issuer_id: str,
        invalidation_expiry: int = 0,
        issued_at: int = 0,
    ) -> InvalidationState:
        status, timestamp = self._call(
            "isInvalidated",
            (doc_hash, root, issuer_id, invalidation_expiry, issued_at),
            ["string", "uint256"],
        )
        return InvalidationState(status=status, timestamp=int(timestamp))

    # -- transport ---------------------------------------------------------

    def simulate(self, method: str, args: tuple[Any, ...]) -> None:
        tx = {
            "from": self._sender(),
            "to": self.contract_address,
            "data": encode_call(method, args),
        }
        try:
            self.rpc("eth_call", [tx, "latest"])
        except RpcError as e:
            logger.warning(f"Dry-run of {method} reverted: {e.message}")
            raise LedgerRevertException(
                f"{method} would revert: {e.message}",
                details={"method": method, "rpc_code": e.code, "data": e.data},
            ) from e

    def submit(self, method: str, args: tuple[Any, ...]) -> str:
        sender = self._sender()
        data = encode_call(method, args)
        call = {"from": sender, "to": self.contract_address, "data": data}

        try:
            estimate = int(self.rpc("eth_estimateGas", [call]), 16)
        except RpcError as e:
            raise LedgerRevertException(
                f"Gas estimation for {method} failed: {e.message}",
                details={"method": method, "rpc_code": e.code},
            ) from e
        gas = estimate * (100 + self.gas_buffer_percent) // 100

        transaction = {
            "to": self.contract_address,
            "data": data,
            "value": 0,
            "gas": gas,
            "gasPrice": int(self.rpc("eth_gasPrice", []), 16),
            "nonce": int(self.rpc("eth_getTransactionCount", [sender, "pending"]), 16),
            "chainId": self.chain_id,
        }
        raw = self.signer.sign_transaction(transaction)
        logger.debug(f"{method}: gas estimate {estimate}, limit {gas}")
        try:
            return self.rpc("eth_sendRawTransaction", [to_hex(raw)])
        except RpcError as e:
            raise LedgerRevertException(
                f"Ledger rejected {method} transaction: {e.message}",
                details={"method": method, "rpc_code": e.code},
            ) from e

    def wait_for_receipt(self, tx_hash: str) -> TxReceipt:
        deadline = time.monotonic() + self.confirmation_timeout
        while True:
            receipt = self.rpc("eth_getTransactionReceipt", [tx_hash])
            if receipt:
                status = "confirmed" if int(receipt.get("status", "0x0"), 16) == 1 else "failed"
                block = receipt.get("blockNumber")
                return TxReceipt(
                    tx_hash=tx_hash,
                    status=status,
                    block_number=int(block, 16) if block else None,
                    explorer_url=self.explorer_url(tx_hash),
                )
            if time.monotonic() >= deadline:
                raise NetworkException(
                    f"Transaction {tx_hash} not confirmed within {self.confirmation_timeout}s",
                    details={"tx_hash": tx_hash},
                )
            self._sleep(self.poll_interval)
