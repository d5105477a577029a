"""
Ledger Client Unit Tests
Tests for core/ledger/{client,memory,jsonrpc}.py

- write sequence: dry-run, submit, wait; revert submits nothing
- in-memory contract rules (workers, single anchoring, signed invalidation)
- JSON-RPC encoding and receipt handling against a scripted endpoint
"""
import json

import pytest
from eth_abi import encode
from eth_utils import function_signature_to_4byte_selector

from core.crypto.hashing import keccak256, to_hex
from core.crypto.signatures import LocalKeyProvider, ProofSigner
from core.http.client import HttpResponse
from core.ledger import InMemoryLedgerClient, JsonRpcLedgerClient, encode_call
from core.ledger.client import InvalidationStatus
from core.schemas.errors import (
    KeyMaterialMissingException,
    LedgerRevertException,
    LedgerTransactionFailedException,
    NetworkException,
)

from fixtures.common import ISSUER_KEY, OTHER_KEY, WORKER_KEY

ROOT = to_hex(keccak256(b"root"))
DOC = to_hex(keccak256(b"doc"))
CONTRACT = "0x" + "12" * 20


@pytest.fixture
def worker():
    return LocalKeyProvider(WORKER_KEY)


@pytest.fixture
def ledger(worker):
    return InMemoryLedgerClient(worker.address(), workers=[worker.address()], clock=lambda: 1_700_000_000)


# =============================================================================
# In-memory ledger
# =============================================================================

class TestInMemoryAnchoring:
    def test_put_root_records_timestamp(self, ledger):
        assert ledger.get_root_timestamp(ROOT) == 0

        receipt = ledger.put_root(ROOT)

        assert receipt.confirmed
        assert ledger.get_root_timestamp(ROOT) == 1_700_000_000
        assert receipt.explorer_url.endswith(receipt.tx_hash)

    def test_root_lookup_is_case_insensitive(self, ledger):
        ledger.put_root(ROOT)

        assert ledger.get_root_timestamp(ROOT.upper().replace("0X", "0x")) == 1_700_000_000

    def test_second_anchor_reverts_before_submit(self, ledger):
        ledger.put_root(ROOT)
        submitted = len(ledger.submitted)

        with pytest.raises(LedgerRevertException, match="Root already exists"):
            ledger.put_root(ROOT)
        assert len(ledger.submitted) == submitted

    def test_non_worker_reverts(self, worker):
        ledger = InMemoryLedgerClient(worker.address())

        assert not ledger.is_worker(worker.address())
        with pytest.raises(LedgerRevertException, match="Not a worker"):
            ledger.put_root(ROOT)
        assert ledger.submitted == []

    def test_failed_receipt(self, ledger):
        ledger.fail_next_transaction = True

        with pytest.raises(LedgerTransactionFailedException):
            ledger.put_root(ROOT)
        assert ledger.get_root_timestamp(ROOT) == 0


class TestInMemoryInvalidation:
    @pytest.fixture
    def issuer(self, ledger):
        signer = ProofSigner(LocalKeyProvider(ISSUER_KEY))
        ledger.register_issuer("acme", signer.address, "Acme")
        ledger.put_root(ROOT)
        return signer

    def test_valid_by_default(self, ledger, issuer):
        assert ledger.is_invalidated(DOC, ROOT, "acme").is_valid

    def test_invalidate_document(self, ledger, issuer):
        signature = issuer.sign_digest(keccak256(b"doc"))
        ledger.invalidate_document(DOC, signature, "acme")

        state = ledger.is_invalidated(DOC, ROOT, "acme")
        assert state.status == InvalidationStatus.DOCUMENT_INVALIDATED.value
        assert state.timestamp == 1_700_000_000

    def test_invalidate_root(self, ledger, issuer):
        ledger.invalidate_root(ROOT, issuer.sign_digest(keccak256(b"root")), "acme")

        assert ledger.is_invalidated(DOC, ROOT, "acme").status == InvalidationStatus.ROOT_INVALIDATED.value

    def test_wrong_key_reverts(self, ledger, issuer):
        other = ProofSigner(LocalKeyProvider(OTHER_KEY))

        with pytest.raises(LedgerRevertException, match="Invalid issuer signature"):
            ledger.invalidate_root(ROOT, other.sign_digest(keccak256(b"root")), "acme")

    def test_unregistered_issuer_reverts(self, ledger, issuer):
        with pytest.raises(LedgerRevertException, match="Issuer not registered"):
            ledger.invalidate_root(ROOT, issuer.sign_digest(keccak256(b"root")), "nobody")

    def test_expired(self, ledger, issuer):
        state = ledger.is_invalidated(DOC, ROOT, "acme", invalidation_expiry=1_600_000_000)

        assert state.status == InvalidationStatus.EXPIRED.value


# =============================================================================
# JSON-RPC ledger
# =============================================================================

def abi_result(types, values) -> str:
    return to_hex(encode(types, values))


class ScriptedRpc:
    """Stands in for HttpClient; answers JSON-RPC methods from a table."""

    def __init__(self, answers, status_code=200):
        self.answers = answers
        self.status_code = status_code
        self.calls = []

    def post(self, url, *, json=None, **kwargs):
        self.calls.append(json)
        answer = self.answers.get(json["method"])
        if callable(answer):
            answer = answer(json["params"])
        body = {"jsonrpc": "2.0", "id": json["id"]}
        if isinstance(answer, dict) and "error" in answer:
            body["error"] = answer["error"]
        else:
            body["result"] = answer
        return HttpResponse(status_code=self.status_code, content=_dumps(body))

    def methods(self):
        return [call["method"] for call in self.calls]


def _dumps(body) -> bytes:
    return json.dumps(body).encode("utf-8")


def make_client(http, signer=None, **kwargs):
    return JsonRpcLedgerClient(
        rpc_url="http://rpc.test",
        contract_address=CONTRACT,
        http=http,
        signer=signer,
        chain_id=80002,
        explorer_base="https://amoy.polygonscan.com",
        sleep=lambda _: None,
        **kwargs,
    )


WRITE_ANSWERS = {
    "eth_call": "0x",
    "eth_estimateGas": "0x5208",
    "eth_gasPrice": "0x3b9aca00",
    "eth_getTransactionCount": "0x0",
    "eth_sendRawTransaction": "0x" + "aa" * 32,
    "eth_getTransactionReceipt": {"status": "0x1", "blockNumber": "0x10"},
}


class TestEncoding:
    def test_selector(self):
        calldata = encode_call("putRoot", (ROOT,))
        selector = function_signature_to_4byte_selector("putRoot(bytes32)")

        assert calldata.startswith(to_hex(selector))
        assert calldata.endswith(ROOT[2:])

    def test_dynamic_arguments(self):
        calldata = encode_call("invalidateRoot", (ROOT, "0x" + "01" * 65, "acme"))

        assert len(calldata) > 2 + 8 + 64 * 3


class TestJsonRpcReads:
    def test_root_timestamp(self):
        http = ScriptedRpc({"eth_call": abi_result(["uint256"], [1_700_000_000])})

        assert make_client(http).get_root_timestamp(ROOT) == 1_700_000_000
        assert http.calls[0]["params"][0]["to"].lower() == CONTRACT

    def test_is_worker(self):
        http = ScriptedRpc({"eth_call": abi_result(["bool"], [True])})

        assert make_client(http).is_worker("0x" + "34" * 20)

    def test_is_invalidated(self):
        http = ScriptedRpc({"eth_call": abi_result(["string", "uint256"], ["ROOT_INVALIDATED", 42])})
        state = make_client(http).is_invalidated(DOC, ROOT, "acme", 0, 1_700_000_000)

        assert state.status == "ROOT_INVALIDATED"
        assert state.timestamp == 42
        assert not state.is_valid

    def test_http_error_is_network_failure(self):
        http = ScriptedRpc({}, status_code=400)

        with pytest.raises(NetworkException):
            make_client(http).get_root_timestamp(ROOT)


class TestJsonRpcWrites:
    def test_put_root_sequence(self, worker):
        http = ScriptedRpc(dict(WRITE_ANSWERS))
        receipt = make_client(http, signer=worker).put_root(ROOT)

        assert receipt.confirmed
        assert receipt.block_number == 16
        assert receipt.explorer_url == "https://amoy.polygonscan.com/tx/0x" + "aa" * 32
        assert http.methods() == [
            "eth_call",
            "eth_estimateGas",
            "eth_gasPrice",
            "eth_getTransactionCount",
            "eth_sendRawTransaction",
            "eth_getTransactionReceipt",
        ]

    def test_dry_run_revert_submits_nothing(self, worker):
        answers = dict(WRITE_ANSWERS, eth_call={"error": {"code": 3, "message": "execution reverted: Root already exists"}})
        http = ScriptedRpc(answers)

        with pytest.raises(LedgerRevertException, match="Root already exists"):
            make_client(http, signer=worker).put_root(ROOT)
        assert "eth_sendRawTransaction" not in http.methods()

    def test_failed_receipt(self, worker):
        answers = dict(WRITE_ANSWERS, eth_getTransactionReceipt={"status": "0x0", "blockNumber": "0x11"})

        with pytest.raises(LedgerTransactionFailedException):
            make_client(ScriptedRpc(answers), signer=worker).put_root(ROOT)

    def test_confirmation_timeout(self, worker):
        answers = dict(WRITE_ANSWERS, eth_getTransactionReceipt=None)
        client = make_client(ScriptedRpc(answers), signer=worker, confirmation_timeout=0)

        with pytest.raises(NetworkException, match="not confirmed"):
            client.put_root(ROOT)

    def test_write_without_worker_key(self):
        client = make_client(ScriptedRpc(dict(WRITE_ANSWERS)))

        assert client.sender_address() is None
        with pytest.raises(KeyMaterialMissingException):
            client.put_root(ROOT)
