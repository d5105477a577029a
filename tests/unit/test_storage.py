"""
Record Storage Unit Tests
Tests for core/storage/records.py
"""
import pytest

from core.config.runtime import StorageConfig
from core.http.client import HttpResponse
from core.storage.records import (
    ISSUERS,
    PROOFS,
    HttpIssuerDirectory,
    InMemoryRecordStore,
    JsonFileRecordStore,
    StoreIssuerDirectory,
    build_record_store,
    find_proof_by_root,
    save_proof_record,
)

from fixtures.common import make_proof_record


@pytest.fixture(params=["memory", "json"])
def store(request, tmp_path):
    if request.param == "memory":
        return InMemoryRecordStore()
    return JsonFileRecordStore(tmp_path / "store")


class TestRecordStore:
    def test_get_missing(self, store):
        assert store.get(PROOFS, "0xabc") is None

    def test_put_get_query(self, store):
        store.put(ISSUERS, "a", {"issuer_id": "a", "name": "A"})
        store.put(ISSUERS, "b", {"issuer_id": "b", "name": "B"})

        assert store.get(ISSUERS, "a")["name"] == "A"
        assert [row["issuer_id"] for row in store.query(ISSUERS)] == ["a", "b"]
        assert store.query(ISSUERS, name="B") == [{"issuer_id": "b", "name": "B"}]

    def test_values_are_copies(self, store):
        value = {"list": [1]}
        store.put(ISSUERS, "a", value)
        value["list"].append(2)

        assert store.get(ISSUERS, "a") == {"list": [1]}

    def test_proof_round_trip(self, store):
        record = make_proof_record()
        save_proof_record(store, record)

        assert find_proof_by_root(store, record.merkle_root.upper().replace("0X", "0x")) == record
        assert find_proof_by_root(store, "0x" + "00" * 32) is None


def test_build_record_store(tmp_path):
    assert isinstance(build_record_store(StorageConfig(backend="memory")), InMemoryRecordStore)
    assert isinstance(build_record_store(StorageConfig(backend="json", path=str(tmp_path))), JsonFileRecordStore)
    with pytest.raises(ValueError, match="Unknown storage backend"):
        build_record_store(StorageConfig(backend="postgres"))


def test_json_store_sanitizes_keys(tmp_path):
    store = JsonFileRecordStore(tmp_path)
    store.put(ISSUERS, "../escape", {"x": 1})

    assert store.get(ISSUERS, "../escape") == {"x": 1}
    assert not (tmp_path.parent / "escape.json").exists()


def test_json_store_keys_do_not_collide(tmp_path):
    store = JsonFileRecordStore(tmp_path)
    for key in ("Acme", "acme", "acme/east", "acme_east"):
        store.put(ISSUERS, key, {"issuer_id": key})

    for key in ("Acme", "acme", "acme/east", "acme_east"):
        assert store.get(ISSUERS, key) == {"issuer_id": key}
    assert len(store.query(ISSUERS)) == 4


class TestIssuerDirectory:
    def test_store_directory(self):
        directory = StoreIssuerDirectory(InMemoryRecordStore())
        directory.register("acme", "0x" + "ab" * 64, name="Acme")

        assert directory.get_public_key("acme") == "0x" + "ab" * 64
        assert directory.get_public_key("unknown") is None

    def test_address_fallback(self):
        store = InMemoryRecordStore()
        store.put(ISSUERS, "acme", {"issuer_id": "acme", "address": "0x" + "12" * 20})

        assert StoreIssuerDirectory(store).get_public_key("acme") == "0x" + "12" * 20

    def test_http_directory(self):
        class FakeHttp:
            def get(self, url, **kwargs):
                if url.endswith("/issuers/acme"):
                    return HttpResponse(status_code=200, content=b'{"public_key": "0xkey"}')
                return HttpResponse(status_code=404, content=b"{}")

        directory = HttpIssuerDirectory("https://directory.test/", FakeHttp())

        assert directory.get_public_key("acme") == "0xkey"
        assert directory.get_public_key("other") is None

    def test_http_directory_quotes_issuer_id(self):
        requested = []

        class FakeHttp:
            def get(self, url, **kwargs):
                requested.append(url)
                return HttpResponse(status_code=404, content=b"{}")

        HttpIssuerDirectory("https://directory.test", FakeHttp()).get_public_key("acme/../admin?x=1")

        assert requested == ["https://directory.test/issuers/acme%2F..%2Fadmin%3Fx%3D1"]
