"""
Record Storage

Key-value record store for proof records, issuer directory entries and
issuance metadata, plus the issuer public-key lookup used by verification.

Collections:
- proofs             keyed by Merkle root (0x hex), value = ProofRecord JSON
- issuers            keyed by issuer id, value = {issuer_id, name, public_key, address}
- issuer_documents   keyed by record id, value = issuance metadata row
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Optional, Protocol
from urllib.parse import quote

from core.crypto.hashing import normalize_hex
from core.http.client import HttpClient
from core.schemas.proof import ProofRecord


logger = logging.getLogger(__name__)

PROOFS = "proofs"
ISSUERS = "issuers"
ISSUER_DOCUMENTS = "issuer_documents"

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


class RecordStore(Protocol):
    """Minimal get/put/query store."""

    def get(self, collection: str, key: str) -> Optional[dict[str, Any]]:
        ...

    def put(self, collection: str, key: str, value: dict[str, Any]) -> None:
        ...

    def query(self, collection: str, **filters: Any) -> list[dict[str, Any]]:
        ...


def _matches(value: dict[str, Any], filters: dict[str, Any]) -> bool:
    return all(value.get(k) == v for k, v in filters.items())


class InMemoryRecordStore:
    """RecordStore held in process memory."""

    def __init__(self) -> None:
        self._data: dict[str, dict[str, dict[str, Any]]] = {}

    def get(self, collection: str, key: str) -> Optional[dict[str, Any]]:
        value = self._data.get(collection, {}).get(key)
        return json.loads(json.dumps(value)) if value is not None else None

    def put(self, collection: str, key: str, value: dict[str, Any]) -> None:
        # Round-trip through JSON so callers can't alias stored state
        self._data.setdefault(collection, {})[key] = json.loads(json.dumps(value))

    def query(self, collection: str, **filters: Any) -> list[dict[str, Any]]:
        return [
            json.loads(json.dumps(v))
            for _, v in sorted(self._data.get(collection, {}).items())
            if _matches(v, filters)
        ]


class JsonFileRecordStore:
    """
    RecordStore persisted as one JSON file per record:
    ``<root>/<collection>/<slug>-<digest>.json``.

    The slug is the key with unsafe characters replaced; the digest is taken
    over the exact key, so keys differing only in case or in replaced
    characters never share a file.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def _path(self, collection: str, key: str) -> Path:
        slug = _UNSAFE_KEY_CHARS.sub("_", key)[:80]
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()[:16]
        return self.root / collection / f"{slug}-{digest}.json"

    def get(self, collection: str, key: str) -> Optional[dict[str, Any]]:
        path = self._path(collection, key)
        if not path.exists():
            return None
        return json.loads(path.read_text(encoding="utf-8"))

    def put(self, collection: str, key: str, value: dict[str, Any]) -> None:
        path = self._path(collection, key)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(value, f, indent=2, sort_keys=True, ensure_ascii=False)
            os.replace(tmp, path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def query(self, collection: str, **filters: Any) -> list[dict[str, Any]]:
        directory = self.root / collection
        if not directory.is_dir():
            return []
        results = []
        for path in sorted(directory.glob("*.json")):
            value = json.loads(path.read_text(encoding="utf-8"))
            if _matches(value, filters):
                results.append(value)
        return results


def build_record_store(storage_config: Any) -> RecordStore:
    """Record store for a StorageConfig section."""
    if storage_config.backend == "memory":
        return InMemoryRecordStore()
    if storage_config.backend == "json":
        return JsonFileRecordStore(storage_config.path)
    raise ValueError(f"Unknown storage backend: {storage_config.backend!r}")


# =============================================================================
# Proof records
# =============================================================================

def save_proof_record(store: RecordStore, record: ProofRecord) -> None:
    store.put(PROOFS, normalize_hex(record.merkle_root), record.to_json_dict())


def find_proof_by_root(store: RecordStore, merkle_root: str) -> Optional[ProofRecord]:
    """Stored proof record for ``merkle_root``, or None."""
    data = store.get(PROOFS, normalize_hex(merkle_root))
    if data is None:
        return None
    return ProofRecord.model_validate(data)


# =============================================================================
# Issuer directory
# =============================================================================

class IssuerDirectory(Protocol):
    """Lookup of issuer public keys (or addresses) by issuer id."""

    def get_public_key(self, issuer_id: str) -> Optional[str]:
        ...


class StoreIssuerDirectory:
    """IssuerDirectory over the ``issuers`` collection of a RecordStore."""

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def get_public_key(self, issuer_id: str) -> Optional[str]:
        entry = self.store.get(ISSUERS, issuer_id)
        if not entry:
            return None
        return entry.get("public_key") or entry.get("address")

    def register(
        self,
        issuer_id: str,
        public_key: str,
        *,
        name: str = "",
        address: Optional[str] = None,
    ) -> None:
        self.store.put(ISSUERS, issuer_id, {
            "issuer_id": issuer_id,
            "name": name,
            "public_key": public_key,
            "address": address,
        })


class HttpIssuerDirectory:
    """
    IssuerDirectory backed by a remote endpoint:
    ``GET <base_url>/issuers/<issuer_id>`` -> ``{"public_key": "0x..."}``.

    404 means unknown issuer; transport failures raise NetworkException
    after the client's bounded retry.
    """

    def __init__(self, base_url: str, http: HttpClient) -> None:
        self.base_url = base_url.rstrip("/")
        self.http = http

    def get_public_key(self, issuer_id: str) -> Optional[str]:
        response = self.http.get(f"{self.base_url}/issuers/{quote(issuer_id, safe='')}")
        if response.status_code == 404:
            return None
        response.raise_for_status()
        data = response.json()
        return data.get("public_key") or data.get("address")


__all__ = [
    "PROOFS",
    "ISSUERS",
    "ISSUER_DOCUMENTS",
    "RecordStore",
    "InMemoryRecordStore",
    "JsonFileRecordStore",
    "build_record_store",
    "save_proof_record",
    "find_proof_by_root",
    "IssuerDirectory",
    "StoreIssuerDirectory",
    "HttpIssuerDirectory",
]
