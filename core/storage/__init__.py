"""
Storage Module

Record store and issuer directory collaborators.
"""

from .records import (
    ISSUER_DOCUMENTS,
    ISSUERS,
    PROOFS,
    HttpIssuerDirectory,
    InMemoryRecordStore,
    IssuerDirectory,
    JsonFileRecordStore,
    RecordStore,
    StoreIssuerDirectory,
    build_record_store,
    find_proof_by_root,
    save_proof_record,
)

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
