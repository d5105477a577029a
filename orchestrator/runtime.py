"""
Runtime wiring: build ledger clients, stores and orchestrators from a
RuntimeConfig. The CLI and the HTTP API share these factories.
"""

from __future__ import annotations

import logging
from typing import Optional

from core.config.runtime import RuntimeConfig
from core.crypto.signatures import LocalKeyProvider, ProofSigner
from core.http.client import HttpClient
from core.ledger.client import LedgerClient
from core.ledger.jsonrpc import JsonRpcLedgerClient
from core.ledger.memory import InMemoryLedgerClient
from core.schemas.errors import ConfigException
from core.storage.records import (
    HttpIssuerDirectory,
    IssuerDirectory,
    RecordStore,
    StoreIssuerDirectory,
    build_record_store,
)

from orchestrator.invalidation import InvalidationService
from orchestrator.issuance import IssuanceOrchestrator
from orchestrator.verification import VerificationEngine


logger = logging.getLogger(__name__)


def create_ledger(config: RuntimeConfig, http: Optional[HttpClient] = None) -> LedgerClient:
    """
    Ledger client for the configured backend.

    The worker key is optional: without it the client can read but any
    write fails with KeyMaterialMissing.
    """
    ledger_config = config.ledger
    worker = None
    if ledger_config.worker_private_key:
        worker = LocalKeyProvider(ledger_config.worker_private_key)

    if ledger_config.backend == "memory":
        sender = worker.address() if worker else None
        logger.warning("Using in-memory ledger; anchors do not outlive this process")
        return InMemoryLedgerClient(
            sender,
            workers=[sender] if sender else [],
            network="memory",
            explorer_base=None,
        )

    if ledger_config.backend == "jsonrpc":
        if not ledger_config.rpc_url or not ledger_config.contract_address:
            raise ConfigException(
                "Ledger RPC URL and contract address are required",
                details={"rpc_url": ledger_config.rpc_url, "contract_address": ledger_config.contract_address},
            )
        return JsonRpcLedgerClient.from_config(
            ledger_config,
            http or HttpClient.from_config(config.http, proxy=config.proxy),
            signer=worker,
        )

    raise ConfigException(f"Unknown ledger backend: {ledger_config.backend!r}")


def create_store(config: RuntimeConfig) -> RecordStore:
    try:
        return build_record_store(config.storage)
    except ValueError as e:
        raise ConfigException(str(e)) from e


def create_issuer_directory(
    config: RuntimeConfig,
    store: RecordStore,
    http: Optional[HttpClient] = None,
) -> IssuerDirectory:
    url = config.storage.issuer_directory_url
    if url:
        return HttpIssuerDirectory(url, http or HttpClient.from_config(config.http, proxy=config.proxy))
    return StoreIssuerDirectory(store)


def create_issuer_signer(config: RuntimeConfig) -> ProofSigner:
    """Signer over the issuer key; fails fast with KeyMaterialMissing."""
    return ProofSigner(LocalKeyProvider(config.issuance.issuer_private_key))


def create_issuance_orchestrator(
    config: RuntimeConfig,
    *,
    ledger: Optional[LedgerClient] = None,
    store: Optional[RecordStore] = None,
) -> IssuanceOrchestrator:
    return IssuanceOrchestrator(
        ledger=ledger or create_ledger(config),
        signer=create_issuer_signer(config),
        store=store or create_store(config),
        config=config.issuance,
    )


def create_verification_engine(
    config: RuntimeConfig,
    *,
    ledger: Optional[LedgerClient] = None,
    store: Optional[RecordStore] = None,
) -> VerificationEngine:
    store = store or create_store(config)
    return VerificationEngine.from_config(
        config.verification,
        ledger or create_ledger(config),
        create_issuer_directory(config, store),
    )


def create_invalidation_service(
    config: RuntimeConfig,
    *,
    ledger: Optional[LedgerClient] = None,
) -> InvalidationService:
    issuer_id = config.issuance.issuer_id
    if not issuer_id:
        raise ConfigException("Issuer id is required (DOCANCHOR_ISSUER_ID)")
    return InvalidationService(
        ledger=ledger or create_ledger(config),
        signer=create_issuer_signer(config),
        issuer_id=issuer_id,
        newline_fallback=config.verification.newline_fallback,
    )


__all__ = [
    "create_ledger",
    "create_store",
    "create_issuer_directory",
    "create_issuer_signer",
    "create_issuance_orchestrator",
    "create_verification_engine",
    "create_invalidation_service",
]
