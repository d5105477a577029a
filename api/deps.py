"""
API Dependencies

Dependency injection for the API. Services are built once per process from
the runtime configuration; tests replace ``get_services`` through
``app.dependency_overrides``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from core.config.runtime import RuntimeConfig
from core.ledger.client import LedgerClient
from core.storage.records import RecordStore
from orchestrator.runtime import create_ledger, create_store, create_verification_engine
from orchestrator.verification import VerificationEngine

logger = logging.getLogger(__name__)


CONFIG_SEARCH_PATHS = (
    Path("docanchor.json"),
    Path(".docanchor.json"),
    Path.home() / ".config" / "docanchor" / "config.json",
)


def _load_runtime_config() -> RuntimeConfig:
    """Load RuntimeConfig from the first config file found, then overlay environment variables.

    The .env file is loaded automatically by core.config.runtime on import.
    """
    config: RuntimeConfig | None = None

    for path in CONFIG_SEARCH_PATHS:
        if path.exists():
            try:
                with open(path) as f:
                    data = json.load(f)
                logger.info(f"Loaded config from {path}")
                config = RuntimeConfig.from_dict(data)
                break
            except (OSError, ValueError, TypeError) as e:
                logger.warning(f"Failed to parse {path}: {e}")

    if config is None:
        config = RuntimeConfig()

    return config.with_env_overrides()


@dataclass
class Services:
    """Everything the verification routes need."""
    config: RuntimeConfig
    store: RecordStore
    ledger: LedgerClient
    engine: VerificationEngine


def build_services(config: RuntimeConfig) -> Services:
    store = create_store(config)
    ledger = create_ledger(config)
    engine = create_verification_engine(config, ledger=ledger, store=store)
    return Services(config=config, store=store, ledger=ledger, engine=engine)


@lru_cache(maxsize=1)
def get_services() -> Services:
    """Process-wide services (FastAPI dependency)."""
    return build_services(_load_runtime_config())
