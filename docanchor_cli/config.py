"""
CLI Configuration

Configuration for the docanchor CLI. A JSON (or YAML) file holds the
runtime sections (ledger, http, issuance, verification, storage) plus CLI
settings; DOCANCHOR_* environment variables override the file.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from core.config.runtime import ENV_PREFIX, RuntimeConfig


DEFAULT_CONFIG_NAME = "docanchor.json"


@dataclass
class CLIConfig:
    """Main CLI configuration."""

    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)

    # Logging
    log_level: str = "INFO"
    log_file: str | None = None

    # Output
    default_output_format: str = "human"  # "human" or "json"


def _read_file(path: Path) -> dict[str, Any]:
    if path.suffix in (".yaml", ".yml"):
        import yaml
        with open(path, "r") as f:
            return yaml.safe_load(f) or {}
    with open(path, "r") as f:
        return json.load(f)


def load_config_from_file(path: Path) -> CLIConfig:
    """Load configuration from a JSON or YAML file."""
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    data = _read_file(path)
    config = CLIConfig(runtime=RuntimeConfig.from_dict(data))
    config.log_level = data.get("log_level", config.log_level)
    config.log_file = data.get("log_file", config.log_file)
    config.default_output_format = data.get("output_format", config.default_output_format)
    return config


def load_config(config_path: Path | None = None) -> CLIConfig:
    """
    Load configuration from file and/or environment.

    Environment variables override file settings.
    """
    config = CLIConfig()

    if config_path is not None:
        config = load_config_from_file(config_path)
    else:
        default_paths = [
            Path.cwd() / DEFAULT_CONFIG_NAME,
            Path.cwd() / ".docanchor.json",
            Path.home() / ".config" / "docanchor" / "config.json",
        ]
        for default_path in default_paths:
            if default_path.exists():
                config = load_config_from_file(default_path)
                break

    config.runtime = config.runtime.with_env_overrides()
    if os.getenv(f"{ENV_PREFIX}LOG_LEVEL"):
        config.log_level = os.getenv(f"{ENV_PREFIX}LOG_LEVEL", "INFO")
    if os.getenv(f"{ENV_PREFIX}LOG_FILE"):
        config.log_file = os.getenv(f"{ENV_PREFIX}LOG_FILE")
    return config


def get_default_config_template() -> str:
    """Get a template configuration file. Keys belong in the environment."""
    return """{
  "log_level": "INFO",
  "log_file": null,
  "output_format": "human",
  "ledger": {
    "backend": "jsonrpc",
    "network": "amoy",
    "chain_id": 80002,
    "rpc_url": "https://rpc-amoy.polygon.technology",
    "contract_address": null,
    "explorer_base": "https://amoy.polygonscan.com",
    "confirmation_timeout": 120
  },
  "http": {
    "timeout": 30,
    "max_retries": 3,
    "retry_delay": 1.0
  },
  "issuance": {
    "issuer_id": null,
    "max_batch_size": 20,
    "node_algorithm": "sha256",
    "badge_enabled": true,
    "verification_url": "https://verify.docanchor.dev/verify",
    "output_dir": "issued"
  },
  "verification": {
    "check_invalidation": true,
    "newline_fallback": true
  },
  "storage": {
    "backend": "json",
    "path": ".docanchor/store",
    "issuer_directory_url": null
  }
}
"""
