"""
CLI Main Entry Point

Parses command-line arguments and dispatches to subcommands.

Usage:
    python -m docanchor_cli issue FILE... --batch LABEL [--issuer ID] [--bundle] [--out DIR]
    python -m docanchor_cli verify FILE [--json] [--debug]
    python -m docanchor_cli verify-root MERKLE_ROOT [--json] [--debug]
    python -m docanchor_cli invalidate root MERKLE_ROOT
    python -m docanchor_cli invalidate document (FILE | --hash HASH)
    python -m docanchor_cli issuer register --name NAME
    python -m docanchor_cli keys generate
    python -m docanchor_cli config --init

Environment Variables:
    DOCANCHOR_RPC_URL               Ledger JSON-RPC endpoint
    DOCANCHOR_CONTRACT_ADDRESS      Anchoring contract address
    DOCANCHOR_WORKER_PRIVATE_KEY    Worker key used to submit ledger writes
    DOCANCHOR_ISSUER_ID             Issuer identifier
    DOCANCHOR_ISSUER_PRIVATE_KEY    Issuer signing key
    DOCANCHOR_LOG_LEVEL             Log level (default: INFO)
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import traceback
from pathlib import Path
from typing import Sequence

from docanchor_cli.commands import invalidate, issue, keys, verify
from docanchor_cli.config import DEFAULT_CONFIG_NAME, get_default_config_template, load_config


# Exit codes
EXIT_SUCCESS = 0
EXIT_RUNTIME_ERROR = 1
EXIT_VERIFICATION_FAILED = 2


def setup_logging(level: str = "INFO", log_file: str | None = None) -> None:
    """Configure logging for the CLI."""
    log_level = getattr(logging, level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]

    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=handlers,
    )


def _add_output_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--json", action="store_true", default=False, help="JSON output")
    parser.add_argument("--debug", action="store_true", default=False, help="Debug mode")


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog="docanchor",
        description="docanchor CLI - Issue ledger-anchored documents and verify them.",
    )
    parser.add_argument(
        "--version", action="version", version="%(prog)s 0.1.0"
    )
    parser.add_argument(
        "--config", "-c",
        type=Path,
        default=None,
        help=f"Path to configuration file (default: ./{DEFAULT_CONFIG_NAME} or ~/.config/docanchor/config.json)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (overrides config)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # --- issue command ---
    issue_parser = subparsers.add_parser(
        "issue",
        help="Issue a batch of documents",
        description="Hash, anchor, sign and embed a proof into each document.",
    )
    issue_parser.add_argument("files", nargs="+", help="Documents to issue")
    issue_parser.add_argument("--batch", "-b", required=True, help="Batch label")
    issue_parser.add_argument("--issuer", type=str, default=None, help="Issuer id (default: from config)")
    issue_parser.add_argument("--description", type=str, default=None, help="Free-text description")
    issue_parser.add_argument("--expiry", type=str, default=None, help="Expiry date (ISO-8601)")
    issue_parser.add_argument("--out", "-o", type=str, default=None, help="Output directory")
    issue_parser.add_argument(
        "--bundle",
        action="store_true",
        default=False,
        help="Write one zip bundle instead of loose files",
    )
    issue_parser.add_argument(
        "--no-badge",
        action="store_true",
        default=False,
        help="Do not add the verification QR badge",
    )
    _add_output_flags(issue_parser)
    issue_parser.set_defaults(func=issue.issue_cmd)

    # --- verify command ---
    verify_parser = subparsers.add_parser(
        "verify",
        help="Verify an issued document",
        description="Extract the embedded proof and check it gate by gate.",
    )
    verify_parser.add_argument("file", type=str, help="Document to verify")
    _add_output_flags(verify_parser)
    verify_parser.set_defaults(func=verify.verify_cmd)

    # --- verify-root command ---
    verify_root_parser = subparsers.add_parser(
        "verify-root",
        help="Verify a stored batch by its Merkle root",
    )
    verify_root_parser.add_argument("merkle_root", type=str, help="Batch Merkle root (0x hex)")
    _add_output_flags(verify_root_parser)
    verify_root_parser.set_defaults(func=verify.verify_root_cmd)

    # --- invalidate command ---
    invalidate_parser = subparsers.add_parser(
        "invalidate",
        help="Invalidate a batch or a single document on the ledger",
    )
    invalidate_sub = invalidate_parser.add_subparsers(dest="target")

    inv_root = invalidate_sub.add_parser("root", help="Invalidate a whole batch")
    inv_root.add_argument("merkle_root", type=str, help="Batch Merkle root (0x hex)")
    _add_output_flags(inv_root)
    inv_root.set_defaults(func=invalidate.invalidate_root_cmd)

    inv_doc = invalidate_sub.add_parser("document", help="Invalidate one document")
    inv_doc.add_argument("file", nargs="?", default=None, help="Issued document")
    inv_doc.add_argument("--hash", type=str, default=None, help="Document hash (0x hex)")
    _add_output_flags(inv_doc)
    inv_doc.set_defaults(func=invalidate.invalidate_document_cmd)

    invalidate_parser.set_defaults(func=lambda args: invalidate_parser.print_help() or EXIT_RUNTIME_ERROR)

    # --- issuer command ---
    issuer_parser = subparsers.add_parser("issuer", help="Manage the issuer identity")
    issuer_sub = issuer_parser.add_subparsers(dest="issuer_command")
    issuer_register = issuer_sub.add_parser("register", help="Register the issuer on the ledger")
    issuer_register.add_argument("--name", required=True, help="Display name")
    _add_output_flags(issuer_register)
    issuer_register.set_defaults(func=invalidate.register_issuer_cmd)
    issuer_parser.set_defaults(func=lambda args: issuer_parser.print_help() or EXIT_RUNTIME_ERROR)

    # --- keys command ---
    keys_parser = subparsers.add_parser("keys", help="Key material helpers")
    keys_sub = keys_parser.add_subparsers(dest="keys_command")
    keys_generate = keys_sub.add_parser("generate", help="Generate an issuer key pair")
    _add_output_flags(keys_generate)
    keys_generate.set_defaults(func=keys.keys_generate_cmd)
    keys_parser.set_defaults(func=lambda args: keys_parser.print_help() or EXIT_RUNTIME_ERROR)

    # --- config command ---
    config_parser = subparsers.add_parser(
        "config",
        help="Manage CLI configuration",
        description="Initialize or display configuration.",
    )
    config_parser.add_argument(
        "--init",
        action="store_true",
        default=False,
        help="Create a template configuration file",
    )
    config_parser.add_argument(
        "--show",
        action="store_true",
        default=False,
        help="Show current configuration (key material omitted)",
    )
    config_parser.add_argument(
        "--path",
        type=str,
        default=DEFAULT_CONFIG_NAME,
        help=f"Path for config file (default: {DEFAULT_CONFIG_NAME})",
    )
    config_parser.set_defaults(func=config_cmd)

    return parser


def config_cmd(args: argparse.Namespace) -> int:
    """Handle config command."""
    if args.init:
        config_path = Path(args.path)
        if config_path.exists():
            print(f"Error: Config file already exists: {config_path}", file=sys.stderr)
            return EXIT_RUNTIME_ERROR

        config_path.write_text(get_default_config_template())
        print(f"Created configuration file: {config_path}")
        print("\nEdit this file to configure your settings.")
        print("Keep private keys in environment variables (DOCANCHOR_* prefix).")
        return EXIT_SUCCESS

    if args.show:
        config = args.cli_config
        config_dict = config.runtime.to_dict()
        config_dict["log_level"] = config.log_level
        config_dict["log_file"] = config.log_file
        print(json.dumps(config_dict, indent=2))
        return EXIT_SUCCESS

    # Default: show help
    print("Usage: docanchor config [--init|--show]")
    print("  --init  Create a template configuration file")
    print("  --show  Show current configuration")
    return EXIT_SUCCESS


def main(argv: Sequence[str] | None = None) -> int:
    """
    Main entry point for the CLI.

    Returns:
        Exit code (0=success, 1=error, 2=verification failed)
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return EXIT_RUNTIME_ERROR

    # Load configuration
    try:
        config = load_config(args.config)
    except Exception as e:
        print(f"Error loading configuration: {e}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    # Setup logging
    log_level = args.log_level or config.log_level
    setup_logging(level=log_level, log_file=config.log_file)

    # Attach config to args for commands to use
    args.cli_config = config

    try:
        return args.func(args)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return EXIT_RUNTIME_ERROR
    except Exception as e:
        if hasattr(args, "debug") and args.debug:
            traceback.print_exc()
        else:
            print(f"Error: {e}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR


if __name__ == "__main__":
    sys.exit(main())
