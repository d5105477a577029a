"""
CLI Invalidation and Issuer Commands

Usage:
    docanchor invalidate root 0x...
    docanchor invalidate document (--hash 0x... | FILE)
    docanchor issuer register --name "Acme University"
"""

from __future__ import annotations

import json
import logging
import sys
from argparse import Namespace
from pathlib import Path

from core.ledger.client import TxReceipt
from core.schemas.errors import DocAnchorException
from core.storage.records import StoreIssuerDirectory
from orchestrator.runtime import create_invalidation_service, create_store


logger = logging.getLogger(__name__)


# Exit codes
EXIT_SUCCESS = 0
EXIT_RUNTIME_ERROR = 1


def _print_receipt(receipt: TxReceipt, action: str, as_json: bool) -> None:
    if as_json:
        print(json.dumps({
            "action": action,
            "tx_hash": receipt.tx_hash,
            "status": receipt.status,
            "block_number": receipt.block_number,
            "explorer_url": receipt.explorer_url,
        }, indent=2))
        return
    print(f"{action}: {receipt.status}")
    print(f"tx_hash: {receipt.tx_hash}")
    if receipt.explorer_url:
        print(f"explorer: {receipt.explorer_url}")


def invalidate_root_cmd(args: Namespace) -> int:
    try:
        service = create_invalidation_service(args.cli_config.runtime)
        receipt = service.invalidate_root(args.merkle_root)
    except DocAnchorException as e:
        print(f"Error [{e.code}]: {e.message}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR
    _print_receipt(receipt, "invalidate-root", args.json)
    return EXIT_SUCCESS


def invalidate_document_cmd(args: Namespace) -> int:
    if not args.hash and not args.file:
        print("Error: give a document file or --hash", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    try:
        service = create_invalidation_service(args.cli_config.runtime)
        if args.hash:
            receipt = service.invalidate_document(args.hash)
        else:
            path = Path(args.file)
            if not path.is_file():
                print(f"Error: File not found: {path}", file=sys.stderr)
                return EXIT_RUNTIME_ERROR
            receipt = service.invalidate_document_file(path.read_bytes())
    except DocAnchorException as e:
        print(f"Error [{e.code}]: {e.message}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR
    _print_receipt(receipt, "invalidate-document", args.json)
    return EXIT_SUCCESS


def register_issuer_cmd(args: Namespace) -> int:
    runtime = args.cli_config.runtime
    try:
        service = create_invalidation_service(runtime)
        directory = StoreIssuerDirectory(create_store(runtime))
        receipt = service.register_issuer(args.name, directory=directory)
    except DocAnchorException as e:
        print(f"Error [{e.code}]: {e.message}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR
    _print_receipt(receipt, "register-issuer", args.json)
    return EXIT_SUCCESS
