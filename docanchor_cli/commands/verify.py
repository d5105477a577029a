"""
CLI Verify Commands

Verify an issued document, or a stored batch by its Merkle root.

Usage:
    docanchor verify issued/report.pdf [--json] [--debug]
    docanchor verify-root 0x... [--json] [--debug]
"""

from __future__ import annotations

import json
import logging
import sys
from argparse import Namespace
from pathlib import Path

from core.schemas.errors import DocAnchorException
from core.schemas.verification import VerificationOutcome
from orchestrator.runtime import create_store, create_verification_engine


logger = logging.getLogger(__name__)


# Exit codes
EXIT_SUCCESS = 0
EXIT_RUNTIME_ERROR = 1
EXIT_VERIFICATION_FAILED = 2


def outcome_exit_code(outcome: VerificationOutcome) -> int:
    if outcome.valid:
        return EXIT_SUCCESS
    if outcome.status == "error":
        return EXIT_RUNTIME_ERROR
    return EXIT_VERIFICATION_FAILED


def print_outcome_human(outcome: VerificationOutcome, label: str, debug: bool = False) -> None:
    print(f"target: {label}")
    print(f"status: {outcome.status}")
    print(f"gate: {outcome.gate.value}")
    if outcome.kind:
        print(f"kind: {outcome.kind}")
    if outcome.message:
        print(f"message: {outcome.message}")
    if outcome.merkle_root:
        print(f"merkle_root: {outcome.merkle_root}")
    if outcome.issuer_id:
        print(f"issuer: {outcome.issuer_id}")
    if outcome.anchored_at:
        print(f"anchored_at: {outcome.anchored_at}")
    if outcome.explorer_url:
        print(f"explorer: {outcome.explorer_url}")
    if outcome.used_newline_fallback:
        print("note: matched after stripping a trailing line feed")

    if debug and outcome.checks:
        passed = sum(1 for c in outcome.checks if c.ok)
        print(f"\nchecks: {passed} passed, {len(outcome.checks) - passed} failed")
        for check in outcome.checks:
            status = "✓" if check.ok else "✗"
            print(f"  {status} {check.check_id}: {check.message}")


def _emit(outcome: VerificationOutcome, label: str, args: Namespace) -> int:
    if args.json:
        data = outcome.model_dump(mode="json")
        if not args.debug:
            data.pop("checks", None)
        print(json.dumps(data, indent=2))
    else:
        print_outcome_human(outcome, label, debug=args.debug)
    return outcome_exit_code(outcome)


def verify_cmd(args: Namespace) -> int:
    """Execute the verify command."""
    path = Path(args.file)
    if not path.is_file():
        print(f"Error: File not found: {path}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    try:
        engine = create_verification_engine(args.cli_config.runtime)
    except DocAnchorException as e:
        print(f"Error [{e.code}]: {e.message}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    logger.info(f"Verifying {path}")
    return _emit(engine.verify(path.read_bytes()), str(path), args)


def verify_root_cmd(args: Namespace) -> int:
    """Execute the verify-root command."""
    runtime = args.cli_config.runtime
    try:
        store = create_store(runtime)
        engine = create_verification_engine(runtime, store=store)
    except DocAnchorException as e:
        print(f"Error [{e.code}]: {e.message}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    return _emit(engine.verify_root(args.merkle_root, store), args.merkle_root, args)
