"""
CLI Issue Command

Issue a batch of documents: hash, anchor the Merkle root, sign, embed the
proof into every file and write the results.

Usage:
    docanchor issue a.pdf b.docx --batch 2024-Q1 [--bundle] [--out DIR] [--json]
"""

from __future__ import annotations

import copy
import json
import logging
import sys
from argparse import Namespace
from pathlib import Path

from core.schemas.errors import DocAnchorException
from orchestrator.artifacts.bundle import write_bundle, write_issued_files
from orchestrator.issuance import IssuanceRequest, IssuanceResult, IssueDocument
from orchestrator.runtime import create_issuance_orchestrator


logger = logging.getLogger(__name__)


# Exit codes
EXIT_SUCCESS = 0
EXIT_RUNTIME_ERROR = 1


def print_result_human(result: IssuanceResult, written: list[str]) -> None:
    print(f"ok: {str(result.ok).lower()}")
    if result.record:
        print(f"merkle_root: {result.record.merkle_root}")
        print(f"record_id: {result.record.id}")
    if result.receipt:
        print(f"tx_hash: {result.receipt.tx_hash}")
        if result.receipt.explorer_url:
            print(f"explorer: {result.receipt.explorer_url}")
    print(f"steps: {' -> '.join(result.completed_steps)}")
    if written:
        print(f"\nwritten ({len(written)}):")
        for path in written:
            print(f"  {path}")
    if result.failure:
        print(f"\nfailed at {result.failure.step}: {result.failure.kind}")
        print(f"  {result.failure.message}")
        failed = result.failure.details.get("failed") or {}
        for name, reason in failed.items():
            print(f"  ✗ {name}: {reason}")


def issue_cmd(args: Namespace) -> int:
    """Execute the issue command."""
    runtime = copy.deepcopy(args.cli_config.runtime)
    if args.no_badge:
        runtime.issuance.badge_enabled = False
    issuer_id = args.issuer or runtime.issuance.issuer_id
    if not issuer_id:
        print("Error: issuer id required (--issuer or DOCANCHOR_ISSUER_ID)", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    documents = []
    for file_name in args.files:
        path = Path(file_name)
        if not path.is_file():
            print(f"Error: File not found: {path}", file=sys.stderr)
            return EXIT_RUNTIME_ERROR
        documents.append(IssueDocument(name=path.name, data=path.read_bytes()))

    try:
        orchestrator = create_issuance_orchestrator(runtime)
    except DocAnchorException as e:
        print(f"Error [{e.code}]: {e.message}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    result = orchestrator.issue(IssuanceRequest(
        issuer_id=issuer_id,
        batch=args.batch,
        documents=documents,
        description=args.description,
        expiry_date=args.expiry,
    ))

    written: list[str] = []
    if result.documents and result.record:
        out_dir = Path(args.out or runtime.issuance.output_dir)
        if args.bundle:
            written = [str(write_bundle(result.documents, result.record, out_dir))]
        else:
            written = [str(p) for p in write_issued_files(result.documents, out_dir, result.record)]

    if args.json:
        summary = result.to_dict()
        summary["written"] = written
        print(json.dumps(summary, indent=2))
    else:
        print_result_human(result, written)

    return EXIT_SUCCESS if result.ok else EXIT_RUNTIME_ERROR
