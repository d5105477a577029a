"""
Issued Bundle Output

Names issued documents and writes them to disk, either as loose files or
as one downloadable zip bundle carrying every document plus ``proof.json``.

Naming:
- single document: ``<stem>.<ext>``
- batch:           ``<batch>_<n>_<stem>.<ext>`` (n is 1-based)
- bundle:          ``<issuer>_<batch>_<timestamp>.zip``
"""

from __future__ import annotations

import json
import logging
import re
import zipfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Optional

from core.schemas.proof import ProofRecord


logger = logging.getLogger(__name__)

PROOF_FILE = "proof.json"

_WHITESPACE_RE = re.compile(r"\s+")
_UNSAFE_RE = re.compile(r"[^a-zA-Z0-9._-]")
_DASHES_RE = re.compile(r"-+")


class BundleError(Exception):
    """Error while writing issued documents."""
    pass


def sanitize_filename(value: str) -> str:
    """
    Make ``value`` safe for use as a file name component.

    Example:
        >>> sanitize_filename("  Q3 report (final).pdf ")
        'Q3-report-final-.pdf'
    """
    cleaned = _WHITESPACE_RE.sub("-", value.strip())
    cleaned = _UNSAFE_RE.sub("-", cleaned)
    return _DASHES_RE.sub("-", cleaned)


def split_name(name: str) -> tuple[str, str]:
    """Split a file name into (stem, extension) without the dot."""
    base = Path(name).name
    stem, dot, ext = base.rpartition(".")
    if not dot or not stem:
        return base, ""
    return stem, ext


def output_name(name: str, *, batch: str, index: int, batch_size: int) -> str:
    """Output file name for the document at ``index`` (0-based) of a batch."""
    stem, ext = split_name(name)
    stem = sanitize_filename(stem) or "document"
    suffix = f".{sanitize_filename(ext)}" if ext else ""
    if batch_size > 1:
        return f"{sanitize_filename(batch)}_{index + 1}_{stem}{suffix}"
    return f"{stem}{suffix}"


def bundle_name(issuer_id: str, batch: str, when: Optional[datetime] = None) -> str:
    when = when or datetime.now(timezone.utc)
    stamp = when.strftime("%Y%m%dT%H%M%SZ")
    return f"{sanitize_filename(issuer_id)}_{sanitize_filename(batch)}_{stamp}.zip"


def _proof_bytes(record: ProofRecord) -> bytes:
    return json.dumps(record.to_json_dict(), indent=2, ensure_ascii=False).encode("utf-8")


def write_issued_files(
    documents: Iterable[Any],
    out_dir: str | Path,
    record: Optional[ProofRecord] = None,
) -> list[Path]:
    """
    Write each issued document into ``out_dir``, plus ``proof.json`` when a
    record is given.

    Documents need ``output_name`` and ``data`` attributes.
    """
    out_path = Path(out_dir)
    out_path.mkdir(parents=True, exist_ok=True)

    written: list[Path] = []
    for doc in documents:
        target = out_path / doc.output_name
        target.write_bytes(doc.data)
        written.append(target)

    if record is not None:
        proof_path = out_path / PROOF_FILE
        proof_path.write_bytes(_proof_bytes(record))
        written.append(proof_path)

    logger.info(f"Wrote {len(written)} file(s) to {out_path}")
    return written


def write_bundle(
    documents: Iterable[Any],
    record: ProofRecord,
    out_dir: str | Path,
    *,
    when: Optional[datetime] = None,
) -> Path:
    """
    Write every issued document and the proof record into one zip bundle.

    Returns:
        Path to the created zip file

    Raises:
        BundleError: If two documents share an output name
    """
    out_path = Path(out_dir)
    out_path.mkdir(parents=True, exist_ok=True)
    zip_path = out_path / bundle_name(record.issuer_id, record.batch, when)

    # Reject duplicate names before the zip file exists.
    docs = list(documents)
    seen: set[str] = set()
    for doc in docs:
        if doc.output_name in seen:
            raise BundleError(f"Duplicate output name in bundle: {doc.output_name}")
        seen.add(doc.output_name)

    with zipfile.ZipFile(zip_path, "w", zipfile.ZIP_DEFLATED) as zf:
        for doc in docs:
            zf.writestr(doc.output_name, doc.data)
        zf.writestr(PROOF_FILE, _proof_bytes(record))

    logger.info(f"Wrote bundle {zip_path} ({len(docs)} document(s))")
    return zip_path


def read_bundle(zip_path: str | Path) -> tuple[dict[str, bytes], ProofRecord]:
    """Load a bundle back into (documents by name, proof record)."""
    path = Path(zip_path)
    if not zipfile.is_zipfile(path):
        raise BundleError(f"Not a zip file: {path}")
    with zipfile.ZipFile(path, "r") as zf:
        names = zf.namelist()
        if PROOF_FILE not in names:
            raise BundleError(f"Bundle has no {PROOF_FILE}")
        record = ProofRecord.from_json_dict(json.loads(zf.read(PROOF_FILE)))
        documents = {name: zf.read(name) for name in names if name != PROOF_FILE}
    return documents, record


__all__ = [
    "PROOF_FILE",
    "BundleError",
    "sanitize_filename",
    "split_name",
    "output_name",
    "bundle_name",
    "write_issued_files",
    "write_bundle",
    "read_bundle",
]
