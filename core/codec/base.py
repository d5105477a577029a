"""
Container Codec Interface

Every container format implements the same four operations:

- embed(data, record) -> bytes
- extract(data) -> ExtractedProof(original, record)
- canonicalize_for_hash(data) -> bytes   (bytes the leaf hash is taken over)
- has_proof(data) -> bool

Format selection is by content, never by file extension alone.
"""

from __future__ import annotations

import io
import json
import zipfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from core.schemas.canonical import dumps_canonical
from core.schemas.errors import MalformedProofException
from core.schemas.proof import ProofRecord


FORMAT_FLAT = "flat"
FORMAT_OOXML = "ooxml"


@dataclass
class ExtractedProof:
    """Original document bytes and the proof record that was embedded in them."""
    original: bytes
    record: ProofRecord

    def __iter__(self):
        # Allows ``original, record = codec.extract(data)``
        yield self.original
        yield self.record


def serialize_record(record: ProofRecord) -> bytes:
    """Canonical JSON bytes of a record as embedded into containers."""
    return dumps_canonical(record, keep_none=True).encode("utf-8")


def parse_record(payload: bytes) -> ProofRecord:
    """
    Parse an embedded proof payload.

    Raises:
        MalformedProofException: If the payload is not a valid proof record
    """
    try:
        data: Any = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedProofException(
            f"Embedded proof is not valid JSON: {e}",
            details={"length": len(payload)},
        ) from e
    if not isinstance(data, dict):
        raise MalformedProofException("Embedded proof must be a JSON object")
    try:
        return ProofRecord.model_validate(data)
    except ValidationError as e:
        raise MalformedProofException(
            f"Embedded proof does not match the record schema: {e.error_count()} error(s)",
            details={"errors": [err["msg"] for err in e.errors()[:5]]},
        ) from e


class ContainerCodec(ABC):
    """Embed/extract a proof block into/out of one container format."""

    format_name: str = ""

    @abstractmethod
    def embed(self, data: bytes, record: ProofRecord) -> bytes:
        """Return ``data`` carrying ``record``."""

    @abstractmethod
    def extract(self, data: bytes) -> ExtractedProof:
        """
        Split ``data`` into the original document bytes and its proof record.

        Raises:
            MalformedProofException: If no well-formed proof block is present
        """

    @abstractmethod
    def has_proof(self, data: bytes) -> bool:
        """True when ``data`` already carries a proof block."""

    def canonicalize_for_hash(self, data: bytes) -> bytes:
        """Bytes the leaf hash is computed over. Identity by default."""
        return data


def is_ooxml_package(data: bytes) -> bool:
    """True for zip packages that carry an OOXML ``[Content_Types].xml`` part."""
    if not data.startswith(b"PK"):
        return False
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            return "[Content_Types].xml" in zf.namelist()
    except zipfile.BadZipFile:
        return False


def detect_format(data: bytes) -> str:
    """Container format of ``data``: ``ooxml`` for OOXML zip packages, else ``flat``."""
    return FORMAT_OOXML if is_ooxml_package(data) else FORMAT_FLAT


def get_codec(data: bytes) -> ContainerCodec:
    """Codec for the container format of ``data``."""
    # Deferred to avoid a cycle: the format modules import this one
    from .flat import FlatAppendCodec
    from .ooxml import OoxmlCodec

    if detect_format(data) == FORMAT_OOXML:
        return OoxmlCodec()
    return FlatAppendCodec()
