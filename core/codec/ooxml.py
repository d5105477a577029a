"""
OOXML Container Codec

Used for zip-based Office packages (.docx, .xlsx, .pptx). The proof record
is stored as its own package part:

- part       customXml/docanchor-proof.json
- override   <Override PartName="/customXml/docanchor-proof.json" ContentType="application/json"/>
- rel        <Relationship Id="rIdDocAnchorProof" Type=".../customXml" Target="customXml/docanchor-proof.json"/>
             in _rels/.rels

XML parts are edited by inserting/removing exactly those elements, so every
other byte of every other part is untouched. Entry order and per-entry zip
metadata are preserved on write.
A root rels part that embed() has to create is tagged with a zip entry
comment, and extract() drops it again.

Hashing never looks at zip bytes: canonicalize_for_hash() produces a stream
of (name, length, content) records over the sorted part names, which is
independent of entry order, timestamps and compression.
"""

from __future__ import annotations

import io
import logging
import re
import zipfile
from typing import Iterable

from core.schemas.errors import MalformedProofException
from core.schemas.proof import ProofRecord

from .base import FORMAT_OOXML, ContainerCodec, ExtractedProof, parse_record, serialize_record


logger = logging.getLogger(__name__)

CONTENT_TYPES_PART = "[Content_Types].xml"
ROOT_RELS_PART = "_rels/.rels"
PROOF_PART = "customXml/docanchor-proof.json"
PROOF_REL_ID = "rIdDocAnchorProof"
CUSTOM_XML_REL_TYPE = (
    "http://schemas.openxmlformats.org/officeDocument/2006/relationships/customXml"
)

HASH_STREAM_HEADER = b"DOCANCHOR-OOXML-CANONICAL-V1\n"
# Zip entry comment on a root rels part that embed() had to create
SYNTHESIZED_COMMENT = b"docanchor-synthesized"
FIXED_DATE_TIME = (1980, 1, 1, 0, 0, 0)

PROOF_OVERRIDE = (
    f'<Override PartName="/{PROOF_PART}" ContentType="application/json"/>'
).encode("utf-8")
PROOF_RELATIONSHIP = (
    f'<Relationship Id="{PROOF_REL_ID}" Type="{CUSTOM_XML_REL_TYPE}" Target="{PROOF_PART}"/>'
).encode("utf-8")

_EMPTY_RELS = (
    b'<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\n'
    b'<Relationships xmlns="http://schemas.openxmlformats.org/package/2006/relationships">'
    b"</Relationships>"
)

_OVERRIDE_RE = re.compile(
    rb'<Override\s[^>]*PartName="/' + re.escape(PROOF_PART.encode()) + rb'"[^>]*/>'
)
_RELATIONSHIP_RE = re.compile(
    rb'<Relationship\s[^>]*Id="' + re.escape(PROOF_REL_ID.encode()) + rb'"[^>]*/>'
)


PackageEntries = list[tuple[zipfile.ZipInfo, bytes]]


def read_package(data: bytes) -> PackageEntries:
    """
    Read every entry of a zip package in stored order.

    Raises:
        MalformedProofException: If data is not a readable zip package
    """
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            return [(info, zf.read(info)) for info in zf.infolist()]
    except (zipfile.BadZipFile, zipfile.LargeZipFile) as e:
        raise MalformedProofException(f"Not a readable zip package: {e}") from e


def _copy_info(info: zipfile.ZipInfo) -> zipfile.ZipInfo:
    copied = zipfile.ZipInfo(info.filename, date_time=info.date_time)
    copied.compress_type = info.compress_type
    copied.external_attr = info.external_attr
    copied.create_system = info.create_system
    copied.comment = info.comment
    return copied


def fixed_info(name: str) -> zipfile.ZipInfo:
    info = zipfile.ZipInfo(name, date_time=FIXED_DATE_TIME)
    info.compress_type = zipfile.ZIP_DEFLATED
    info.external_attr = 0o644 << 16
    info.create_system = 3
    return info


def write_package(entries: Iterable[tuple[zipfile.ZipInfo, bytes]]) -> bytes:
    """Write entries, in the given order, into a new zip package."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for info, content in entries:
            zf.writestr(_copy_info(info), content)
    return buf.getvalue()


def canonical_package(data: bytes) -> bytes:
    """
    Repack a zip deterministically.

    Entries are sorted by name, directories dropped, every timestamp fixed
    to 1980-01-01 and every part DEFLATE-compressed. Two packages with the
    same parts repack to identical bytes.
    """
    entries = [
        (info, content) for info, content in read_package(data) if not info.is_dir()
    ]
    entries.sort(key=lambda item: item[0].filename)
    return write_package((fixed_info(info.filename), content) for info, content in entries)


def canonical_hash_stream(data: bytes) -> bytes:
    """
    Deterministic byte stream over a package's parts.

    Layout: header, then for each part sorted by name:
    ``name\\n`` + ``len\\n`` + content + ``\\n``.
    """
    parts = sorted(
        (info.filename, content)
        for info, content in read_package(data)
        if not info.is_dir()
    )
    chunks = [HASH_STREAM_HEADER]
    for name, content in parts:
        chunks.append(name.encode("utf-8") + b"\n")
        chunks.append(str(len(content)).encode("ascii") + b"\n")
        chunks.append(content)
        chunks.append(b"\n")
    return b"".join(chunks)


def insert_before(xml: bytes, closing_tag: bytes, fragment: bytes) -> bytes:
    """Insert ``fragment`` immediately before the last ``closing_tag``."""
    pos = xml.rfind(closing_tag)
    if pos < 0:
        raise MalformedProofException(
            f"Package XML part has no {closing_tag.decode('utf-8', 'replace')} element"
        )
    return xml[:pos] + fragment + xml[pos:]


class OoxmlCodec(ContainerCodec):
    """Store the proof record as a dedicated part of an OOXML package."""

    format_name = FORMAT_OOXML

    def has_proof(self, data: bytes) -> bool:
        try:
            return any(info.filename == PROOF_PART for info, _ in read_package(data))
        except MalformedProofException:
            return False

    def canonicalize_for_hash(self, data: bytes) -> bytes:
        return canonical_hash_stream(data)

    def embed(self, data: bytes, record: ProofRecord) -> bytes:
        """
        Add the proof part, its content-type override and its relationship.

        Returns the input unchanged if the package already has a proof part.
        """
        entries = read_package(data)
        names = {info.filename for info, _ in entries}
        if PROOF_PART in names:
            logger.info("Package already carries a proof part; leaving it unchanged")
            return data
        if CONTENT_TYPES_PART not in names:
            raise MalformedProofException(f"Package has no {CONTENT_TYPES_PART} part")

        updated: PackageEntries = []
        for info, content in entries:
            if info.filename == CONTENT_TYPES_PART and PROOF_OVERRIDE not in content:
                content = insert_before(content, b"</Types>", PROOF_OVERRIDE)
            elif info.filename == ROOT_RELS_PART and not _RELATIONSHIP_RE.search(content):
                content = insert_before(content, b"</Relationships>", PROOF_RELATIONSHIP)
            updated.append((info, content))

        if ROOT_RELS_PART not in names:
            rels = insert_before(_EMPTY_RELS, b"</Relationships>", PROOF_RELATIONSHIP)
            rels_info = fixed_info(ROOT_RELS_PART)
            rels_info.comment = SYNTHESIZED_COMMENT
            updated.append((rels_info, rels))

        updated.append((fixed_info(PROOF_PART), serialize_record(record)))
        logger.debug(f"Embedded proof part for batch {record.batch!r}")
        return write_package(updated)

    def extract(self, data: bytes) -> ExtractedProof:
        entries = read_package(data)
        payload = next((content for info, content in entries if info.filename == PROOF_PART), None)
        if payload is None:
            raise MalformedProofException(f"Package has no {PROOF_PART} part")

        record = parse_record(payload)

        original: PackageEntries = []
        for info, content in entries:
            if info.filename == PROOF_PART:
                continue
            if info.filename == ROOT_RELS_PART and info.comment == SYNTHESIZED_COMMENT:
                continue
            if info.filename == CONTENT_TYPES_PART:
                content = _OVERRIDE_RE.sub(b"", content)
            elif info.filename == ROOT_RELS_PART:
                content = _RELATIONSHIP_RE.sub(b"", content)
            original.append((info, content))

        return ExtractedProof(original=write_package(original), record=record)


__all__ = [
    "PROOF_PART",
    "PROOF_REL_ID",
    "OoxmlCodec",
    "canonical_package",
    "canonical_hash_stream",
    "read_package",
    "write_package",
    "insert_before",
]
