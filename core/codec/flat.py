"""
Flat-Append Container Codec

Used for PDF and any other non-zip document. The proof block is appended
after the document's natural end; readers that stop at their own end marker
(e.g. PDF viewers at %%EOF/xref) ignore it.

Block layout (self-delimiting):

    [LF, only when the content does not already end in LF or CR]
    %%DOCANCHOR-PROOF-START-V1 length=<N> sep=<0|1>%%\\n
    <N bytes of canonical JSON>\\n
    %%DOCANCHOR-PROOF-END-V1%%\\n

``sep=1`` records that embed added the leading LF, so extract removes
exactly that byte and nothing else.
"""

from __future__ import annotations

import logging
import re

from core.schemas.errors import MalformedProofException, ProofAlreadyEmbeddedException
from core.schemas.proof import ProofRecord

from .base import FORMAT_FLAT, ContainerCodec, ExtractedProof, parse_record, serialize_record


logger = logging.getLogger(__name__)

START_MARKER = b"%%DOCANCHOR-PROOF-START-V1"
END_MARKER = b"%%DOCANCHOR-PROOF-END-V1%%"

_HEADER_RE = re.compile(rb"%%DOCANCHOR-PROOF-START-V1 length=(\d+) sep=([01])%%\n")
_END_SEQUENCE = b"\n" + END_MARKER


class FlatAppendCodec(ContainerCodec):
    """Append/strip a length-prefixed proof block at the end of the byte stream."""

    format_name = FORMAT_FLAT

    def has_proof(self, data: bytes) -> bool:
        return _HEADER_RE.search(data) is not None

    def embed(self, data: bytes, record: ProofRecord) -> bytes:
        """
        Append the proof block.

        Raises:
            ProofAlreadyEmbeddedException: If data already carries a block
        """
        if START_MARKER in data:
            raise ProofAlreadyEmbeddedException()

        payload = serialize_record(record)
        needs_sep = not data.endswith((b"\n", b"\r"))
        header = b"%s length=%d sep=%d%%%%\n" % (START_MARKER, len(payload), int(needs_sep))

        parts = [data]
        if needs_sep:
            parts.append(b"\n")
        parts.extend([header, payload, _END_SEQUENCE, b"\n"])
        return b"".join(parts)

    def extract(self, data: bytes) -> ExtractedProof:
        headers = list(_HEADER_RE.finditer(data))
        if not headers:
            raise MalformedProofException("No embedded proof block found")

        # The last well-formed block wins; earlier matches may sit inside
        # document content or inside the JSON payload itself.
        last_error: MalformedProofException | None = None
        for match in reversed(headers):
            try:
                return self._extract_at(data, match)
            except MalformedProofException as e:
                last_error = e
        assert last_error is not None
        raise last_error

    def _extract_at(self, data: bytes, match: re.Match) -> ExtractedProof:
        length = int(match.group(1))
        added_sep = match.group(2) == b"1"

        body_start = match.end()
        body_end = body_start + length
        if body_end > len(data):
            raise MalformedProofException(
                "Embedded proof block is truncated",
                details={"declared_length": length, "available": len(data) - body_start},
            )

        end_at = body_end + len(_END_SEQUENCE)
        if data[body_end:end_at] != _END_SEQUENCE:
            raise MalformedProofException("Proof end marker not found at declared length")

        if data[end_at:].strip():
            raise MalformedProofException(
                "Document was modified after issuance (content after proof block)",
                details={"trailing_bytes": len(data) - end_at},
            )

        original = data[:match.start()]
        if added_sep:
            if not original.endswith(b"\n"):
                raise MalformedProofException("Proof block separator missing")
            original = original[:-1]

        record = parse_record(data[body_start:body_end])
        logger.debug(f"Extracted flat proof block ({length} bytes) for batch {record.batch!r}")
        return ExtractedProof(original=original, record=record)


__all__ = [
    "START_MARKER",
    "END_MARKER",
    "FlatAppendCodec",
]
