"""
Container Codecs

Embed/extract proof records in document containers, canonicalize container
bytes for hashing, and add the decorative verification badge.
"""

from .base import (
    FORMAT_FLAT,
    FORMAT_OOXML,
    ContainerCodec,
    ExtractedProof,
    detect_format,
    get_codec,
    is_ooxml_package,
    parse_record,
    serialize_record,
)
from .flat import END_MARKER, START_MARKER, FlatAppendCodec
from .ooxml import PROOF_PART, OoxmlCodec, canonical_hash_stream, canonical_package
from .badge import BadgeDecorator, make_qr_png

__all__ = [
    "FORMAT_FLAT",
    "FORMAT_OOXML",
    "ContainerCodec",
    "ExtractedProof",
    "detect_format",
    "get_codec",
    "is_ooxml_package",
    "parse_record",
    "serialize_record",
    "START_MARKER",
    "END_MARKER",
    "FlatAppendCodec",
    "PROOF_PART",
    "OoxmlCodec",
    "canonical_hash_stream",
    "canonical_package",
    "BadgeDecorator",
    "make_qr_png",
]
