"""
Schemas & Canonicalization
File: canonical.py

Purpose: Deterministic serialization utilities for proof records, embedded
proof blocks and record signatures.

CRITICAL: All outputs from this module MUST be deterministic across runs.
Record signatures are verified against these exact bytes.
"""

import json
import math
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

from pydantic import BaseModel

from .errors import CanonicalizationException

# Canonical JSON separators - no whitespace
CANONICAL_JSON_SEPARATORS: tuple[str, str] = (",", ":")

# Current record serialization version
RECORD_CANONICAL_VERSION = "v1"


def ensure_utc(dt: datetime) -> datetime:
    """
    Ensure a datetime is timezone-aware and in UTC.

    Rules:
        - If naive (no tzinfo): treat as UTC
        - If aware: convert to UTC
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_timestamp(dt: datetime) -> str:
    """
    Format a datetime as ISO-8601 UTC with millisecond precision.

    Example:
        >>> format_timestamp(datetime(2026, 1, 27, 21, 35, 0))
        '2026-01-27T21:35:00.000Z'
    """
    utc_dt = ensure_utc(dt)
    return utc_dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc_dt.microsecond // 1000:03d}Z"


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp (``Z`` suffix allowed) into a UTC datetime."""
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(text))


def _validate_float(value: float, path: str = "") -> None:
    """Reject NaN and Infinity, which have no canonical JSON form."""
    if not math.isfinite(value):
        raise CanonicalizationException(
            message=f"Non-finite float value encountered: {value}",
            details={"path": path, "value": str(value)},
        )


def canonicalize_value(value: Any, path: str = "", *, keep_none: bool = False) -> Any:
    """
    Recursively canonicalize a value for deterministic JSON serialization.

    Args:
        value: Any Python value to canonicalize.
        path: Current path for error reporting.
        keep_none: Keep None-valued dict entries as explicit nulls.

    Returns:
        A JSON-serializable canonical representation.

    Raises:
        CanonicalizationException: If the value cannot be canonicalized.
    """
    if value is None:
        return None

    if isinstance(value, bool):
        # Must check bool before int since bool is subclass of int
        return value

    if isinstance(value, int):
        return value

    if isinstance(value, float):
        _validate_float(value, path)
        return value

    if isinstance(value, str):
        return value

    if isinstance(value, datetime):
        return format_timestamp(value)

    if isinstance(value, Enum):
        return value.value

    if isinstance(value, BaseModel):
        dumped = value.model_dump(
            mode="json",
            by_alias=True,
            exclude_none=not keep_none,
        )
        return canonicalize_value(dumped, path, keep_none=keep_none)

    if isinstance(value, dict):
        # Keys will be sorted during JSON serialization
        return {
            k: canonicalize_value(v, f"{path}.{k}" if path else k, keep_none=keep_none)
            for k, v in value.items()
            if keep_none or v is not None
        }

    if isinstance(value, (list, tuple)):
        return [
            canonicalize_value(item, f"{path}[{i}]", keep_none=keep_none)
            for i, item in enumerate(value)
        ]

    if isinstance(value, bytes):
        return "0x" + value.hex()

    raise CanonicalizationException(
        message=f"Cannot canonicalize value of type {type(value).__name__}",
        details={"path": path, "type": type(value).__name__},
    )


def dumps_canonical(obj: Any, *, keep_none: bool = False) -> str:
    """
    Serialize an object to a canonical JSON string.

    Produces:
        - Sorted keys
        - No extra whitespace
        - None fields excluded unless keep_none=True
        - Datetimes as ISO-8601 with Z suffix
        - Bytes as 0x-prefixed lowercase hex
        - No NaN/Infinity floats

    Example:
        >>> dumps_canonical({"b": 2, "a": 1})
        '{"a":1,"b":2}'
    """
    try:
        canonicalized = canonicalize_value(obj, keep_none=keep_none)
        return json.dumps(
            canonicalized,
            sort_keys=True,
            separators=CANONICAL_JSON_SEPARATORS,
            ensure_ascii=False,
        )
    except CanonicalizationException:
        raise
    except Exception as e:
        raise CanonicalizationException(
            message=f"Failed to serialize to canonical JSON: {e}",
            details={"type": type(obj).__name__, "error": str(e)},
        ) from e


def _record_string_v1(record: dict[str, Any]) -> str:
    body = {k: v for k, v in record.items() if k != "proof_signature"}
    return dumps_canonical(body, keep_none=True)


_RECORD_SERIALIZERS: dict[str, Callable[[dict[str, Any]], str]] = {
    "v1": _record_string_v1,
}


def canonical_record_string(
    record: BaseModel | dict[str, Any],
    version: str = RECORD_CANONICAL_VERSION,
) -> str:
    """
    Serialize a proof record for record signing.

    The record signature covers this string. ``proof_signature`` is always
    excluded; explicit nulls (description, expiry_date) are kept.

    Args:
        record: ProofRecord model or its JSON dict (by alias).
        version: Serialization version tag.

    Raises:
        CanonicalizationException: On unknown version or unserializable data.
    """
    serializer = _RECORD_SERIALIZERS.get(version)
    if serializer is None:
        raise CanonicalizationException(
            message=f"Unknown record serialization version: {version}",
            details={"version": version, "supported": sorted(_RECORD_SERIALIZERS)},
        )
    if isinstance(record, BaseModel):
        data = record.model_dump(mode="json", by_alias=True)
    else:
        data = dict(record)
    return serializer(data)

