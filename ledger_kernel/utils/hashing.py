"""
Deterministic hashing and payload normalisation.

Event payloads are stored as JSON.  normalize_payload() turns a caller's
payload (which may hold Decimal, date, datetime or UUID values) into plain
JSON types once, at creation, and hash_payload() fingerprints that stored
form so the write guard can detect any later change.
"""

import hashlib
import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID


def _json_serializer(obj: Any) -> Any:
    """
    Serializer for types json does not handle natively.

    Raises:
        TypeError: If the object type is not supported.
    """
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def canonicalize_json(data: Any) -> str:
    """
    Canonical JSON: sorted keys, no whitespace, stable handling of
    Decimal/date/UUID values.
    """
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        default=_json_serializer,
    )


def normalize_payload(payload: dict) -> dict:
    """
    Convert a payload into JSON-native types.

    Decimals become strings (scale preserved, "1000.00" stays "1000.00"),
    dates and datetimes become ISO strings, UUIDs become strings.
    """
    return json.loads(json.dumps(payload, default=_json_serializer))


def hash_payload(payload: dict) -> str:
    """Hex-encoded SHA-256 of the canonical JSON form (64 characters)."""
    canonical = canonicalize_json(payload)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
