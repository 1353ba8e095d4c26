# src/axiom_client/ingest/encoding.py
"""Event serialization: one JSON object per NDJSON line, optionally gzipped.

Events are mappings from field name to JSON-representable values. Datetimes
are accepted and written as RFC 3339 with nanosecond precision; anything else
outside the JSON data model is rejected with PayloadEncodeError rather than
coerced.
"""

import gzip
import json
from collections.abc import Iterable, Mapping
from datetime import UTC, date, datetime
from typing import Any

from axiom_client.errors import PayloadEncodeError

# Reserved field carrying the event time; absent means ingestion time.
TIMESTAMP_FIELD = "_time"

Event = Mapping[str, Any]


def format_timestamp(value: datetime) -> str:
    """Format as RFC 3339 in UTC with nine fractional digits.

    Naive datetimes are taken to be UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    value = value.astimezone(UTC)
    return f"{value.strftime('%Y-%m-%dT%H:%M:%S')}.{value.microsecond * 1000:09d}Z"


def _default(value: Any) -> Any:
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, date):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def encode_json(value: Any) -> bytes:
    """Serialize value as compact JSON.

    Raises:
        PayloadEncodeError: For non-JSON values, NaN/Infinity or cycles.
    """
    try:
        return json.dumps(
            value,
            separators=(",", ":"),
            ensure_ascii=False,
            allow_nan=False,
            default=_default,
        ).encode("utf-8")
    except (TypeError, ValueError, RecursionError) as e:
        raise PayloadEncodeError(f"cannot encode payload: {e}") from e


def encode_event(event: Event) -> bytes:
    """Serialize one event to a single NDJSON line (without newline).

    Raises:
        PayloadEncodeError: If event is not a string-keyed mapping of JSON values.
    """
    if not isinstance(event, Mapping):
        raise PayloadEncodeError(f"event must be a mapping, got {type(event).__name__}")
    for key in event:
        if not isinstance(key, str):
            raise PayloadEncodeError(f"event field names must be strings, got {type(key).__name__}")
    return encode_json(dict(event))


def join_ndjson(lines: Iterable[bytes]) -> bytes:
    """Join encoded lines into an NDJSON body, each line newline-terminated."""
    return b"".join(line + b"\n" for line in lines)


def encode_ndjson(events: Iterable[Event]) -> bytes:
    return join_ndjson(encode_event(event) for event in events)


def gzip_compress(data: bytes, level: int = 1) -> bytes:
    """Gzip data; level 1 favours speed like the backend's own clients."""
    return gzip.compress(data, compresslevel=level)
