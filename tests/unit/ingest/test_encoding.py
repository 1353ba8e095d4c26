# tests/unit/ingest/test_encoding.py
"""Tests for event serialization."""

import gzip
import json
import math
from datetime import UTC, date, datetime, timedelta, timezone

import pytest

from axiom_client.errors import PayloadEncodeError
from axiom_client.ingest.encoding import (
    encode_event,
    encode_json,
    encode_ndjson,
    format_timestamp,
    gzip_compress,
    join_ndjson,
)


class TestFormatTimestamp:
    def test_utc_nanosecond_precision(self) -> None:
        value = datetime(2024, 3, 1, 12, 30, 45, 123456, tzinfo=UTC)

        assert format_timestamp(value) == "2024-03-01T12:30:45.123456000Z"

    def test_offset_converted_to_utc(self) -> None:
        value = datetime(2024, 3, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))

        assert format_timestamp(value) == "2024-03-01T12:00:00.000000000Z"

    def test_naive_taken_as_utc(self) -> None:
        assert format_timestamp(datetime(2024, 3, 1)) == "2024-03-01T00:00:00.000000000Z"


class TestEncodeEvent:
    def test_compact_utf8(self) -> None:
        line = encode_event({"message": "grüße", "count": 2, "tags": ["a"], "ok": True, "none": None})

        assert line == '{"message":"grüße","count":2,"tags":["a"],"ok":true,"none":null}'.encode()

    def test_datetime_and_date_values(self) -> None:
        line = encode_event({"_time": datetime(2024, 1, 1, tzinfo=UTC), "day": date(2024, 1, 2)})

        assert json.loads(line) == {"_time": "2024-01-01T00:00:00.000000000Z", "day": "2024-01-02"}

    def test_not_a_mapping(self) -> None:
        with pytest.raises(PayloadEncodeError, match="must be a mapping"):
            encode_event(["message"])  # type: ignore[arg-type]

    def test_non_string_key(self) -> None:
        with pytest.raises(PayloadEncodeError, match="field names must be strings"):
            encode_event({1: "one"})  # type: ignore[dict-item]

    @pytest.mark.parametrize("value", [object(), {1, 2}, b"bytes", math.nan, math.inf])
    def test_non_json_values_rejected(self, value: object) -> None:
        with pytest.raises(PayloadEncodeError):
            encode_event({"value": value})

    def test_cycle_rejected(self) -> None:
        event: dict[str, object] = {}
        event["self"] = event

        with pytest.raises(PayloadEncodeError):
            encode_json(event)

    def test_payload_error_is_type_error(self) -> None:
        with pytest.raises(TypeError):
            encode_event({"value": object()})


class TestNdjson:
    def test_every_line_terminated(self) -> None:
        assert join_ndjson([b"{}", b'{"a":1}']) == b'{}\n{"a":1}\n'

    def test_empty(self) -> None:
        assert encode_ndjson([]) == b""

    def test_one_object_per_line(self) -> None:
        body = encode_ndjson([{"n": 1}, {"n": 2}])

        assert [json.loads(line) for line in body.splitlines()] == [{"n": 1}, {"n": 2}]

    def test_gzip_round_trip(self) -> None:
        body = encode_ndjson([{"n": i} for i in range(10)])

        assert gzip.decompress(gzip_compress(body)) == body
