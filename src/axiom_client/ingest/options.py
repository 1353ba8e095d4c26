# src/axiom_client/ingest/options.py
"""Content types, encodings and per-request options for ingestion."""

from dataclasses import dataclass
from enum import StrEnum


class ContentType(StrEnum):
    """Media type of an ingest payload."""

    JSON = "application/json"
    NDJSON = "application/x-ndjson"
    CSV = "text/csv"


class ContentEncoding(StrEnum):
    """Compression applied to an ingest payload."""

    IDENTITY = ""
    GZIP = "gzip"


@dataclass(frozen=True, slots=True)
class IngestOptions:
    """Optional server-side parsing hints.

    Attributes:
        timestamp_field: Field holding the event time instead of ``_time``
        timestamp_format: Layout of that field
        csv_delimiter: Delimiter for CSV payloads
    """

    timestamp_field: str | None = None
    timestamp_format: str | None = None
    csv_delimiter: str | None = None

    def to_params(self) -> dict[str, str]:
        params: dict[str, str] = {}
        if self.timestamp_field:
            params["timestamp-field"] = self.timestamp_field
        if self.timestamp_format:
            params["timestamp-format"] = self.timestamp_format
        if self.csv_delimiter:
            params["csv-delimiter"] = self.csv_delimiter
        return params
