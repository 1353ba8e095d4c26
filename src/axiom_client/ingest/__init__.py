# src/axiom_client/ingest/__init__.py
"""Event ingestion: payload encoding, ingest results and the batching ingester."""

from axiom_client.ingest.encoding import TIMESTAMP_FIELD, encode_event, encode_ndjson, format_timestamp
from axiom_client.ingest.ingester import BatchingIngester, IngesterState
from axiom_client.ingest.options import ContentEncoding, ContentType, IngestOptions
from axiom_client.ingest.status import IngestFailure, IngestStatus, IngestSummary, PartialFailure

__all__ = [
    "TIMESTAMP_FIELD",
    "BatchingIngester",
    "ContentEncoding",
    "ContentType",
    "IngestFailure",
    "IngestOptions",
    "IngestStatus",
    "IngestSummary",
    "IngesterState",
    "PartialFailure",
    "encode_event",
    "encode_ndjson",
    "format_timestamp",
]
