# src/axiom_client/client.py
"""High-level client: ingest events and run APL queries.

Example:
    from axiom_client import Client

    with Client(token="xaat-...", dataset="logs") as client:
        client.ingest_events("logs", [{"message": "hello"}])
        with client.ingester() as ingester:
            ingester.enqueue({"message": "batched"})
        result = client.query("['logs'] | count")
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx
import structlog

from axiom_client.clients.http import AxiomHTTPClient
from axiom_client.core.config import ClientSettings, load_settings
from axiom_client.errors import ConfigInvalidError, ResponseDecodeError
from axiom_client.ingest.encoding import Event, encode_event, format_timestamp, gzip_compress, join_ndjson
from axiom_client.ingest.options import ContentEncoding, ContentType, IngestOptions
from axiom_client.ingest.status import IngestStatus

if TYPE_CHECKING:
    from axiom_client.apl.builder import Query, Stage
    from axiom_client.ingest.ingester import BatchingIngester

logger = structlog.get_logger(__name__)

DATASET_INGEST_PATH = "/v1/datasets/{dataset}/ingest"
APL_QUERY_PATH = "/v1/datasets/_apl"


def _time_value(value: datetime | str) -> str:
    if isinstance(value, datetime):
        return format_timestamp(value)
    return value


class Client:
    """Axiom API client.

    Settings come from, in increasing precedence, defaults, AXIOM_*
    environment variables and keyword overrides (see load_settings()). An
    explicit ClientSettings is used as is.

    Thread Safety:
        A Client may be shared between threads; each BatchingIngester it
        creates runs its own consumer thread against the same connection pool.
    """

    def __init__(
        self,
        settings: ClientSettings | None = None,
        *,
        http_client: httpx.Client | None = None,
        **overrides: Any,
    ) -> None:
        """Initialize the client.

        Args:
            settings: Complete settings; when None they are loaded
            http_client: httpx client to send requests with (owned by caller)
            **overrides: Field values for load_settings(), ignored when
                settings is given

        Raises:
            ConfigInvalidError: If the settings cannot authenticate requests.
        """
        if settings is None:
            settings = load_settings(**overrides)
        else:
            settings.validate_credentials()
        self._settings = settings
        self._http = AxiomHTTPClient(settings, http_client=http_client)

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    @property
    def http(self) -> AxiomHTTPClient:
        return self._http

    def ingest(
        self,
        dataset: str,
        data: bytes | Iterable[bytes],
        *,
        content_type: ContentType = ContentType.JSON,
        content_encoding: ContentEncoding = ContentEncoding.IDENTITY,
        options: IngestOptions | None = None,
        timeout: float | None = None,
    ) -> IngestStatus:
        """Ingest an already encoded payload into dataset.

        Args:
            dataset: Target dataset
            data: Payload bytes, or a binary stream / iterable of chunks
            content_type: Media type of the payload
            content_encoding: Compression of the payload
            options: Server-side parsing hints
            timeout: Request timeout, defaults to settings.timeout

        Returns:
            The ingest status; check partial_failure for rejected events.

        Raises:
            ConfigInvalidError: If dataset is empty.
            HTTPStatusError: On a non-2xx response.
            TransportFailedError: If no response was received.
            ResponseDecodeError: If the status cannot be decoded.
        """
        if not dataset:
            raise ConfigInvalidError("dataset is required")

        path = self._settings.edge_ingest_url(dataset) or DATASET_INGEST_PATH.format(dataset=quote(dataset, safe=""))
        params = options.to_params() if options is not None else {}
        body = self._http.request_json(
            "POST",
            path,
            content=data,
            content_type=content_type.value,
            content_encoding=content_encoding.value,
            params=params or None,
            timeout=timeout,
        )
        return IngestStatus.decode(body, strict=self._settings.strict_decoding)

    def ingest_events(
        self,
        dataset: str,
        events: Iterable[Event],
        *,
        options: IngestOptions | None = None,
        timeout: float | None = None,
    ) -> IngestStatus:
        """Encode events as gzipped NDJSON and ingest them in one request.

        An empty iterable returns an empty status without a request.

        Raises:
            PayloadEncodeError: If an event cannot be encoded; nothing is sent.
        """
        lines = [encode_event(event) for event in events]
        if not lines:
            logger.debug("No events to ingest", dataset=dataset)
            return IngestStatus()
        return self.ingest(
            dataset,
            gzip_compress(join_ndjson(lines)),
            content_type=ContentType.NDJSON,
            content_encoding=ContentEncoding.GZIP,
            options=options,
            timeout=timeout,
        )

    def query(
        self,
        apl: str | Query | Stage,
        *,
        start_time: datetime | str | None = None,
        end_time: datetime | str | None = None,
    ) -> dict[str, Any]:
        """Run an APL query and return the decoded result.

        Args:
            apl: Query text, or a Query builder or any of its stages
            start_time: Lower time bound, datetime or APL expression
            end_time: Upper time bound, datetime or APL expression

        Raises:
            HTTPStatusError: On a non-2xx response.
            ResponseDecodeError: If the result is not a JSON object.
        """
        body: dict[str, str] = {"apl": str(apl)}
        if start_time is not None:
            body["startTime"] = _time_value(start_time)
        if end_time is not None:
            body["endTime"] = _time_value(end_time)

        path = self._settings.edge_query_url() or APL_QUERY_PATH
        logger.debug("Running query", path=path, start_time=body.get("startTime"), end_time=body.get("endTime"))
        result = self._http.request_json("POST", path, json=body, params={"format": "legacy"})
        if not isinstance(result, dict):
            raise ResponseDecodeError(f"query result must be a JSON object, got {type(result).__name__}")
        return result

    def ingester(self, dataset: str | None = None, **kwargs: Any) -> BatchingIngester:
        """Start a BatchingIngester for dataset (default: settings.dataset).

        Keyword arguments are passed to BatchingIngester.

        Raises:
            ConfigInvalidError: If no dataset is given or configured.
        """
        from axiom_client.ingest.ingester import BatchingIngester

        dataset = dataset or self._settings.dataset
        if not dataset:
            raise ConfigInvalidError("dataset is required")
        return BatchingIngester(self, dataset, **kwargs)

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> Client:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
