# src/axiom_client/clients/http.py
"""Authenticated HTTP transport for the Axiom API.

One AxiomHTTPClient wraps one httpx.Client and is safe to share between
threads. It adds credential headers, maps error responses onto the
HTTPStatusError family and remembers the limits the backend reports so a
request that is certain to be rejected never leaves the process.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import Any

import httpx
import structlog

from axiom_client.clients.limits import Limit, LimitTracker, parse_limit
from axiom_client.core.config import ClientSettings
from axiom_client.core.credentials import auth_headers
from axiom_client.errors import (
    STATUS_ERRORS,
    HTTPStatusError,
    RateLimitedError,
    ResponseDecodeError,
    ServerError,
    TransportFailedError,
)
from axiom_client.ingest.encoding import encode_json

logger = structlog.get_logger(__name__)


def user_agent() -> str:
    from axiom_client import __version__

    return f"axiom-client-python/{__version__}"


def _retry_after(response: httpx.Response, limit: Limit | None) -> float | None:
    """Seconds to wait before retrying, from Retry-After or the limit reset."""
    value = response.headers.get("Retry-After")
    if value:
        try:
            return max(0.0, float(value))
        except ValueError:
            try:
                when = parsedate_to_datetime(value)
            except (TypeError, ValueError):
                when = None
            if when is not None:
                if when.tzinfo is None:
                    when = when.replace(tzinfo=UTC)
                return max(0.0, (when - datetime.now(tz=UTC)).total_seconds())
    if limit is not None:
        return limit.seconds_until_reset()
    return None


def _error_envelope(response: httpx.Response) -> tuple[str, str | None]:
    """Message and trace id of an error response.

    JSON bodies are expected to be ``{"message": ..., "trace_id": ...}``;
    anything else falls back to the status text.
    """
    fallback = response.reason_phrase or f"HTTP {response.status_code}"
    content_type = response.headers.get("Content-Type", "")
    if "json" not in content_type:
        return fallback, None
    try:
        body = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return fallback, None
    if not isinstance(body, dict):
        return fallback, None
    message = body.get("message") or body.get("error") or fallback
    trace_id = body.get("trace_id") or body.get("traceId")
    return str(message), (str(trace_id) if trace_id else None)


def raise_for_status(response: httpx.Response, limit: Limit | None = None) -> None:
    """Raise the HTTPStatusError subclass matching a non-2xx response."""
    if response.is_success:
        return

    status = response.status_code
    message, trace_id = _error_envelope(response)

    if status == 429:
        raise RateLimitedError(
            message,
            retry_after=_retry_after(response, limit),
            limit=limit,
            trace_id=trace_id,
        )
    if status >= 500:
        raise ServerError(status, message, trace_id)
    error_cls = STATUS_ERRORS.get(status, HTTPStatusError)
    raise error_cls(status, message, trace_id)


class AxiomHTTPClient:
    """HTTP client bound to one deployment and credential.

    Example:
        client = AxiomHTTPClient(load_settings(token="xaat-..."))
        response = client.request("GET", "/v1/datasets")
        print(response.json())
    """

    def __init__(self, settings: ClientSettings, *, http_client: httpx.Client | None = None) -> None:
        """Initialize the transport.

        Args:
            settings: Validated client settings
            http_client: Preconfigured httpx client (tests mount a mock
                transport here); owned by the caller when given
        """
        self._settings = settings
        self._owns_client = http_client is None
        self._client = http_client or httpx.Client(timeout=settings.timeout, follow_redirects=False)
        self._limits = LimitTracker()
        self._headers = {
            "Accept": "application/json",
            "User-Agent": user_agent(),
        }
        if settings.token:
            self._headers.update(
                auth_headers(settings.token, base_url=settings.url, organization_id=settings.organization_id)
            )

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    @property
    def limits(self) -> LimitTracker:
        return self._limits

    def url_for(self, path: str) -> str:
        """Resolve path against the base URL; absolute URLs pass through."""
        if path.startswith(("http://", "https://")):
            return path
        return f"{self._settings.url}/{path.lstrip('/')}"

    def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        content: bytes | Iterable[bytes] | None = None,
        content_type: str | None = None,
        content_encoding: str | None = None,
        params: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        """Send one request and return the successful response.

        Args:
            method: HTTP method
            path: Path relative to the base URL, or an absolute URL
            json: Value to send as a JSON body
            content: Raw body bytes (mutually exclusive with json)
            content_type: Content-Type of a raw body
            content_encoding: Content-Encoding of a raw body, empty for none
            params: Query parameters
            timeout: Per-request timeout, defaults to settings.timeout

        Returns:
            The 2xx response

        Raises:
            RateLimitedError: A cached limit is exhausted, or the backend
                answered 429.
            HTTPStatusError: Any other non-2xx response.
            TransportFailedError: No response was received.
            PayloadEncodeError: json cannot be serialized.
        """
        url = self.url_for(path)
        request_path = httpx.URL(url).path

        if not self._settings.no_limiting:
            blocking = self._limits.exhausted(request_path)
            if blocking is not None:
                raise RateLimitedError(
                    f"{blocking.limit_type} limit exceeded, not making remote request",
                    retry_after=blocking.seconds_until_reset(),
                    limit=blocking,
                )

        headers = dict(self._headers)
        if json is not None:
            content = encode_json(json)
            content_type = "application/json"
        if content_type:
            headers["Content-Type"] = content_type
        if content_encoding:
            headers["Content-Encoding"] = content_encoding

        try:
            response = self._client.request(
                method,
                url,
                content=content,
                params=params,
                headers=headers,
                timeout=timeout if timeout is not None else self._settings.timeout,
            )
        except httpx.TransportError as e:
            logger.debug("Request failed before a response", method=method, path=request_path, error=str(e))
            raise TransportFailedError(f"{method} {request_path} failed: {e}") from e

        limit = parse_limit(response)
        if limit is not None:
            self._limits.record(limit)

        logger.debug("Request completed", method=method, path=request_path, status_code=response.status_code)
        raise_for_status(response, limit)
        return response

    def request_json(self, method: str, path: str, **kwargs: Any) -> Any:
        """Like request() but decode the JSON response body.

        Raises:
            ResponseDecodeError: The 2xx body is not valid JSON.
        """
        response = self.request(method, path, **kwargs)
        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ResponseDecodeError(f"cannot decode response of {method} {path}: {e}") from e

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> AxiomHTTPClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
