# src/axiom_client/clients/limits.py
"""Rate, query and ingest limits reported by the backend.

Every response carries the remaining budget for the kind of request it
answered. LimitTracker remembers the latest limit per kind so the client can
refuse a request locally while a budget is known to be exhausted.

Thread Safety:
    LimitTracker is shared by every thread using one client; all access goes
    through an internal lock.
"""

import threading
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum

import httpx


class LimitType(StrEnum):
    RATE = "rate"
    QUERY = "query"
    INGEST = "ingest"


class LimitScope(StrEnum):
    UNKNOWN = "unknown"
    USER = "user"
    ORGANIZATION = "organization"
    ANONYMOUS = "anonymous"


_HEADERS: dict[LimitType, tuple[str | None, str, str, str]] = {
    LimitType.RATE: ("X-RateLimit-Scope", "X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset"),
    LimitType.QUERY: (None, "X-QueryLimit-Limit", "X-QueryLimit-Remaining", "X-QueryLimit-Reset"),
    LimitType.INGEST: (None, "X-IngestLimit-Limit", "X-IngestLimit-Remaining", "X-IngestLimit-Reset"),
}


@dataclass(frozen=True, slots=True)
class Limit:
    """Budget for one kind of request.

    Attributes:
        limit_type: Which budget this is
        scope: Who the budget applies to (rate limits only)
        limit: Total budget per window, None if not reported
        remaining: Budget left in the current window, None if not reported
        reset: When the window resets, None if not reported
    """

    limit_type: LimitType
    scope: LimitScope = LimitScope.UNKNOWN
    limit: int | None = None
    remaining: int | None = None
    reset: datetime | None = None

    def seconds_until_reset(self, now: datetime | None = None) -> float | None:
        if self.reset is None:
            return None
        now = now or datetime.now(tz=UTC)
        return max(0.0, (self.reset - now).total_seconds())

    def is_exhausted(self, now: datetime | None = None) -> bool:
        """True while no budget remains and the reset lies in the future."""
        if self.remaining != 0 or self.reset is None:
            return False
        now = now or datetime.now(tz=UTC)
        return now < self.reset

    def __str__(self) -> str:
        return f"{self.remaining}/{self.limit} remaining until {self.reset}"


def limit_type_for_path(path: str) -> LimitType:
    if path.endswith("/ingest") or "/v1/ingest/" in path:
        return LimitType.INGEST
    if path.endswith("/query") or path.endswith("/_apl"):
        return LimitType.QUERY
    return LimitType.RATE


def _int_header(headers: httpx.Headers, name: str) -> int | None:
    value = headers.get(name)
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def parse_limit(response: httpx.Response) -> Limit | None:
    """Read the limit headers matching the request path of response.

    Returns None when the response carries none of them.
    """
    limit_type = limit_type_for_path(response.request.url.path)
    scope_header, limit_header, remaining_header, reset_header = _HEADERS[limit_type]
    headers = response.headers

    scope = LimitScope.UNKNOWN
    if scope_header is not None:
        try:
            scope = LimitScope(headers.get(scope_header, LimitScope.UNKNOWN.value))
        except ValueError:
            scope = LimitScope.UNKNOWN

    total = _int_header(headers, limit_header)
    remaining = _int_header(headers, remaining_header)
    reset_epoch = _int_header(headers, reset_header)
    if total is None and remaining is None and not reset_epoch:
        return None

    reset = datetime.fromtimestamp(reset_epoch, tz=UTC) if reset_epoch else None
    return Limit(limit_type=limit_type, scope=scope, limit=total, remaining=remaining, reset=reset)


class LimitTracker:
    """Latest known limit per limit type."""

    def __init__(self) -> None:
        self._limits: dict[LimitType, Limit] = {}
        self._lock = threading.Lock()

    def record(self, limit: Limit) -> None:
        with self._lock:
            self._limits[limit.limit_type] = limit

    def get(self, limit_type: LimitType) -> Limit | None:
        with self._lock:
            return self._limits.get(limit_type)

    def exhausted(self, path: str, now: datetime | None = None) -> Limit | None:
        """The limit blocking a request to path, or None if it may proceed."""
        limit = self.get(limit_type_for_path(path))
        if limit is not None and limit.is_exhausted(now):
            return limit
        return None
