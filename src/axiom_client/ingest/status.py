# src/axiom_client/ingest/status.py
"""Ingest results.

IngestStatus mirrors the backend's response to one ingest request. Partial
success is normal: a 2xx response may still report failed events, which is
surfaced through IngestStatus.partial_failure rather than raised.

IngestSummary aggregates everything a BatchingIngester dispatched, including
events it had to drop locally.
"""

from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from axiom_client.errors import ResponseDecodeError

# Failures kept in memory per summary; counts keep growing past it.
MAX_RECORDED_FAILURES = 100


class IngestFailure(BaseModel):
    """One event the backend rejected."""

    model_config = ConfigDict(frozen=True)

    timestamp: str = ""
    error: str = ""


@dataclass(frozen=True, slots=True)
class PartialFailure:
    """Per-event failures inside an otherwise successful ingest."""

    failed: int
    failures: tuple[IngestFailure, ...]

    @property
    def first(self) -> IngestFailure | None:
        return self.failures[0] if self.failures else None


class IngestStatus(BaseModel):
    """Result of one ingest request."""

    model_config = ConfigDict(populate_by_name=True)

    ingested: int = 0
    failed: int = 0
    failures: list[IngestFailure] = Field(default_factory=list)
    processed_bytes: int = Field(default=0, alias="processedBytes")
    blocks_created: int = Field(default=0, alias="blocksCreated")
    wal_length: int = Field(default=0, alias="walLength")

    @field_validator("failures", mode="before")
    @classmethod
    def null_failures_to_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    @property
    def partial_failure(self) -> PartialFailure | None:
        if self.failed == 0:
            return None
        return PartialFailure(failed=self.failed, failures=tuple(self.failures))

    def add(self, other: "IngestStatus") -> None:
        """Accumulate other into this status."""
        self.ingested += other.ingested
        self.failed += other.failed
        self.failures.extend(other.failures)
        self.processed_bytes += other.processed_bytes
        self.blocks_created += other.blocks_created
        self.wal_length = other.wal_length

    @classmethod
    def decode(cls, data: Any, *, strict: bool = False) -> "IngestStatus":
        """Build a status from decoded JSON.

        Args:
            data: Decoded response body
            strict: Reject fields this client does not know

        Raises:
            ResponseDecodeError: If data does not have the expected shape.
        """
        if not isinstance(data, dict):
            raise ResponseDecodeError(f"ingest status must be a JSON object, got {type(data).__name__}")
        if strict:
            known = {f.alias or name for name, f in cls.model_fields.items()}
            unknown = sorted(set(data) - known)
            if unknown:
                raise ResponseDecodeError(f"unknown fields in ingest status: {', '.join(unknown)}")
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ResponseDecodeError(f"malformed ingest status: {e}") from e


@dataclass
class IngestSummary:
    """Aggregate outcome of a BatchingIngester.

    Attributes:
        accepted: Events enqueued
        batches: Batches handed to the transport
        ingested: Events the backend accepted
        failed: Events the backend rejected
        processed_bytes: Bytes the backend reported processing
        dropped: Accepted events that never reached the backend
        failures: First MAX_RECORDED_FAILURES backend failures
        drain_timed_out: The final drain hit its deadline
    """

    accepted: int = 0
    batches: int = 0
    ingested: int = 0
    failed: int = 0
    processed_bytes: int = 0
    dropped: int = 0
    failures: list[IngestFailure] = field(default_factory=list)
    drain_timed_out: bool = False

    def record_status(self, status: IngestStatus) -> None:
        self.ingested += status.ingested
        self.failed += status.failed
        self.processed_bytes += status.processed_bytes
        room = MAX_RECORDED_FAILURES - len(self.failures)
        if room > 0:
            self.failures.extend(status.failures[:room])

    def copy(self) -> "IngestSummary":
        return IngestSummary(
            accepted=self.accepted,
            batches=self.batches,
            ingested=self.ingested,
            failed=self.failed,
            processed_bytes=self.processed_bytes,
            dropped=self.dropped,
            failures=list(self.failures),
            drain_timed_out=self.drain_timed_out,
        )
