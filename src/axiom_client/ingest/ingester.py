# src/axiom_client/ingest/ingester.py
"""BatchingIngester buffers events and ingests them in batches.

Producers call enqueue() from any thread. A single consumer thread collects
the encoded events into batches and sends one gzipped NDJSON request per
batch when:
1. The batch reaches batch_size events
2. The flush interval elapses and the batch is not empty
3. flush() is called
4. The ingester is closed (final drain)

Lifecycle:
    RUNNING -> CLOSING -> CLOSED. enqueue() is only accepted while RUNNING.
    close() stops intake, drains everything still queued and returns the
    IngestSummary. The drain deadline (drain_timeout) starts when close() is
    called and also bounds a request that is already in flight; at the
    deadline close() abandons the consumer and counts every event without an
    outcome as dropped.

Delivery:
    Every accepted event is either dispatched or counted in
    IngestSummary.dropped. Transport and HTTP failures are logged, never
    raised to producers; there are no retries.

Thread Safety:
    - enqueue(), flush() and close() are safe from any thread
    - _state is guarded by _state_lock; intake (the queue put) happens under
      the same lock, so no event slips in after CLOSING begins
    - _summary, _settled and _abandoned are guarded by _summary_lock
      (consumer writes, any thread reads); once _abandoned is set the
      consumer records nothing more
    - Batches are only touched by the consumer thread
"""

from __future__ import annotations

import queue
import threading
import time
from collections.abc import Iterable
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import structlog

from axiom_client.errors import DrainTimeoutError, EnqueueCancelledError, IngesterClosedError
from axiom_client.ingest.encoding import Event, encode_event, gzip_compress, join_ndjson
from axiom_client.ingest.options import ContentEncoding, ContentType, IngestOptions
from axiom_client.ingest.status import IngestStatus, IngestSummary

if TYPE_CHECKING:
    from axiom_client.client import Client

# Upper bound on how long the consumer or a blocked producer sleeps before
# re-checking close, cancel and flush signals.
_POLL_INTERVAL = 0.01

# Extra time close() gives the consumer past the drain deadline to record the
# outcome of a request that was itself bounded by the deadline.
_JOIN_GRACE = 0.1


class IngesterState(StrEnum):
    RUNNING = "running"
    CLOSING = "closing"
    CLOSED = "closed"


class BatchingIngester:
    """Buffers events for one dataset and ingests them in batches.

    Example:
        >>> with client.ingester("logs", batch_size=500) as ingester:
        ...     ingester.enqueue({"message": "hello"})
        >>> ingester.summary.ingested
        1
    """

    def __init__(
        self,
        client: Client,
        dataset: str,
        *,
        batch_size: int = 1024,
        flush_interval: float = 1.0,
        drain_timeout: float = 10.0,
        options: IngestOptions | None = None,
        logger: Any = None,
    ) -> None:
        """Initialize and start the consumer thread.

        Args:
            client: Client used to send batches
            dataset: Target dataset
            batch_size: Events per request; also the queue capacity
            flush_interval: Seconds between time-based flushes
            drain_timeout: Deadline in seconds for the final drain on close
            options: Server-side parsing hints sent with every batch
            logger: Object with structlog-style debug/info/warning/error
                methods; defaults to this module's logger

        Raises:
            ValueError: If a size or interval is not positive.
        """
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        if flush_interval <= 0:
            raise ValueError(f"flush_interval must be positive, got {flush_interval}")
        if drain_timeout <= 0:
            raise ValueError(f"drain_timeout must be positive, got {drain_timeout}")

        self._client = client
        self._dataset = dataset
        self._batch_size = batch_size
        self._flush_interval = flush_interval
        self._drain_timeout = drain_timeout
        self._options = options
        self._logger = logger if logger is not None else structlog.get_logger(__name__).bind(dataset=dataset)

        self._state = IngesterState.RUNNING
        self._state_lock = threading.Lock()
        self._closing = threading.Event()
        # Set by close() before _closing
        self._close_deadline = 0.0

        self._summary = IngestSummary()
        self._summary_lock = threading.Lock()
        # Accepted events whose outcome (sent or dropped) has been recorded
        self._settled = 0
        self._abandoned = False

        self._queue: queue.Queue[bytes] = queue.Queue(maxsize=batch_size)
        self._batch: list[bytes] = []
        self._flush_requests: queue.SimpleQueue[threading.Event] = queue.SimpleQueue()

        # Non-daemon so queued events are not silently lost at interpreter exit
        self._thread = threading.Thread(
            target=self._consume_loop,
            name=f"axiom-ingester-{dataset}",
            daemon=False,
        )
        self._thread.start()

    @property
    def dataset(self) -> str:
        return self._dataset

    @property
    def state(self) -> IngesterState:
        with self._state_lock:
            return self._state

    @property
    def summary(self) -> IngestSummary:
        """Snapshot of the counts so far."""
        with self._summary_lock:
            return self._summary.copy()

    # =========================================================================
    # Producers
    # =========================================================================

    def enqueue(
        self,
        event: Event,
        *,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> None:
        """Accept one event for ingestion.

        The event is encoded immediately; later changes to the mapping have
        no effect. Blocks while the queue is full.

        Args:
            event: String-keyed mapping of JSON values
            timeout: Seconds to wait for room, None waits indefinitely
            cancel: Event that aborts the wait when set

        Raises:
            IngesterClosedError: If the ingester is closing or closed, also
                when closing starts while waiting.
            PayloadEncodeError: If the event cannot be encoded.
            TimeoutError: If no room became available within timeout.
            EnqueueCancelledError: If cancel was set while waiting.
        """
        if self._closing.is_set():
            raise IngesterClosedError()

        line = encode_event(event)
        deadline = None if timeout is None else time.monotonic() + timeout

        while True:
            with self._state_lock:
                if self._state is not IngesterState.RUNNING:
                    raise IngesterClosedError()
                try:
                    self._queue.put_nowait(line)
                except queue.Full:
                    pass
                else:
                    with self._summary_lock:
                        self._summary.accepted += 1
                    return

            if cancel is not None and cancel.is_set():
                raise EnqueueCancelledError()
            wait = _POLL_INTERVAL
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise TimeoutError(f"no room in queue within {timeout}s")
                wait = min(wait, remaining)
            self._closing.wait(wait)

    def enqueue_many(
        self,
        events: Iterable[Event],
        *,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> int:
        """Enqueue events in order; timeout applies to each event.

        Returns:
            Number of events accepted. Errors propagate as from enqueue().
        """
        accepted = 0
        for event in events:
            self.enqueue(event, timeout=timeout, cancel=cancel)
            accepted += 1
        return accepted

    def flush(self, timeout: float = 15.0) -> None:
        """Dispatch everything enqueued so far and wait for it.

        Returns immediately once the ingester is closing; close() owns the
        final drain.

        Raises:
            TimeoutError: If the dispatch did not finish within timeout.
        """
        done = threading.Event()
        with self._state_lock:
            if self._state is not IngesterState.RUNNING:
                return
            self._flush_requests.put(done)
        if not done.wait(timeout):
            raise TimeoutError(f"flush did not complete within {timeout}s")

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def close(self, *, strict: bool = False) -> IngestSummary:
        """Stop intake, drain and return the final summary.

        Safe to call more than once and from several threads; every call
        waits for the drain and returns the same counts.

        Returns no later than drain_timeout after the first call (plus a
        short grace). A request still in flight at that point cannot be
        interrupted; its batch is counted as dropped and the consumer thread
        exits once the request's own timeout ends it.

        Args:
            strict: Raise DrainTimeoutError if the drain hit its deadline

        Raises:
            DrainTimeoutError: Only when strict and events were dropped
                because the drain timed out.
        """
        with self._state_lock:
            if self._state is IngesterState.RUNNING:
                self._state = IngesterState.CLOSING
                self._close_deadline = time.monotonic() + self._drain_timeout
                self._closing.set()
            deadline = self._close_deadline

        self._thread.join(timeout=max(0.0, deadline - time.monotonic()) + _JOIN_GRACE)
        if self._thread.is_alive():
            self._abandon()

        with self._state_lock:
            self._state = IngesterState.CLOSED

        summary = self.summary
        if strict and summary.drain_timed_out:
            raise DrainTimeoutError(summary.dropped, self._drain_timeout)
        return summary

    def __enter__(self) -> BatchingIngester:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # =========================================================================
    # Consumer
    # =========================================================================

    def _consume_loop(self) -> None:
        """Consumer thread: batch, dispatch on size, tick and flush, then drain."""
        next_tick = time.monotonic() + self._flush_interval

        while not self._closing.is_set():
            if not self._flush_requests.empty():
                self._serve_flush_requests()

            wait = min(max(0.0, next_tick - time.monotonic()), _POLL_INTERVAL)
            try:
                self._batch.append(self._queue.get(timeout=wait))
            except queue.Empty:
                pass

            if len(self._batch) >= self._batch_size:
                self._dispatch_batch()

            if time.monotonic() >= next_tick:
                if self._batch:
                    self._logger.debug("Flush interval elapsed", batch_size=len(self._batch))
                    self._dispatch_batch()
                next_tick = time.monotonic() + self._flush_interval

        self._drain()

        while not self._flush_requests.empty():
            self._flush_requests.get_nowait().set()

    def _serve_flush_requests(self) -> None:
        requests: list[threading.Event] = []
        while not self._flush_requests.empty():
            requests.append(self._flush_requests.get_nowait())

        # Only events queued before the request; producers may keep adding.
        for _ in range(self._queue.qsize()):
            try:
                self._batch.append(self._queue.get_nowait())
            except queue.Empty:
                break
            if len(self._batch) >= self._batch_size:
                self._dispatch_batch()
        if self._batch:
            self._dispatch_batch()

        for request in requests:
            request.set()

    def _dispatch_batch(self) -> None:
        batch, self._batch = self._batch, []
        self._dispatch(batch)

    def _drain(self) -> None:
        """Dispatch the partial batch and everything queued before the close deadline."""
        batch, self._batch = self._batch, []
        while True:
            try:
                batch.append(self._queue.get_nowait())
            except queue.Empty:
                break

        if not batch:
            return

        deadline = self._close_deadline
        self._logger.debug("Draining ingester", events=len(batch), drain_timeout=self._drain_timeout)

        for start in range(0, len(batch), self._batch_size):
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                # Batches not yet attempted
                dropped = len(batch) - start
                with self._summary_lock:
                    if self._abandoned:
                        return
                    self._settled += dropped
                    self._summary.dropped += dropped
                    self._summary.drain_timed_out = True
                self._logger.error(
                    "Drain timed out, events dropped",
                    dropped=dropped,
                    drain_timeout=self._drain_timeout,
                )
                return
            self._dispatch(batch[start : start + self._batch_size], timeout=remaining, deadline=deadline)

    def _dispatch(self, lines: list[bytes], timeout: float | None = None, deadline: float | None = None) -> None:
        """Send one batch; failures are logged and counted as dropped.

        A failure at or past deadline marks the drain as timed out.
        """
        try:
            status = self._client.ingest(
                self._dataset,
                gzip_compress(join_ndjson(lines)),
                content_type=ContentType.NDJSON,
                content_encoding=ContentEncoding.GZIP,
                options=self._options,
                timeout=timeout,
            )
        except Exception as e:
            # AxiomError covers transport and status failures; anything else
            # is counted the same so the consumer thread survives.
            self._record_dropped(lines, e, timed_out=deadline is not None and time.monotonic() >= deadline)
            return

        with self._summary_lock:
            if self._abandoned:
                return
            self._settled += len(lines)
            self._summary.batches += 1
            self._summary.record_status(status)
        self._log_partial_failure(status)

    def _record_dropped(self, lines: list[bytes], error: Exception, *, timed_out: bool = False) -> None:
        with self._summary_lock:
            if self._abandoned:
                return
            self._settled += len(lines)
            self._summary.batches += 1
            self._summary.dropped += len(lines)
            if timed_out:
                self._summary.drain_timed_out = True
        self._logger.error(
            "Ingest batch failed",
            batch_size=len(lines),
            error_type=type(error).__name__,
            error=str(error),
        )

    def _abandon(self) -> None:
        """Give up on a consumer still busy past the drain deadline.

        Every accepted event without a recorded outcome, including the batch
        in flight, is counted as dropped. Outcomes the consumer reports
        afterwards are ignored so the summary no longer changes.
        """
        with self._summary_lock:
            if self._abandoned:
                return
            self._abandoned = True
            dropped = self._summary.accepted - self._settled
            if dropped:
                self._summary.dropped += dropped
                self._summary.drain_timed_out = True
        if dropped:
            self._logger.error(
                "Drain deadline passed with a request in flight, events dropped",
                dropped=dropped,
                drain_timeout=self._drain_timeout,
            )

    def _log_partial_failure(self, status: IngestStatus) -> None:
        partial = status.partial_failure
        if partial is None:
            return
        first = partial.first
        self._logger.warning(
            "Events rejected by ingest",
            failed=partial.failed,
            ingested=status.ingested,
            first_timestamp=first.timestamp if first else None,
            first_error=first.error if first else None,
        )
