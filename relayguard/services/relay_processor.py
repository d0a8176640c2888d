"""Relay host adapter: one JSON request per input line, one JSON response per event.

This service sits between the relay and the decision engine. It handles:
- Parsing request lines (malformed lines are logged and skipped)
- Ignoring request types other than "new"
- Mapping outcomes to the relay's accept/reject responses
- Applying the configured policy when a data source lookup fails
- Optional concurrent evaluation with responses kept in input order
"""

from __future__ import annotations

import logging
import queue
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, TextIO

from pydantic import ValidationError

from relayguard.core.config import ErrorPolicy
from relayguard.core.errors import ParseError, QueryError
from relayguard.core.logging import clear_event_id, set_event_id, short_identity
from relayguard.schemas.decision import Outcome, RejectReason
from relayguard.schemas.events import Event
from relayguard.schemas.relay import RelayRequest, RelayResponse
from relayguard.services.decision_engine import DecisionEngine

logger = logging.getLogger(__name__)

NEW_EVENT_TYPE = "new"
BLOCKED_MESSAGE = "blocked"

REJECT_MESSAGES: dict[RejectReason, str] = {
    RejectReason.RATE_LIMITED: "rate limited",
    RejectReason.IDENTITY_BLOCKED: "public key does not have permission to write to relay",
    RejectReason.CATEGORY_BLOCKED: "event kind blocked by relay",
    RejectReason.CONTENT_BLOCKED: BLOCKED_MESSAGE,
}


class LineStatus(str, Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    IGNORED = "ignored"
    INVALID = "invalid"
    FAILED = "failed"


@dataclass(frozen=True)
class LineResult:
    """What happened to one input line; response is None when nothing is written."""

    status: LineStatus
    response: RelayResponse | None = None


@dataclass
class ProcessingStats:
    """Per-status line counters for one run."""

    counts: dict[str, int] = field(default_factory=lambda: {status.value: 0 for status in LineStatus})
    responses: int = 0

    def record(self, result: LineResult) -> None:
        self.counts[result.status.value] += 1
        if result.response is not None:
            self.responses += 1

    @property
    def lines(self) -> int:
        return sum(self.counts.values())


def build_response(event_id: str, outcome: Outcome) -> RelayResponse:
    """Map an outcome to the relay response (no msg on accept)."""

    if outcome.accepted:
        return RelayResponse(id=event_id, action="accept")
    return RelayResponse(
        id=event_id,
        action="reject",
        msg=REJECT_MESSAGES.get(outcome.reason, BLOCKED_MESSAGE),
    )


def parse_request(line: str, line_number: int | None = None) -> RelayRequest:
    """Parse one input line.

    Raises:
        ParseError: If the line is not a JSON object with a request type.
    """

    try:
        return RelayRequest.model_validate_json(line)
    except ValidationError as exc:
        raise ParseError(
            code="request_invalid",
            message=f"Malformed request line: {exc.error_count()} error(s)",
            details={
                "line_number": line_number,
                "errors": exc.errors(include_url=False, include_input=False),
            },
        ) from exc


def parse_event(request: RelayRequest, line_number: int | None = None) -> Event:
    """Validate the raw event of a "new" request.

    Raises:
        ParseError: If the event is missing or lacks required fields.
    """

    if request.event is None:
        raise ParseError(
            code="event_missing",
            message="Request of type 'new' has no event",
            details={"line_number": line_number},
        )
    try:
        return Event.model_validate(request.event)
    except ValidationError as exc:
        raise ParseError(
            code="event_invalid",
            message=f"Malformed event: {exc.error_count()} error(s)",
            details={
                "line_number": line_number,
                "errors": exc.errors(include_url=False, include_input=False),
            },
        ) from exc


class RelayProcessor:
    """Streams relay requests through a DecisionEngine.

    Attributes:
        on_error: What to answer when a lookup fails (reject, accept or skip).
        workers: Number of evaluation threads (1 evaluates inline).
    """

    def __init__(
        self,
        engine: DecisionEngine,
        *,
        on_error: ErrorPolicy = ErrorPolicy.REJECT,
        workers: int = 1,
    ) -> None:
        if workers < 1:
            raise ValueError("workers must be >= 1")
        self._engine = engine
        self.on_error = on_error
        self.workers = workers

    @property
    def engine(self) -> DecisionEngine:
        return self._engine

    def handle_request(self, request: RelayRequest, line_number: int | None = None) -> LineResult:
        """Evaluate one parsed request.

        Raises:
            ParseError: If a "new" request carries an invalid event.
        """

        if request.type != NEW_EVENT_TYPE:
            logger.warning(
                "relay.request.ignored",
                extra={"request_type": request.type, "line_number": line_number},
            )
            return LineResult(LineStatus.IGNORED)

        event = parse_event(request, line_number)
        set_event_id(event.id)
        try:
            try:
                outcome = self._engine.evaluate(event)
            except QueryError as exc:
                return self._handle_query_error(event, exc)

            response = build_response(event.id, outcome)
            if outcome.accepted:
                logger.debug("relay.event.accepted", extra={"identity": short_identity(event.identity)})
                return LineResult(LineStatus.ACCEPTED, response)

            logger.info(
                "relay.event.rejected",
                extra={
                    "identity": short_identity(event.identity),
                    "source_info": request.source_info,
                    "reason": outcome.reason.value,
                    "detail": outcome.detail,
                },
            )
            return LineResult(LineStatus.REJECTED, response)
        finally:
            clear_event_id()

    def _handle_query_error(self, event: Event, exc: QueryError) -> LineResult:
        logger.error(
            "relay.event.lookup_failed",
            extra={
                "error_code": exc.code,
                "error_message": exc.message,
                "policy": self.on_error.value,
            },
        )
        if self.on_error is ErrorPolicy.ACCEPT:
            return LineResult(LineStatus.FAILED, RelayResponse(id=event.id, action="accept"))
        if self.on_error is ErrorPolicy.SKIP:
            return LineResult(LineStatus.FAILED)
        return LineResult(
            LineStatus.FAILED,
            RelayResponse(id=event.id, action="reject", msg=BLOCKED_MESSAGE),
        )

    def process_line(self, line: str, line_number: int | None = None) -> LineResult:
        """Parse and evaluate one raw input line; malformed lines are skipped."""

        if not line.strip():
            return LineResult(LineStatus.IGNORED)

        try:
            request = parse_request(line, line_number)
            return self.handle_request(request, line_number)
        except ParseError as exc:
            logger.warning(
                "relay.request.invalid",
                extra={
                    "error_code": exc.code,
                    "error_message": exc.message,
                    "line_number": line_number,
                    "errors": (exc.details or {}).get("errors"),
                },
            )
            return LineResult(LineStatus.INVALID)

    def _emit(self, result: LineResult, output: TextIO, stats: ProcessingStats) -> None:
        stats.record(result)
        if result.response is None:
            return
        output.write(result.response.to_line())
        output.write("\n")
        output.flush()

    def run(self, lines: Iterable[str], output: TextIO) -> ProcessingStats:
        """Process every line until the input is exhausted.

        Responses are written in input order regardless of the worker count.

        Returns:
            ProcessingStats for the run.
        """

        stats = ProcessingStats()
        logger.info("relay.started", extra={"workers": self.workers, "on_error": self.on_error.value})

        if self.workers == 1:
            for number, line in enumerate(lines, start=1):
                self._emit(self.process_line(line, number), output, stats)
        else:
            self._run_concurrent(lines, output, stats)

        logger.info("relay.stopped", extra={"responses": stats.responses, **stats.counts})
        return stats

    def _run_concurrent(self, lines: Iterable[str], output: TextIO, stats: ProcessingStats) -> None:
        # Futures are queued in input order and a single writer thread waits
        # on them in that order, so responses go out as soon as they are ready
        # without the reader having to see the next line first.
        ordered: queue.Queue[Future[LineResult] | None] = queue.Queue(maxsize=self.workers * 4)
        failures: list[BaseException] = []
        failed = threading.Event()

        def write_results() -> None:
            while True:
                future = ordered.get()
                if future is None:
                    return
                if failed.is_set():
                    continue
                try:
                    self._emit(future.result(), output, stats)
                except BaseException as exc:  # re-raised by the reader below
                    failures.append(exc)
                    failed.set()

        writer = threading.Thread(target=write_results, name="relayguard-writer", daemon=True)
        with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="relayguard") as pool:
            writer.start()
            try:
                for number, line in enumerate(lines, start=1):
                    if failed.is_set():
                        break
                    ordered.put(pool.submit(self.process_line, line, number))
            finally:
                ordered.put(None)
                writer.join()

        if failures:
            raise failures[0]
