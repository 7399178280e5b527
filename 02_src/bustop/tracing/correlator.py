"""TraceCorrelator implementation: pairs call and response trace events."""

import asyncio
from enum import Enum
from typing import Callable, Protocol

from ..buffer import RetentionBuffer
from ..bus import HEADER_SIZE, IBusSession, ignore_action
from ..config import MonitorConfig
from ..errors import SessionFatalError
from ..event_stream import EventStream
from ..logging_config import get_logger
from ..models import CallRecord, EventKind, Outcome, TraceEvent

logger = get_logger(__name__)

SERIES_NAMES = (
    "latency",
    "error_latency",
    "call_size",
    "reply_size",
    "user_cpu",
    "system_cpu",
)


class CorrelatorState(str, Enum):
    """Lifecycle of a correlator."""

    IDLE = "idle"
    ACTIVE = "active"
    STOPPED = "stopped"


def make_call_record(call: TraceEvent, response: TraceEvent) -> CallRecord:
    """Build the record of a call from its two halves."""
    if call.kind != EventKind.CALL:
        raise ValueError(f"expected a call event, got {call.kind.value}")
    duration = response.timestamp.to_microseconds() - call.timestamp.to_microseconds()
    return CallRecord(
        timestamp=call.timestamp,
        duration_us=duration,
        call_size=HEADER_SIZE + len(call.payload),
        reply_size=HEADER_SIZE + len(response.payload),
        user_us_time=response.cpu_user_us,
        system_us_time=response.cpu_system_us,
        outcome=Outcome.SUCCESS if response.kind == EventKind.REPLY else Outcome.ERROR,
    )


class CallSeries:
    """The six plotted series fed by call records."""

    def __init__(self, capacity: int):
        self.latency = RetentionBuffer(capacity)
        self.error_latency = RetentionBuffer(capacity)
        self.call_size = RetentionBuffer(capacity)
        self.reply_size = RetentionBuffer(capacity)
        self.user_cpu = RetentionBuffer(capacity)
        self.system_cpu = RetentionBuffer(capacity)

    def append(self, record: CallRecord) -> None:
        if record.outcome == Outcome.SUCCESS:
            self.latency.push(record.duration_us)
        else:
            self.error_latency.push(record.duration_us)
        self.user_cpu.push(record.user_us_time)
        self.system_cpu.push(record.system_us_time)
        self.call_size.push(record.call_size)
        self.reply_size.push(record.reply_size)

    def get(self, name: str) -> RetentionBuffer:
        """Buffer by series name. Raises KeyError for unknown names."""
        if name not in SERIES_NAMES:
            raise KeyError(name)
        return getattr(self, name)


class ITraceCorrelator(Protocol):
    """Correlates the trace events of one method."""

    @property
    def state(self) -> CorrelatorState:
        ...

    async def start(self) -> None:
        """Enable tracing and start consuming events."""
        ...

    async def stop(self) -> None:
        """Stop consuming and disable tracing."""
        ...

    def series(self, name: str, limit: int) -> list[float]:
        """Up to ``limit`` most recent samples of a series."""
        ...


class TraceCorrelator:
    """Consumes the trace stream of one service for one method slot."""

    def __init__(
        self,
        session: IBusSession,
        config: MonitorConfig,
        service: str,
        method: str,
        slot: int,
        on_stopped: Callable[["TraceCorrelator"], None] | None = None,
    ):
        self._session = session
        self._config = config
        self._service = service
        self._method = method
        self._slot = slot
        self._on_stopped = on_stopped

        self._state = CorrelatorState.IDLE
        self._pending: dict[int, TraceEvent] = {}
        self._series = CallSeries(config.buffer_capacity)
        self._events: EventStream[TraceEvent] | None = None
        self._task: asyncio.Task | None = None
        self._stopping = False
        self._tracing_enabled = False

        self._records_count = 0
        self._discarded_count = 0
        self._last_record: CallRecord | None = None

    @property
    def state(self) -> CorrelatorState:
        return self._state

    @property
    def service(self) -> str:
        return self._service

    @property
    def method(self) -> str:
        return self._method

    @property
    def slot(self) -> int:
        return self._slot

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def records_count(self) -> int:
        return self._records_count

    @property
    def discarded_count(self) -> int:
        return self._discarded_count

    @property
    def last_record(self) -> CallRecord | None:
        return self._last_record

    def _context(self) -> dict:
        return {"service": self._service, "method": self._method, "slot": self._slot}

    async def start(self) -> None:
        """Enable tracing on the service and start consuming events."""
        if self._state != CorrelatorState.IDLE:
            raise RuntimeError(f"TraceCorrelator already {self._state.value}")

        timeout = self._config.call_timeout
        try:
            await asyncio.wait_for(
                self._session.enable_tracing(self._service, True), timeout=timeout
            )
            self._tracing_enabled = True
            self._events = await asyncio.wait_for(
                self._session.subscribe_trace_events(self._service), timeout=timeout
            )
        except Exception as e:
            await self._disable_tracing()
            self._state = CorrelatorState.STOPPED
            raise SessionFatalError(
                f"failed to trace {self._service}.{self._method}: {e}"
            ) from e

        self._state = CorrelatorState.ACTIVE
        self._task = asyncio.create_task(self._consume())
        logger.info(
            "Tracing %s.%s (slot %s)",
            self._service,
            self._method,
            self._slot,
            extra={"context": self._context()},
        )

    async def stop(self) -> None:
        """Stop consuming and disable tracing. Safe to call more than once."""
        if self._state == CorrelatorState.IDLE:
            self._state = CorrelatorState.STOPPED
            return
        self._stopping = True

        # Cancelling the stream ends the consumer loop at the next read
        if self._events is not None:
            self._events.cancel()
        if self._task is not None and self._task is not asyncio.current_task():
            try:
                await self._task
            except asyncio.CancelledError:
                pass

        await self._release()

    def handle(self, event: TraceEvent) -> CallRecord | None:
        """Process one event; returns the record when it completes a pair."""
        if event.slot_id != self._slot or ignore_action(event.slot_id):
            return None

        other = self._pending.pop(event.id, None)
        if other is None:
            self._pending[event.id] = event
            return None

        if (event.kind == EventKind.CALL) == (other.kind == EventKind.CALL):
            self._discarded_count += 1
            logger.warning(
                "Dropping malformed pair for id %s: %s and %s",
                event.id,
                other.kind.value,
                event.kind.value,
                extra={"context": self._context()},
            )
            return None

        call, response = (event, other) if event.kind == EventKind.CALL else (other, event)
        record = make_call_record(call, response)
        if record.duration_us < 0:
            self._discarded_count += 1
            logger.warning(
                "Discarding call %s with negative duration %s us",
                event.id,
                record.duration_us,
                extra={"context": self._context()},
            )
            return None

        self._series.append(record)
        self._records_count += 1
        self._last_record = record
        return record

    def series(self, name: str, limit: int) -> list[float]:
        """Up to ``limit`` most recent samples of a series."""
        return self._series.get(name).snapshot(limit)

    def latency_series(self, limit: int) -> list[float]:
        return self._series.latency.snapshot(limit)

    def error_latency_series(self, limit: int) -> list[float]:
        return self._series.error_latency.snapshot(limit)

    def call_size_series(self, limit: int) -> list[float]:
        return self._series.call_size.snapshot(limit)

    def reply_size_series(self, limit: int) -> list[float]:
        return self._series.reply_size.snapshot(limit)

    def user_cpu_series(self, limit: int) -> list[float]:
        return self._series.user_cpu.snapshot(limit)

    def system_cpu_series(self, limit: int) -> list[float]:
        return self._series.system_cpu.snapshot(limit)

    async def _consume(self) -> None:
        """Single consumer of the trace stream."""
        if self._events is None:
            return
        async for event in self._events:
            try:
                self.handle(event)
            except Exception as e:
                logger.error(
                    "Failed to process trace event %s: %s",
                    event.id,
                    e,
                    exc_info=True,
                    extra={"context": self._context()},
                )

        if not self._stopping:
            # Remote side closed the stream: end of stream, not an error
            logger.info(
                "Trace stream of %s closed",
                self._service,
                extra={"context": self._context()},
            )
            await self._release()

    async def _release(self) -> None:
        if self._state == CorrelatorState.STOPPED:
            return
        self._state = CorrelatorState.STOPPED
        await self._disable_tracing()
        if self._pending:
            logger.debug(
                "Dropping %s unmatched trace events",
                len(self._pending),
                extra={"context": self._context()},
            )
            self._pending.clear()
        if self._on_stopped is not None:
            self._on_stopped(self)

    async def _disable_tracing(self) -> None:
        if not self._tracing_enabled:
            return
        self._tracing_enabled = False
        try:
            await asyncio.wait_for(
                self._session.enable_tracing(self._service, False),
                timeout=self._config.call_timeout,
            )
        except Exception as e:
            logger.warning(
                "Failed to disable tracing on %s: %s",
                self._service,
                e,
                extra={"context": self._context()},
            )
