"""SimulatedBus - in-process bus session with synthetic services and traffic."""

import asyncio
import random
import time
from dataclasses import dataclass, field

from bustop.errors import MethodNotFoundError, ServiceNotFoundError
from bustop.event_stream import EventStream
from bustop.logging_config import get_logger
from bustop.models import (
    ChangeKind,
    EventKind,
    MethodStatistic,
    ServiceChange,
    ServiceInfo,
    Timestamp,
    TraceEvent,
)

logger = get_logger(__name__)

# Statistics control methods every bus object exposes
BUILTIN_METHODS = {
    0x50: "isStatsEnabled",
    0x51: "enableStats",
    0x52: "stats",
    0x53: "clearStats",
}

DEFAULT_SERVICES = {
    "ALMemory": {100: "getData", 101: "insertData", 102: "subscribeToEvent"},
    "ALTextToSpeech": {100: "say", 101: "setVolume"},
    "ALMotion": {100: "moveTo", 101: "stopMove", 102: "getPosition"},
}


@dataclass
class SimulatedService:
    """State of one simulated remote object."""

    info: ServiceInfo
    methods: dict[int, str]
    stats: dict[int, MethodStatistic] = field(default_factory=dict)
    stats_enabled: bool = False
    tracing_enabled: bool = False
    statistics_error: Exception | None = None
    trace_streams: list[EventStream] = field(default_factory=list)


class SimulatedBus:
    """IBusSession implementation backed by in-memory services.

    Services, statistics and trace events are driven programmatically or by
    the optional traffic task started with start(). Flag changes are
    recorded in ``calls`` in the order they happen.
    """

    def __init__(self, seed: int | None = None, traffic_interval: float = 0.05):
        self._services: dict[str, SimulatedService] = {}
        self._change_streams: list[EventStream[ServiceChange]] = []
        self._random = random.Random(seed)
        self._traffic_interval = traffic_interval
        self._next_call_id = 1
        self._next_process_id = 1000
        self._task: asyncio.Task | None = None
        self._running = False
        self.calls: list[tuple] = []

    # Scenario control

    def add_service(
        self,
        name: str,
        methods: dict[int, str],
        machine_id: str = "sim",
    ) -> ServiceInfo:
        """Register a service (or re-register it after a restart)."""
        info = ServiceInfo(name=name, machine_id=machine_id, process_id=self._next_process_id)
        self._next_process_id += 1
        previous = self._services.get(name)
        if previous is not None:
            self._close_streams(previous.trace_streams)
        self._services[name] = SimulatedService(
            info=info, methods={**BUILTIN_METHODS, **methods}
        )
        self._notify(ServiceChange(kind=ChangeKind.ADDED, name=name))
        return info

    def remove_service(self, name: str) -> None:
        """Unregister a service; its trace streams end."""
        service = self._services.pop(name, None)
        if service is None:
            return
        self._close_streams(service.trace_streams)
        self._notify(ServiceChange(kind=ChangeKind.REMOVED, name=name))

    def disconnect(self) -> None:
        """Simulate losing the bus: every stream ends."""
        self._close_streams(self._change_streams)
        for service in self._services.values():
            self._close_streams(service.trace_streams)

    def set_statistics(self, service: str, stats: dict[int, MethodStatistic]) -> None:
        """Replace the statistics a service reports."""
        self._get(service).stats = dict(stats)

    def fail_statistics(self, service: str, error: Exception | None = None) -> None:
        """Make get_statistics fail for a service (None restores it)."""
        self._get(service).statistics_error = error

    def emit_trace(self, service: str, event: TraceEvent) -> None:
        """Deliver a trace event to subscribers if tracing is enabled."""
        target = self._get(service)
        if not target.tracing_enabled:
            return
        for stream in list(target.trace_streams):
            if not stream.put_nowait(event):
                target.trace_streams.remove(stream)

    def record_call(
        self,
        service: str,
        method_id: int,
        duration: float,
        error: bool = False,
        call_size: int = 0,
        reply_size: int = 0,
    ) -> None:
        """Simulate one invocation: update statistics and emit its trace pair."""
        target = self._get(service)
        if target.stats_enabled:
            self._account(target, method_id, duration)

        call_id = self._next_call_id
        self._next_call_id += 1
        started = time.time_ns() // 1000
        call = TraceEvent(
            id=call_id,
            kind=EventKind.CALL,
            slot_id=method_id,
            timestamp=Timestamp.from_microseconds(started),
            payload=bytes(call_size),
        )
        response = TraceEvent(
            id=call_id,
            kind=EventKind.ERROR if error else EventKind.REPLY,
            slot_id=method_id,
            timestamp=Timestamp.from_microseconds(started + round(duration * 1_000_000)),
            payload=bytes(reply_size),
            cpu_user_us=int(duration * 1_000_000 * self._random.uniform(0.2, 0.6)),
            cpu_system_us=int(duration * 1_000_000 * self._random.uniform(0.05, 0.2)),
        )
        # Halves of a call are not ordered on the wire
        pair = [call, response]
        if self._random.random() < 0.3:
            pair.reverse()
        for event in pair:
            self.emit_trace(service, event)

    def tracing_enabled(self, service: str) -> bool:
        return self._get(service).tracing_enabled

    def statistics_enabled(self, service: str) -> bool:
        return self._get(service).stats_enabled

    def trace_subscribers(self, service: str) -> int:
        return len([s for s in self._get(service).trace_streams if not s.closed])

    # Traffic

    async def start(self) -> None:
        """Start generating random traffic."""
        if self._running:
            return
        self._running = True
        if not self._services:
            for name, methods in DEFAULT_SERVICES.items():
                self.add_service(name, methods)
        self._task = asyncio.create_task(self._run_traffic())

    async def stop(self) -> None:
        """Stop generating traffic."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _run_traffic(self) -> None:
        while self._running:
            try:
                if self._services:
                    name = self._random.choice(list(self._services))
                    methods = [
                        method_id
                        for method_id in self._services[name].methods
                        if method_id not in BUILTIN_METHODS
                    ]
                    if methods:
                        self.record_call(
                            name,
                            self._random.choice(methods),
                            duration=self._random.uniform(0.0002, 0.02),
                            error=self._random.random() < 0.05,
                            call_size=self._random.randint(0, 512),
                            reply_size=self._random.randint(0, 2048),
                        )
                await asyncio.sleep(self._traffic_interval)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("SIM traffic error: %s", e)

    # IBusSession

    async def list_services(self) -> list[ServiceInfo]:
        return [service.info for service in self._services.values()]

    async def service_info(self, name: str) -> ServiceInfo:
        return self._get(name).info

    async def subscribe_service_changes(self) -> EventStream[ServiceChange]:
        stream: EventStream[ServiceChange] = EventStream()
        self._change_streams.append(stream)
        return stream

    async def get_meta_object(self, service: str) -> dict[int, str]:
        return dict(self._get(service).methods)

    async def enable_statistics(self, service: str, enabled: bool) -> None:
        self.calls.append(("enable_statistics", service, enabled))
        self._get(service).stats_enabled = enabled

    async def clear_statistics(self, service: str) -> None:
        self.calls.append(("clear_statistics", service))
        self._get(service).stats.clear()

    async def get_statistics(self, service: str) -> dict[int, MethodStatistic]:
        target = self._get(service)
        if target.statistics_error is not None:
            raise target.statistics_error
        if target.stats_enabled:
            # The stats call is itself a call on the object
            self._account(target, 0x52, 0.0001)
        return {
            method_id: MethodStatistic(
                count=stat.count,
                min_wall=stat.min_wall,
                max_wall=stat.max_wall,
                cumulative_wall=stat.cumulative_wall,
            )
            for method_id, stat in target.stats.items()
        }

    async def enable_tracing(self, service: str, enabled: bool) -> None:
        self.calls.append(("enable_tracing", service, enabled))
        self._get(service).tracing_enabled = enabled

    async def subscribe_trace_events(self, service: str) -> EventStream[TraceEvent]:
        target = self._get(service)
        stream: EventStream[TraceEvent] = EventStream(
            on_cancel=lambda: self.calls.append(("unsubscribe_trace", service))
        )
        target.trace_streams.append(stream)
        self.calls.append(("subscribe_trace", service))
        return stream

    async def resolve_method_id(self, service: str, method: str) -> int:
        for method_id, name in self._get(service).methods.items():
            if name == method:
                return method_id
        raise MethodNotFoundError(service, method)

    # Helpers

    def _get(self, name: str) -> SimulatedService:
        service = self._services.get(name)
        if service is None:
            raise ServiceNotFoundError(name)
        return service

    def _notify(self, change: ServiceChange) -> None:
        for stream in list(self._change_streams):
            if not stream.put_nowait(change):
                self._change_streams.remove(stream)

    def _account(self, target: SimulatedService, method_id: int, duration: float) -> None:
        stat = target.stats.setdefault(method_id, MethodStatistic())
        if stat.count == 0:
            stat.min_wall = stat.max_wall = duration
        else:
            stat.min_wall = min(stat.min_wall, duration)
            stat.max_wall = max(stat.max_wall, duration)
        stat.count += 1
        stat.cumulative_wall += duration

    @staticmethod
    def _close_streams(streams: list[EventStream]) -> None:
        for stream in streams:
            stream.close()
        streams.clear()
