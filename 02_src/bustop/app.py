"""Monitoring session bootstrap and lifecycle management."""

import asyncio
from typing import Protocol

from .bus import IBusSession, ignore_action
from .config import MonitorConfig
from .errors import MonitorError, NotFoundError, SelectionError, SessionFatalError
from .event_stream import EventStream
from .logging_config import get_logger
from .models import ChangeKind, RankingRow, Selection, ServiceChange
from .ranking import RANKING_HEADER, UsageRanker
from .registry import ServiceRegistry
from .tracing import SERIES_NAMES, TraceCorrelator

logger = get_logger(__name__)


class IOrchestrator(Protocol):
    """Polling cadence and selection lifecycle of a monitoring session."""

    async def start(self) -> None:
        """Start components in dependency order."""
        ...

    async def stop(self) -> None:
        """Stop in reverse order, releasing remote flags."""
        ...

    async def select(self, service: str, method: str) -> Selection:
        """Trace service.method, replacing the current selection."""
        ...

    async def clear_selection(self) -> None:
        """Stop tracing without selecting another method."""
        ...

    def ranking_snapshot(self) -> list[RankingRow]:
        """Rows of the latest ranking."""
        ...

    def series(self, name: str, limit: int) -> list[float]:
        """Recent samples of one series of the selected method."""
        ...


class Orchestrator:
    """Owns the ranking poll loop and at most one active TraceCorrelator."""

    def __init__(self, session: IBusSession, config: MonitorConfig | None = None):
        self._session = session
        self._config = config or MonitorConfig()

        # Components (will be initialized in start())
        self._registry: ServiceRegistry | None = None
        self._ranker: UsageRanker | None = None
        self._correlator: TraceCorrelator | None = None
        self._selection: Selection | None = None

        self._changes: EventStream[ServiceChange] | None = None
        self._changes_task: asyncio.Task | None = None
        self._poll_task: asyncio.Task | None = None
        self._select_lock = asyncio.Lock()
        self._stopped = asyncio.Event()
        self._fatal_error: Exception | None = None
        self._running = False

    async def start(self) -> None:
        """Start components in dependency order."""
        logger.info("Starting monitoring session")

        # 1. Registry (enables statistics, watches the directory)
        self._registry = ServiceRegistry(
            self._session, self._config, on_fatal=self._fail
        )
        await self._registry.start()

        # 2. Ranker (reads registry snapshots)
        self._ranker = UsageRanker(self._session, self._registry, self._config)

        # 3. Background tasks
        self._changes = self._registry.subscribe()
        self._changes_task = asyncio.create_task(self._watch_changes())
        self._poll_task = asyncio.create_task(self._poll_loop())
        self._running = True
        logger.info("Monitoring session started")

        # 4. Initial selection
        if self._config.service and self._config.method:
            try:
                await self.select(self._config.service, self._config.method)
            except MonitorError:
                await self.stop()
                raise

    async def stop(self) -> None:
        """Stop in reverse order, releasing remote flags."""
        if not self._running and self._registry is None:
            return
        logger.info("Stopping monitoring session")
        self._running = False

        async with self._select_lock:
            if self._correlator is not None:
                await self._correlator.stop()
                self._correlator = None
            self._selection = None

        if self._poll_task is not None:
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
            self._poll_task = None

        if self._changes is not None:
            self._changes.cancel()
        if self._changes_task is not None:
            self._changes_task.cancel()
            try:
                await self._changes_task
            except asyncio.CancelledError:
                pass
            self._changes_task = None

        if self._registry is not None:
            await self._registry.stop()
            self._registry = None

        self._stopped.set()
        logger.info("Monitoring session stopped")

    async def run(self) -> None:
        """Start, wait until the session ends, stop, re-raise a fatal error."""
        await self.start()
        await self.wait_stopped()
        await self.stop()
        if self._fatal_error is not None:
            raise self._fatal_error

    async def wait_stopped(self) -> None:
        """Wait for the session to be stopped or to fail."""
        await self._stopped.wait()

    async def select(self, service: str, method: str) -> Selection:
        """Trace service.method, replacing the current selection.

        Validation happens before the current correlator is touched, so a
        rejected selection leaves it running.
        """
        async with self._select_lock:
            if not self._running or self._registry is None:
                raise RuntimeError("Monitoring session not started")

            try:
                await self._registry.resolve(service)
                slot = await asyncio.wait_for(
                    self._session.resolve_method_id(service, method),
                    timeout=self._config.call_timeout,
                )
            except NotFoundError as e:
                raise SelectionError(str(e)) from e
            except asyncio.TimeoutError as e:
                raise SelectionError(f"timed out resolving {service}.{method}") from e
            except Exception as e:
                raise SelectionError(f"failed to resolve {service}.{method}: {e}") from e
            if ignore_action(slot):
                raise SelectionError(f"{service}.{method} is a bus-internal method")

            # Previous slot must release its trace flag before the next one
            if self._correlator is not None:
                await self._correlator.stop()
                self._correlator = None
                self._selection = None

            correlator = TraceCorrelator(
                self._session,
                self._config,
                service=service,
                method=method,
                slot=slot,
                on_stopped=self._on_correlator_stopped,
            )
            try:
                await correlator.start()
            except SessionFatalError as e:
                self._fail(e)
                raise

            self._correlator = correlator
            self._selection = Selection(service=service, method=method, slot=slot)
            logger.info("Selected %s", self._selection.action)
            return self._selection

    async def clear_selection(self) -> None:
        """Stop tracing without selecting another method."""
        async with self._select_lock:
            if self._correlator is not None:
                await self._correlator.stop()
                self._correlator = None
            self._selection = None

    @property
    def selection(self) -> Selection | None:
        return self._selection

    @property
    def correlator(self) -> TraceCorrelator | None:
        return self._correlator

    @property
    def fatal_error(self) -> Exception | None:
        return self._fatal_error

    @property
    def running(self) -> bool:
        return self._running

    def ranking_snapshot(self) -> list[RankingRow]:
        """Rows of the latest ranking."""
        if self._ranker is None:
            return []
        return self._ranker.snapshot()

    def ranking_lines(self) -> list[str]:
        """Latest ranking in its tabular text form."""
        if self._ranker is None:
            return [RANKING_HEADER]
        return self._ranker.format_lines()

    def series(self, name: str, limit: int) -> list[float]:
        """Recent samples of one series. Raises KeyError for unknown names."""
        if name not in SERIES_NAMES:
            raise KeyError(name)
        if self._correlator is None:
            return []
        return self._correlator.series(name, limit)

    def latency_series(self, limit: int) -> list[float]:
        return self.series("latency", limit)

    def error_latency_series(self, limit: int) -> list[float]:
        return self.series("error_latency", limit)

    def call_size_series(self, limit: int) -> list[float]:
        return self.series("call_size", limit)

    def reply_size_series(self, limit: int) -> list[float]:
        return self.series("reply_size", limit)

    def user_cpu_series(self, limit: int) -> list[float]:
        return self.series("user_cpu", limit)

    def system_cpu_series(self, limit: int) -> list[float]:
        return self.series("system_cpu", limit)

    async def _poll_loop(self) -> None:
        """Poll the ranker every poll_interval seconds."""
        if self._ranker is None:
            return
        while True:
            try:
                await self._ranker.poll()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("Ranking poll failed: %s", e, exc_info=True)
            await asyncio.sleep(self._config.poll_interval)

    async def _watch_changes(self) -> None:
        """Forget the counters of services leaving the bus."""
        if self._changes is None or self._ranker is None:
            return
        async for change in self._changes:
            if change.kind != ChangeKind.REMOVED:
                continue
            self._ranker.forget_service(change.name)
            if self._selection is not None and self._selection.service == change.name:
                logger.warning("Traced service %s left the bus", change.name)

    def _on_correlator_stopped(self, correlator: TraceCorrelator) -> None:
        logger.info(
            "Trace of %s.%s stopped after %s records",
            correlator.service,
            correlator.method,
            correlator.records_count,
        )

    def _fail(self, error: Exception) -> None:
        """Record a session-fatal error and wake run()."""
        if self._fatal_error is None:
            self._fatal_error = error
            logger.error("Monitoring session failed: %s", error)
        self._stopped.set()
