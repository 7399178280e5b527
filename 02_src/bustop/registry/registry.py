"""ServiceRegistry implementation tracking the live set of services."""

import asyncio
from typing import Callable, Protocol

from ..bus import IBusSession, ignore_action
from ..config import MonitorConfig
from ..errors import MethodNotFoundError, ServiceNotFoundError, SessionFatalError
from ..event_stream import EventBroadcaster, EventStream
from ..logging_config import get_logger
from ..models import ChangeKind, ServiceChange, ServiceDescriptor, ServiceInfo

logger = get_logger(__name__)

FatalHandler = Callable[[Exception], None]


class IServiceRegistry(Protocol):
    """Live set of remote services and their method maps."""

    async def services(self) -> dict[str, ServiceDescriptor]:
        """Snapshot copy of the tracked services, keyed by name."""
        ...

    def subscribe(self) -> EventStream[ServiceChange]:
        """Stream of Added/Removed changes applied to the registry."""
        ...

    async def resolve(self, name: str) -> ServiceDescriptor:
        """Descriptor of a tracked service. Raises ServiceNotFoundError."""
        ...

    async def resolve_method(self, service: str, method: str) -> int:
        """Method id of service.method. Raises NotFoundError."""
        ...


class ServiceRegistry:
    """Tracks services through the directory and keeps statistics enabled."""

    def __init__(
        self,
        session: IBusSession,
        config: MonitorConfig,
        on_fatal: FatalHandler | None = None,
    ):
        self._session = session
        self._config = config
        self._on_fatal = on_fatal

        self._services: dict[str, ServiceDescriptor] = {}
        self._lock = asyncio.Lock()
        self._broadcaster: EventBroadcaster[ServiceChange] = EventBroadcaster()
        self._changes: EventStream[ServiceChange] | None = None
        self._watch_task: asyncio.Task | None = None
        self._running = False
        self._fatal_error: Exception | None = None

    @property
    def fatal_error(self) -> Exception | None:
        return self._fatal_error

    async def start(self) -> None:
        """Enumerate services, enable their statistics and watch the directory."""
        logger.info("Starting ServiceRegistry")
        # Subscribe before listing so no addition falls between the two
        try:
            self._changes = await self._session.subscribe_service_changes()
            infos = await asyncio.wait_for(
                self._session.list_services(), timeout=self._config.call_timeout
            )
        except Exception as e:
            if self._changes is not None:
                self._changes.cancel()
                self._changes = None
            raise SessionFatalError(f"service directory unavailable: {e}") from e

        for info in infos:
            try:
                await self._add_service(info)
            except Exception as e:
                logger.warning(
                    "Failed to register service %s: %s",
                    info.name,
                    e,
                    extra={"context": {"service": info.name}},
                )

        self._running = True
        self._watch_task = asyncio.create_task(self._watch())
        logger.info("ServiceRegistry tracking %s services", len(self._services))

    async def stop(self) -> None:
        """Stop watching and disable statistics on every tracked service."""
        logger.info("Stopping ServiceRegistry")
        self._running = False

        if self._changes is not None:
            self._changes.cancel()
        if self._watch_task is not None:
            self._watch_task.cancel()
            try:
                await self._watch_task
            except asyncio.CancelledError:
                pass
            self._watch_task = None

        async with self._lock:
            names = list(self._services)
        for name in names:
            try:
                await asyncio.wait_for(
                    self._session.enable_statistics(name, False),
                    timeout=self._config.call_timeout,
                )
            except Exception as e:
                logger.warning("Failed to disable statistics of %s: %s", name, e)

        self._broadcaster.close()

    async def services(self) -> dict[str, ServiceDescriptor]:
        """Snapshot copy of the tracked services, keyed by name."""
        async with self._lock:
            return dict(self._services)

    def subscribe(self) -> EventStream[ServiceChange]:
        """Stream of Added/Removed changes applied to the registry."""
        return self._broadcaster.subscribe()

    async def resolve(self, name: str) -> ServiceDescriptor:
        """Descriptor of a tracked service. Raises ServiceNotFoundError."""
        async with self._lock:
            descriptor = self._services.get(name)
        if descriptor is None:
            raise ServiceNotFoundError(name)
        return descriptor

    async def resolve_method(self, service: str, method: str) -> int:
        """Method id of service.method, ignored ids never match."""
        descriptor = await self.resolve(service)
        for method_id, name in descriptor.methods.items():
            if name == method:
                return method_id
        raise MethodNotFoundError(service, method)

    async def _add_service(self, info: ServiceInfo) -> None:
        """Fetch the method map, reset statistics and store the descriptor."""
        timeout = self._config.call_timeout
        meta = await asyncio.wait_for(
            self._session.get_meta_object(info.name), timeout=timeout
        )
        methods = {
            method_id: name
            for method_id, name in meta.items()
            if not ignore_action(method_id)
        }
        await asyncio.wait_for(
            self._session.enable_statistics(info.name, True), timeout=timeout
        )
        await asyncio.wait_for(
            self._session.clear_statistics(info.name), timeout=timeout
        )

        async with self._lock:
            self._services[info.name] = ServiceDescriptor(
                name=info.name,
                location=info.location,
                methods=methods,
            )
        logger.debug(
            "Registered service %s with %s methods",
            info.name,
            len(methods),
            extra={"context": {"service": info.name, "location": info.location}},
        )

    async def _watch(self) -> None:
        """Apply directory notifications until the stream ends."""
        if self._changes is None:
            return
        async for change in self._changes:
            if change.kind == ChangeKind.ADDED:
                try:
                    info = await asyncio.wait_for(
                        self._session.service_info(change.name),
                        timeout=self._config.call_timeout,
                    )
                    await self._add_service(info)
                except Exception as e:
                    logger.warning("Failed to add service %s: %s", change.name, e)
                    continue
                logger.info("Service added: %s", change.name)
            else:
                async with self._lock:
                    removed = self._services.pop(change.name, None)
                if removed is None:
                    continue
                logger.info("Service removed: %s", change.name)

            self._broadcaster.publish(change)

        if self._running:
            # No partial-registry mode: losing the directory ends the session
            self._running = False
            self._fatal_error = SessionFatalError("service directory disconnected")
            logger.error("Service directory disconnected")
            self._broadcaster.close()
            if self._on_fatal is not None:
                self._on_fatal(self._fatal_error)
