"""Capabilities consumed from the bus session."""

from typing import Protocol

from ..event_stream import EventStream
from ..models import MethodStatistic, ServiceChange, ServiceInfo, TraceEvent

# Size in bytes of the bus message header, counted in call and reply sizes
HEADER_SIZE = 28

# Bus-internal and introspection methods (metaObject, terminate, ...)
IGNORED_ACTION_MIN = 0x50
IGNORED_ACTION_MAX = 0x53


def ignore_action(method_id: int) -> bool:
    """True for reserved method ids that are never user actions."""
    return IGNORED_ACTION_MIN <= method_id <= IGNORED_ACTION_MAX


class IBusSession(Protocol):
    """Narrow view of a bus session used by the monitor.

    Streams returned by the subscribe_* methods are cancelled by the
    consumer; the session closes them on disconnect.
    """

    async def list_services(self) -> list[ServiceInfo]:
        """Enumerate the services currently registered."""
        ...

    async def service_info(self, name: str) -> ServiceInfo:
        """Directory entry of one service. Raises ServiceNotFoundError."""
        ...

    async def subscribe_service_changes(self) -> EventStream[ServiceChange]:
        """Stream of Added/Removed notifications."""
        ...

    async def get_meta_object(self, service: str) -> dict[int, str]:
        """Method id to method name map of the service's main object."""
        ...

    async def enable_statistics(self, service: str, enabled: bool) -> None:
        ...

    async def clear_statistics(self, service: str) -> None:
        ...

    async def get_statistics(self, service: str) -> dict[int, MethodStatistic]:
        """Per-method statistics since they were enabled or cleared."""
        ...

    async def enable_tracing(self, service: str, enabled: bool) -> None:
        ...

    async def subscribe_trace_events(self, service: str) -> EventStream[TraceEvent]:
        """Stream of trace events of every method of the service."""
        ...

    async def resolve_method_id(self, service: str, method: str) -> int:
        """Method id by name. Raises MethodNotFoundError."""
        ...
