"""EventStream module."""

from .stream import EventBroadcaster, EventStream, IEventStream

__all__ = ["EventBroadcaster", "EventStream", "IEventStream"]
