"""Data models consumed from the remote bus."""

from dataclasses import dataclass, field
from enum import Enum


@dataclass
class ServiceInfo:
    """Directory entry of a service as reported by the bus."""

    name: str
    machine_id: str = ""
    process_id: int = 0

    @property
    def location(self) -> str:
        """Process location used to filter streams to the right process."""
        return f"{self.machine_id}:{self.process_id}"


@dataclass
class ServiceDescriptor:
    """A tracked service and its method-id to method-name map."""

    name: str
    location: str
    methods: dict[int, str] = field(default_factory=dict)  # ignored ids excluded


class ChangeKind(str, Enum):
    """Service directory notifications."""

    ADDED = "added"
    REMOVED = "removed"


@dataclass
class ServiceChange:
    """A service appeared on or left the bus."""

    kind: ChangeKind
    name: str


@dataclass
class MethodStatistic:
    """Remote-owned aggregate for one method since statistics were enabled.

    Wall values are seconds.
    """

    count: int = 0
    min_wall: float = 0.0
    max_wall: float = 0.0
    cumulative_wall: float = 0.0

    @property
    def min_latency_us(self) -> float:
        return self.min_wall * 1_000_000.0

    @property
    def max_latency_us(self) -> float:
        return self.max_wall * 1_000_000.0

    @property
    def avg_latency_us(self) -> float:
        if self.count == 0:
            return 0.0
        return self.cumulative_wall * 1_000_000.0 / self.count


@dataclass(frozen=True)
class Timestamp:
    """Wall-clock instant as (seconds, microseconds)."""

    seconds: int
    microseconds: int = 0

    def to_microseconds(self) -> int:
        return self.seconds * 1_000_000 + self.microseconds

    @classmethod
    def from_microseconds(cls, total: int) -> "Timestamp":
        return cls(seconds=total // 1_000_000, microseconds=total % 1_000_000)

    @classmethod
    def from_float(cls, value: float) -> "Timestamp":
        return cls.from_microseconds(round(value * 1_000_000))


class EventKind(str, Enum):
    """Which half of a remote invocation a trace event describes."""

    CALL = "call"
    REPLY = "reply"
    ERROR = "error"


@dataclass
class TraceEvent:
    """One half of a traced remote invocation."""

    id: int  # correlation id shared by the call and its response
    kind: EventKind
    slot_id: int  # method id the event belongs to
    timestamp: Timestamp
    payload: bytes = b""
    cpu_user_us: int = 0
    cpu_system_us: int = 0
