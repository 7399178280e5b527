"""Call record and selection models."""

from dataclasses import dataclass
from enum import Enum

from .bus import Timestamp


class Outcome(str, Enum):
    """How a traced call ended."""

    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class CallRecord:
    """A correlated call/response pair."""

    timestamp: Timestamp  # when the call was emitted
    duration_us: int
    call_size: int  # bytes, header included
    reply_size: int
    user_us_time: int
    system_us_time: int
    outcome: Outcome


@dataclass(frozen=True)
class Selection:
    """The method currently traced."""

    service: str
    method: str
    slot: int

    @property
    def action(self) -> str:
        return f"{self.service}.{self.method}"
