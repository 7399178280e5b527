"""Core data models for bustop."""

from .bus import (
    ChangeKind,
    EventKind,
    MethodStatistic,
    ServiceChange,
    ServiceDescriptor,
    ServiceInfo,
    Timestamp,
    TraceEvent,
)
from .ranking import RankingEntry, RankingRow
from .records import CallRecord, Outcome, Selection

__all__ = [
    # Bus
    "ServiceInfo",
    "ServiceDescriptor",
    "ChangeKind",
    "ServiceChange",
    "MethodStatistic",
    "Timestamp",
    "EventKind",
    "TraceEvent",
    # Ranking
    "RankingEntry",
    "RankingRow",
    # Records
    "CallRecord",
    "Outcome",
    "Selection",
]
