"""bustop - live method ranking and call tracing for a remote object bus."""

from .app import IOrchestrator, Orchestrator
from .buffer import RetentionBuffer
from .bus import HEADER_SIZE, IBusSession, ignore_action
from .config import MonitorConfig
from .errors import (
    MethodNotFoundError,
    MonitorError,
    NotFoundError,
    SelectionError,
    ServiceNotFoundError,
    SessionFatalError,
)
from .event_stream import EventBroadcaster, EventStream
from .models import (
    CallRecord,
    ChangeKind,
    EventKind,
    MethodStatistic,
    Outcome,
    RankingEntry,
    RankingRow,
    Selection,
    ServiceChange,
    ServiceDescriptor,
    ServiceInfo,
    Timestamp,
    TraceEvent,
)
from .ranking import IUsageRanker, UsageRanker, ranking_key
from .registry import IServiceRegistry, ServiceRegistry
from .tracing import CorrelatorState, ITraceCorrelator, TraceCorrelator

__all__ = [
    # Session
    "Orchestrator",
    "IOrchestrator",
    "MonitorConfig",
    # Models
    "ServiceInfo",
    "ServiceDescriptor",
    "ChangeKind",
    "ServiceChange",
    "MethodStatistic",
    "Timestamp",
    "EventKind",
    "TraceEvent",
    "RankingEntry",
    "RankingRow",
    "CallRecord",
    "Outcome",
    "Selection",
    # Components
    "IBusSession",
    "HEADER_SIZE",
    "ignore_action",
    "EventStream",
    "EventBroadcaster",
    "RetentionBuffer",
    "IServiceRegistry",
    "ServiceRegistry",
    "IUsageRanker",
    "UsageRanker",
    "ranking_key",
    "ITraceCorrelator",
    "TraceCorrelator",
    "CorrelatorState",
    # Errors
    "MonitorError",
    "NotFoundError",
    "ServiceNotFoundError",
    "MethodNotFoundError",
    "SelectionError",
    "SessionFatalError",
]
