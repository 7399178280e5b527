"""Tracing module."""

from .correlator import (
    SERIES_NAMES,
    CallSeries,
    CorrelatorState,
    ITraceCorrelator,
    TraceCorrelator,
    make_call_record,
)

__all__ = [
    "SERIES_NAMES",
    "CallSeries",
    "CorrelatorState",
    "ITraceCorrelator",
    "TraceCorrelator",
    "make_call_record",
]
