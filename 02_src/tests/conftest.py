"""Pytest configuration and fixtures."""

import asyncio
import sys
from pathlib import Path

import pytest
import pytest_asyncio

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from bustop.models import EventKind, Timestamp, TraceEvent  # noqa: E402

SERVICES = {
    "ALMemory": {100: "getData", 101: "insertData"},
    "ALMotion": {100: "moveTo"},
    "ALTextToSpeech": {100: "say"},
}


def make_event(
    call_id: int,
    kind: EventKind,
    at: float,
    size: int = 0,
    slot: int = 100,
    user_us: int = 0,
    system_us: int = 0,
) -> TraceEvent:
    """Build a trace event at ``at`` seconds."""
    return TraceEvent(
        id=call_id,
        kind=kind,
        slot_id=slot,
        timestamp=Timestamp.from_float(at),
        payload=bytes(size),
        cpu_user_us=user_us,
        cpu_system_us=system_us,
    )


async def settle(delay: float = 0.05) -> None:
    """Let background tasks process what was queued."""
    await asyncio.sleep(delay)


@pytest.fixture
def config():
    """Fast session configuration."""
    from bustop.config import MonitorConfig

    return MonitorConfig(poll_interval=0.05, call_timeout=1.0, buffer_capacity=8)


@pytest.fixture
def bus():
    """Simulated bus with three services and no background traffic."""
    from sim import SimulatedBus

    sb = SimulatedBus(seed=7)
    for name, methods in SERVICES.items():
        sb.add_service(name, methods)
    return sb


@pytest_asyncio.fixture
async def registry(bus, config):
    """Started ServiceRegistry."""
    from bustop.registry import ServiceRegistry

    reg = ServiceRegistry(bus, config)
    await reg.start()
    yield reg
    await reg.stop()


@pytest.fixture
def ranker(bus, registry, config):
    """UsageRanker over the started registry."""
    from bustop.ranking import UsageRanker

    return UsageRanker(bus, registry, config)


@pytest_asyncio.fixture
async def orchestrator(bus, config):
    """Started Orchestrator."""
    from bustop.app import Orchestrator

    orch = Orchestrator(bus, config)
    await orch.start()
    yield orch
    await orch.stop()
