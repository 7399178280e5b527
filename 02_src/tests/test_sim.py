"""Tests for SimulatedBus."""

import pytest

from bustop.errors import MethodNotFoundError, ServiceNotFoundError
from bustop.models import ChangeKind
from sim import BUILTIN_METHODS, SimulatedBus

from conftest import settle


class TestSimulatedBus:
    """Tests for the simulated session."""

    @pytest.mark.asyncio
    async def test_meta_object_includes_builtins(self, bus):
        """Test that every service exposes the statistics methods."""
        meta = await bus.get_meta_object("ALMotion")

        assert set(BUILTIN_METHODS).issubset(meta)
        assert meta[100] == "moveTo"

    @pytest.mark.asyncio
    async def test_record_call_accounts_statistics(self, bus):
        """Test that calls update statistics only while enabled."""
        bus.record_call("ALMotion", 100, duration=0.01)
        assert await bus.get_statistics("ALMotion") == {}

        await bus.enable_statistics("ALMotion", True)
        bus.record_call("ALMotion", 100, duration=0.01)
        bus.record_call("ALMotion", 100, duration=0.03)

        stat = (await bus.get_statistics("ALMotion"))[100]
        assert stat.count == 2
        assert stat.min_wall == pytest.approx(0.01)
        assert stat.max_wall == pytest.approx(0.03)
        assert stat.cumulative_wall == pytest.approx(0.04)

    @pytest.mark.asyncio
    async def test_change_notifications(self, bus):
        """Test that add and remove are notified in order."""
        changes = await bus.subscribe_service_changes()
        bus.add_service("ALVideo", {100: "getImage"})
        bus.remove_service("ALVideo")
        changes.close()

        kinds = [change.kind async for change in changes]
        assert kinds == [ChangeKind.ADDED, ChangeKind.REMOVED]

    @pytest.mark.asyncio
    async def test_unknown_lookups(self, bus):
        """Test not-found errors."""
        with pytest.raises(ServiceNotFoundError):
            await bus.service_info("Nope")
        with pytest.raises(MethodNotFoundError):
            await bus.resolve_method_id("ALMotion", "fly")

    @pytest.mark.asyncio
    async def test_traffic_generation(self):
        """Test that start() registers default services and emits calls."""
        sb = SimulatedBus(seed=1, traffic_interval=0.001)
        await sb.start()
        names = [info.name for info in await sb.list_services()]
        for name in names:
            await sb.enable_statistics(name, True)
        await settle(0.1)
        await sb.stop()

        assert set(names) == {"ALMemory", "ALTextToSpeech", "ALMotion"}
        total = 0
        for name in names:
            stats = await sb.get_statistics(name)
            total += sum(s.count for i, s in stats.items() if i not in BUILTIN_METHODS)
        assert total > 0
