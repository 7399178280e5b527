"""Tests for UsageRanker."""

import asyncio

import pytest

from bustop.models import MethodStatistic, RankingEntry
from bustop.ranking import RANKING_HEADER, format_row, ranking_key

from conftest import settle


def stat(count: int, cumulative: float, low: float = 0.001, high: float = 0.002):
    return MethodStatistic(
        count=count, min_wall=low, max_wall=high, cumulative_wall=cumulative
    )


class TestRankingKey:
    """Tests for the ranking order."""

    def test_count_then_cumulative_latency(self):
        """Test count descending with cumulative latency tie-break."""
        entries = [
            RankingEntry("A.m1", stat(5, 0.010)),
            RankingEntry("C.m3", stat(2, 1.0)),
            RankingEntry("B.m2", stat(5, 0.020)),
        ]

        ordered = sorted(entries, key=ranking_key)

        assert [e.action for e in ordered] == ["B.m2", "A.m1", "C.m3"]

    def test_identical_stats_ordered_by_action(self):
        """Test that fully tied entries still have a deterministic order."""
        entries = [
            RankingEntry("Z.m", stat(1, 0.5)),
            RankingEntry("A.m", stat(1, 0.5)),
        ]

        assert [e.action for e in sorted(entries, key=ranking_key)] == ["A.m", "Z.m"]


class TestRankerPoll:
    """Tests for UsageRanker.poll()."""

    @pytest.mark.asyncio
    async def test_poll_ranks_services(self, ranker, bus):
        """Test that statistics of all services are merged and sorted."""
        bus.set_statistics("ALMemory", {100: stat(5, 0.010)})
        bus.set_statistics("ALMotion", {100: stat(5, 0.020)})
        bus.set_statistics("ALTextToSpeech", {100: stat(2, 1.0)})

        entries = await ranker.poll()

        assert [e.action for e in entries] == [
            "ALMotion.moveTo",
            "ALMemory.getData",
            "ALTextToSpeech.say",
        ]

    @pytest.mark.asyncio
    async def test_zero_counts_dropped(self, ranker, bus):
        """Test that actions never called are not ranked."""
        bus.set_statistics("ALMemory", {100: stat(0, 0.0), 101: stat(1, 0.1)})

        entries = await ranker.poll()

        assert [e.action for e in entries] == ["ALMemory.insertData"]

    @pytest.mark.asyncio
    async def test_ignored_ids_never_ranked(self, ranker, bus):
        """Test that reserved ids are filtered even when reported."""
        bus.set_statistics("ALMemory", {0x51: stat(50, 1.0), 100: stat(1, 0.1)})

        entries = await ranker.poll()

        assert [e.action for e in entries] == ["ALMemory.getData"]
        assert all("enableStats" not in e.action for e in entries)

    @pytest.mark.asyncio
    async def test_stats_call_itself_not_ranked(self, ranker, bus):
        """Test that the polling traffic on the stats method stays hidden."""
        await ranker.poll()
        entries = await ranker.poll()

        assert entries == []

    @pytest.mark.asyncio
    async def test_unknown_method_id_skipped(self, ranker, bus):
        """Test that ids missing from the method map are skipped."""
        bus.set_statistics("ALMemory", {999: stat(3, 0.1)})

        assert await ranker.poll() == []

    @pytest.mark.asyncio
    async def test_statistics_replace_previous_values(self, ranker, bus):
        """Test that each poll overwrites, never accumulates."""
        bus.set_statistics("ALMemory", {100: stat(5, 0.5)})
        await ranker.poll()
        bus.set_statistics("ALMemory", {100: stat(7, 0.7)})

        entries = await ranker.poll()

        assert entries[0].stat.count == 7
        assert entries[0].stat.cumulative_wall == pytest.approx(0.7)

    @pytest.mark.asyncio
    async def test_failing_service_skipped(self, ranker, bus):
        """Test that one failing service does not affect the others."""
        bus.set_statistics("ALMemory", {100: stat(3, 0.1)})
        bus.set_statistics("ALMotion", {100: stat(2, 0.1)})
        bus.set_statistics("ALTextToSpeech", {100: stat(1, 0.1)})
        bus.fail_statistics("ALMotion", ConnectionError("Test error"))

        entries = await ranker.poll()

        assert [e.action for e in entries] == ["ALMemory.getData", "ALTextToSpeech.say"]

    @pytest.mark.asyncio
    async def test_skipped_service_keeps_last_value(self, ranker, bus):
        """Test that a temporarily failing service keeps its last counters."""
        bus.set_statistics("ALMotion", {100: stat(4, 0.1)})
        await ranker.poll()
        bus.fail_statistics("ALMotion", ConnectionError("Test error"))

        entries = await ranker.poll()

        assert [e.action for e in entries] == ["ALMotion.moveTo"]
        assert entries[0].stat.count == 4

    @pytest.mark.asyncio
    async def test_hung_service_times_out(self, ranker, bus, config):
        """Test that a hung statistics call is bounded by call_timeout."""
        config.call_timeout = 0.05
        original = bus.get_statistics

        async def hang(service):
            if service == "ALMotion":
                await asyncio.sleep(10)
            return await original(service)

        bus.get_statistics = hang
        bus.set_statistics("ALMemory", {100: stat(1, 0.1)})

        entries = await asyncio.wait_for(ranker.poll(), timeout=2.0)

        assert [e.action for e in entries] == ["ALMemory.getData"]

    @pytest.mark.asyncio
    async def test_removed_service_not_polled(self, ranker, bus):
        """Test that a removed service is gone on the next cycle."""
        bus.set_statistics("ALMotion", {100: stat(4, 0.1)})
        await ranker.poll()

        polled = []
        original = bus.get_statistics

        async def spy(service):
            polled.append(service)
            return await original(service)

        bus.get_statistics = spy
        bus.remove_service("ALMotion")
        await settle()

        entries = await ranker.poll()

        assert "ALMotion" not in polled
        assert all(not e.action.startswith("ALMotion.") for e in entries)


class TestRankerDisplay:
    """Tests for ranking rows and lines."""

    @pytest.mark.asyncio
    async def test_snapshot_rows(self, ranker, bus):
        """Test that rows carry rank and latencies in microseconds."""
        bus.set_statistics(
            "ALMemory", {100: stat(4, 0.004, low=0.0005, high=0.002)}
        )
        await ranker.poll()

        rows = ranker.snapshot()

        assert len(rows) == 1
        assert rows[0].rank == 1
        assert rows[0].count == 4
        assert rows[0].min_latency_us == pytest.approx(500.0)
        assert rows[0].max_latency_us == pytest.approx(2000.0)
        assert rows[0].avg_latency_us == pytest.approx(1000.0)
        assert rows[0].action == "ALMemory.getData"

    @pytest.mark.asyncio
    async def test_format_lines(self, ranker, bus):
        """Test the tabular text form."""
        bus.set_statistics("ALMemory", {100: stat(4, 0.004, low=0.0005, high=0.002)})
        await ranker.poll()

        lines = ranker.format_lines()

        assert lines[0] == RANKING_HEADER
        assert lines[1] == "     4 |      500 |     2000 |     1000 | ALMemory.getData"

    def test_format_row(self):
        """Test a single formatted row."""
        row = format_row(RankingEntry("S.m", stat(10, 0.01, low=0.0001, high=0.003)))

        assert row.split(" | ")[-1] == "S.m"
        assert row.startswith("    10 |")

    @pytest.mark.asyncio
    async def test_forget_service(self, ranker, bus):
        """Test that forgetting a service drops its actions."""
        bus.set_statistics("ALMemory", {100: stat(1, 0.1)})
        bus.set_statistics("ALMotion", {100: stat(2, 0.1)})
        await ranker.poll()

        ranker.forget_service("ALMotion")

        assert [row.action for row in ranker.snapshot()] == ["ALMemory.getData"]
