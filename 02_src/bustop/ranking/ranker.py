"""UsageRanker implementation: per-method call counters, most used first."""

import asyncio
from typing import Protocol

from ..bus import IBusSession, ignore_action
from ..config import MonitorConfig
from ..logging_config import get_logger
from ..models import MethodStatistic, RankingEntry, RankingRow
from ..registry import IServiceRegistry

logger = get_logger(__name__)

RANKING_HEADER = " count | min (us) | max (us) | avg (us) | Service.Method"


def ranking_key(entry: RankingEntry) -> tuple[int, float, str]:
    """Sort key: count descending, then cumulative latency descending.

    The action name breaks remaining ties so the order is total.
    """
    return (-entry.stat.count, -entry.stat.cumulative_wall, entry.action)


def format_row(entry: RankingEntry) -> str:
    """One ranking line in the tabular display form."""
    stat = entry.stat
    return " %5d | %8.0f | %8.0f | %8.0f | %s" % (
        stat.count,
        stat.min_latency_us,
        stat.max_latency_us,
        stat.avg_latency_us,
        entry.action,
    )


class IUsageRanker(Protocol):
    """Ranking of remote methods by usage."""

    async def poll(self) -> list[RankingEntry]:
        """Fetch statistics of every tracked service and rank them."""
        ...

    def snapshot(self) -> list[RankingRow]:
        """Rows of the latest ranking."""
        ...

    def forget_service(self, service: str) -> None:
        """Drop the counters of a service that left the bus."""
        ...


class UsageRanker:
    """Merges per-service statistics into a sorted ranking."""

    def __init__(
        self,
        session: IBusSession,
        registry: IServiceRegistry,
        config: MonitorConfig,
    ):
        self._session = session
        self._registry = registry
        self._config = config

        # action -> last statistic reported, kept across polls
        self._counters: dict[str, MethodStatistic] = {}
        # service -> actions it contributed
        self._service_actions: dict[str, set[str]] = {}
        self._ranking: list[RankingEntry] = []

    @property
    def ranking(self) -> list[RankingEntry]:
        """Latest ranking computed by poll()."""
        return list(self._ranking)

    async def poll(self) -> list[RankingEntry]:
        """Fetch statistics of every tracked service and rank them."""
        services = await self._registry.services()

        for name, descriptor in services.items():
            try:
                stats = await asyncio.wait_for(
                    self._session.get_statistics(name),
                    timeout=self._config.call_timeout,
                )
            except Exception as e:
                # One unreachable service must not abort the cycle
                logger.warning(
                    "Skipping statistics of %s this cycle: %r",
                    name,
                    e,
                    extra={"context": {"service": name}},
                )
                continue

            actions = self._service_actions.setdefault(name, set())
            for method_id, stat in stats.items():
                if ignore_action(method_id):
                    continue
                method = descriptor.methods.get(method_id)
                if method is None:
                    continue
                action = f"{name}.{method}"
                # The remote side owns cumulation: replace, never add
                self._counters[action] = stat
                actions.add(action)

        # A service may have left the bus while its statistics were in flight
        current = await self._registry.services()
        for name in [n for n in self._service_actions if n not in current]:
            self.forget_service(name)

        entries = [
            RankingEntry(action=action, stat=stat)
            for action, stat in self._counters.items()
            if stat.count > 0
        ]
        entries.sort(key=ranking_key)
        self._ranking = entries
        return list(entries)

    def snapshot(self) -> list[RankingRow]:
        """Rows of the latest ranking."""
        return [
            RankingRow(
                rank=index,
                count=entry.stat.count,
                min_latency_us=entry.stat.min_latency_us,
                max_latency_us=entry.stat.max_latency_us,
                avg_latency_us=entry.stat.avg_latency_us,
                action=entry.action,
            )
            for index, entry in enumerate(self._ranking, start=1)
        ]

    def format_lines(self) -> list[str]:
        """Header followed by one line per ranked action."""
        return [RANKING_HEADER] + [format_row(entry) for entry in self._ranking]

    def forget_service(self, service: str) -> None:
        """Drop the counters of a service that left the bus."""
        actions = self._service_actions.pop(service, set())
        for action in actions:
            self._counters.pop(action, None)
        self._ranking = [e for e in self._ranking if e.action not in actions]
        if actions:
            logger.debug("Forgot %s actions of %s", len(actions), service)
