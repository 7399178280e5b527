"""Ranking data models."""

from dataclasses import dataclass

from .bus import MethodStatistic


@dataclass
class RankingEntry:
    """Latest statistic of one action ("service.method")."""

    action: str
    stat: MethodStatistic


@dataclass
class RankingRow:
    """Display projection of a RankingEntry."""

    rank: int  # 1-based
    count: int
    min_latency_us: float
    max_latency_us: float
    avg_latency_us: float
    action: str
