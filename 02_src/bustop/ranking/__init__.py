"""Ranking module."""

from .ranker import RANKING_HEADER, IUsageRanker, UsageRanker, format_row, ranking_key

__all__ = ["RANKING_HEADER", "IUsageRanker", "UsageRanker", "format_row", "ranking_key"]
