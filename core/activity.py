"""
activity.py
------------
Activity/recency evaluator. Decides whether a pattern is still live as of
the analysis date.

A merchant is active iff days_since_last <= active_multiplier * avg_interval,
using the merchant's own measured average interval, not the bucket center.
With the default multiplier of 1.5, a biweekly pattern silent for more than
21 days and a monthly pattern silent for more than 45 days are lapsed.
"""

from typing import Optional

from core.models import IntervalStats
from config.config_loader import get_activity_config


class ActivityEvaluator:

    def __init__(self, active_multiplier: float | None = None):
        self.config = get_activity_config()
        self.active_multiplier = (
            active_multiplier if active_multiplier is not None else self.config["active_multiplier"]
        )

    def recency_threshold(self, interval_stats: IntervalStats) -> float:
        """Maximum days of silence before the pattern counts as lapsed."""
        return self.active_multiplier * interval_stats.avg_interval

    def is_active(self, interval_stats: Optional[IntervalStats], days_since_last: int) -> bool:
        # No interval, no pattern to be recent.
        if interval_stats is None or interval_stats.count < 2:
            return False
        return days_since_last <= self.recency_threshold(interval_stats)
