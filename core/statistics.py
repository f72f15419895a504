"""
statistics.py
--------------
Interval and amount statistics for a single MerchantSeries.

Variances are population variances (ddof=0): a merchant's recorded history
is treated as the whole known population, not a sample. This also keeps the
statistic defined at count == 2.
"""

from datetime import date
from typing import Optional

import numpy as np

from core.models import AmountStats, Direction, DirectionSplit, IntervalStats, MerchantSeries


def compute_gaps(series: MerchantSeries) -> np.ndarray:
    """Whole-day gaps between consecutive transactions. Never negative."""
    dates = np.array([t.date for t in series.transactions], dtype="datetime64[D]")
    return np.diff(dates).astype(int)


def compute_interval_stats(series: MerchantSeries) -> Optional[IntervalStats]:
    """
    Returns None when the series has fewer than 2 transactions; there is
    no interval to measure.
    """
    if series.count < 2:
        return None

    gaps = compute_gaps(series)
    return IntervalStats(
        count=series.count,
        min_interval=int(gaps.min()),
        max_interval=int(gaps.max()),
        avg_interval=float(gaps.mean()),
        interval_variance=float(np.var(gaps)),
    )


def dominant_direction(series: MerchantSeries, ambiguity_share: float) -> DirectionSplit:
    """
    Majority direction of the series. An exact tie resolves to expense.

    Args:
        ambiguity_share: Minority share (0-1) at or above which the split is
            flagged as ambiguous.
    """
    income = sum(1 for t in series.transactions if t.direction is Direction.income)
    expense = series.count - income
    dominant = Direction.income if income > expense else Direction.expense
    minority_share = min(income, expense) / series.count if series.count else 0.0
    return DirectionSplit(
        income_count=income,
        expense_count=expense,
        dominant=dominant,
        is_ambiguous=minority_share > 0 and minority_share >= ambiguity_share,
    )


def compute_amount_stats(series: MerchantSeries, direction: Direction | None = None) -> AmountStats:
    """
    Amount dispersion over the raw amounts.

    Args:
        direction: If given, only transactions in this direction contribute.
            Income and expense amounts are never averaged together.
    """
    amounts = np.array(
        [float(t.amount) for t in series.transactions if direction is None or t.direction is direction],
        dtype=float,
    )
    if amounts.size == 0:
        return AmountStats(min_amount=0.0, max_amount=0.0, avg_amount=0.0, amount_variance=0.0)

    return AmountStats(
        min_amount=float(amounts.min()),
        max_amount=float(amounts.max()),
        avg_amount=float(amounts.mean()),
        amount_variance=float(np.var(amounts)),
    )


def days_since_last(series: MerchantSeries, as_of_date: date) -> int:
    """Whole days from the last transaction to as_of_date, clamped at 0."""
    return max((as_of_date - series.last_date).days, 0)
