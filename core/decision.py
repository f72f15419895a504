"""
decision.py
------------
Decision composer. Merges the classifier verdict, exclusion verdict and
activity verdict into the final RecurrenceDecision, and builds the
MerchantSummary used for auditing.

    is_recurring  = frequency != irregular
    should_detect = is_recurring and active and not excluded

The reason string is a fixed template chosen by precedence, citing the
single most decision-relevant factor:

    exclusion > inactivity > poor statistical fit > accepted

Inactivity is only cited for statistically recurring merchants; for an
irregular series the poor fit is the explanation.
"""

from typing import Optional

from core.activity import ActivityEvaluator
from core.models import (
    AmountStats,
    DirectionSplit,
    ExclusionVerdict,
    FrequencyVerdict,
    IntervalStats,
    MerchantSeries,
    MerchantSummary,
    RecurrenceDecision,
)
from config.config_loader import get_summary_config


class DecisionComposer:
    """
    Usage:
        composer = DecisionComposer(activity_evaluator)
        decision = composer.compose(series, interval_stats, amount_stats, split,
                                    verdict, exclusion, active, days_since)
        summary = composer.summarize(series, interval_stats, amount_stats, split,
                                     days_since)
    """

    def __init__(self, activity: ActivityEvaluator | None = None):
        self.activity = activity or ActivityEvaluator()
        self.config = get_summary_config()
        self.sample_size = self.config["sample_size"]

    # -------------------------------------------------------------------------
    # PUBLIC INTERFACE
    # -------------------------------------------------------------------------

    def compose(
        self,
        series: MerchantSeries,
        interval_stats: Optional[IntervalStats],
        amount_stats: AmountStats,
        split: DirectionSplit,
        verdict: FrequencyVerdict,
        exclusion: ExclusionVerdict,
        active: bool,
        days_since: int,
    ) -> RecurrenceDecision:
        confidence = verdict.confidence
        if not exclusion.category_known:
            confidence = confidence.downgrade()

        reason = self._reason(series, interval_stats, amount_stats, verdict, exclusion, active, days_since)
        if not exclusion.category_known:
            reason += "; category unverified"
        if split.is_ambiguous:
            reason += (
                f"; direction split is close ({split.income_count} income / "
                f"{split.expense_count} expense), amounts use {split.dominant.value} only"
            )

        return RecurrenceDecision(
            merchant_group_id=series.merchant_group_id,
            merchant_name=series.display_name,
            is_recurring=verdict.is_recurring,
            frequency=verdict.frequency,
            confidence=confidence,
            reason=reason,
            should_detect=verdict.is_recurring and active and not exclusion.excluded,
            days_since_last_transaction=days_since,
        )

    def summarize(
        self,
        series: MerchantSeries,
        interval_stats: Optional[IntervalStats],
        amount_stats: AmountStats,
        split: DirectionSplit,
        days_since: int,
    ) -> MerchantSummary:
        sample = series.transactions[: self.sample_size]
        return MerchantSummary(
            merchant_group_id=series.merchant_group_id,
            merchant_name=series.display_name,
            transaction_count=series.count,
            first_date=series.first_date,
            last_date=series.last_date,
            date_span_days=(series.last_date - series.first_date).days,
            days_since_last_transaction=days_since,
            transaction_type=split.dominant,
            income_count=split.income_count,
            expense_count=split.expense_count,
            avg_interval=interval_stats.avg_interval if interval_stats else None,
            min_interval=interval_stats.min_interval if interval_stats else None,
            max_interval=interval_stats.max_interval if interval_stats else None,
            min_amount=amount_stats.min_amount,
            max_amount=amount_stats.max_amount,
            avg_amount=amount_stats.avg_amount,
            amount_variance=amount_stats.amount_variance,
            sample_dates=[t.date for t in sample],
            sample_amounts=[float(t.amount) for t in sample],
        )

    # -------------------------------------------------------------------------
    # INTERNAL: REASON TEMPLATES
    # -------------------------------------------------------------------------

    def _reason(
        self,
        series: MerchantSeries,
        interval_stats: Optional[IntervalStats],
        amount_stats: AmountStats,
        verdict: FrequencyVerdict,
        exclusion: ExclusionVerdict,
        active: bool,
        days_since: int,
    ) -> str:
        if exclusion.excluded:
            return f"Excluded: {exclusion.reason}"

        if verdict.is_recurring and not active:
            threshold = self.activity.recency_threshold(interval_stats)
            return (
                f"Inactive: last transaction {days_since} days ago exceeds "
                f"{self.activity.active_multiplier:g}x the {interval_stats.avg_interval:.1f}-day "
                f"average interval ({threshold:.1f} days)"
            )

        if not verdict.is_recurring:
            if interval_stats is None:
                return f"Insufficient data: {verdict.fit_note}"
            return f"Not recurring: {verdict.fit_note}"

        return (
            f"{verdict.frequency.value.capitalize()} pattern: {series.count} transactions, "
            f"{verdict.fit_note} (interval std {interval_stats.interval_std:.1f} days, "
            f"amount CV {amount_stats.coefficient_of_variation:.2f}); "
            f"last transaction {days_since} days ago"
        )
