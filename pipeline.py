"""
pipeline.py
------------
Main orchestration layer. Wires together:
    1. TransactionNormalizer   →  validated Transactions, skipped records
    2. MerchantAggregator      →  one MerchantSeries per merchant group
    3. Statistics              →  IntervalStats, AmountStats, direction split
    4. FrequencyClassifier     →  FrequencyVerdict
    5. ExclusionRuleEngine     →  ExclusionVerdict
    6. ActivityEvaluator       →  active / lapsed
    7. DecisionComposer        →  RecurrenceDecision + MerchantSummary

This is the single entry point for running the engine. Everything else
is internal machinery.

The run is pure: the same records, as_of_date and category lookup always
produce the same output. Merchant groups share no state, so a failed run
is retried by simply running it again.

Usage:
    from pipeline import RecurrenceDetectionPipeline

    pipeline = RecurrenceDetectionPipeline()
    result = pipeline.run(records, as_of_date=date(2025, 1, 31), categories={12: "interest"})
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional, Tuple

import pandas as pd

from core.activity import ActivityEvaluator
from core.aggregator import MerchantAggregator
from core.decision import DecisionComposer
from core.frequency_classifier import FrequencyClassifier
from core.models import InputError, MerchantSeries, MerchantSummary, RecurrenceDecision
from core.normalizer import SkippedRecord, TransactionNormalizer
from core.statistics import compute_amount_stats, compute_interval_stats, days_since_last, dominant_direction
from exclusions.exclusion_rules import ExclusionRuleEngine
from config.config_loader import get_summary_config

logger = logging.getLogger(__name__)


DECISION_COLUMNS = [
    "merchant_group_id", "merchant_name", "is_recurring", "frequency",
    "confidence", "reason", "should_detect", "days_since_last_transaction",
]


@dataclass
class AnalysisResult:
    """Output of one analysis run."""
    as_of_date: date
    decisions: List[RecurrenceDecision] = field(default_factory=list)
    summaries: List[MerchantSummary] = field(default_factory=list)
    skipped: List[SkippedRecord] = field(default_factory=list)
    ungrouped_count: int = 0

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)

    @property
    def detected(self) -> List[RecurrenceDecision]:
        return [d for d in self.decisions if d.should_detect]

    def decision_for(self, merchant_group_id: int) -> Optional[RecurrenceDecision]:
        return next((d for d in self.decisions if d.merchant_group_id == merchant_group_id), None)

    def summary_for(self, merchant_group_id: int) -> Optional[MerchantSummary]:
        return next((s for s in self.summaries if s.merchant_group_id == merchant_group_id), None)

    def to_records(self) -> dict:
        """JSON-ready output in the external (camelCase) fixture shape."""
        return {
            "asOfDate": self.as_of_date.isoformat(),
            "decisions": [d.to_record() for d in self.decisions],
            "summaries": [s.to_record() for s in self.summaries],
            "skippedCount": self.skipped_count,
            "ungroupedCount": self.ungrouped_count,
        }

    def to_dataframe(self) -> pd.DataFrame:
        """Decisions flattened to one row per merchant group."""
        if not self.decisions:
            return pd.DataFrame(columns=DECISION_COLUMNS)

        rows = [
            {
                "merchant_group_id": d.merchant_group_id,
                "merchant_name": d.merchant_name,
                "is_recurring": d.is_recurring,
                "frequency": d.frequency.value,
                "confidence": d.confidence.value,
                "reason": d.reason,
                "should_detect": d.should_detect,
                "days_since_last_transaction": d.days_since_last_transaction,
            }
            for d in self.decisions
        ]
        return pd.DataFrame(rows, columns=DECISION_COLUMNS)


def resolve_as_of_date(as_of_date) -> date:
    """Accepts a date, datetime, ISO string or None (today)."""
    if as_of_date is None:
        return date.today()
    if isinstance(as_of_date, datetime):
        return as_of_date.date()
    if isinstance(as_of_date, date):
        return as_of_date
    try:
        return pd.Timestamp(str(as_of_date)).date()
    except ValueError as e:
        raise InputError(f"Invalid as_of_date: {as_of_date!r}") from e


class RecurrenceDetectionPipeline:
    """
    End-to-end recurring transaction detection.

    Orchestrates normalize → aggregate → classify → exclude → activity →
    compose without exposing internal objects to callers.
    """

    def __init__(self, lookback_days: int | None = None, active_multiplier: float | None = None):
        """
        Args:
            lookback_days: Override the look-back window from config.
            active_multiplier: Override the recency multiplier from config.
        """
        self.normalizer = TransactionNormalizer()
        self.aggregator = MerchantAggregator(lookback_days=lookback_days)
        self.classifier = FrequencyClassifier()
        self.exclusions = ExclusionRuleEngine()
        self.activity = ActivityEvaluator(active_multiplier=active_multiplier)
        self.composer = DecisionComposer(self.activity)
        self.ambiguity_share = get_summary_config()["direction_ambiguity_share"]

        logger.info(
            f"Pipeline initialized. "
            f"Buckets: {[b.frequency.value for b in self.classifier.buckets]}. "
            f"Active multiplier: {self.activity.active_multiplier:g}. "
            f"Lookback: {self.aggregator.lookback_days or 'full history'}."
        )

    # -------------------------------------------------------------------------
    # PUBLIC INTERFACE
    # -------------------------------------------------------------------------

    def run(self, records, as_of_date=None, categories: Optional[Mapping] = None) -> AnalysisResult:
        """
        Run the full detection pipeline.

        Args:
            records: Raw transaction records (iterable of mappings or DataFrame).
            as_of_date: Evaluation date. Defaults to today.
            categories: merchant_group_id -> category tag lookup for the
                exclusion rules. Missing entries fail open.

        Returns:
            AnalysisResult with one decision and one summary per merchant
            group that has at least one valid transaction.

        Raises:
            InputError: If records is not a collection of mappings.
        """
        as_of = resolve_as_of_date(as_of_date)
        if categories is not None and not isinstance(categories, Mapping):
            raise InputError(f"categories must be a mapping, got {type(categories).__name__}")

        # --- Stage 1: Normalize ---
        normalized = self.normalizer.normalize(records)
        logger.info(
            f"Stage 1 complete. Valid: {len(normalized.transactions):,}, "
            f"skipped: {normalized.skipped_count:,}, ungrouped: {normalized.ungrouped_count:,}."
        )

        # --- Stage 2: Aggregate ---
        all_series = self.aggregator.aggregate(normalized.transactions, as_of)
        logger.info(f"Stage 2 complete. Merchant series: {len(all_series):,}.")

        # --- Stages 3-7: Per-merchant analysis ---
        result = AnalysisResult(
            as_of_date=as_of,
            skipped=normalized.skipped,
            ungrouped_count=normalized.ungrouped_count,
        )
        for series in all_series:
            decision, summary = self.analyze_series(series, as_of, categories)
            result.decisions.append(decision)
            result.summaries.append(summary)

        logger.info(
            f"Pipeline complete. Decisions: {len(result.decisions):,}, "
            f"detected: {len(result.detected):,}."
        )
        return result

    def analyze_series(
        self, series: MerchantSeries, as_of_date: date, categories: Optional[Mapping] = None
    ) -> Tuple[RecurrenceDecision, MerchantSummary]:
        """
        Classify a single merchant series. Useful for debugging one merchant.
        """
        split = dominant_direction(series, self.ambiguity_share)
        interval_stats = compute_interval_stats(series)
        amount_stats = compute_amount_stats(series, split.dominant)
        days_since = days_since_last(series, as_of_date)

        verdict = self.classifier.classify(interval_stats, amount_stats)
        exclusion = self.exclusions.evaluate(series.merchant_group_id, categories)
        active = self.activity.is_active(interval_stats, days_since)

        decision = self.composer.compose(
            series, interval_stats, amount_stats, split, verdict, exclusion, active, days_since
        )
        summary = self.composer.summarize(series, interval_stats, amount_stats, split, days_since)

        logger.debug(
            f"Merchant {series.merchant_group_id} ({series.display_name}): "
            f"{decision.frequency.value}/{decision.confidence.value}, "
            f"should_detect={decision.should_detect}."
        )
        return decision, summary
