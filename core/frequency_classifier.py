"""
frequency_classifier.py
------------------------
Maps interval statistics onto canonical recurrence buckets and assigns a
confidence level.

Bucket matching:
    A bucket matches when |avg_interval - center| <= tolerance. If more than
    one bucket matches, the closest center wins; an exact midpoint tie goes
    to the shorter period (buckets are ordered by center).

Confidence for a matched bucket combines interval tightness (std relative
to the bucket tolerance), position inside the band, and amount stability
(coefficient of variation). An irregular verdict also carries a confidence,
describing how clearly irregular the series is.

All centers, tolerances and thresholds come from config.yaml.
"""

from dataclasses import dataclass
from typing import List, Optional

from core.models import AmountStats, Confidence, Frequency, FrequencyVerdict, IntervalStats
from config.config_loader import get_confidence_config, get_frequency_config


@dataclass(frozen=True)
class FrequencyBucket:
    frequency: Frequency
    center_days: float
    tolerance_days: float

    def distance(self, avg_interval: float) -> float:
        return abs(avg_interval - self.center_days)

    def contains(self, avg_interval: float) -> bool:
        return self.distance(avg_interval) <= self.tolerance_days

    def describe(self) -> str:
        return f"{self.center_days:g}±{self.tolerance_days:g} days"


class FrequencyClassifier:
    """
    Usage:
        classifier = FrequencyClassifier()
        verdict = classifier.classify(interval_stats, amount_stats)
    """

    def __init__(self):
        freq_config = get_frequency_config()
        self.config = get_confidence_config()
        self.min_transactions = freq_config["min_transactions_for_bucket"]
        self.buckets: List[FrequencyBucket] = sorted(
            (
                FrequencyBucket(
                    frequency=Frequency(name),
                    center_days=float(bucket_cfg["center_days"]),
                    tolerance_days=float(bucket_cfg["tolerance_days"]),
                )
                for name, bucket_cfg in freq_config["buckets"].items()
            ),
            key=lambda b: b.center_days,
        )

    # -------------------------------------------------------------------------
    # PUBLIC INTERFACE
    # -------------------------------------------------------------------------

    def classify(self, interval_stats: Optional[IntervalStats], amount_stats: AmountStats) -> FrequencyVerdict:
        """
        Args:
            interval_stats: None for a single-transaction series.
            amount_stats: Amount dispersion for the same series.

        Returns:
            FrequencyVerdict. frequency is irregular whenever no bucket fits
            or there are fewer than min_transactions_for_bucket transactions.
        """
        if interval_stats is None:
            return FrequencyVerdict(
                frequency=Frequency.irregular,
                confidence=Confidence.low,
                fit_note="only 1 transaction; at least 2 are needed to measure an interval",
            )

        bucket = self.match_bucket(interval_stats.avg_interval)

        if interval_stats.count < self.min_transactions:
            return self._too_few(interval_stats, bucket)

        if bucket is None:
            return self._irregular(interval_stats)

        return FrequencyVerdict(
            frequency=bucket.frequency,
            confidence=self._bucket_confidence(bucket, interval_stats, amount_stats),
            fit_note=(
                f"average interval {interval_stats.avg_interval:.1f} days within "
                f"{bucket.describe()}"
            ),
        )

    def match_bucket(self, avg_interval: float) -> Optional[FrequencyBucket]:
        """Closest matching bucket, or None when avg_interval is outside every band."""
        matches = [b for b in self.buckets if b.contains(avg_interval)]
        if not matches:
            return None
        # min() keeps the first of equal distances, i.e. the shorter period.
        return min(matches, key=lambda b: b.distance(avg_interval))

    # -------------------------------------------------------------------------
    # INTERNAL: CONFIDENCE
    # -------------------------------------------------------------------------

    def _bucket_confidence(
        self, bucket: FrequencyBucket, stats: IntervalStats, amount_stats: AmountStats
    ) -> Confidence:
        tolerance = bucket.tolerance_days
        std = stats.interval_std

        if std > self.config["weak_fit_std_tolerance_ratio"] * tolerance:
            return Confidence.low
        if bucket.distance(stats.avg_interval) > (1.0 - self.config["borderline_band_fraction"]) * tolerance:
            return Confidence.low

        if (
            std <= self.config["high_std_tolerance_ratio"] * tolerance
            and amount_stats.coefficient_of_variation <= self.config["max_amount_cv_for_high"]
        ):
            return Confidence.high
        return Confidence.medium

    def _too_few(self, stats: IntervalStats, bucket: Optional[FrequencyBucket]) -> FrequencyVerdict:
        # A single gap inside a band is consistent but unconfirmed.
        if bucket is not None:
            return FrequencyVerdict(
                frequency=Frequency.irregular,
                confidence=Confidence.medium,
                fit_note=(
                    f"only {stats.count} transactions; interval of {stats.avg_interval:.0f} days "
                    f"looks {bucket.frequency.value} but at least {self.min_transactions} "
                    f"are needed to confirm it"
                ),
            )
        return FrequencyVerdict(
            frequency=Frequency.irregular,
            confidence=Confidence.low,
            fit_note=(
                f"only {stats.count} transactions; at least {self.min_transactions} "
                f"are needed to confirm a cadence"
            ),
        )

    def _irregular(self, stats: IntervalStats) -> FrequencyVerdict:
        note = (
            f"average interval {stats.avg_interval:.1f} days "
            f"(range {stats.min_interval}-{stats.max_interval}) fits no recurrence band"
        )

        near_miss = any(
            b.distance(stats.avg_interval) <= self.config["irregular_near_miss_tolerances"] * b.tolerance_days
            for b in self.buckets
        )
        if near_miss:
            return FrequencyVerdict(Frequency.irregular, Confidence.low, note)

        interval_cv = stats.interval_std / stats.avg_interval if stats.avg_interval > 0 else 0.0
        if (
            interval_cv >= self.config["irregular_high_interval_cv"]
            and stats.count >= self.config["irregular_high_confidence_min_count"]
        ):
            return FrequencyVerdict(Frequency.irregular, Confidence.high, note)
        return FrequencyVerdict(Frequency.irregular, Confidence.medium, note)
