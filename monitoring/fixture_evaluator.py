"""
fixture_evaluator.py
---------------------
Compares engine decisions against a labeled fixture corpus.

The tolerances and multipliers in config.yaml are tuned empirically; this
is the tool that measures how well a given configuration agrees with the
labels. Each expected entry looks like:

    {"merchantGroupId": 42, "merchantName": "Netflix",
     "shouldDetect": true, "frequency": "monthly", "isRecurring": true}

frequency and isRecurring are optional. A null or "irregular" frequency
both mean irregular.

Statuses per merchant:
    MATCHED     every labeled field agrees
    MISMATCHED  at least one labeled field disagrees
    MISSING     labeled merchant has no decision in this run
    EXTRA       unlabeled merchant that the engine would surface
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import List, Optional

from core.models import Frequency, InputError, RecurrenceDecision

logger = logging.getLogger(__name__)


@dataclass
class EvaluationDetail:
    """Outcome for one merchant group."""
    merchant_group_id: int
    merchant_name: str
    status: str                      # "MATCHED" | "MISMATCHED" | "MISSING" | "EXTRA"
    mismatched_fields: List[str] = field(default_factory=list)
    expected: Optional[dict] = None
    detected: Optional[dict] = None


@dataclass
class EvaluationReport:
    """Full evaluation report, one per run."""
    details: List[EvaluationDetail] = field(default_factory=list)

    def _count(self, status: str) -> int:
        return sum(1 for d in self.details if d.status == status)

    @property
    def matched(self) -> int:
        return self._count("MATCHED")

    @property
    def mismatched(self) -> int:
        return self._count("MISMATCHED")

    @property
    def missing(self) -> int:
        return self._count("MISSING")

    @property
    def extra(self) -> int:
        return self._count("EXTRA")

    @property
    def agreement_rate(self) -> float:
        """Share of labeled merchants whose decision fully agrees."""
        labeled = self.matched + self.mismatched + self.missing
        return self.matched / labeled if labeled else 0.0

    @property
    def summary(self) -> dict:
        return {
            "matched": self.matched,
            "mismatched": self.mismatched,
            "missing": self.missing,
            "extra": self.extra,
            "agreement_rate": round(self.agreement_rate, 4),
        }


def _expected_frequency(value) -> Optional[Frequency]:
    """None for labels outside the engine's buckets (e.g. "yearly")."""
    if value is None or value == "":
        return Frequency.irregular
    try:
        return Frequency(str(value).strip().lower())
    except ValueError:
        return None


class FixtureEvaluator:
    """
    Usage:
        report = FixtureEvaluator().evaluate(result.decisions, expected_entries)
    """

    def evaluate(self, decisions: Iterable[RecurrenceDecision], expected: Iterable[Mapping]) -> EvaluationReport:
        """
        Args:
            decisions: Engine decisions from one run.
            expected: Labeled entries in the fixture shape.

        Raises:
            InputError: If an expected entry has no merchantGroupId.
        """
        by_group = {d.merchant_group_id: d for d in decisions}
        report = EvaluationReport()
        labeled_ids = set()

        for entry in expected:
            if not isinstance(entry, Mapping) or entry.get("merchantGroupId") is None:
                raise InputError(f"Expected entry without merchantGroupId: {entry!r}")
            try:
                group_id = int(entry["merchantGroupId"])
            except (TypeError, ValueError) as e:
                raise InputError(f"Expected entry has a non-numeric merchantGroupId: {entry!r}") from e
            labeled_ids.add(group_id)
            decision = by_group.get(group_id)

            if decision is None:
                report.details.append(EvaluationDetail(
                    merchant_group_id=group_id,
                    merchant_name=str(entry.get("merchantName", "")),
                    status="MISSING",
                    expected=dict(entry),
                ))
                continue

            mismatched = self._compare(decision, entry)
            report.details.append(EvaluationDetail(
                merchant_group_id=group_id,
                merchant_name=decision.merchant_name,
                status="MISMATCHED" if mismatched else "MATCHED",
                mismatched_fields=mismatched,
                expected=dict(entry),
                detected=decision.to_record(),
            ))

        for group_id, decision in sorted(by_group.items()):
            if group_id not in labeled_ids and decision.should_detect:
                report.details.append(EvaluationDetail(
                    merchant_group_id=group_id,
                    merchant_name=decision.merchant_name,
                    status="EXTRA",
                    detected=decision.to_record(),
                ))

        logger.info(f"Fixture evaluation: {report.summary}")
        return report

    @staticmethod
    def _compare(decision: RecurrenceDecision, entry: Mapping) -> List[str]:
        mismatched = []
        if "shouldDetect" in entry and bool(entry["shouldDetect"]) != decision.should_detect:
            mismatched.append("shouldDetect")
        if "isRecurring" in entry and bool(entry["isRecurring"]) != decision.is_recurring:
            mismatched.append("isRecurring")
        if "frequency" in entry and _expected_frequency(entry["frequency"]) is not decision.frequency:
            mismatched.append("frequency")
        return mismatched
