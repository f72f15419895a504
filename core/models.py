"""
models.py
----------
Core domain models. These are the typed contracts between engine layers.

- Transaction / MerchantSeries: normalized input, grouped per merchant.
- IntervalStats / AmountStats: per-merchant statistics.
- FrequencyVerdict / ExclusionVerdict: classifier and rule-engine outputs.
- RecurrenceDecision / MerchantSummary: final per-merchant output.

Everything here is derived and read-only. Nothing is persisted by the engine.
"""

import enum
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional


class ValidationError(ValueError):
    """A single transaction record failed validation. The record is skipped."""

    def __init__(self, message: str, record_id=None):
        super().__init__(message)
        self.record_id = record_id


class InputError(TypeError):
    """The overall input is structurally broken. The run is aborted."""


class Frequency(str, enum.Enum):
    """Canonical recurrence buckets."""
    weekly = "weekly"
    biweekly = "biweekly"
    monthly = "monthly"
    quarterly = "quarterly"
    irregular = "irregular"


class Confidence(str, enum.Enum):
    high = "high"
    medium = "medium"
    low = "low"

    def downgrade(self) -> "Confidence":
        """One level lower; low stays low."""
        if self is Confidence.high:
            return Confidence.medium
        return Confidence.low


class Direction(str, enum.Enum):
    income = "income"
    expense = "expense"


class MerchantCategory(str, enum.Enum):
    """Semantic categories supplied by the merchant-grouping subsystem."""
    interest_accrual = "interest_accrual"
    internal_transfer = "internal_transfer"
    credit_card_payment = "credit_card_payment"
    subscription = "subscription"
    utility = "utility"
    payroll = "payroll"
    housing = "housing"
    insurance = "insurance"
    membership = "membership"
    loan_payment = "loan_payment"
    retail = "retail"
    peer_transfer = "peer_transfer"
    other = "other"


@dataclass(frozen=True)
class Transaction:
    """One normalized ledger entry."""

    id: object                        # int or str, unique within a run
    date: date
    amount: Decimal                   # Always >= 0
    direction: Direction
    merchant_group_id: Optional[int]  # None = cannot be grouped or classified
    merchant_display_name: Optional[str] = None
    account_id: Optional[int] = None
    credit_card_id: Optional[int] = None

    @property
    def is_grouped(self) -> bool:
        return self.merchant_group_id is not None


@dataclass
class MerchantSeries:
    """All transactions of one merchant group, sorted by date ascending."""

    merchant_group_id: int
    display_name: str
    transactions: list[Transaction] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.transactions)

    @property
    def first_date(self) -> date:
        return self.transactions[0].date

    @property
    def last_date(self) -> date:
        return self.transactions[-1].date


@dataclass(frozen=True)
class IntervalStats:
    """Day-gap statistics. Only defined for series with count >= 2."""

    count: int                       # Number of transactions, not gaps
    min_interval: int
    max_interval: int
    avg_interval: float
    interval_variance: float         # Population variance

    @property
    def interval_std(self) -> float:
        return self.interval_variance ** 0.5


@dataclass(frozen=True)
class AmountStats:
    """Amount dispersion over the dominant-direction transactions."""

    min_amount: float
    max_amount: float
    avg_amount: float
    amount_variance: float           # Population variance

    @property
    def coefficient_of_variation(self) -> float:
        if self.avg_amount <= 0:
            return 0.0
        return (self.amount_variance ** 0.5) / self.avg_amount


@dataclass(frozen=True)
class DirectionSplit:
    """Income/expense composition of a merchant series."""

    income_count: int
    expense_count: int
    dominant: Direction
    is_ambiguous: bool               # Minority share at or above the configured threshold


@dataclass(frozen=True)
class FrequencyVerdict:
    frequency: Frequency
    confidence: Confidence
    fit_note: str = ""               # Short description of why this bucket (or none) fit

    @property
    def is_recurring(self) -> bool:
        return self.frequency is not Frequency.irregular


@dataclass(frozen=True)
class ExclusionVerdict:
    excluded: bool
    category: Optional[MerchantCategory]
    category_known: bool
    reason: str = ""


@dataclass
class RecurrenceDecision:
    """Final per-merchant output."""

    merchant_group_id: int
    merchant_name: str
    is_recurring: bool
    frequency: Frequency
    confidence: Confidence
    reason: str
    should_detect: bool
    days_since_last_transaction: int

    def to_record(self) -> dict:
        """External (camelCase) shape used by fixtures and the CLI."""
        return {
            "merchantGroupId": self.merchant_group_id,
            "merchantName": self.merchant_name,
            "isRecurring": self.is_recurring,
            "frequency": self.frequency.value,
            "confidence": self.confidence.value,
            "reason": self.reason,
            "shouldDetect": self.should_detect,
            "daysSinceLastTransaction": self.days_since_last_transaction,
        }


@dataclass
class MerchantSummary:
    """Raw statistics for one merchant, kept for auditability and debugging."""

    merchant_group_id: int
    merchant_name: str
    transaction_count: int
    first_date: date
    last_date: date
    date_span_days: int
    days_since_last_transaction: int
    transaction_type: Direction
    income_count: int
    expense_count: int

    # Interval statistics (None when transaction_count < 2)
    avg_interval: Optional[float]
    min_interval: Optional[int]
    max_interval: Optional[int]

    # Amount statistics
    min_amount: float
    max_amount: float
    avg_amount: float
    amount_variance: float

    sample_dates: list[date] = field(default_factory=list)
    sample_amounts: list[float] = field(default_factory=list)

    def to_record(self) -> dict:
        return {
            "merchantGroupId": self.merchant_group_id,
            "merchantName": self.merchant_name,
            "transactionCount": self.transaction_count,
            "firstDate": self.first_date.isoformat(),
            "lastDate": self.last_date.isoformat(),
            "dateSpanDays": self.date_span_days,
            "daysSinceLastTransaction": self.days_since_last_transaction,
            "transactionType": self.transaction_type.value,
            "incomeCount": self.income_count,
            "expenseCount": self.expense_count,
            "avgInterval": self.avg_interval,
            "minInterval": self.min_interval,
            "maxInterval": self.max_interval,
            "minAmount": self.min_amount,
            "maxAmount": self.max_amount,
            "avgAmount": self.avg_amount,
            "amountVariance": self.amount_variance,
            "sampleDates": [d.isoformat() for d in self.sample_dates],
            "sampleAmounts": list(self.sample_amounts),
        }
