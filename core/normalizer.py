"""
normalizer.py
--------------
Transaction ingest normalizer. First stage of the engine.

Validates and coerces raw transaction records (dicts or DataFrame rows)
into Transaction objects. Two record shapes are accepted:

    - the external fixture shape: id, date, amount, type, merchantGroupId,
      merchantDisplayName
    - the storage shape: id, date, total_amount, transaction_type,
      merchant_group_id, merchant_groups.display_name, account_id,
      credit_card_id

A record that fails validation is skipped and reported; it never aborts the
run. Input that is not a collection of records at all raises InputError.
"""

import logging
import math
import numbers
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, List, Optional

import numpy as np
import pandas as pd

from core.models import Direction, InputError, Transaction, ValidationError

logger = logging.getLogger(__name__)


_ID_FIELDS = ("id", "transaction_id", "transactionId")
_DATE_FIELDS = ("date", "transaction_date", "transactionDate")
_AMOUNT_FIELDS = ("amount", "total_amount", "totalAmount")
_DIRECTION_FIELDS = ("type", "transaction_type", "transactionType", "direction")
_GROUP_FIELDS = ("merchantGroupId", "merchant_group_id")
_NAME_FIELDS = ("merchantDisplayName", "merchant_display_name", "merchantName", "merchant_name")
_ACCOUNT_FIELDS = ("accountId", "account_id")
_INSTRUMENT_FIELDS = ("instrumentId", "creditCardId", "credit_card_id")


@dataclass(frozen=True)
class SkippedRecord:
    """A raw record rejected by validation."""
    index: int                       # Position in the input
    record_id: Any
    message: str


@dataclass
class NormalizationResult:
    transactions: List[Transaction] = field(default_factory=list)
    skipped: List[SkippedRecord] = field(default_factory=list)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)

    @property
    def ungrouped_count(self) -> int:
        return sum(1 for t in self.transactions if not t.is_grouped)

    @property
    def grouped(self) -> List[Transaction]:
        return [t for t in self.transactions if t.is_grouped]


class TransactionNormalizer:
    """
    Turns raw records into validated Transactions.

    Usage:
        result = TransactionNormalizer().normalize(records)
        result.transactions, result.skipped
    """

    # -------------------------------------------------------------------------
    # PUBLIC INTERFACE
    # -------------------------------------------------------------------------

    def normalize(self, records) -> NormalizationResult:
        """
        Normalize a collection of raw transaction records.

        Args:
            records: Iterable of mappings, or a pandas DataFrame.

        Returns:
            NormalizationResult with the valid transactions (grouped and
            ungrouped) and the skipped records.

        Raises:
            InputError: If the input is not a collection of mappings.
        """
        result = NormalizationResult()
        seen_ids: set = set()

        for index, record in enumerate(self._iter_records(records)):
            try:
                txn = self.normalize_record(record)
                if txn.id in seen_ids:
                    raise ValidationError(f"Duplicate transaction id {txn.id!r}", txn.id)
            except ValidationError as e:
                result.skipped.append(SkippedRecord(index=index, record_id=e.record_id, message=str(e)))
                continue
            seen_ids.add(txn.id)
            result.transactions.append(txn)

        if result.skipped:
            logger.warning(f"Skipped {result.skipped_count:,} invalid transaction records.")
        logger.debug(
            f"Normalized {len(result.transactions):,} transactions "
            f"({result.ungrouped_count:,} without a merchant group)."
        )
        return result

    def normalize_record(self, record: Mapping) -> Transaction:
        """
        Validate and coerce a single record.

        Raises:
            ValidationError: On a missing or non-scalar id, unparseable date,
                missing, negative or overflowing amount, unknown direction,
                or non-integer group id.
        """
        record_id = _clean(_first(record, _ID_FIELDS))
        if record_id is None:
            raise ValidationError("Transaction id is missing")
        if isinstance(record_id, float) and record_id.is_integer():
            record_id = int(record_id)
        if isinstance(record_id, bool) or not isinstance(record_id, (str, int)):
            raise ValidationError(f"Transaction id {record_id!r} is not a string or integer")

        return Transaction(
            id=record_id,
            date=_parse_date(_first(record, _DATE_FIELDS), record_id),
            amount=_parse_amount(_first(record, _AMOUNT_FIELDS), record_id),
            direction=_parse_direction(_first(record, _DIRECTION_FIELDS), record_id),
            merchant_group_id=_parse_optional_int(_first(record, _GROUP_FIELDS), "merchant group id", record_id),
            merchant_display_name=_display_name(record),
            account_id=_parse_optional_int(_first(record, _ACCOUNT_FIELDS), "account id", record_id),
            credit_card_id=_parse_optional_int(_first(record, _INSTRUMENT_FIELDS), "instrument id", record_id),
        )

    # -------------------------------------------------------------------------
    # INTERNAL: INPUT SHAPE
    # -------------------------------------------------------------------------

    @staticmethod
    def _iter_records(records):
        if isinstance(records, pd.DataFrame):
            yield from records.to_dict(orient="records")
            return

        if records is None or isinstance(records, (str, bytes, Mapping)) or not isinstance(records, Iterable):
            raise InputError(
                f"Expected a collection of transaction records, got {type(records).__name__}"
            )

        for index, record in enumerate(records):
            if not isinstance(record, Mapping):
                raise InputError(
                    f"Record at position {index} is a {type(record).__name__}, not a mapping"
                )
            yield record


# -----------------------------------------------------------------------------
# FIELD PARSERS
# -----------------------------------------------------------------------------

def _is_missing(value) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return value is pd.NaT


def _clean(value):
    """Unwraps numpy scalars and maps NaN/NaT to None."""
    if isinstance(value, np.generic):
        value = value.item()
    return None if _is_missing(value) else value


def _first(record: Mapping, names: tuple):
    for name in names:
        if name in record and not _is_missing(record[name]):
            return record[name]
    return None


def _display_name(record: Mapping) -> Optional[str]:
    name = _first(record, _NAME_FIELDS)
    if name is None:
        nested = record.get("merchant_groups")
        if isinstance(nested, Mapping):
            name = nested.get("display_name")
    if name is None:
        return None
    name = str(name).strip()
    return name or None


def _parse_date(value, record_id) -> date:
    value = _clean(value)
    if value is None:
        raise ValidationError(f"Transaction {record_id!r}: date is missing", record_id)
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        parsed = pd.to_datetime(str(value))
    except (ValueError, TypeError, OverflowError) as e:
        raise ValidationError(f"Transaction {record_id!r}: unparseable date {value!r}", record_id) from e
    if parsed is pd.NaT:
        raise ValidationError(f"Transaction {record_id!r}: unparseable date {value!r}", record_id)
    return parsed.date()


def _parse_amount(value, record_id) -> Decimal:
    value = _clean(value)
    if value is None:
        raise ValidationError(f"Transaction {record_id!r}: amount is missing", record_id)
    if isinstance(value, bool):
        raise ValidationError(f"Transaction {record_id!r}: amount {value!r} is not numeric", record_id)
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation as e:
        raise ValidationError(f"Transaction {record_id!r}: amount {value!r} is not numeric", record_id) from e
    if not amount.is_finite() or not math.isfinite(float(amount)):
        raise ValidationError(f"Transaction {record_id!r}: amount {value!r} is not finite", record_id)
    if amount < 0:
        raise ValidationError(f"Transaction {record_id!r}: amount {amount} is negative", record_id)
    return amount


def _parse_direction(value, record_id) -> Direction:
    value = _clean(value)
    if isinstance(value, Direction):
        return value
    try:
        return Direction(str(value).strip().lower())
    except ValueError as e:
        raise ValidationError(
            f"Transaction {record_id!r}: type {value!r} is not 'income' or 'expense'", record_id
        ) from e


def _parse_optional_int(value, label: str, record_id) -> Optional[int]:
    value = _clean(value)
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValidationError(f"Transaction {record_id!r}: {label} {value!r} is not an integer", record_id)
    if isinstance(value, numbers.Integral):
        return int(value)
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise ValidationError(f"Transaction {record_id!r}: {label} {value!r} is not an integer", record_id)
