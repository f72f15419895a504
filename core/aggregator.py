"""
aggregator.py
--------------
Per-merchant aggregator. Partitions normalized transactions by
merchant_group_id and orders each partition by date.

Ordering is total: ties on date are broken by transaction id, so the same
transaction set always yields the same series regardless of input order.
Ungrouped transactions are dropped here; they can never be classified.
"""

import logging
from datetime import date, timedelta
from typing import List, Sequence

import pandas as pd

from core.models import MerchantSeries, Transaction
from config.config_loader import get_aggregation_config

logger = logging.getLogger(__name__)


def _id_sort_key(txn_id) -> tuple:
    # Integer ids sort numerically, and before any non-integer id.
    if isinstance(txn_id, int) and not isinstance(txn_id, bool):
        return (0, txn_id, "")
    return (1, 0, str(txn_id))


class MerchantAggregator:
    """
    Groups transactions into one MerchantSeries per merchant group.

    Usage:
        series = MerchantAggregator().aggregate(transactions, as_of_date)
    """

    def __init__(self, lookback_days: int | None = None):
        """
        Args:
            lookback_days: Only keep transactions within this many days of
                the as-of date. If None, uses config default (which may be
                null for the full history).
        """
        self.config = get_aggregation_config()
        self.lookback_days = lookback_days if lookback_days is not None else self.config["lookback_days"]
        self.unknown_name = self.config["unknown_merchant_name"]

    # -------------------------------------------------------------------------
    # PUBLIC INTERFACE
    # -------------------------------------------------------------------------

    def aggregate(self, transactions: Sequence[Transaction], as_of_date: date | None = None) -> List[MerchantSeries]:
        """
        Args:
            transactions: Normalized transactions (grouped and ungrouped).
            as_of_date: Reference date for the look-back window. Only used
                when a window is configured.

        Returns:
            MerchantSeries list ordered by merchant_group_id.
        """
        df = self._prepare(transactions, as_of_date)
        if df.empty:
            return []

        results: List[MerchantSeries] = []
        for merchant_group_id, group in df.groupby("merchant_group_id", sort=True):
            ordered = [transactions[i] for i in group["position"]]
            results.append(MerchantSeries(
                merchant_group_id=int(merchant_group_id),
                display_name=self._display_name(ordered),
                transactions=ordered,
            ))

        logger.debug(f"Aggregated {len(df):,} transactions into {len(results):,} merchant series.")
        return results

    # -------------------------------------------------------------------------
    # INTERNAL
    # -------------------------------------------------------------------------

    def _prepare(self, transactions: Sequence[Transaction], as_of_date: date | None) -> pd.DataFrame:
        """Builds the sortable frame: one row per grouped, in-window transaction."""
        id_rank = {
            txn_id: rank
            for rank, txn_id in enumerate(sorted({t.id for t in transactions}, key=_id_sort_key))
        }

        rows = [
            {
                "position": position,
                "merchant_group_id": t.merchant_group_id,
                "date": t.date,
                "id_rank": id_rank[t.id],
            }
            for position, t in enumerate(transactions)
            if t.is_grouped and self._in_window(t.date, as_of_date)
        ]
        if not rows:
            return pd.DataFrame(columns=["position", "merchant_group_id", "date", "id_rank"])

        df = pd.DataFrame(rows)
        return df.sort_values(
            ["merchant_group_id", "date", "id_rank"], kind="mergesort"
        ).reset_index(drop=True)

    def _in_window(self, txn_date: date, as_of_date: date | None) -> bool:
        if self.lookback_days is None or as_of_date is None:
            return True
        cutoff = as_of_date - timedelta(days=int(self.lookback_days))
        return cutoff <= txn_date <= as_of_date

    def _display_name(self, ordered: List[Transaction]) -> str:
        for t in ordered:
            if t.merchant_display_name:
                return t.merchant_display_name
        return self.unknown_name
