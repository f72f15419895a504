"""
exclusion_rules.py
-------------------
Concrete exclusion rules and the rule engine that applies them.

A hard exclusion forces should_detect = False no matter how clean the
merchant's statistics are. Rules consume the category tag supplied by the
merchant-grouping subsystem; they never look at merchant names.

A missing or unrecognized tag fails open: the merchant is not excluded,
but the verdict is marked category_known = False so the decision composer
can downgrade confidence.
"""

import logging
from collections.abc import Mapping
from typing import List, Optional

from core.models import ExclusionVerdict, MerchantCategory
from core.taxonomy import CategoryTaxonomy
from exclusions.base_rule import BaseExclusionRule

logger = logging.getLogger(__name__)


# =============================================================================
# INTEREST ACCRUAL
# =============================================================================
class InterestAccrualRule(BaseExclusionRule):
    """
    Bank-generated interest credits and charges. Often penny-level and
    perfectly monthly, but never a user-facing bill or income stream.
    """

    def __init__(self, taxonomy: CategoryTaxonomy):
        super().__init__(MerchantCategory.interest_accrual, taxonomy)

    def _get_reason(self) -> str:
        return "interest accrual is bank-generated, not a user-facing bill"


# =============================================================================
# INTERNAL TRANSFER
# =============================================================================
class InternalTransferRule(BaseExclusionRule):
    """
    Movements between the user's own accounts and instruments
    ("Transfer To/From ...", "Recurring Transfer To ...").
    """

    def __init__(self, taxonomy: CategoryTaxonomy):
        super().__init__(MerchantCategory.internal_transfer, taxonomy)

    def _get_reason(self) -> str:
        return "internal transfer between the user's own accounts"


# =============================================================================
# CREDIT CARD PAYMENT
# =============================================================================
class CreditCardPaymentRule(BaseExclusionRule):
    """
    Reconciliation leg of a card payment ("Credit Card Payment",
    "*Card Epay"). Amount and timing mirror the paired card's statement
    balance rather than a fixed recurring charge.
    """

    def __init__(self, taxonomy: CategoryTaxonomy):
        super().__init__(MerchantCategory.credit_card_payment, taxonomy)

    def _get_reason(self) -> str:
        return "credit card payment mirrors a statement balance, not a recurring charge"


def get_all_rules(taxonomy: CategoryTaxonomy | None = None) -> List[BaseExclusionRule]:
    """Returns one instance of every exclusion rule, sharing one taxonomy."""
    taxonomy = taxonomy or CategoryTaxonomy()
    return [
        InterestAccrualRule(taxonomy),
        InternalTransferRule(taxonomy),
        CreditCardPaymentRule(taxonomy),
    ]


# =============================================================================
# RULE ENGINE
# =============================================================================
class ExclusionRuleEngine:
    """
    Usage:
        engine = ExclusionRuleEngine()
        verdict = engine.evaluate(merchant_group_id, {merchant_group_id: "interest"})
    """

    def __init__(self, taxonomy: CategoryTaxonomy | None = None):
        self.taxonomy = taxonomy or CategoryTaxonomy()
        self.rules = get_all_rules(self.taxonomy)

    def evaluate(self, merchant_group_id: int, categories: Optional[Mapping] = None) -> ExclusionVerdict:
        """
        Args:
            merchant_group_id: The merchant group to check.
            categories: Lookup of merchant_group_id -> category tag. Keys may
                be ints or their string form (as read from JSON/YAML).

        Returns:
            ExclusionVerdict. excluded is True only for a known category
            with an enabled rule.
        """
        tag = self._lookup_tag(merchant_group_id, categories)
        category = self.taxonomy.resolve(tag)

        if category is None:
            if tag is not None:
                logger.debug(f"Merchant group {merchant_group_id}: unrecognized category tag {tag!r}.")
            return ExclusionVerdict(excluded=False, category=None, category_known=False)

        for rule in self.rules:
            if rule.applies(category):
                return ExclusionVerdict(
                    excluded=True,
                    category=category,
                    category_known=True,
                    reason=rule.reason,
                )

        return ExclusionVerdict(excluded=False, category=category, category_known=True)

    @staticmethod
    def _lookup_tag(merchant_group_id: int, categories: Optional[Mapping]):
        if not categories:
            return None
        if merchant_group_id in categories:
            return categories[merchant_group_id]
        return categories.get(str(merchant_group_id))
