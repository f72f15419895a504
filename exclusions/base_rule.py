"""
base_rule.py
-------------
Abstract base class for all exclusion rules.

Each concrete rule (interest accrual, internal transfer, card payment)
inherits from this. A rule owns one MerchantCategory and the reason
template shown when it fires. Whether the rule is enabled comes from the
category's `excluded` flag in config.yaml.

Concrete rules only need to implement:
    - _get_reason(): human-readable explanation for the exclusion
"""

from abc import ABC, abstractmethod
from typing import Optional

from core.models import MerchantCategory
from core.taxonomy import CategoryTaxonomy


class BaseExclusionRule(ABC):
    """
    Abstract base for exclusion rules.

    Subclasses implement _get_reason(). This class handles category
    matching against the taxonomy.
    """

    def __init__(self, category: MerchantCategory, taxonomy: CategoryTaxonomy):
        self.category = category
        self.taxonomy = taxonomy

    def applies(self, category: Optional[MerchantCategory]) -> bool:
        """True when the merchant's category is this rule's and the rule is enabled."""
        return category is self.category and self.taxonomy.is_excluded(category)

    @property
    def reason(self) -> str:
        return self._get_reason()

    @abstractmethod
    def _get_reason(self) -> str:
        ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}(category={self.category.value})"
