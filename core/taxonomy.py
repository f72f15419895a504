"""
taxonomy.py
------------
Category taxonomy lookup layer.

Loads the category_taxonomy table from config.yaml and builds a lookup
index from normalized tag (canonical name or alias) to MerchantCategory.
This is the bridge between the tags supplied by the merchant-grouping
subsystem and the exclusion rules.

Taxonomy updates happen in config.yaml; no code changes required.
"""

from typing import Dict, Optional

from core.models import MerchantCategory
from config.config_loader import get_category_taxonomy


def normalize_tag(tag: str) -> str:
    """Lowercase; spaces and hyphens become underscores."""
    return "_".join(str(tag).strip().lower().replace("-", " ").split())


class CategoryTaxonomy:
    """
    Lookup from a free-form category tag to a MerchantCategory.

    Built once at init from the config taxonomy table. Read-only afterwards.
    """

    def __init__(self):
        self._index: Dict[str, MerchantCategory] = {}
        self._excluded: set[MerchantCategory] = set()
        self._load_taxonomy()

    def _load_taxonomy(self) -> None:
        """Builds the lookup index from config."""
        for entry in get_category_taxonomy():
            category = MerchantCategory(entry["category"])
            self._index[normalize_tag(category.value)] = category
            for alias in entry.get("aliases") or []:
                # Canonical names take precedence over aliases
                self._index.setdefault(normalize_tag(alias), category)
            if entry.get("excluded", False):
                self._excluded.add(category)

    def resolve(self, tag) -> Optional[MerchantCategory]:
        """
        Args:
            tag: MerchantCategory, tag string, or None.

        Returns:
            The matching MerchantCategory, or None when the tag is missing
            or not in the taxonomy.
        """
        if tag is None:
            return None
        if isinstance(tag, MerchantCategory):
            return tag
        key = normalize_tag(tag)
        if not key:
            return None
        return self._index.get(key)

    def is_excluded(self, category: Optional[MerchantCategory]) -> bool:
        return category in self._excluded

    def excluded_categories(self) -> set[MerchantCategory]:
        return set(self._excluded)

    def __len__(self) -> int:
        return len(self._index)

    def __repr__(self) -> str:
        return f"CategoryTaxonomy(tags={len(self)}, excluded={sorted(c.value for c in self._excluded)})"
