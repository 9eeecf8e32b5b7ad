# referrals/categories.py
"""
Investment categories and the two tables hanging off them:

    commission rate (%)  bronze 5, silver 7, gold 9, platinum 10, diamond 11, elite 12.5
    upgrade threshold    silver 10k, gold 50k, platinum 200k, diamond 1M, elite 10M

Tables are read-only mappings; use the lookup functions below.
"""
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Optional


class Category(Enum):
    """Ordered investment tiers."""
    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"
    PLATINUM = "platinum"
    DIAMOND = "diamond"
    ELITE = "elite"


CATEGORY_ORDER = tuple(c.value for c in Category)

# 1-based, unknown names are 0
CATEGORY_LEVELS = MappingProxyType({name: index + 1 for index, name in enumerate(CATEGORY_ORDER)})

COMMISSION_RATES = MappingProxyType({
    Category.BRONZE.value: Decimal("5"),
    Category.SILVER.value: Decimal("7"),
    Category.GOLD.value: Decimal("9"),
    Category.PLATINUM.value: Decimal("10"),
    Category.DIAMOND.value: Decimal("11"),
    Category.ELITE.value: Decimal("12.5"),
})

# ascending; bronze is the entry tier and has no threshold
UPGRADE_THRESHOLDS = (
    (Category.SILVER.value, Decimal("10000")),
    (Category.GOLD.value, Decimal("50000")),
    (Category.PLATINUM.value, Decimal("200000")),
    (Category.DIAMOND.value, Decimal("1000000")),
    (Category.ELITE.value, Decimal("10000000")),
)

MONTHLY_ROI_RATE = Decimal("0.10")


class UnknownCategoryError(ValueError):
    pass


def is_valid_category(category) -> bool:
    return category in CATEGORY_LEVELS


def category_level(category: str) -> int:
    return CATEGORY_LEVELS.get(category, 0)


def rate_for_category(category: str) -> Decimal:
    """Commission percentage a referrer of this category earns on new referrals."""
    try:
        return COMMISSION_RATES[category]
    except KeyError:
        raise UnknownCategoryError(f"Unknown category: {category!r}") from None


def can_refer_into(referrer_category: str, new_category: str) -> bool:
    """New users may sit at most one tier above their referrer."""
    return category_level(new_category) <= category_level(referrer_category) + 1


def target_category(current: str, total_investment: Decimal) -> Optional[str]:
    """
    Highest tier whose threshold `total_investment` meets and which ranks above
    `current`. None when no promotion is due. Never returns a lower tier.
    """
    current_level = category_level(current)
    target = None
    for category, threshold in UPGRADE_THRESHOLDS:
        if total_investment >= threshold and category_level(category) > current_level:
            target = category
    return target
