"""
Capital-asset heuristic for large expenses.

A large purchase whose description names a durable good is usually
depreciated rather than expensed; the month-end review surfaces those.
"""

import re
from dataclasses import dataclass
from decimal import Decimal

from .value_objects import Severity, to_decimal

ASSET_REVIEW_MINIMUM = Decimal("1000")
GENERIC_ASSET_MINIMUM = Decimal("2000")

# category -> (keywords, useful life in years)
ASSET_KEYWORDS: dict[str, tuple[tuple[str, ...], int]] = {
    "computers": (
        ("laptop", "macbook", "computer", "imac", "pc", "dell", "lenovo", "hp laptop", "thinkpad"),
        3,
    ),
    "furniture": (
        ("desk", "chair", "table", "cabinet", "shelving", "furniture", "standing desk"),
        7,
    ),
    "equipment": (("printer", "scanner", "projector", "monitor", "equipment", "display"), 5),
    "vehicles": (("vehicle", "car", "truck", "van", "auto"), 5),
    "machinery": (("machine", "tool", "apparatus"), 7),
}


@dataclass(frozen=True, slots=True)
class AssetFlag:
    category: str | None
    useful_life: int | None
    severity: Severity
    message: str
    suggestion: str


def _mentions(text: str, keyword: str) -> bool:
    # Prefix word boundary so "pc" does not match "spice" but "laptops" still matches.
    return re.search(r"\b" + re.escape(keyword), text) is not None


def check_possible_asset(description: str | None, amount) -> AssetFlag | None:
    """Return a flag when the expense looks like a capital asset, else None."""
    amount = to_decimal(amount)
    if amount < ASSET_REVIEW_MINIMUM:
        return None

    text = (description or "").lower()
    for category, (keywords, useful_life) in ASSET_KEYWORDS.items():
        if any(_mentions(text, keyword) for keyword in keywords):
            return AssetFlag(
                category=category,
                useful_life=useful_life,
                severity=Severity.MEDIUM,
                message=f"This looks like {category} and may be a capital asset",
                suggestion=(
                    f"Large purchases of {category} are typically depreciated over "
                    f"{useful_life} years rather than expensed immediately."
                ),
            )

    if amount > GENERIC_ASSET_MINIMUM:
        return AssetFlag(
            category=None,
            useful_life=None,
            severity=Severity.LOW,
            message="Large purchase over $2,000",
            suggestion=(
                "Verify if this should be classified as a capital asset "
                "(equipment, furniture, etc.) for depreciation."
            ),
        )
    return None
