"""
Parsing of the free-form expense tag conventions.

Expense tags may carry posting hints:

* ``acct:<code>``  - override the debit account
* ``pay:<mode>``   - how the expense was paid (``bank``, ``cash``, ``ap``...)
* ``factory`` / ``production`` anywhere in a tag - production cost
* ``reviewed:asset`` - a large expense already reviewed for capitalisation
"""

from collections.abc import Iterable

ACCOUNT_OVERRIDE_PREFIX = "acct:"
PAYMENT_MODE_PREFIX = "pay:"
REVIEWED_ASSET_TAG = "reviewed:asset"
DEFAULT_PAYMENT_MODE = "ap"
PRODUCTION_KEYWORDS = ("factory", "production")


def normalize_tags(tags: Iterable[str] | None) -> list[str]:
    return [str(t).strip().lower() for t in (tags or []) if t is not None]


def parse_account_override(tags: Iterable[str] | None) -> str | None:
    """Return the code of the first ``acct:`` tag, or None."""
    for tag in normalize_tags(tags):
        if tag.startswith(ACCOUNT_OVERRIDE_PREFIX):
            code = tag[len(ACCOUNT_OVERRIDE_PREFIX):].strip()
            return code or None
    return None


def parse_payment_mode(tags: Iterable[str] | None) -> str:
    """Return the mode of the first ``pay:`` tag, defaulting to ``ap``."""
    for tag in normalize_tags(tags):
        if tag.startswith(PAYMENT_MODE_PREFIX):
            return tag[len(PAYMENT_MODE_PREFIX):].strip() or DEFAULT_PAYMENT_MODE
    return DEFAULT_PAYMENT_MODE


def has_production_tag(tags: Iterable[str] | None) -> bool:
    joined = " ".join(normalize_tags(tags))
    return any(keyword in joined for keyword in PRODUCTION_KEYWORDS)


def is_reviewed_asset(tags: Iterable[str] | None) -> bool:
    return REVIEWED_ASSET_TAG in normalize_tags(tags)
