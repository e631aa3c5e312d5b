"""
Chart of Accounts registry.

The chart is a small read-only lookup table injected wherever account
metadata is needed, so alternate charts can be substituted in tests.
"""

from collections.abc import Iterable, Iterator

from .entities import Account
from .exceptions import UnknownAccountError
from .value_objects import AccountCode, AccountType

# Well-known codes referenced by posting rules.
BANK_OPERATING = AccountCode("1000")
ACCOUNTS_RECEIVABLE = AccountCode("1100")
ACCOUNTS_PAYABLE = AccountCode("2000")
PAYROLL_LIABILITIES = AccountCode("2100")
REVENUE_PRODUCTS = AccountCode("4000")
REVENUE_SUBSCRIPTIONS = AccountCode("4010")
COGS_PRODUCTION = AccountCode("5010")
PAYROLL_WAGES = AccountCode("6000")
RENT = AccountCode("6100")
SOFTWARE = AccountCode("6200")
MARKETING = AccountCode("6300")
OFFICE_SUPPLIES = AccountCode("6400")
MISCELLANEOUS_EXPENSE = AccountCode("6999")

_CURRENT_ASSETS = "Current Assets"
_CURRENT_LIABILITIES = "Current Liabilities"
_OPERATING_EXPENSES = "Operating Expenses"

DEFAULT_ACCOUNTS: list[tuple[str, str, AccountType, str]] = [
    ("1000", "Bank: Operating", AccountType.ASSET, _CURRENT_ASSETS),
    ("1100", "Accounts Receivable", AccountType.ASSET, _CURRENT_ASSETS),
    ("1200", "Prepayments", AccountType.ASSET, _CURRENT_ASSETS),
    ("2000", "Accounts Payable", AccountType.LIABILITY, _CURRENT_LIABILITIES),
    ("2100", "Payroll Liabilities", AccountType.LIABILITY, _CURRENT_LIABILITIES),
    ("3000", "Owner Equity", AccountType.EQUITY, "Equity"),
    ("3100", "Retained Earnings", AccountType.EQUITY, "Equity"),
    ("4000", "Revenue: Products", AccountType.INCOME, "Revenue"),
    ("4010", "Revenue: Subscriptions", AccountType.INCOME, "Revenue"),
    ("4020", "Other Income", AccountType.INCOME, "Revenue"),
    ("5000", "COGS: Materials", AccountType.COGS, "Cost of Goods Sold"),
    ("5010", "COGS: Production Costs", AccountType.COGS, "Cost of Goods Sold"),
    ("6000", "Payroll: Wages", AccountType.EXPENSE, _OPERATING_EXPENSES),
    ("6010", "Payroll: Taxes & Super", AccountType.EXPENSE, _OPERATING_EXPENSES),
    ("6100", "Rent", AccountType.EXPENSE, _OPERATING_EXPENSES),
    ("6200", "Software", AccountType.EXPENSE, _OPERATING_EXPENSES),
    ("6300", "Marketing", AccountType.EXPENSE, _OPERATING_EXPENSES),
    ("6400", "Office Supplies", AccountType.EXPENSE, _OPERATING_EXPENSES),
    ("6999", "Miscellaneous Expenses", AccountType.EXPENSE, _OPERATING_EXPENSES),
]

# Accounts accepted for manual entries on top of the default chart.
FALLBACK_EXTRA_ACCOUNTS: list[tuple[str, str, AccountType, str]] = [
    ("1300", "Inventory", AccountType.ASSET, _CURRENT_ASSETS),
    ("1800", "Fixed Assets: Equipment", AccountType.ASSET, "Fixed Assets"),
    ("1850", "Accumulated Depreciation", AccountType.ASSET, "Fixed Assets"),
    ("2200", "Credit Card", AccountType.LIABILITY, _CURRENT_LIABILITIES),
    ("6310", "Meals & Entertainment", AccountType.EXPENSE, _OPERATING_EXPENSES),
    ("6500", "Travel", AccountType.EXPENSE, _OPERATING_EXPENSES),
    ("6700", "Utilities", AccountType.EXPENSE, _OPERATING_EXPENSES),
    ("6800", "Legal & Professional Fees", AccountType.EXPENSE, _OPERATING_EXPENSES),
    ("6900", "Repairs & Maintenance", AccountType.EXPENSE, _OPERATING_EXPENSES),
]


class ChartOfAccounts:
    """Read-only mapping of account code to :class:`Account`."""

    def __init__(self, accounts: Iterable[Account]):
        self._accounts: dict[str, Account] = {}
        for account in accounts:
            if account.code in self._accounts:
                raise ValueError(f"Duplicate account code {account.code}")
            self._accounts[account.code] = account

    def get_account(self, code: str) -> Account:
        try:
            return self._accounts[code]
        except KeyError:
            raise UnknownAccountError(code) from None

    def has_account(self, code: str) -> bool:
        return code in self._accounts

    def accounts(self) -> list[Account]:
        return sorted(self._accounts.values(), key=lambda a: a.code)

    def __contains__(self, code: object) -> bool:
        return code in self._accounts

    def __iter__(self) -> Iterator[Account]:
        return iter(self.accounts())

    def __len__(self) -> int:
        return len(self._accounts)


def _build(rows: Iterable[tuple[str, str, AccountType, str]]) -> ChartOfAccounts:
    return ChartOfAccounts(
        Account(code=AccountCode(code), name=name, type=acc_type, group=group)
        for code, name, acc_type, group in rows
    )


def default_chart() -> ChartOfAccounts:
    """Standard chart used by the derived ledger."""
    return _build(DEFAULT_ACCOUNTS)


def fallback_chart() -> ChartOfAccounts:
    """Static chart used to resolve manual entries when an org has no chart."""
    return _build(DEFAULT_ACCOUNTS + FALLBACK_EXTRA_ACCOUNTS)
