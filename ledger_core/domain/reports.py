"""
Report engine: trial balance, profit and loss, general ledger, AR/AP aging
and burn rate.

Every report is recomputed from derived journal lines per call. Amounts are
accumulated exactly and rounded to cents only when the report is assembled.
"""

from dataclasses import asdict, dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from .chart import ChartOfAccounts
from .deriver import JournalLineDeriver
from .services import ICustomerRepository, IExpenseRepository, IInvoiceRepository
from .value_objects import (
    CENT,
    PROFIT_AND_LOSS_TYPES,
    ZERO,
    AccountType,
    Basis,
    round_money,
    to_decimal,
)


def _plain(value: Any) -> Any:
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_plain(v) for v in value]
    return value


class _Report:
    def to_dict(self) -> dict:
        """Plain nested structure (ISO dates, enum values, Decimal amounts)."""
        return _plain(asdict(self))


@dataclass
class TrialBalanceRow:
    code: str
    name: str
    type: AccountType
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    balance: Decimal = ZERO


@dataclass
class TrialBalanceReport(_Report):
    basis: Basis
    from_date: date
    to_date: date
    accounts: list[TrialBalanceRow]
    total_debit: Decimal
    total_credit: Decimal

    @property
    def difference(self) -> Decimal:
        return abs(self.total_debit - self.total_credit)

    def is_balanced(self, tolerance: Decimal = CENT) -> bool:
        return self.difference < tolerance


@dataclass
class ProfitAndLossRow:
    section: str  # revenue, cogs, expense
    code: str
    name: str
    amount: Decimal


@dataclass
class ProfitAndLossReport(_Report):
    basis: Basis
    from_date: date
    to_date: date
    rows: list[ProfitAndLossRow]
    revenue: Decimal
    cogs: Decimal
    gross_profit: Decimal
    expenses: Decimal
    net_income: Decimal


@dataclass
class GeneralLedgerEntry:
    date: date
    account_code: str
    account_name: str
    description: str
    debit: Decimal
    credit: Decimal
    source_type: str
    source_id: str


@dataclass
class GeneralLedgerReport(_Report):
    basis: Basis
    from_date: date
    to_date: date
    account_filter: str | None
    entries: list[GeneralLedgerEntry]


AGING_BUCKETS = ("current", "bucket_1_30", "bucket_31_60", "bucket_61_90", "bucket_over_90")


@dataclass
class AgingRow:
    key: str
    name: str
    current: Decimal = ZERO
    bucket_1_30: Decimal = ZERO
    bucket_31_60: Decimal = ZERO
    bucket_61_90: Decimal = ZERO
    bucket_over_90: Decimal = ZERO
    total: Decimal = ZERO

    def add(self, bucket: str, amount: Decimal) -> None:
        setattr(self, bucket, getattr(self, bucket) + amount)
        self.total += amount

    def rounded(self) -> "AgingRow":
        return AgingRow(
            key=self.key,
            name=self.name,
            **{bucket: round_money(getattr(self, bucket)) for bucket in AGING_BUCKETS},
            total=round_money(self.total),
        )


@dataclass
class AgingReport(_Report):
    as_of: date
    rows: list[AgingRow]
    totals: AgingRow = field(default_factory=lambda: AgingRow(key="TOTAL", name="Total"))


@dataclass
class BurnRateReport(_Report):
    from_date: date
    to_date: date
    total: Decimal
    days: int
    daily: Decimal
    monthly: Decimal


def aging_bucket(days: int) -> str:
    """Bucket for a number of days past due (or since the expense date)."""
    if days <= 0:
        return "current"
    if days <= 30:
        return "bucket_1_30"
    if days <= 60:
        return "bucket_31_60"
    if days <= 90:
        return "bucket_61_90"
    return "bucket_over_90"


def _aging(as_of: date, items: list[tuple[str, str, date, Decimal]]) -> AgingReport:
    """Group (key, name, reference date, amount) tuples into aging buckets."""
    rows: dict[str, AgingRow] = {}
    for key, name, reference, amount in items:
        row = rows.setdefault(key, AgingRow(key=key, name=name))
        days = max(0, (as_of - reference).days)
        row.add(aging_bucket(days), amount)

    ordered = sorted(rows.values(), key=lambda r: r.name)
    totals = AgingRow(key="TOTAL", name="Total")
    for row in ordered:
        for bucket in AGING_BUCKETS:
            totals.add(bucket, getattr(row, bucket))

    return AgingReport(
        as_of=as_of,
        rows=[row.rounded() for row in ordered],
        totals=totals.rounded(),
    )


class ReportEngine:
    """
    Service - financial reports over the derived ledger.
    """

    def __init__(
        self,
        deriver: JournalLineDeriver,
        chart: ChartOfAccounts,
        invoices: IInvoiceRepository,
        expenses: IExpenseRepository,
        customers: ICustomerRepository,
    ):
        self.deriver = deriver
        self.chart = chart
        self.invoices = invoices
        self.expenses = expenses
        self.customers = customers

    def trial_balance(
        self, org_id: str, from_date: date, to_date: date, basis: Basis = Basis.ACCRUAL
    ) -> TrialBalanceReport:
        basis = Basis(basis)
        rows: dict[str, TrialBalanceRow] = {}
        total_debit = ZERO
        total_credit = ZERO

        for line in self.deriver.build_journal_lines(org_id, from_date, to_date, basis):
            account = self.chart.get_account(line.account_code)
            row = rows.setdefault(
                account.code, TrialBalanceRow(code=account.code, name=account.name, type=account.type)
            )
            row.debit += line.debit
            row.credit += line.credit
            total_debit += line.debit
            total_credit += line.credit

        accounts = []
        for code in sorted(rows):
            row = rows[code]
            balance = self.chart.get_account(code).signed_balance(row.debit, row.credit)
            accounts.append(
                TrialBalanceRow(
                    code=row.code,
                    name=row.name,
                    type=row.type,
                    debit=round_money(row.debit),
                    credit=round_money(row.credit),
                    balance=round_money(balance),
                )
            )

        return TrialBalanceReport(
            basis=basis,
            from_date=from_date,
            to_date=to_date,
            accounts=accounts,
            total_debit=round_money(total_debit),
            total_credit=round_money(total_credit),
        )

    def profit_and_loss(
        self, org_id: str, from_date: date, to_date: date, basis: Basis = Basis.ACCRUAL
    ) -> ProfitAndLossReport:
        basis = Basis(basis)
        amounts: dict[str, Decimal] = {}
        for line in self.deriver.build_journal_lines(org_id, from_date, to_date, basis):
            account = self.chart.get_account(line.account_code)
            if account.type not in PROFIT_AND_LOSS_TYPES:
                continue
            if account.type == AccountType.INCOME:
                delta = line.credit - line.debit
            else:
                delta = line.debit - line.credit
            amounts[account.code] = amounts.get(account.code, ZERO) + delta

        sections = {AccountType.INCOME: "revenue", AccountType.COGS: "cogs", AccountType.EXPENSE: "expense"}
        totals = {"revenue": ZERO, "cogs": ZERO, "expense": ZERO}
        rows = []
        for code in sorted(amounts):
            account = self.chart.get_account(code)
            section = sections[account.type]
            totals[section] += amounts[code]
            rows.append(ProfitAndLossRow(section, code, account.name, round_money(amounts[code])))

        gross_profit = totals["revenue"] - totals["cogs"]
        net_income = gross_profit - totals["expense"]
        return ProfitAndLossReport(
            basis=basis,
            from_date=from_date,
            to_date=to_date,
            rows=rows,
            revenue=round_money(totals["revenue"]),
            cogs=round_money(totals["cogs"]),
            gross_profit=round_money(gross_profit),
            expenses=round_money(totals["expense"]),
            net_income=round_money(net_income),
        )

    def general_ledger(
        self,
        org_id: str,
        from_date: date,
        to_date: date,
        basis: Basis = Basis.ACCRUAL,
        account_code: str | None = None,
    ) -> GeneralLedgerReport:
        basis = Basis(basis)
        lines = self.deriver.build_journal_lines(org_id, from_date, to_date, basis)
        if account_code:
            lines = [line for line in lines if line.account_code == account_code]

        entries = []
        # sorted() is stable: same-day lines keep derivation order
        for line in sorted(lines, key=lambda l: l.date):
            account = self.chart.get_account(line.account_code)
            entries.append(
                GeneralLedgerEntry(
                    date=line.date,
                    account_code=account.code,
                    account_name=account.name,
                    description=line.description,
                    debit=round_money(line.debit),
                    credit=round_money(line.credit),
                    source_type=line.source_type.value,
                    source_id=line.source_id,
                )
            )

        return GeneralLedgerReport(
            basis=basis,
            from_date=from_date,
            to_date=to_date,
            account_filter=account_code,
            entries=entries,
        )

    def ar_aging(self, org_id: str, as_of: date) -> AgingReport:
        """Open invoices by customer and days past due."""
        invoices = [inv for inv in self.invoices.list_open(org_id) if inv.is_open]
        customers = self.customers.get_by_ids(org_id, {inv.customer_id for inv in invoices})

        def customer_name(customer_id: str) -> str:
            customer = customers.get(customer_id)
            return customer.name if customer else "Unknown customer"

        return _aging(
            as_of,
            [
                (inv.customer_id, customer_name(inv.customer_id), inv.due_date, to_decimal(inv.total))
                for inv in invoices
            ],
        )

    def ap_aging(self, org_id: str, as_of: date) -> AgingReport:
        """
        Non-voided expenses by category. Expenses carry no due date, so the
        age is counted from the expense date.
        """
        items = []
        for expense in self.expenses.list_active(org_id):
            if expense.is_voided:
                continue
            key = expense.category or "uncategorized"
            name = expense.category or "Uncategorized"
            items.append((key, name, expense.date, to_decimal(expense.amount)))
        return _aging(as_of, items)

    def burn_rate(self, org_id: str, from_date: date, to_date: date) -> BurnRateReport:
        """Average daily expense outflow, extrapolated flat to 30 days."""
        total = ZERO
        for line in self.deriver.build_journal_lines(org_id, from_date, to_date, Basis.ACCRUAL):
            account = self.chart.get_account(line.account_code)
            if account.type in (AccountType.EXPENSE, AccountType.COGS):
                total += line.debit - line.credit

        days = max(1, (to_date - from_date).days + 1)
        daily = total / days
        return BurnRateReport(
            from_date=from_date,
            to_date=to_date,
            total=round_money(total),
            days=days,
            daily=round_money(daily),
            monthly=round_money(daily * 30),
        )

