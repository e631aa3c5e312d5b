"""
Month-end close engine.

Runs a fixed battery of readiness checks over one calendar month and drives
the period lifecycle: absent (implicitly open) -> closed -> open -> closed...
Only the trial balance check can fail and block a close; every other check
is advisory.
"""

import calendar
import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ledger_core.application.anchoring import (
    ACCOUNTING_PERIOD,
    AnchoringDispatcher,
    period_record,
    prepare_anchor,
)
from ledger_core.application.audit import AuditTrail
from ledger_core.core.config import Settings, get_settings
from ledger_core.domain.asset_rules import check_possible_asset
from ledger_core.domain.entities import Expense
from ledger_core.domain.exceptions import NotFoundError, PeriodNotReadyError, ValidationError
from ledger_core.domain.reports import ReportEngine
from ledger_core.domain.services import IExpenseRepository, IInvoiceRepository, IPayrollRepository
from ledger_core.domain.tags import is_reviewed_asset
from ledger_core.domain.value_objects import (
    ZERO,
    AnchorStatus,
    Basis,
    CheckStatus,
    PeriodStatus,
    Severity,
    round_money,
    to_decimal,
)
from ledger_core.infrastructure.database.models import AccountingPeriod, PeriodCloseCheck, utcnow
from ledger_core.infrastructure.repositories import AccountingPeriodRepository

logger = logging.getLogger(__name__)

LEDGER_EPOCH = date(1970, 1, 1)
MAX_CHECK_ITEMS = 10


def month_bounds(year: int, month: int) -> tuple[date, date]:
    if not 1 <= month <= 12:
        raise ValidationError(f"Invalid month: {month}")
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def previous_month(year: int, month: int) -> tuple[int, int]:
    return (year - 1, 12) if month == 1 else (year, month - 1)


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_plain(v) for v in value]
    return value


@dataclass
class CloseCheck:
    id: str
    name: str
    check_type: str
    status: CheckStatus
    severity: Severity
    message: str
    count: int | None = None
    details: dict[str, Any] | None = None
    items: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return _plain(asdict(self))


@dataclass
class CheckSummary:
    passed: int = 0
    failed: int = 0
    warnings: int = 0
    critical: int = 0


@dataclass
class PeriodInfo:
    year: int
    month: int
    start_date: date
    end_date: date


@dataclass
class MonthEndResult:
    can_close: bool
    checks: list[CloseCheck]
    summary: CheckSummary
    period: PeriodInfo

    def to_dict(self) -> dict[str, Any]:
        return _plain(asdict(self))


@dataclass
class CloseResult:
    period: AccountingPeriod
    checks: list[CloseCheck]
    forced: bool


@dataclass
class PeriodHistory:
    period: AccountingPeriod | None
    checks: list[PeriodCloseCheck]
    history: list[dict[str, Any]]


def _item(expense: Expense, **extra) -> dict[str, Any]:
    item = {
        "id": expense.id,
        "description": expense.description,
        "amount": to_decimal(expense.amount),
        "date": expense.date,
    }
    item.update(extra)
    return item


def summarize(checks: list[CloseCheck]) -> CheckSummary:
    return CheckSummary(
        passed=sum(1 for c in checks if c.status == CheckStatus.PASSED),
        failed=sum(1 for c in checks if c.status == CheckStatus.FAILED),
        warnings=sum(1 for c in checks if c.status == CheckStatus.WARNING),
        critical=sum(
            1 for c in checks if c.severity == Severity.CRITICAL and c.status == CheckStatus.FAILED
        ),
    )


class MonthEndCloseService:
    """
    Application Service - month-end checks, close and reopen.
    """

    def __init__(
        self,
        db: Session,
        report_engine: ReportEngine,
        expenses: IExpenseRepository,
        invoices: IInvoiceRepository,
        payrolls: IPayrollRepository,
        anchoring: AnchoringDispatcher | None = None,
        audit: AuditTrail | None = None,
        settings: Settings | None = None,
    ):
        self.db = db
        self.report_engine = report_engine
        self.expenses = expenses
        self.invoices = invoices
        self.payrolls = payrolls
        self.periods = AccountingPeriodRepository(db)
        self.anchoring = anchoring
        self.audit = audit
        self.settings = settings or get_settings()

    # Checks

    def run_month_end_checks(self, org_id: str, year: int, month: int) -> MonthEndResult:
        start, end = month_bounds(year, month)
        expenses = [e for e in self.expenses.list_by_date(org_id, start, end) if not e.is_voided]

        candidates = [
            self._check_uncategorized(expenses),
            self._check_missing_receipts(expenses),
            self._check_large_expenses(expenses),
            self._check_payroll_complete(org_id, start, end),
            self._check_trial_balance(org_id, start, end),
            self._check_flagged_items(expenses),
            self._check_spending_anomaly(org_id, year, month, expenses),
            self._check_unpaid_invoices(org_id),
        ]
        checks = [check for check in candidates if check is not None]
        summary = summarize(checks)

        return MonthEndResult(
            can_close=summary.failed == 0,
            checks=checks,
            summary=summary,
            period=PeriodInfo(year=year, month=month, start_date=start, end_date=end),
        )

    def _check_uncategorized(self, expenses: list[Expense]) -> CloseCheck:
        other = sorted(
            (e for e in expenses if (e.category or "").strip().lower() == "other"),
            key=lambda e: to_decimal(e.amount),
            reverse=True,
        )
        return CloseCheck(
            id="uncategorized_expenses",
            name="All expenses categorized",
            check_type="categorization",
            status=CheckStatus.WARNING if other else CheckStatus.PASSED,
            severity=Severity.HIGH,
            count=len(other),
            message=(
                f'{len(other)} expenses use category "other", consider reviewing'
                if other
                else "All expenses have categories"
            ),
            items=[_item(e) for e in other[:MAX_CHECK_ITEMS]],
        )

    def _check_missing_receipts(self, expenses: list[Expense]) -> CloseCheck:
        threshold = self.settings.receipt_threshold
        missing = sorted(
            (e for e in expenses if to_decimal(e.amount) > threshold and not e.receipt_url),
            key=lambda e: to_decimal(e.amount),
            reverse=True,
        )
        return CloseCheck(
            id="missing_receipts",
            name=f"Receipts for expenses over ${threshold}",
            check_type="receipts",
            status=CheckStatus.WARNING if missing else CheckStatus.PASSED,
            severity=Severity.MEDIUM,
            count=len(missing),
            message=(
                f"{len(missing)} expenses over ${threshold} need receipts"
                if missing
                else "All large expenses have receipts"
            ),
            details={"threshold": threshold},
            items=[_item(e) for e in missing[:MAX_CHECK_ITEMS]],
        )

    def _check_large_expenses(self, expenses: list[Expense]) -> CloseCheck:
        threshold = self.settings.large_expense_threshold
        flagged = []
        for expense in expenses:
            if to_decimal(expense.amount) <= threshold or is_reviewed_asset(expense.tags):
                continue
            flag = check_possible_asset(expense.description, expense.amount)
            if flag is not None:
                flagged.append(_item(expense, suggestion=flag.suggestion, asset_category=flag.category))

        return CloseCheck(
            id="large_expenses_review",
            name="Large expenses reviewed",
            check_type="asset_classification",
            status=CheckStatus.WARNING if flagged else CheckStatus.PASSED,
            severity=Severity.MEDIUM,
            count=len(flagged),
            message=(
                f"{len(flagged)} large expenses may be capital assets"
                if flagged
                else "All large expenses reviewed"
            ),
            details={"threshold": threshold},
            items=flagged[:MAX_CHECK_ITEMS],
        )

    def _check_payroll_complete(self, org_id: str, start: date, end: date) -> CloseCheck:
        expected = self.settings.expected_payroll_runs
        actual = sum(
            1 for run in self.payrolls.list_by_pay_date(org_id, start, end) if run.status == "completed"
        )
        passed = actual >= expected
        return CloseCheck(
            id="payroll_complete",
            name="Payroll runs complete",
            check_type="payroll",
            status=CheckStatus.PASSED if passed else CheckStatus.WARNING,
            severity=Severity.HIGH,
            count=actual,
            message=(
                f"{actual} payroll run{'s' if actual != 1 else ''} completed"
                if passed
                else f"Expected {expected} payroll runs, found {actual}"
            ),
            details={"expected": expected, "actual": actual},
        )

    def _check_trial_balance(self, org_id: str, start: date, end: date) -> CloseCheck:
        report = self.report_engine.trial_balance(org_id, start, end, Basis.ACCRUAL)
        difference = report.difference
        balanced = report.is_balanced(self.settings.balance_tolerance)
        return CloseCheck(
            id="trial_balance",
            name="Trial balance balanced",
            check_type="trial_balance",
            status=CheckStatus.PASSED if balanced else CheckStatus.FAILED,
            severity=Severity.CRITICAL,
            message=(
                f"Debits (${report.total_debit}) = Credits (${report.total_credit})"
                if balanced
                else f"Trial balance doesn't balance! Difference: ${difference}"
            ),
            details={
                "debits": report.total_debit,
                "credits": report.total_credit,
                "difference": difference,
            },
        )

    def _check_flagged_items(self, expenses: list[Expense]) -> CloseCheck:
        flagged = [e for e in expenses if e.needs_review]
        return CloseCheck(
            id="flagged_items",
            name="Flagged items resolved",
            check_type="review",
            status=CheckStatus.WARNING if flagged else CheckStatus.PASSED,
            severity=Severity.MEDIUM,
            count=len(flagged),
            message=f"{len(flagged)} items need review" if flagged else "No items flagged for review",
            items=[_item(e) for e in flagged[:MAX_CHECK_ITEMS]],
        )

    def _check_spending_anomaly(
        self, org_id: str, year: int, month: int, current_expenses: list[Expense]
    ) -> CloseCheck | None:
        prev_start, prev_end = month_bounds(*previous_month(year, month))
        previous = sum(
            (to_decimal(e.amount) for e in self.expenses.list_by_date(org_id, prev_start, prev_end)
             if not e.is_voided),
            ZERO,
        )
        if previous <= ZERO:
            return None
        current = sum((to_decimal(e.amount) for e in current_expenses), ZERO)
        change_pct = (current - previous) / previous * 100
        if abs(change_pct) <= self.settings.spending_change_threshold_pct:
            return None

        direction = "increase" if change_pct > 0 else "decrease"
        shown = abs(change_pct).quantize(Decimal("0.1"))
        return CloseCheck(
            id="spending_anomaly",
            name="Spending pattern review",
            check_type="trend",
            status=CheckStatus.INFO,
            severity=Severity.LOW,
            message=f"Spending {direction}d by {shown}% vs last month",
            details={
                "current": round_money(current),
                "previous": round_money(previous),
                "percent_change": change_pct.quantize(Decimal("0.1")),
                "direction": direction,
            },
        )

    def _check_unpaid_invoices(self, org_id: str) -> CloseCheck | None:
        unpaid = [
            inv for inv in self.invoices.list_open(org_id) if inv.is_open and to_decimal(inv.total) > ZERO
        ]
        if not unpaid:
            return None
        return CloseCheck(
            id="unpaid_invoices",
            name="Invoice collection status",
            check_type="receivables",
            status=CheckStatus.WARNING,
            severity=Severity.LOW,
            count=len(unpaid),
            message=f"{len(unpaid)} invoice{'s' if len(unpaid) != 1 else ''} still unpaid",
            details={"count": len(unpaid)},
        )

    # Lifecycle

    def close_period(
        self, org_id: str, year: int, month: int, user_id: str, force: bool = False
    ) -> CloseResult:
        start, end = month_bounds(year, month)
        period = self.periods.get(org_id, year, month)
        if period is not None and period.status == PeriodStatus.CLOSED.value:
            raise ValidationError(f"Period {year}-{month:02d} is already closed")

        result = self.run_month_end_checks(org_id, year, month)
        if not result.can_close and not force:
            raise PeriodNotReadyError(
                year, month, result.summary.failed, [c.to_dict() for c in result.checks]
            )

        # Cumulative balances from the start of the ledger to month end.
        final_balances = self.report_engine.trial_balance(org_id, LEDGER_EPOCH, end, Basis.ACCRUAL)
        forced = force and not result.can_close

        if period is None:
            period = AccountingPeriod(
                org_id=org_id, year=year, month=month, period_type="month",
                start_date=start, end_date=end,
            )
            self.db.add(period)
        period.status = PeriodStatus.CLOSED.value
        period.closed_by = user_id
        period.closed_at = utcnow()
        period.forced_close = forced
        period.final_balances = json.loads(json.dumps(final_balances.to_dict(), default=str))
        period.updated_at = utcnow()
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        if forced:
            logger.warning(
                "Period %d-%02d force-closed for org %s by %s with %d failed check(s)",
                year, month, org_id, user_id, result.summary.failed,
            )
        else:
            logger.info("Period %d-%02d closed for org %s by %s", year, month, org_id, user_id)

        self._record_checks(period, result.checks)
        self._anchor(period)
        if self.audit:
            self.audit.record(
                org_id, user_id, "CLOSE", ACCOUNTING_PERIOD, period.id,
                old_value={"status": PeriodStatus.OPEN.value},
                new_value={
                    "status": PeriodStatus.CLOSED.value,
                    "forced": forced,
                    "summary": asdict(result.summary),
                },
            )
        return CloseResult(period=period, checks=result.checks, forced=forced)

    def reopen_period(
        self, org_id: str, year: int, month: int, user_id: str, reason: str
    ) -> AccountingPeriod:
        """Reopen a closed period. Postings are left untouched."""
        if not reason or not reason.strip():
            raise ValidationError("A reason is required to reopen a period")
        month_bounds(year, month)

        period = self.periods.get(org_id, year, month)
        if period is None:
            raise NotFoundError("Accounting period", f"{year}-{month:02d}")
        if period.status != PeriodStatus.CLOSED.value:
            raise ValidationError(f"Period {year}-{month:02d} is not closed")

        period.status = PeriodStatus.OPEN.value
        period.reopened_by = user_id
        period.reopened_at = utcnow()
        period.reopen_reason = reason.strip()
        period.updated_at = utcnow()
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        logger.info("Period %d-%02d reopened for org %s by %s", year, month, org_id, user_id)
        self._anchor(period)
        if self.audit:
            self.audit.record(
                org_id, user_id, "REOPEN", ACCOUNTING_PERIOD, period.id,
                old_value={"status": PeriodStatus.CLOSED.value},
                new_value={"status": PeriodStatus.OPEN.value, "reason": period.reopen_reason},
            )
        return period

    def get_period_status(self, org_id: str, year: int, month: int) -> AccountingPeriod | None:
        """The stored period, or None when it was never closed (implicitly open)."""
        return self.periods.get(org_id, year, month)

    def is_period_closed(self, org_id: str, on: date) -> bool:
        return self.periods.is_closed(org_id, on)

    def get_period_history(self, org_id: str, year: int, month: int) -> PeriodHistory:
        period = self.periods.get(org_id, year, month)
        if period is None:
            return PeriodHistory(period=None, checks=[], history=[])

        checks = (
            self.db.query(PeriodCloseCheck)
            .filter(PeriodCloseCheck.period_id == period.id)
            .order_by(PeriodCloseCheck.created_at.desc())
            .all()
        )
        return PeriodHistory(period=period, checks=checks, history=self._actions(period))

    def _actions(self, period: AccountingPeriod) -> list[dict[str, Any]]:
        """Close/reopen actions, oldest first. Audit rows give every cycle."""
        if self.audit:
            logs = self.audit.list_logs(period.org_id, entity_type=ACCOUNTING_PERIOD, entity_id=period.id)
            actions = []
            for log in sorted(logs, key=lambda log: log.created_at):
                if log.action not in ("CLOSE", "REOPEN"):
                    continue
                new_value = json.loads(log.new_value) if log.new_value else {}
                action = {
                    "action": "closed" if log.action == "CLOSE" else "reopened",
                    "by": log.user_id,
                    "at": log.created_at,
                }
                if log.action == "REOPEN":
                    action["reason"] = new_value.get("reason")
                else:
                    action["forced"] = bool(new_value.get("forced"))
                actions.append(action)
            if actions:
                return actions

        actions = []
        if period.closed_at:
            actions.append(
                {"action": "closed", "by": period.closed_by, "at": period.closed_at, "forced": period.forced_close}
            )
        if period.reopened_at:
            actions.append(
                {"action": "reopened", "by": period.reopened_by, "at": period.reopened_at,
                 "reason": period.reopen_reason}
            )
        return sorted(actions, key=lambda a: a["at"])

    def _record_checks(self, period: AccountingPeriod, checks: list[CloseCheck]) -> None:
        try:
            for check in checks:
                self.db.add(
                    PeriodCloseCheck(
                        period_id=period.id,
                        check_type=check.id,
                        status=check.status.value,
                        severity=check.severity.value,
                        message=check.message,
                        details=check.to_dict(),
                    )
                )
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.warning("Could not record close checks for period %s", period.id, exc_info=True)

    def _anchor(self, period: AccountingPeriod) -> None:
        if self.anchoring is None:
            return
        try:
            payload, digest = prepare_anchor(period_record(period), ACCOUNTING_PERIOD, period.id)
            period.anchor_hash = digest
            period.anchor_status = AnchorStatus.PENDING.value
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.warning("Could not mark period %s for anchoring", period.id, exc_info=True)
            return
        self.anchoring.dispatch(ACCOUNTING_PERIOD, period.id, payload)
