"""
API Routers - Accountancy reports and month-end close endpoints.
"""

from datetime import date

from fastapi import APIRouter, Depends, Query

from ledger_core.api.dependencies import (
    get_audit,
    get_month_end_service,
    get_org_id,
    get_report_engine,
    get_user_id,
)
from ledger_core.application.audit import AuditTrail
from ledger_core.application.dto.accounting_dto import (
    AccountingPeriodResponseDTO,
    AgingReportDTO,
    AuditLogResponseDTO,
    BurnRateDTO,
    ClosePeriodRequestDTO,
    CloseResultDTO,
    GeneralLedgerDTO,
    MonthEndCheckRequestDTO,
    MonthEndResultDTO,
    PeriodCloseCheckResponseDTO,
    PeriodHistoryDTO,
    ProfitAndLossDTO,
    ReopenPeriodRequestDTO,
    TrialBalanceDTO,
)
from ledger_core.application.month_end import MonthEndCloseService
from ledger_core.domain.exceptions import ValidationError
from ledger_core.domain.reports import ReportEngine
from ledger_core.domain.value_objects import Basis

router = APIRouter(prefix="/api/v1/accountancy", tags=["Accountancy"])


def _range(from_date: date, to_date: date) -> None:
    if from_date > to_date:
        raise ValidationError("'from' must not be after 'to'")


@router.get("/trial-balance", response_model=TrialBalanceDTO)
def get_trial_balance(
    from_date: date = Query(..., alias="from"),
    to_date: date = Query(..., alias="to"),
    basis: Basis = Query(Basis.ACCRUAL),
    org_id: str = Depends(get_org_id),
    engine: ReportEngine = Depends(get_report_engine),
):
    """Trial balance over derived postings. Debits must equal credits."""
    _range(from_date, to_date)
    return engine.trial_balance(org_id, from_date, to_date, basis).to_dict()


@router.get("/profit-and-loss", response_model=ProfitAndLossDTO)
def get_profit_and_loss(
    from_date: date = Query(..., alias="from"),
    to_date: date = Query(..., alias="to"),
    basis: Basis = Query(Basis.ACCRUAL),
    org_id: str = Depends(get_org_id),
    engine: ReportEngine = Depends(get_report_engine),
):
    _range(from_date, to_date)
    return engine.profit_and_loss(org_id, from_date, to_date, basis).to_dict()


@router.get("/general-ledger", response_model=GeneralLedgerDTO)
def get_general_ledger(
    from_date: date = Query(..., alias="from"),
    to_date: date = Query(..., alias="to"),
    basis: Basis = Query(Basis.ACCRUAL),
    account_code: str | None = Query(None),
    org_id: str = Depends(get_org_id),
    engine: ReportEngine = Depends(get_report_engine),
):
    _range(from_date, to_date)
    return engine.general_ledger(org_id, from_date, to_date, basis, account_code).to_dict()


@router.get("/ar-aging", response_model=AgingReportDTO)
def get_ar_aging(
    as_of: date | None = Query(None),
    org_id: str = Depends(get_org_id),
    engine: ReportEngine = Depends(get_report_engine),
):
    return engine.ar_aging(org_id, as_of or date.today()).to_dict()


@router.get("/ap-aging", response_model=AgingReportDTO)
def get_ap_aging(
    as_of: date | None = Query(None),
    org_id: str = Depends(get_org_id),
    engine: ReportEngine = Depends(get_report_engine),
):
    return engine.ap_aging(org_id, as_of or date.today()).to_dict()


@router.get("/burn-rate", response_model=BurnRateDTO)
def get_burn_rate(
    from_date: date = Query(..., alias="from"),
    to_date: date = Query(..., alias="to"),
    org_id: str = Depends(get_org_id),
    engine: ReportEngine = Depends(get_report_engine),
):
    _range(from_date, to_date)
    return engine.burn_rate(org_id, from_date, to_date).to_dict()


@router.get("/month-end-check", response_model=MonthEndResultDTO)
def get_month_end_check(
    year: int = Query(..., ge=1970, le=9999),
    month: int = Query(..., ge=1, le=12),
    org_id: str = Depends(get_org_id),
    service: MonthEndCloseService = Depends(get_month_end_service),
):
    return service.run_month_end_checks(org_id, year, month).to_dict()


@router.post("/month-end-check", response_model=MonthEndResultDTO)
def post_month_end_check(
    dto: MonthEndCheckRequestDTO,
    org_id: str = Depends(get_org_id),
    service: MonthEndCloseService = Depends(get_month_end_service),
):
    return service.run_month_end_checks(org_id, dto.year, dto.month).to_dict()


@router.post("/close-period", response_model=CloseResultDTO)
def close_period(
    dto: ClosePeriodRequestDTO,
    org_id: str = Depends(get_org_id),
    user_id: str = Depends(get_user_id),
    service: MonthEndCloseService = Depends(get_month_end_service),
):
    """
    Close a month. Refused with 409 while a blocking check fails, unless
    ``force`` is set; a forced close is recorded on the period.
    """
    result = service.close_period(org_id, dto.year, dto.month, user_id, force=dto.force)
    return CloseResultDTO(
        period=AccountingPeriodResponseDTO.model_validate(result.period),
        checks=[check.to_dict() for check in result.checks],
        forced=result.forced,
    )


@router.post("/reopen-period", response_model=AccountingPeriodResponseDTO)
def reopen_period(
    dto: ReopenPeriodRequestDTO,
    org_id: str = Depends(get_org_id),
    user_id: str = Depends(get_user_id),
    service: MonthEndCloseService = Depends(get_month_end_service),
):
    period = service.reopen_period(org_id, dto.year, dto.month, user_id, dto.reason)
    return AccountingPeriodResponseDTO.model_validate(period)


@router.get("/period-status", response_model=AccountingPeriodResponseDTO | None)
def get_period_status(
    year: int = Query(..., ge=1970, le=9999),
    month: int = Query(..., ge=1, le=12),
    org_id: str = Depends(get_org_id),
    service: MonthEndCloseService = Depends(get_month_end_service),
):
    """Stored period state; null means the period was never closed."""
    period = service.get_period_status(org_id, year, month)
    return AccountingPeriodResponseDTO.model_validate(period) if period else None


@router.get("/period-history", response_model=PeriodHistoryDTO)
def get_period_history(
    year: int = Query(..., ge=1970, le=9999),
    month: int = Query(..., ge=1, le=12),
    org_id: str = Depends(get_org_id),
    service: MonthEndCloseService = Depends(get_month_end_service),
):
    history = service.get_period_history(org_id, year, month)
    return PeriodHistoryDTO(
        period=AccountingPeriodResponseDTO.model_validate(history.period) if history.period else None,
        checks=[PeriodCloseCheckResponseDTO.model_validate(check) for check in history.checks],
        history=history.history,
    )


@router.get("/audit-log", response_model=list[AuditLogResponseDTO])
def get_audit_log(
    entity_type: str | None = Query(None),
    entity_id: str | None = Query(None),
    action: str | None = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    org_id: str = Depends(get_org_id),
    audit: AuditTrail = Depends(get_audit),
):
    logs = audit.list_logs(org_id, entity_type=entity_type, entity_id=entity_id, action=action, limit=limit)
    return [AuditLogResponseDTO.model_validate(log) for log in logs]
