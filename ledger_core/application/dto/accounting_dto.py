"""
API DTOs - Data Transfer Objects for API requests/responses.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ledger_core.domain.value_objects import AccountType, Basis, CheckStatus, JournalLineInput, Severity


class JournalLineCreateDTO(BaseModel):
    """DTO - One line of a manual journal entry."""
    account_code: str = Field(..., min_length=1, description="Account code")
    debit_amount: Decimal = Field(Decimal("0"), ge=0, description="Debit amount")
    credit_amount: Decimal = Field(Decimal("0"), ge=0, description="Credit amount")
    description: str | None = Field(None, description="Line description")

    def to_input(self) -> JournalLineInput:
        return JournalLineInput(
            account_code=self.account_code,
            debit_amount=self.debit_amount,
            credit_amount=self.credit_amount,
            description=self.description,
        )


class JournalEntryCreateDTO(BaseModel):
    """DTO - Manual journal entry."""
    entry_date: date = Field(..., description="Entry date")
    description: str = Field(..., max_length=500, description="Narration")
    reference_type: str | None = Field(None, description="Referenced business record type")
    reference_id: str | None = Field(None, description="Referenced business record id")
    lines: list[JournalLineCreateDTO] = Field(..., min_length=2, description="Entry lines")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "entry_date": "2025-03-31",
            "description": "Accrue March rent",
            "reference_type": "manual",
            "lines": [
                {"account_code": "6100", "debit_amount": 2500, "description": "March rent"},
                {"account_code": "2000", "credit_amount": 2500, "description": "Landlord"},
            ],
        }
    })


class VoidRequestDTO(BaseModel):
    reason: str = Field(..., min_length=1, description="Why the entry is voided")


class ClosePeriodRequestDTO(BaseModel):
    year: int = Field(..., ge=1970, le=9999)
    month: int = Field(..., ge=1, le=12)
    force: bool = False


class ReopenPeriodRequestDTO(BaseModel):
    year: int = Field(..., ge=1970, le=9999)
    month: int = Field(..., ge=1, le=12)
    reason: str = Field(..., min_length=1)


class MonthEndCheckRequestDTO(BaseModel):
    year: int = Field(..., ge=1970, le=9999)
    month: int = Field(..., ge=1, le=12)


class JournalEntryLineResponseDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    line_number: int
    account_code: str
    account_name: str
    debit_amount: Decimal
    credit_amount: Decimal
    description: str | None = None


class JournalEntryResponseDTO(BaseModel):
    """DTO - Persisted journal entry."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    org_id: str
    entry_number: str
    entry_date: date
    description: str
    reference_type: str | None = None
    reference_id: str | None = None
    status: str
    created_by: str | None = None
    voided_by: str | None = None
    voided_at: datetime | None = None
    void_reason: str | None = None
    anchor_hash: str | None = None
    anchor_status: str | None = None
    anchor_tx_ref: str | None = None
    created_at: datetime
    total_debit: Decimal
    total_credit: Decimal
    lines: list[JournalEntryLineResponseDTO]


class TrialBalanceRowDTO(BaseModel):
    code: str
    name: str
    type: AccountType
    debit: Decimal
    credit: Decimal
    balance: Decimal


class TrialBalanceDTO(BaseModel):
    """DTO - Trial balance."""
    basis: Basis
    from_date: date
    to_date: date
    accounts: list[TrialBalanceRowDTO]
    total_debit: Decimal
    total_credit: Decimal


class ProfitAndLossRowDTO(BaseModel):
    section: str
    code: str
    name: str
    amount: Decimal


class ProfitAndLossDTO(BaseModel):
    basis: Basis
    from_date: date
    to_date: date
    rows: list[ProfitAndLossRowDTO]
    revenue: Decimal
    cogs: Decimal
    gross_profit: Decimal
    expenses: Decimal
    net_income: Decimal


class GeneralLedgerEntryDTO(BaseModel):
    date: date
    account_code: str
    account_name: str
    description: str
    debit: Decimal
    credit: Decimal
    source_type: str
    source_id: str


class GeneralLedgerDTO(BaseModel):
    basis: Basis
    from_date: date
    to_date: date
    account_filter: str | None = None
    entries: list[GeneralLedgerEntryDTO]


class AgingRowDTO(BaseModel):
    key: str
    name: str
    current: Decimal
    bucket_1_30: Decimal
    bucket_31_60: Decimal
    bucket_61_90: Decimal
    bucket_over_90: Decimal
    total: Decimal


class AgingReportDTO(BaseModel):
    as_of: date
    rows: list[AgingRowDTO]
    totals: AgingRowDTO


class BurnRateDTO(BaseModel):
    from_date: date
    to_date: date
    total: Decimal
    days: int
    daily: Decimal
    monthly: Decimal


class CloseCheckDTO(BaseModel):
    id: str
    name: str
    check_type: str
    status: CheckStatus
    severity: Severity
    message: str
    count: int | None = None
    details: dict[str, Any] | None = None
    items: list[dict[str, Any]] = []


class MonthEndResultDTO(BaseModel):
    """DTO - Month-end readiness."""
    can_close: bool
    checks: list[CloseCheckDTO]
    summary: dict[str, int]
    period: dict[str, Any]


class AccountingPeriodResponseDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    org_id: str
    year: int
    month: int
    period_type: str
    start_date: date
    end_date: date
    status: str
    closed_by: str | None = None
    closed_at: datetime | None = None
    forced_close: bool = False
    reopened_by: str | None = None
    reopened_at: datetime | None = None
    reopen_reason: str | None = None
    final_balances: dict[str, Any] | None = None
    anchor_status: str | None = None


class CloseResultDTO(BaseModel):
    period: AccountingPeriodResponseDTO
    checks: list[CloseCheckDTO]
    forced: bool


class PeriodCloseCheckResponseDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    check_type: str
    status: str
    severity: str
    message: str
    details: dict[str, Any] | None = None
    created_at: datetime


class PeriodHistoryDTO(BaseModel):
    period: AccountingPeriodResponseDTO | None = None
    checks: list[PeriodCloseCheckResponseDTO]
    history: list[dict[str, Any]]


class AuditLogResponseDTO(BaseModel):
    """DTO - Audit log."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    org_id: str | None = None
    user_id: str | None = None
    action: str
    entity_type: str
    entity_id: str
    old_value: str | None = None
    new_value: str | None = None
    created_at: datetime
