"""
API Routers - Persistent journal entries.
"""

from datetime import date

from fastapi import APIRouter, Depends, Query, status

from ledger_core.api.dependencies import get_journal_service, get_org_id, get_user_id
from ledger_core.application.dto.accounting_dto import (
    JournalEntryCreateDTO,
    JournalEntryResponseDTO,
    VoidRequestDTO,
)
from ledger_core.application.journal_entries import JournalEntryFilters, JournalEntryService

router = APIRouter(prefix="/api/v1/journal-entries", tags=["Journal entries"])


@router.get("", response_model=list[JournalEntryResponseDTO])
def list_journal_entries(
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    account_code: str | None = Query(None),
    reference_type: str | None = Query(None),
    entry_status: str | None = Query(None, alias="status"),
    limit: int | None = Query(None, ge=1, le=1000),
    org_id: str = Depends(get_org_id),
    service: JournalEntryService = Depends(get_journal_service),
):
    """Newest first. ``account_code`` keeps entries with at least one matching line."""
    filters = JournalEntryFilters(
        start_date=start_date,
        end_date=end_date,
        account_code=account_code,
        reference_type=reference_type,
        status=entry_status,
        limit=limit,
    )
    return [JournalEntryResponseDTO.model_validate(e) for e in service.get_journal_entries(org_id, filters)]


@router.post("", response_model=JournalEntryResponseDTO, status_code=status.HTTP_201_CREATED)
def create_journal_entry(
    dto: JournalEntryCreateDTO,
    org_id: str = Depends(get_org_id),
    user_id: str = Depends(get_user_id),
    service: JournalEntryService = Depends(get_journal_service),
):
    """
    Post a manual journal entry.

    - Debits must equal credits
    - Every account must exist in the organisation's chart or the standard chart
    - The entry is numbered JE-<year>-<seq>
    """
    entry = service.create_journal_entry(
        org_id=org_id,
        entry_date=dto.entry_date,
        description=dto.description,
        lines=[line.to_input() for line in dto.lines],
        created_by=user_id,
        reference_type=dto.reference_type or "manual",
        reference_id=dto.reference_id,
    )
    return JournalEntryResponseDTO.model_validate(entry)


@router.get("/{entry_id}", response_model=JournalEntryResponseDTO)
def get_journal_entry(
    entry_id: str,
    org_id: str = Depends(get_org_id),
    service: JournalEntryService = Depends(get_journal_service),
):
    return JournalEntryResponseDTO.model_validate(service.get_journal_entry(org_id, entry_id))


@router.post("/{entry_id}/void", response_model=JournalEntryResponseDTO)
def void_journal_entry(
    entry_id: str,
    dto: VoidRequestDTO,
    org_id: str = Depends(get_org_id),
    user_id: str = Depends(get_user_id),
    service: JournalEntryService = Depends(get_journal_service),
):
    entry = service.void_journal_entry(entry_id, user_id, dto.reason, org_id=org_id)
    return JournalEntryResponseDTO.model_validate(entry)
