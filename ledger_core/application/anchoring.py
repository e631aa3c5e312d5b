"""
Anchoring hook.

Persisted ledger records are reduced to a canonical JSON payload, hashed,
and submitted to an external anchoring collaborator. Submission runs on a
thread pool; the caller never waits for it and never sees its failures.
"""

import hashlib
import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ledger_core.domain.exceptions import AnchoringError
from ledger_core.domain.value_objects import AnchorStatus, round_money, to_decimal
from ledger_core.infrastructure.database.models import AccountingPeriod, JournalEntry, utcnow

logger = logging.getLogger(__name__)

JOURNAL_ENTRY = "journal_entry"
ACCOUNTING_PERIOD = "accounting_period"

STRIPPED_FIELDS = frozenset(
    {
        "created_at",
        "updated_at",
        "anchor_hash",
        "anchor_status",
        "anchor_tx_ref",
        "anchor_height",
        "anchored_at",
    }
)


@dataclass(frozen=True, slots=True)
class AnchorReceipt:
    external_tx_ref: str
    confirmed_height: int | None = None


class AnchoringClient(ABC):
    """External anchoring collaborator."""

    @abstractmethod
    def submit(self, canonical_payload: str, entity_type: str, entity_id: str) -> AnchorReceipt:
        """Anchor the payload. May raise :class:`AnchoringError`."""
        ...


class NullAnchoringClient(AnchoringClient):
    """Local-only receipts, used when anchoring is disabled."""

    def submit(self, canonical_payload: str, entity_type: str, entity_id: str) -> AnchorReceipt:
        return AnchorReceipt(external_tx_ref=f"local:{canonical_hash(canonical_payload)}")


def _canonical_value(value: Any) -> Any:
    if isinstance(value, datetime):
        # Timestamps hash as naive UTC.
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Mapping):
        return {
            str(k): _canonical_value(v) for k, v in value.items() if k not in STRIPPED_FIELDS
        }
    if isinstance(value, (list, tuple)):
        return [_canonical_value(v) for v in value]
    return value


def build_canonical_payload(record: Mapping[str, Any], entity_type: str, entity_id: str) -> str:
    """
    Deterministic JSON for a record: sorted keys, compact separators, ISO
    dates, decimals as strings. Audit and anchoring fields are excluded so
    the payload only changes when the business content does.
    """
    canonical = {
        "entity_type": entity_type,
        "entity_id": entity_id,
        "data": _canonical_value(record),
    }
    return json.dumps(canonical, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def canonical_hash(payload: str) -> str:
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def journal_entry_record(entry: JournalEntry) -> dict[str, Any]:
    return {
        "id": entry.id,
        "org_id": entry.org_id,
        "entry_number": entry.entry_number,
        "entry_date": entry.entry_date,
        "description": entry.description,
        "reference_type": entry.reference_type,
        "reference_id": entry.reference_id,
        "status": entry.status,
        "created_by": entry.created_by,
        "voided_by": entry.voided_by,
        "voided_at": entry.voided_at,
        "void_reason": entry.void_reason,
        "lines": [
            {
                "line_number": line.line_number,
                "account_code": line.account_code,
                "account_name": line.account_name,
                "debit_amount": round_money(to_decimal(line.debit_amount)),
                "credit_amount": round_money(to_decimal(line.credit_amount)),
                "description": line.description,
            }
            for line in entry.lines
        ],
    }


def period_record(period: AccountingPeriod) -> dict[str, Any]:
    return {
        "id": period.id,
        "org_id": period.org_id,
        "year": period.year,
        "month": period.month,
        "period_type": period.period_type,
        "start_date": period.start_date,
        "end_date": period.end_date,
        "status": period.status,
        "closed_by": period.closed_by,
        "closed_at": period.closed_at,
        "forced_close": period.forced_close,
        "reopened_by": period.reopened_by,
        "reopened_at": period.reopened_at,
        "reopen_reason": period.reopen_reason,
        "final_balances": period.final_balances,
    }


class AnchoringDispatcher:
    """
    Fire-and-forget submission of canonical payloads.

    Outcomes are written back with a fresh session from ``session_factory``:
    ``anchored`` with the receipt on success, ``failed`` otherwise.
    """

    def __init__(
        self,
        client: AnchoringClient,
        session_factory: sessionmaker,
        executor: Executor | None = None,
        workers: int = 2,
    ):
        self.client = client
        self.session_factory = session_factory
        self.executor = executor or ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="anchoring"
        )

    def dispatch(self, entity_type: str, entity_id: str, payload: str) -> Future | None:
        """Queue an anchoring request and return immediately."""
        try:
            return self.executor.submit(self._anchor, entity_type, entity_id, payload)
        except RuntimeError:
            logger.warning("Anchoring executor unavailable; %s %s left pending", entity_type, entity_id)
            return None

    def reconcile_pending(self, org_id: str | None = None) -> int:
        """
        Re-submit journal entries whose anchoring is pending or failed.
        Runs synchronously; returns the number of entries now anchored.
        """
        db = self.session_factory()
        try:
            query = db.query(JournalEntry).filter(
                JournalEntry.anchor_status.in_((AnchorStatus.PENDING.value, AnchorStatus.FAILED.value))
            )
            if org_id:
                query = query.filter(JournalEntry.org_id == org_id)
            entries = query.order_by(JournalEntry.created_at).all()
            payloads = [
                (entry.id, build_canonical_payload(journal_entry_record(entry), JOURNAL_ENTRY, entry.id))
                for entry in entries
            ]
        finally:
            db.close()

        anchored = 0
        for entry_id, payload in payloads:
            if self._anchor(JOURNAL_ENTRY, entry_id, payload):
                anchored += 1
        logger.info("Anchoring reconciliation: %d of %d entries anchored", anchored, len(payloads))
        return anchored

    def shutdown(self, wait: bool = True) -> None:
        self.executor.shutdown(wait=wait)

    def _anchor(self, entity_type: str, entity_id: str, payload: str) -> bool:
        try:
            receipt = self.client.submit(payload, entity_type, entity_id)
        except AnchoringError as exc:
            logger.warning("Anchoring failed for %s %s: %s", entity_type, entity_id, exc)
            self._record(entity_type, entity_id, payload, None)
            return False
        except Exception:
            logger.warning("Anchoring client error for %s %s", entity_type, entity_id, exc_info=True)
            self._record(entity_type, entity_id, payload, None)
            return False

        self._record(entity_type, entity_id, payload, receipt)
        return True

    def _record(self, entity_type: str, entity_id: str, payload: str, receipt: AnchorReceipt | None) -> None:
        model = {JOURNAL_ENTRY: JournalEntry, ACCOUNTING_PERIOD: AccountingPeriod}.get(entity_type)
        if model is None:
            return
        db = self.session_factory()
        try:
            row = db.get(model, entity_id)
            if row is None:
                return
            if row.anchor_hash and row.anchor_hash != canonical_hash(payload):
                # A newer payload (e.g. a void) superseded this one.
                return
            if receipt is None:
                row.anchor_status = AnchorStatus.FAILED.value
            else:
                row.anchor_status = AnchorStatus.ANCHORED.value
                row.anchor_tx_ref = receipt.external_tx_ref
                if isinstance(row, JournalEntry):
                    row.anchor_height = receipt.confirmed_height
                    row.anchored_at = utcnow()
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.warning("Could not record anchoring outcome for %s %s", entity_type, entity_id, exc_info=True)
        finally:
            db.close()


def prepare_anchor(record: Mapping[str, Any], entity_type: str, entity_id: str) -> tuple[str, str]:
    """Canonical payload and its hash for a record."""
    payload = build_canonical_payload(record, entity_type, entity_id)
    return payload, canonical_hash(payload)
