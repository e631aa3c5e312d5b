"""
Unit tests - Canonical anchoring payloads.
"""

import hashlib
import json
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from ledger_core.application.anchoring import (
    NullAnchoringClient,
    build_canonical_payload,
    canonical_hash,
    prepare_anchor,
)


class TestCanonicalPayload:

    def test_key_order_does_not_matter(self):
        a = build_canonical_payload({"b": 1, "a": 2}, "journal_entry", "je-1")
        b = build_canonical_payload({"a": 2, "b": 1}, "journal_entry", "je-1")
        assert a == b

    def test_compact_sorted_json(self):
        payload = build_canonical_payload({"x": 1}, "journal_entry", "je-1")
        assert payload == '{"data":{"x":1},"entity_id":"je-1","entity_type":"journal_entry"}'

    def test_value_normalisation(self):
        payload = build_canonical_payload(
            {
                "amount": Decimal("10.50"),
                "on": date(2025, 3, 1),
                "lines": [{"debit": Decimal("1")}],
            },
            "journal_entry",
            "je-1",
        )
        data = json.loads(payload)["data"]
        assert data == {"amount": "10.50", "on": "2025-03-01", "lines": [{"debit": "1"}]}

    def test_timestamps_hash_as_naive_utc(self):
        aware = datetime(2025, 3, 31, 22, 30, tzinfo=timezone(timedelta(hours=10)))
        naive = datetime(2025, 3, 31, 12, 30)

        assert build_canonical_payload({"voided_at": aware}, "journal_entry", "je-1") == build_canonical_payload(
            {"voided_at": naive}, "journal_entry", "je-1"
        )
        assert json.loads(build_canonical_payload({"voided_at": aware}, "journal_entry", "je-1"))["data"] == {
            "voided_at": "2025-03-31T12:30:00"
        }

    def test_audit_and_anchor_fields_stripped(self):
        base = {"id": "je-1", "status": "posted"}
        noisy = dict(
            base,
            created_at=datetime(2025, 1, 1),
            updated_at=datetime(2025, 1, 2),
            anchor_hash="abc",
            anchor_status="pending",
            anchor_tx_ref="tx",
        )
        assert build_canonical_payload(base, "journal_entry", "je-1") == build_canonical_payload(
            noisy, "journal_entry", "je-1"
        )

    def test_business_change_changes_hash(self):
        _, posted = prepare_anchor({"status": "posted"}, "journal_entry", "je-1")
        _, voided = prepare_anchor({"status": "voided"}, "journal_entry", "je-1")
        assert posted != voided

    def test_hash_is_sha256_hex(self):
        payload, digest = prepare_anchor({"x": 1}, "accounting_period", "p-1")
        assert digest == hashlib.sha256(payload.encode("utf-8")).hexdigest()
        assert len(digest) == 64


class TestNullAnchoringClient:

    def test_local_receipt(self):
        receipt = NullAnchoringClient().submit("{}", "journal_entry", "je-1")
        assert receipt.external_tx_ref == f"local:{canonical_hash('{}')}"
        assert receipt.confirmed_height is None
