#!/usr/bin/env python3
"""
Database Seeding Script - Ledger core
Seed the default chart of accounts and sample source records for testing and UAT.

Usage: python scripts/seed_database.py [org_id]
"""

import csv
import os
import sys
from datetime import date
from decimal import Decimal
from pathlib import Path

SEED_DIR = Path(__file__).parent / "seed_data"
DEFAULT_ORG_ID = "demo-org"


def read_csv(filepath: str) -> list[dict]:
    """Read a CSV file into a list of rows; missing files yield no rows."""
    if not os.path.exists(filepath):
        return []
    with open(filepath, "r", encoding="utf-8") as f:
        return list(csv.DictReader(f))


def main():
    """Main function."""
    org_id = sys.argv[1] if len(sys.argv) > 1 else DEFAULT_ORG_ID

    print("=" * 60)
    print("Database Seeding - Ledger core")
    print("=" * 60)

    from ledger_core.infrastructure.database import SessionLocal, init_db, seed_default_accounts

    init_db()

    from ledger_core.domain.chart import default_chart
    from ledger_core.domain.deriver import JournalLineDeriver
    from ledger_core.domain.reports import ReportEngine
    from ledger_core.infrastructure.database.models import Customer, Expense, Invoice, Payroll
    from ledger_core.infrastructure.repositories import (
        SqlCustomerRepository,
        SqlExpenseRepository,
        SqlInvoiceRepository,
        SqlPayrollRepository,
    )

    added = seed_default_accounts(org_id)
    print(f"✓ Seeded {added} chart of accounts rows for {org_id}")

    db = SessionLocal()

    try:
        customers_data = read_csv(str(SEED_DIR / "customers.csv"))
        print(f"\n📦 Seeding {len(customers_data)} customers...")
        for row in customers_data:
            if not db.get(Customer, row["id"]):
                db.add(Customer(id=row["id"], org_id=org_id, name=row["name"]))
        db.commit()

        expenses_data = read_csv(str(SEED_DIR / "expenses.csv"))
        print(f"📦 Seeding {len(expenses_data)} expenses...")
        for row in expenses_data:
            if db.get(Expense, row["id"]):
                continue
            db.add(
                Expense(
                    id=row["id"],
                    org_id=org_id,
                    amount=Decimal(row["amount"]),
                    category=row.get("category") or "other",
                    date=date.fromisoformat(row["date"]),
                    status=row.get("status") or "approved",
                    tags=[t for t in (row.get("tags") or "").split("|") if t],
                    description=row.get("description") or "",
                    receipt_url=row.get("receipt_url") or None,
                    needs_review=(row.get("needs_review") or "").lower() == "true",
                )
            )
        db.commit()

        invoices_data = read_csv(str(SEED_DIR / "invoices.csv"))
        print(f"📦 Seeding {len(invoices_data)} invoices...")
        for row in invoices_data:
            if db.get(Invoice, row["id"]):
                continue
            db.add(
                Invoice(
                    id=row["id"],
                    org_id=org_id,
                    customer_id=row["customer_id"],
                    invoice_number=row.get("invoice_number") or "",
                    total=Decimal(row["total"]),
                    due_date=date.fromisoformat(row["due_date"]),
                    status=row.get("status") or "sent",
                )
            )
        db.commit()

        payrolls_data = read_csv(str(SEED_DIR / "payrolls.csv"))
        print(f"📦 Seeding {len(payrolls_data)} payroll runs...")
        for row in payrolls_data:
            if db.get(Payroll, row["id"]):
                continue
            db.add(
                Payroll(
                    id=row["id"],
                    org_id=org_id,
                    total_amount=Decimal(row["total_amount"]),
                    period_start=date.fromisoformat(row["period_start"]),
                    period_end=date.fromisoformat(row["period_end"]),
                    pay_date=date.fromisoformat(row["pay_date"]),
                    status=row.get("status") or "completed",
                )
            )
        db.commit()

        print("\n=== Validating Seed Data ===")
        chart = default_chart()
        expenses = SqlExpenseRepository(db)
        invoices = SqlInvoiceRepository(db)
        deriver = JournalLineDeriver(expenses, invoices, SqlPayrollRepository(db), chart)
        engine = ReportEngine(deriver, chart, invoices, expenses, SqlCustomerRepository(db))
        report = engine.trial_balance(org_id, date(1970, 1, 1), date.today())

        if not report.is_balanced():
            print(f"⚠️ Trial balance mismatch: Debit={report.total_debit}, Credit={report.total_credit}")
        else:
            print(f"✓ Trial balance OK: Debit={report.total_debit}, Credit={report.total_credit}")

        print("\n" + "=" * 60)
        print("Seeding completed successfully!")
        print(f"Org ID: {org_id}")
        print("=" * 60)

    except Exception as e:
        print(f"\n❌ Error: {e}")
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()
