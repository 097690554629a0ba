from __future__ import annotations

import datetime as dt
import json
import math
from dataclasses import dataclass
from typing import Iterable, List, Optional
from uuid import uuid4

from state.models import Bucket, Ledger, LedgerError, Transaction

from .months import is_month_key, month_key


@dataclass(frozen=True)
class MonthTotals:
    income: float
    allocated: float
    spent: float
    savings: float


def new_id() -> str:
    return uuid4().hex[:8]


def _require_month(month: str) -> None:
    if not is_month_key(month):
        raise ValueError(f"Not a month key: {month!r}")


def _finite(amount: float) -> float:
    value = float(amount)
    if not math.isfinite(value):
        raise ValueError(f"Amount must be finite: {amount!r}")
    return value


# -------- Views --------
def month_transactions(ledger: Ledger, month: str) -> List[Transaction]:
    """Non-deleted transactions dated in `month`, in ledger order."""
    return [t for t in ledger.transactions if t.month == month and not t.deleted]


def deleted_transactions(ledger: Ledger, month: str) -> List[Transaction]:
    return [t for t in ledger.transactions if t.month == month and t.deleted]


def unassigned_transactions(ledger: Ledger, month: str) -> List[Transaction]:
    return [t for t in month_transactions(ledger, month) if t.bucket_id is None]


def active_buckets(ledger: Ledger, month: str) -> List[Bucket]:
    """Non-income buckets with an allocation for `month` that aren't deleted there."""
    return [b for b in ledger.buckets.values() if not b.is_income and b.is_active(month)]


def remaining(ledger: Ledger, bucket_id: str, month: str) -> float:
    """Allocation plus assigned (signed) transaction amounts for the month."""
    bucket = ledger.bucket(bucket_id)
    spent = sum(t.amount for t in month_transactions(ledger, month) if t.bucket_id == bucket.id)
    return bucket.allocation(month) + spent


def month_totals(ledger: Ledger, month: str) -> MonthTotals:
    txns = month_transactions(ledger, month)
    income_id = ledger.income_bucket().id if ledger.buckets else None
    income = sum(t.amount for t in txns if income_id is not None and t.bucket_id == income_id)
    allocated = sum(b.allocation(month) for b in active_buckets(ledger, month))
    spent = sum(-t.amount for t in txns if t.amount < 0)
    return MonthTotals(income=income, allocated=allocated, spent=spent, savings=income - spent)


# -------- Mutations --------
def set_allocation(ledger: Ledger, bucket_id: str, month: str, amount: float) -> None:
    _require_month(month)
    ledger.bucket(bucket_id).allocations[month] = _finite(amount)


def add_bucket(
    ledger: Ledger,
    name: str,
    allocation: float,
    month: str,
    *,
    bucket_id: Optional[str] = None,
) -> Bucket:
    """Append a spending bucket whose allocation history starts at `month`."""
    _require_month(month)
    value = _finite(allocation)
    name = name.strip()
    if not name:
        raise ValueError("Bucket name is required")
    bid = bucket_id or new_id()
    if bid in ledger.buckets:
        raise ValueError(f"Bucket id already exists: {bid}")
    bucket = Bucket(id=bid, name=name, allocations={month: value})
    ledger.buckets[bid] = bucket
    return bucket


def delete_bucket_for_month(ledger: Ledger, bucket_id: str, month: str) -> None:
    """Hide a bucket in one month; other months keep it."""
    _require_month(month)
    bucket = ledger.bucket(bucket_id)
    if bucket.is_income:
        raise ValueError("The income bucket cannot be deleted")
    bucket.deleted_months.add(month)


def reassign_transaction(ledger: Ledger, txn_id: str, bucket_id: Optional[str]) -> None:
    """Assign a transaction to a bucket, or unassign it with None."""
    if bucket_id is not None:
        ledger.bucket(bucket_id)
    ledger.transaction(txn_id).bucket_id = bucket_id


def soft_delete_transaction(ledger: Ledger, txn_id: str) -> None:
    ledger.transaction(txn_id).deleted = True


def restore_transaction(ledger: Ledger, txn_id: str) -> None:
    ledger.transaction(txn_id).deleted = False


def purge_transaction(ledger: Ledger, txn_id: str) -> None:
    before = len(ledger.transactions)
    ledger.transactions = [t for t in ledger.transactions if t.id != txn_id]
    if len(ledger.transactions) == before:
        raise LedgerError(f"Unknown transaction: {txn_id}")


def import_transactions(ledger: Ledger, txns: Iterable[Transaction]) -> int:
    """Prepend a batch of imported transactions (newest import first)."""
    batch = list(txns)
    ledger.transactions = batch + ledger.transactions
    return len(batch)


def new_transaction(
    date: dt.date,
    description: str,
    amount: float,
    bucket_id: Optional[str] = None,
) -> Transaction:
    return Transaction(id=new_id(), date=date, description=description, amount=amount, bucket_id=bucket_id)


# -------- Snapshots --------
def seed_ledger(today: Optional[dt.date] = None) -> Ledger:
    """Starter ledger: an income bucket plus a few common categories for this month."""
    today = today or dt.date.today()
    mk = month_key(today)

    def ago(days: int) -> dt.date:
        return today - dt.timedelta(days=days)

    buckets = [
        Bucket(id="income", name="Income", is_income=True),
        Bucket(id="b1", name="Groceries", allocations={mk: 600.0}),
        Bucket(id="b2", name="Rent", allocations={mk: 1500.0}),
        Bucket(id="b3", name="Gas", allocations={mk: 250.0}),
        Bucket(id="b4", name="Date Night", allocations={mk: 150.0}),
    ]
    txns = [
        new_transaction(ago(25), "Paycheck", 3200.0, "income"),
        new_transaction(ago(20), "Rent", -1500.0, "b2"),
        new_transaction(ago(8), "Paycheck", 3500.0, "income"),
        new_transaction(ago(6), "HEB", -84.12),
        new_transaction(ago(5), "Shell Gas", -45.53),
        new_transaction(ago(2), "TUMBLE 22 AUSTIN TX 1234", -28.5, "b4"),
    ]
    return Ledger(buckets={b.id: b for b in buckets}, transactions=txns)


def export_json(ledger: Ledger) -> str:
    """Human-readable JSON snapshot of the ledger."""
    return json.dumps(ledger.to_wire(), indent=2)


__all__ = [
    "MonthTotals",
    "active_buckets",
    "add_bucket",
    "delete_bucket_for_month",
    "deleted_transactions",
    "export_json",
    "import_transactions",
    "month_totals",
    "month_transactions",
    "new_transaction",
    "purge_transaction",
    "reassign_transaction",
    "remaining",
    "restore_transaction",
    "seed_ledger",
    "set_allocation",
    "soft_delete_transaction",
    "unassigned_transactions",
]
