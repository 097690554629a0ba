from __future__ import annotations

from typing import List, Optional

from state.models import Bucket, Ledger

from .months import is_month_key


def carried_allocation(bucket: Bucket, month: str) -> Optional[float]:
    """Allocation `month` would inherit: the value at the latest earlier month.

    Returns None when the bucket has no allocation before `month`.
    """
    earlier = [k for k in bucket.allocations if k < month]
    if not earlier:
        return None
    return bucket.allocations[max(earlier)]


def carry_forward(ledger: Ledger, month: str) -> List[str]:
    """
    Seed `month` allocations for every non-income bucket that lacks one.

    Only strictly earlier explicit entries are consulted, so the result does
    not depend on which months were visited before. Buckets with no earlier
    allocation are left alone. Mutates `ledger`; returns the ids changed.
    """
    if not is_month_key(month):
        raise ValueError(f"Not a month key: {month!r}")
    changed: List[str] = []
    for bucket in ledger.buckets.values():
        if bucket.is_income or month in bucket.allocations:
            continue
        carry = carried_allocation(bucket, month)
        if carry is None:
            continue
        bucket.allocations[month] = carry
        changed.append(bucket.id)
    return changed


__all__ = ["carried_allocation", "carry_forward"]
