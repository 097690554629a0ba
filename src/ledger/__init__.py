"""
Budget rules that operate on an in-memory Ledger.

Modules:
- months: "YYYY-MM" keys and active-month navigation
- carry_forward: derive a month's allocations from the latest earlier month
- budget: per-month views, totals and ledger mutations
"""

__all__ = [
    "budget",
    "carry_forward",
    "months",
]
