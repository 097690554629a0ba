from __future__ import annotations

import datetime as dt
import json
from typing import Any, Dict, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator
from pydantic.alias_generators import to_camel

from ledger.months import is_month_key, month_key


SCHEMA_VERSION = 1


class LedgerError(KeyError):
    """Raised when a ledger operation references an unknown bucket or transaction."""


class _Record(BaseModel):
    # camelCase on the wire; unknown fields ride along untouched
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        allow_inf_nan=False,
    )


class Bucket(_Record):
    """
    A spending category with per-month allocations.

    Fields
    - allocations: month key ("YYYY-MM") -> allocated amount.
    - is_income: exactly one bucket per ledger carries income; its allocations
      are ignored by budgeting math.
    - deleted_months: months in which the bucket is hidden even if it has an
      allocation. Accepts the legacy object form {"2024-01": true}.
    """

    id: str = Field(min_length=1)
    name: str
    allocations: Dict[str, float] = Field(default_factory=dict)
    is_income: bool = False
    deleted_months: Set[str] = Field(default_factory=set)

    @field_validator("allocations", mode="before")
    @classmethod
    def _none_allocations(cls, v: Any) -> Any:
        return {} if v is None else v

    @field_validator("is_income", mode="before")
    @classmethod
    def _none_is_false(cls, v: Any) -> Any:
        return False if v is None else v

    @field_validator("deleted_months", mode="before")
    @classmethod
    def _legacy_deleted_months(cls, v: Any) -> Any:
        if v is None:
            return set()
        if isinstance(v, dict):
            return {k for k, flag in v.items() if flag}
        return v

    @field_validator("allocations")
    @classmethod
    def _check_allocation_keys(cls, v: Dict[str, float]) -> Dict[str, float]:
        bad = [k for k in v if not is_month_key(k)]
        if bad:
            raise ValueError(f"Invalid allocation month keys: {bad}")
        return v

    @field_validator("deleted_months")
    @classmethod
    def _check_deleted_keys(cls, v: Set[str]) -> Set[str]:
        bad = sorted(k for k in v if not is_month_key(k))
        if bad:
            raise ValueError(f"Invalid deleted month keys: {bad}")
        return v

    @field_serializer("deleted_months")
    def _sorted_deleted_months(self, v: Set[str]) -> List[str]:
        return sorted(v)

    def allocation(self, month: str) -> float:
        return self.allocations.get(month, 0.0)

    def is_active(self, month: str) -> bool:
        return month in self.allocations and month not in self.deleted_months


class Transaction(_Record):
    """A dated money movement. Negative amounts are expenses."""

    id: str = Field(min_length=1)
    date: dt.date
    description: str = ""
    amount: float
    bucket_id: Optional[str] = None
    deleted: bool = False

    @field_validator("deleted", mode="before")
    @classmethod
    def _none_is_false(cls, v: Any) -> Any:
        return False if v is None else v

    @property
    def month(self) -> str:
        return month_key(self.date)


class Ledger(_Record):
    """
    The budget document persisted locally and (encrypted) remotely.

    - buckets: insertion-ordered mapping of bucket id -> Bucket. The legacy
      list form is accepted on input.
    - transactions: newest import first. The legacy `txns` key is accepted.
    - schema_version: absent means 1; newer versions are rejected.
    """

    schema_version: int = SCHEMA_VERSION
    buckets: Dict[str, Bucket] = Field(default_factory=dict)
    transactions: List[Transaction] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _legacy_shapes(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if "txns" in data and "transactions" not in data:
            data["transactions"] = data.pop("txns")
        buckets = data.get("buckets")
        if isinstance(buckets, list):
            by_id: Dict[Any, Any] = {}
            for b in buckets:
                bid = b.get("id") if isinstance(b, dict) else getattr(b, "id", None)
                if not isinstance(bid, str):
                    raise ValueError(f"Bucket id must be a string, got {type(bid).__name__}")
                if bid in by_id:
                    raise ValueError(f"Duplicate bucket id: {bid!r}")
                by_id[bid] = b
            data["buckets"] = by_id
        elif buckets is None:
            data.pop("buckets", None)
        return data

    @field_validator("schema_version", mode="before")
    @classmethod
    def _default_schema_version(cls, v: Any) -> Any:
        return SCHEMA_VERSION if v is None else v

    @field_validator("schema_version")
    @classmethod
    def _check_schema_version(cls, v: int) -> int:
        if v < 1 or v > SCHEMA_VERSION:
            raise ValueError(f"Unsupported ledger schema version: {v}")
        return v

    @model_validator(mode="after")
    def _check_invariants(self) -> "Ledger":
        for key, bucket in self.buckets.items():
            if key != bucket.id:
                raise ValueError(f"Bucket key {key!r} does not match bucket id {bucket.id!r}")
        if self.buckets:
            income = [b.id for b in self.buckets.values() if b.is_income]
            if len(income) != 1:
                raise ValueError(f"Ledger must have exactly one income bucket, found {len(income)}")
        return self

    @classmethod
    def empty(cls) -> "Ledger":
        return cls()

    # -------- Lookups --------
    def income_bucket(self) -> Bucket:
        for b in self.buckets.values():
            if b.is_income:
                return b
        raise LedgerError("Ledger has no income bucket")

    def bucket(self, bucket_id: str) -> Bucket:
        try:
            return self.buckets[bucket_id]
        except KeyError:
            raise LedgerError(f"Unknown bucket: {bucket_id}") from None

    def transaction(self, txn_id: str) -> Transaction:
        for t in self.transactions:
            if t.id == txn_id:
                return t
        raise LedgerError(f"Unknown transaction: {txn_id}")

    # -------- Wire helpers --------
    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    def to_json(self) -> str:
        return json.dumps(self.to_wire(), separators=(",", ":"))

    @classmethod
    def from_wire(cls, data: Any) -> "Ledger":
        return cls.model_validate(data)


__all__ = ["Bucket", "Ledger", "LedgerError", "SCHEMA_VERSION", "Transaction"]
