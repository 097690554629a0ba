from __future__ import annotations

import os
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field


# Environment variable names
ENV_REMOTE_BACKEND = "BUDGET_REMOTE_BACKEND"
ENV_SUPABASE_URL = "SUPABASE_URL"
ENV_SUPABASE_KEY = "SUPABASE_ANON_KEY"
ENV_REMOTE_TABLE = "BUDGET_REMOTE_TABLE"
ENV_S3_BUCKET = "BUDGET_S3_BUCKET"
ENV_S3_PREFIX = "BUDGET_S3_PREFIX"
ENV_AWS_REGION = "AWS_REGION"
ENV_REMOTE_TIMEOUT = "BUDGET_REMOTE_TIMEOUT"
ENV_REMOTE_ATTEMPTS = "BUDGET_REMOTE_ATTEMPTS"
ENV_STATE_DIR = "BUDGET_STATE_DIR"
ENV_LOG_LEVEL = "BUDGET_LOG_LEVEL"

DEFAULT_TABLE = "states"
DEFAULT_PREFIX = "households/"
DEFAULT_STATE_DIR = ".cache"


def _getenv(name: str, default: Optional[str] = None) -> Optional[str]:
    v = os.environ.get(name)
    return v if v not in (None, "") else default


def _getenv_float(name: str, default: float) -> float:
    raw = _getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError as ex:
        raise ValueError(f"{name} must be a number, got {raw!r}") from ex


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError as ex:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from ex


class RemoteConfig(BaseModel):
    """
    Connection settings for the remote envelope store.

    Passed explicitly to the remote adapters; nothing reads process-wide
    state after construction. `available` only looks at these fields.

    Backends
    - supabase: PostgREST table reached over HTTPS with `url` + `api_key`.
    - s3: one object per household under `bucket`/`prefix` (AWS credentials
      come from the usual boto3 chain).
    """

    backend: Literal["supabase", "s3"] = "supabase"
    url: Optional[str] = Field(default=None, description="Supabase project URL")
    api_key: Optional[str] = Field(default=None, description="Supabase anon/service key")
    table: str = Field(default=DEFAULT_TABLE, description="Table holding household rows")
    bucket: Optional[str] = Field(default=None, description="S3 bucket for envelopes")
    prefix: str = Field(default=DEFAULT_PREFIX, description="S3 key prefix")
    region: Optional[str] = None
    timeout: float = Field(default=10.0, gt=0, description="Per-request timeout (seconds)")
    max_attempts: int = Field(default=3, ge=1, le=10, description="Attempts for transient failures")

    @property
    def available(self) -> bool:
        if self.backend == "s3":
            return bool(self.bucket)
        return bool(self.url) and bool(self.api_key)

    @classmethod
    def from_env(cls) -> "RemoteConfig":
        backend = (_getenv(ENV_REMOTE_BACKEND, "supabase") or "supabase").strip().lower()
        return cls(
            backend=backend,  # type: ignore[arg-type]
            url=_getenv(ENV_SUPABASE_URL),
            api_key=_getenv(ENV_SUPABASE_KEY),
            table=_getenv(ENV_REMOTE_TABLE, DEFAULT_TABLE) or DEFAULT_TABLE,
            bucket=_getenv(ENV_S3_BUCKET),
            prefix=_getenv(ENV_S3_PREFIX, DEFAULT_PREFIX) or DEFAULT_PREFIX,
            region=_getenv(ENV_AWS_REGION),
            timeout=_getenv_float(ENV_REMOTE_TIMEOUT, 10.0),
            max_attempts=_getenv_int(ENV_REMOTE_ATTEMPTS, 3),
        )


class LocalConfig(BaseModel):
    """Where the local (unencrypted) ledger slot lives."""

    state_dir: Path = Field(default=Path(DEFAULT_STATE_DIR))

    @classmethod
    def from_env(cls) -> "LocalConfig":
        return cls(state_dir=Path(_getenv(ENV_STATE_DIR, DEFAULT_STATE_DIR) or DEFAULT_STATE_DIR))


__all__ = [
    "LocalConfig",
    "RemoteConfig",
    "ENV_LOG_LEVEL",
]
