from __future__ import annotations

from typing import Any, Optional, Protocol, runtime_checkable

from common.config import RemoteConfig

from .envelope import Envelope


class RemoteStoreError(RuntimeError):
    """Base error for remote envelope stores."""


class RemoteUnavailable(RemoteStoreError):
    """Backend unreachable or not configured."""


class RemoteWriteError(RemoteStoreError):
    """A configured backend rejected or failed an upsert."""


@runtime_checkable
class RemoteStore(Protocol):
    """One encrypted envelope per household identifier."""

    def available(self) -> bool:
        """True when endpoint and credentials are configured."""
        ...

    def fetch(self, household_id: str) -> Optional[Envelope]:
        """Return the stored envelope, or None if absent or unreachable.

        Raises EnvelopeError when something is stored but is not a readable
        envelope.
        """
        ...

    def upsert(self, household_id: str, envelope: Envelope) -> None:
        """Create or replace the household's envelope; raises RemoteWriteError."""
        ...


def create_remote_store(config: RemoteConfig, **kwargs: Any) -> Optional[RemoteStore]:
    """Build the adapter for `config.backend`, or None when remote sync isn't configured.

    Extra keyword arguments go to the adapter (e.g. an injected `client`).
    """
    if not config.available:
        return None
    if config.backend == "s3":
        from .s3_store import S3RemoteStore

        return S3RemoteStore(config, **kwargs)
    from .supabase_store import SupabaseRemoteStore

    return SupabaseRemoteStore(config, **kwargs)


__all__ = [
    "RemoteStore",
    "RemoteStoreError",
    "RemoteUnavailable",
    "RemoteWriteError",
    "create_remote_store",
]
