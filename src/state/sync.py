"""
Local-first load/save of the ledger across the local slot and the remote store.

Load: with household id + passphrase and a configured remote, fetch and
decrypt the remote envelope; on success mirror it into the local slot and
return it. Anything else falls back to the local slot.

Save: always write the local slot first; then, with credentials and a
configured remote, encrypt and upsert. Only a failed remote write reaches
the caller (as RemoteWriteError); the local copy is already committed.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Literal, Optional

from pydantic import ValidationError

from common.config import LocalConfig, RemoteConfig
from common.logs import ensure_logging, get_logger

from . import envelope as codec
from .local_store import LocalStore
from .models import Ledger
from .remote import RemoteStore, create_remote_store


log = get_logger("state.sync")

Source = Literal["remote", "local", "none"]
RemoteStatus = Literal["skipped", "unavailable", "absent", "loaded", "undecryptable", "invalid"]


@dataclass(frozen=True)
class LoadResult:
    """
    Outcome of a load, with where the ledger came from.

    remote_status
    - skipped: no household id/passphrase given
    - unavailable: remote sync not configured
    - absent: nothing stored for the household (or backend unreachable)
    - loaded: remote envelope decrypted and used
    - undecryptable: an envelope exists but the passphrase does not open it
    - invalid: something is stored but is not a usable ledger (unreadable
      envelope, unknown envelope version, bad JSON, schema)
    """

    ledger: Optional[Ledger]
    source: Source
    remote_status: RemoteStatus


class SyncOrchestrator:
    def __init__(self, local: LocalStore, remote: Optional[RemoteStore] = None) -> None:
        self._local = local
        self._remote = remote

    @classmethod
    def from_config(cls, local: LocalConfig, remote: RemoteConfig) -> "SyncOrchestrator":
        return cls(LocalStore.from_config(local), create_remote_store(remote))

    @property
    def local(self) -> LocalStore:
        return self._local

    def cloud_available(self) -> bool:
        return self._remote is not None and self._remote.available()

    # -------- Load --------
    def load_state(self, household_id: Optional[str], passphrase: Optional[str]) -> Optional[Ledger]:
        return self.load_state_detailed(household_id, passphrase).ledger

    def load_state_detailed(
        self, household_id: Optional[str], passphrase: Optional[str]
    ) -> LoadResult:
        remote = self._remote
        if not household_id or not passphrase:
            status: RemoteStatus = "skipped"
        elif remote is None or not remote.available():
            status = "unavailable"
        else:
            ledger, status = self._load_remote(remote, household_id, passphrase)
            if ledger is not None:
                self._local.save(ledger)
                return LoadResult(ledger=ledger, source="remote", remote_status="loaded")

        if status == "undecryptable":
            log.warning("remote_state_undecryptable", household_id=household_id)
        local = self._local.load()
        return LoadResult(ledger=local, source="local" if local is not None else "none", remote_status=status)

    def _load_remote(
        self, remote: RemoteStore, household_id: str, passphrase: str
    ) -> tuple[Optional[Ledger], RemoteStatus]:
        try:
            env = remote.fetch(household_id)
        except codec.EnvelopeError as ex:
            log.warning("remote_payload_invalid", household_id=household_id, error=type(ex).__name__)
            return None, "invalid"
        if env is None:
            return None, "absent"
        try:
            document = codec.decrypt(passphrase, env)
        except codec.DecryptionFailed:
            return None, "undecryptable"
        except codec.EnvelopeError as ex:
            log.warning("remote_state_unreadable", household_id=household_id, error=type(ex).__name__)
            return None, "invalid"
        try:
            return Ledger.from_wire(document), "loaded"
        except ValidationError as ex:
            log.warning("remote_state_invalid", household_id=household_id, errors=ex.error_count())
            return None, "invalid"

    # -------- Save --------
    def save_state(
        self,
        ledger: Ledger,
        household_id: Optional[str] = None,
        passphrase: Optional[str] = None,
    ) -> None:
        """Persist locally, then remotely when credentials and remote are present.

        Raises RemoteWriteError if the remote upsert fails; the local slot has
        been written by then.
        """
        self._local.save(ledger)
        remote = self._remote
        if not household_id or not passphrase or remote is None or not remote.available():
            return
        env = codec.encrypt(passphrase, ledger.to_wire())
        remote.upsert(household_id, env)
        log.debug("remote_state_saved", household_id=household_id)


# -------- Process-wide entry points --------
@lru_cache()
def get_orchestrator() -> SyncOrchestrator:
    """Orchestrator built from environment configuration (cached).

    Call `reset_orchestrator()` after changing the environment.
    """
    ensure_logging()
    return SyncOrchestrator.from_config(LocalConfig.from_env(), RemoteConfig.from_env())


def reset_orchestrator() -> None:
    get_orchestrator.cache_clear()


def load_state(household_id: Optional[str], passphrase: Optional[str]) -> Optional[Ledger]:
    return get_orchestrator().load_state(household_id, passphrase)


def save_state(
    ledger: Ledger,
    household_id: Optional[str] = None,
    passphrase: Optional[str] = None,
) -> None:
    get_orchestrator().save_state(ledger, household_id, passphrase)


def cloud_available() -> bool:
    return get_orchestrator().cloud_available()


__all__ = [
    "LoadResult",
    "SyncOrchestrator",
    "cloud_available",
    "get_orchestrator",
    "load_state",
    "reset_orchestrator",
    "save_state",
]
