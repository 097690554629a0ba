from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from common.config import LocalConfig
from common.logs import get_logger

from .models import Ledger


LOCAL_STATE_KEY = "trowbridge-budget-state"

log = get_logger("state.local_store")


class LocalStore:
    """
    Single-slot JSON file holding the latest ledger snapshot (unencrypted).

    - Backed by `<state_dir>/trowbridge-budget-state.json`.
    - `load()` never raises: a missing, unreadable or invalid slot reads as None.
    - `save()` never raises: persistence here is best-effort.
    - Writes go through a temp file and `os.replace` so a crash mid-write
      leaves the previous snapshot intact.
    """

    def __init__(self, state_dir: Optional[os.PathLike[str] | str] = None) -> None:
        base = Path(state_dir) if state_dir is not None else LocalConfig.from_env().state_dir
        self._path = base / f"{LOCAL_STATE_KEY}.json"

    @classmethod
    def from_config(cls, config: LocalConfig) -> "LocalStore":
        return cls(config.state_dir)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Optional[Ledger]:
        try:
            if not self._path.exists():
                return None
            with self._path.open("r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, ValueError) as ex:
            log.warning("local_slot_unreadable", path=str(self._path), error=str(ex))
            return None

        if raw is None:
            return None
        try:
            return Ledger.from_wire(raw)
        except ValidationError as ex:
            log.warning("local_slot_invalid", path=str(self._path), errors=ex.error_count())
            return None

    def save(self, ledger: Ledger) -> None:
        tmp = self._path.with_name(self._path.name + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with tmp.open("w", encoding="utf-8") as f:
                f.write(ledger.to_json())
            os.replace(tmp, self._path)
        except OSError as ex:
            # Best-effort slot; the caller is never blocked by local failures
            log.warning("local_slot_write_failed", path=str(self._path), error=str(ex))

    def clear(self) -> None:
        try:
            self._path.unlink()
        except FileNotFoundError:
            pass
        except OSError as ex:
            log.warning("local_slot_clear_failed", path=str(self._path), error=str(ex))


__all__ = ["LOCAL_STATE_KEY", "LocalStore"]
