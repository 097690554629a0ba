from __future__ import annotations

import time
from typing import Any, Dict, Optional

import httpx

from common.config import RemoteConfig
from common.logs import get_logger

from .envelope import Envelope
from .remote import RemoteUnavailable, RemoteWriteError


log = get_logger("state.supabase_store")

_TRANSIENT_STATUSES = (429, 500, 502, 503, 504)


class SupabaseRemoteStore:
    """
    Envelope rows in a Supabase (PostgREST) table.

    Table schema: `{household_id text unique, payload jsonb}`; `payload`
    holds the envelope wire object.

    Notes
    - Every request uses the configured timeout; expiry counts as unavailable.
    - Timeouts, transport errors and 429/5xx are retried with exponential
      backoff up to `config.max_attempts` total attempts.
    - `fetch` maps transport and HTTP failures to None but raises EnvelopeError
      when a stored payload is not a readable envelope; `upsert` raises
      RemoteWriteError.
    """

    def __init__(
        self,
        config: RemoteConfig,
        *,
        client: Optional[httpx.Client] = None,
        sleep=time.sleep,
    ) -> None:
        self._config = config
        self._sleep = sleep
        self._owns_client = client is None
        self._client = client
        if client is None and config.available:
            base_url = f"{(config.url or '').rstrip('/')}/rest/v1"
            self._client = httpx.Client(base_url=base_url, timeout=config.timeout)

    def close(self) -> None:
        if self._owns_client and self._client is not None:
            self._client.close()

    def __enter__(self) -> "SupabaseRemoteStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # --------------- Public API ---------------
    def available(self) -> bool:
        return self._config.available

    def fetch(self, household_id: str) -> Optional[Envelope]:
        client = self._client
        if not self.available() or client is None:
            return None
        params = {"select": "payload", "household_id": f"eq.{household_id}"}
        try:
            resp = self._request(client, "GET", params=params)
        except RemoteUnavailable as ex:
            log.warning("remote_fetch_unavailable", backend="supabase", error=str(ex))
            return None

        if resp.status_code != 200:
            log.warning("remote_fetch_failed", backend="supabase", status=resp.status_code)
            return None
        try:
            rows = resp.json()
        except ValueError:
            log.warning("remote_fetch_bad_json", backend="supabase")
            return None
        if not isinstance(rows, list) or not rows:
            return None
        row = rows[0]
        payload = row.get("payload") if isinstance(row, dict) else None
        if payload is None:
            return None
        return Envelope.from_wire(payload)

    def upsert(self, household_id: str, envelope: Envelope) -> None:
        client = self._client
        if not self.available() or client is None:
            raise RemoteUnavailable("Supabase remote store is not configured")
        body = {"household_id": household_id, "payload": envelope.to_wire()}
        headers = {"Prefer": "resolution=merge-duplicates,return=minimal"}
        try:
            resp = self._request(
                client,
                "POST",
                params={"on_conflict": "household_id"},
                json_body=body,
                headers=headers,
            )
        except RemoteUnavailable as ex:
            raise RemoteWriteError(f"Supabase upsert failed: {ex}") from ex

        if resp.status_code not in (200, 201, 204):
            raise RemoteWriteError(
                f"HTTP {resp.status_code} from Supabase upsert: {resp.text[:200]}"
            )

    # --------------- Internal ---------------
    def _auth_headers(self) -> Dict[str, str]:
        key = self._config.api_key or ""
        return {"apikey": key, "Authorization": f"Bearer {key}"}

    def _request(
        self,
        client: httpx.Client,
        method: str,
        *,
        params: Dict[str, Any],
        json_body: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        all_headers = {**self._auth_headers(), **(headers or {})}
        path = f"/{self._config.table}"

        attempt = 0
        backoff = 0.5
        last_exc: Optional[Exception] = None
        resp: Optional[httpx.Response] = None
        while attempt < self._config.max_attempts:
            try:
                resp = client.request(
                    method, path, params=params, json=json_body, headers=all_headers
                )
            except (httpx.TimeoutException, httpx.TransportError) as exc:
                last_exc = exc
                resp = None
            else:
                if resp.status_code not in _TRANSIENT_STATUSES:
                    return resp

            attempt += 1
            if attempt < self._config.max_attempts:
                self._sleep(backoff)
                backoff = min(backoff * 2, 8.0)

        if resp is not None:
            # Still transient after retries; let the caller judge the status
            return resp
        raise RemoteUnavailable("Supabase request failed after retries") from last_exc


__all__ = ["SupabaseRemoteStore"]
