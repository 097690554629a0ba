from __future__ import annotations

import json
from typing import Any, Dict, List

import httpx
import pytest

from common.config import RemoteConfig
from state.envelope import MalformedPayload, UnsupportedVersion, decrypt, encrypt
from state.remote import RemoteStore, RemoteUnavailable, RemoteWriteError, create_remote_store
from state.supabase_store import SupabaseRemoteStore


CFG = RemoteConfig(url="https://proj.supabase.co", api_key="anon-key", max_attempts=3)


def _store(handler, cfg: RemoteConfig = CFG) -> SupabaseRemoteStore:
    client = httpx.Client(
        base_url="https://proj.supabase.co/rest/v1",
        transport=httpx.MockTransport(handler),
        timeout=5.0,
    )
    return SupabaseRemoteStore(cfg, client=client, sleep=lambda _s: None)


class _FakeTable:
    """In-memory PostgREST table keyed by household_id."""

    def __init__(self) -> None:
        self.rows: Dict[str, Any] = {}
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.method == "GET":
            hid = request.url.params.get("household_id", "").removeprefix("eq.")
            row = self.rows.get(hid)
            return httpx.Response(200, json=[{"payload": row}] if row is not None else [])
        if request.method == "POST":
            body = json.loads(request.content)
            self.rows[body["household_id"]] = body["payload"]
            return httpx.Response(201)
        return httpx.Response(405)


def test_upsert_then_fetch_roundtrip():
    table = _FakeTable()
    with _store(table) as store:
        env = encrypt("pw", {"hello": "world"})
        store.upsert("house-1", env)
        fetched = store.fetch("house-1")

    assert fetched == env
    assert decrypt("pw", fetched) == {"hello": "world"}
    assert table.rows["house-1"]["v"] == 1


def test_request_shapes():
    table = _FakeTable()
    store = _store(table)
    store.upsert("house-1", encrypt("pw", {}))
    store.fetch("house-1")

    post, get = table.requests
    assert post.url.path == "/rest/v1/states"
    assert post.url.params.get("on_conflict") == "household_id"
    assert "resolution=merge-duplicates" in post.headers["prefer"]
    assert post.headers["apikey"] == "anon-key"
    assert post.headers["authorization"] == "Bearer anon-key"

    assert get.url.params.get("select") == "payload"
    assert get.url.params.get("household_id") == "eq.house-1"


def test_fetch_missing_row_returns_none():
    assert _store(_FakeTable()).fetch("nobody") is None


def test_fetch_accepts_payload_stored_as_text():
    env = encrypt("pw", [1])

    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[{"payload": env.to_json()}])

    assert _store(handler).fetch("h") == env


def test_fetch_network_failure_returns_none():
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        raise httpx.ConnectError("down", request=request)

    assert _store(handler).fetch("h") is None
    assert calls["n"] == 3


def test_fetch_error_status_and_garbage_return_none():
    assert _store(lambda _r: httpx.Response(401, json={"message": "nope"})).fetch("h") is None
    assert _store(lambda _r: httpx.Response(200, text="<html>")).fetch("h") is None


def test_fetch_unreadable_stored_payload_raises():
    with pytest.raises(UnsupportedVersion):
        _store(lambda _r: httpx.Response(200, json=[{"payload": {"v": 9}}])).fetch("h")
    with pytest.raises(MalformedPayload):
        _store(lambda _r: httpx.Response(200, json=[{"payload": "garbage"}])).fetch("h")


def test_retry_on_503_then_success():
    env = encrypt("pw", {"a": 1})
    state = {"n": 0}

    def handler(_: httpx.Request) -> httpx.Response:
        state["n"] += 1
        if state["n"] == 1:
            return httpx.Response(503, text="busy")
        return httpx.Response(200, json=[{"payload": env.to_wire()}])

    assert _store(handler).fetch("h") == env
    assert state["n"] == 2


def test_upsert_rejection_raises_write_error():
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(403, json={"message": "permission denied"})

    with pytest.raises(RemoteWriteError):
        _store(handler).upsert("h", encrypt("pw", {}))


def test_upsert_network_failure_raises_write_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(RemoteWriteError) as info:
        _store(handler).upsert("h", encrypt("pw", {}))
    assert isinstance(info.value.__cause__, RemoteUnavailable)


def test_upsert_persistent_5xx_raises_write_error():
    with pytest.raises(RemoteWriteError):
        _store(lambda _r: httpx.Response(500)).upsert("h", encrypt("pw", {}))


def test_unconfigured_store():
    store = SupabaseRemoteStore(RemoteConfig())
    assert store.available() is False
    assert store.fetch("h") is None
    with pytest.raises(RemoteUnavailable):
        store.upsert("h", encrypt("pw", {}))


def test_factory_selects_adapter():
    assert create_remote_store(RemoteConfig()) is None
    store = create_remote_store(CFG, client=httpx.Client(transport=httpx.MockTransport(_FakeTable())))
    assert isinstance(store, SupabaseRemoteStore)
    assert isinstance(store, RemoteStore)
    assert store.available() is True
