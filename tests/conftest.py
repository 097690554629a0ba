import os
import sys

import pytest
import structlog


def pytest_configure():
    # Make `src/` packages (`common`, `state`, `ledger`) importable without install
    root = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))
    src_path = os.path.join(root, "src")
    if src_path not in sys.path:
        sys.path.insert(0, src_path)


_ENV_VARS = (
    "BUDGET_REMOTE_BACKEND",
    "SUPABASE_URL",
    "SUPABASE_ANON_KEY",
    "BUDGET_REMOTE_TABLE",
    "BUDGET_S3_BUCKET",
    "BUDGET_S3_PREFIX",
    "BUDGET_REMOTE_TIMEOUT",
    "BUDGET_REMOTE_ATTEMPTS",
    "BUDGET_STATE_DIR",
    "BUDGET_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    # Tests never see a developer's real cloud settings
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield
    from state.sync import reset_orchestrator

    reset_orchestrator()
    structlog.reset_defaults()
