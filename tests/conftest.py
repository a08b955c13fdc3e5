"""Shared fixtures."""

from __future__ import annotations

import pytest

_RELAY_ENV = ("HOST", "PORT", "ADMIN_SECRET", "WEBHOOK_URL", "WEBHOOK_SECRET", "LOG_LEVEL")


@pytest.fixture(autouse=True)
def clean_relay_env(monkeypatch):
    """Keep the developer's shell / .env from leaking into config tests."""
    for key in _RELAY_ENV:
        monkeypatch.delenv(key, raising=False)
