"""Fixtures comunes."""

from __future__ import annotations

import time

import pytest


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    """Registra las pausas sin dormir."""
    pauses = []
    monkeypatch.setattr(time, "sleep", lambda seconds: pauses.append(seconds))
    return pauses


@pytest.fixture
def credentials(monkeypatch):
    import config

    monkeypatch.delenv("USE_SECRET_MANAGER", raising=False)
    monkeypatch.setattr(config, "INTERCOM_ACCESS_TOKEN_ENV", "ic-token")
    monkeypatch.setattr(config, "CAPLENA_API_KEY_ENV", "cp-key")
    return config
