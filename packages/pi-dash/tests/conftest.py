from __future__ import annotations

import pytest

from pi.dash import session as session_module
from pi.dash.config import Config

from .fake_driver import FakeDriver


@pytest.fixture
def driver() -> FakeDriver:
    return FakeDriver(width=40, height=20)


@pytest.fixture
def fast_config() -> Config:
    """Short poll intervals and a timer slow enough not to interfere."""
    return Config(timer_interval=60.0, poll_interval=0.01, close_timeout=1.0)


@pytest.fixture(autouse=True)
def reset_default_session(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(session_module, "_default", None)
    yield
    current = session_module._default
    if current is not None:
        current.close()
