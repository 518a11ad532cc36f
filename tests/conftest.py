"""Shared test fixtures for the zipline_bot test suite.

WHY: Several test modules need the same building blocks: upload records
shaped like Zipline's /api/user/files entries, a controllable clock, and
timers that fire only when a test says so. Centralizing them keeps the
session and bot tests deterministic.

HOW: FakeClock is a callable returning a settable "now". FakeTimer mimics
threading.Timer's constructor and start/cancel, but runs its function only
when fire() is called. make_upload_dicts() builds raw API entries.

RULES:
- No test sleeps or waits on a real timer
- Store fixtures always live under tmp_path
- Upload records are newest first, like the API returns them
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List
from unittest.mock import MagicMock

import pytest

from zipline_bot.api.models import UploadRecord
from zipline_bot.core.sessions import SessionRegistry
from zipline_bot.slack.commands import BotServices
from zipline_bot.store import CredentialStore, SettingsStore


# ---------------------------------------------------------------------------
# Time control
# ---------------------------------------------------------------------------


class FakeClock:
    """Callable clock whose time only moves when advance() is called."""

    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTimer:
    """Stand-in for threading.Timer that fires on demand."""

    def __init__(self, interval: float, function: Callable[..., Any], args: Any = None) -> None:
        self.interval = interval
        self.function = function
        self.args = tuple(args or ())
        self.daemon = False
        self.started = False
        self.cancelled = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        self.function(*self.args)


class TimerLog:
    """Timer factory that records every timer it creates."""

    def __init__(self) -> None:
        self.timers: List[FakeTimer] = []

    def __call__(self, interval: float, function: Callable[..., Any], args: Any = None) -> FakeTimer:
        timer = FakeTimer(interval, function, args=args)
        self.timers.append(timer)
        return timer

    @property
    def last(self) -> FakeTimer:
        return self.timers[-1]

    def active(self) -> List[FakeTimer]:
        return [t for t in self.timers if t.started and not t.cancelled]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def timers():
    return TimerLog()


# ---------------------------------------------------------------------------
# Upload data
# ---------------------------------------------------------------------------


def make_upload_dicts(count: int) -> List[Dict[str, Any]]:
    """Raw /api/user/files entries, newest first."""
    return [
        {
            "id": "file{}".format(i),
            "name": "stored{}.png".format(i),
            "originalName": "photo{}.png".format(i),
            "url": "/u/stored{}.png".format(i),
            "size": 2048 * (i + 1),
            "createdAt": "2024-05-{:02d}T12:00:00.000Z".format(28 - (i % 28)),
        }
        for i in range(count)
    ]


def make_uploads(count: int) -> List[UploadRecord]:
    return [UploadRecord.from_dict(d) for d in make_upload_dicts(count)]


@pytest.fixture
def upload_dicts():
    """Factory for raw /api/user/files entries."""
    return make_upload_dicts


@pytest.fixture
def uploads():
    """Factory for parsed UploadRecord lists."""
    return make_uploads


@pytest.fixture
def uploads_12():
    """Twelve uploads: three pages of 5, 5 and 2."""
    return make_uploads(12)


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------


@pytest.fixture
def credential_store(tmp_path):
    return CredentialStore(tmp_path / "userTokens.json")


@pytest.fixture
def settings_store(tmp_path):
    return SettingsStore(tmp_path / "userSettings.json")


# ---------------------------------------------------------------------------
# Bot services
# ---------------------------------------------------------------------------


@pytest.fixture
def zipline():
    """MagicMock ZiplineClient usable as its own context manager."""
    client = MagicMock()
    client.__enter__.return_value = client
    return client


@pytest.fixture
def services(credential_store, settings_store, clock, timers, zipline):
    """BotServices on tmp_path stores, fake timers and a mocked Zipline client."""
    return BotServices(
        credentials=credential_store,
        settings=settings_store,
        sessions=SessionRegistry(clock=clock, timer_factory=timers),
        reporter=MagicMock(),
        base_url="https://zipline.example.com",
        client_factory=MagicMock(return_value=zipline),
        install_url="https://slack.com/oauth/install",
        support_url="https://support.example.com",
        github_url="https://github.com/example/zipline-bot",
    )
