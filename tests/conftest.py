"""Shared fixtures: a Qt core application for timers, a temp store and a fake clock."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from PySide6.QtCore import QCoreApplication

from codequest.core.storage import JsonFileStore


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture(scope="session", autouse=True)
def qapp() -> QCoreApplication:
    app = QCoreApplication.instance()
    if app is None:
        app = QCoreApplication([])
    return app


@pytest.fixture()
def state_file(tmp_path: Path) -> Path:
    return tmp_path / "state.json"


@pytest.fixture()
def store(state_file: Path) -> JsonFileStore:
    """JsonFileStore backed by a temp file so tests don't touch ~/.codequest."""
    return JsonFileStore(state_file)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(datetime(2025, 8, 17, 9, 0, tzinfo=timezone.utc))
