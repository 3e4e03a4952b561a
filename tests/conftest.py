# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from banger_bot.tasks.task_store import TaskStore

from .fakes import FakeClock


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object with the fields the app reads.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated from the environment.
    """
    return SimpleNamespace(
        app_name="banger-test",
        log_level="DEBUG",
        private_key=None,
        relays=["wss://relay.one", "wss://relay.two"],
        publish_timeout=1.0,
        fetch_timeout=1.0,
        reconnect_delay=0.0,
        data_dir=tmp_path / "data",
        tasks_path=tmp_path / "data" / "tasks.json",
        max_repetitions=3,
        max_tasks=10,
        max_delay_ms=30 * 24 * 60 * 60 * 1000,
    )


@pytest.fixture()
def tasks_path(tmp_path: Path) -> Path:
    return tmp_path / "tasks.json"


@pytest.fixture()
def store(tasks_path: Path) -> TaskStore:
    return TaskStore(tasks_path, max_tasks=10)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()
