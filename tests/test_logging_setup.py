# tests/test_logging_setup.py

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from banger_bot.logging_setup import _ConsoleNoiseFilter, setup_logging


def _record(name: str, level: int) -> logging.LogRecord:
    return logging.LogRecord(name, level, __file__, 1, "msg", None, None)


@pytest.mark.parametrize(
    "name,level,shown",
    [
        ("banger_bot.tasks.task_scheduler", logging.DEBUG, True),
        ("banger_bot.connectors.nostr_relays", logging.INFO, False),
        ("banger_bot.connectors.nostr_relays", logging.WARNING, True),
        ("websockets.client", logging.WARNING, False),
        ("websockets.client", logging.ERROR, True),
        ("py.warnings", logging.WARNING, False),
    ],
)
def test_console_filter(name: str, level: int, shown: bool) -> None:
    assert _ConsoleNoiseFilter().filter(_record(name, level)) is shown


def test_setup_logging_writes_full_log(tmp_path: Path) -> None:
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    try:
        log_file = setup_logging(log_dir=tmp_path / "logs", console_level=logging.ERROR)

        assert log_file == tmp_path / "logs" / "banger.log"
        assert len(root.handlers) == 2

        logging.getLogger("banger_bot.connectors.nostr_relays").debug("relay chatter %d", 7)
        for h in root.handlers:
            h.flush()

        assert "relay chatter 7" in log_file.read_text("utf-8")
    finally:
        for h in list(root.handlers):
            root.removeHandler(h)
            h.close()
        for h in saved_handlers:
            root.addHandler(h)
        root.setLevel(saved_level)
        logging.captureWarnings(False)
