# src/banger_bot/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path


class _ConsoleNoiseFilter(logging.Filter):
    """Console shows banger_bot records; relay chatter and everything else only when serious."""

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name

        if name.startswith("banger_bot."):
            # Relay pool logs every reconnect and NOTICE; the file log has them.
            if name == "banger_bot.connectors.nostr_relays":
                return record.levelno >= logging.WARNING
            return True

        return record.levelno >= logging.ERROR


_FORMAT = logging.Formatter(
    fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)


def setup_logging(
    *,
    log_dir: str | Path = ".local/banger",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Install a filtered stderr handler and a full `banger.log` file handler on
    the root logger, replacing whatever handlers were there.

    Returns the log file path.
    """
    log_file = Path(log_dir) / "banger.log"
    log_file.parent.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.addFilter(_ConsoleNoiseFilter())

    full = logging.FileHandler(str(log_file), encoding="utf-8")
    full.setLevel(file_level)

    for handler in (console, full):
        handler.setFormatter(_FORMAT)
        root.addHandler(handler)

    logging.captureWarnings(True)
    # websockets logs every frame at DEBUG.
    logging.getLogger("websockets").setLevel(logging.INFO)
    return log_file
