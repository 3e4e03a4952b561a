# src/banger_bot/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time; the private key is checked at startup.
- Backward compatible: the env names used by older deployments (PRIVATE_KEY,
  DATA_PATH) are still honoured.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

ENV_PREFIX = "BANGER"

DEFAULT_RELAYS: List[str] = [
    "wss://relay.damus.io",
    "wss://nos.lol",
    "wss://relay.nostr.band",
    "wss://relay.nostrfeed.com",
    "wss://nostr.wine",
    "wss://nostr.sethforprivacy.com",
    "wss://nostr.thank.eu",
    "wss://nostr21.com",
]

# 30 days, below the 2**31 ms single-timer ceiling.
DEFAULT_MAX_DELAY_MS = 30 * 24 * 60 * 60 * 1000


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


load_dotenv(override=False)


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    parts = [p.strip() for p in raw.replace(",", " ").split() if p.strip()]
    return parts


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Identity ----
    private_key: Optional[str]

    # ---- Relays ----
    relays: List[str]
    publish_timeout: float
    fetch_timeout: float
    reconnect_delay: float

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    tasks_path: Path

    # ---- Scheduling limits ----
    max_repetitions: int
    max_tasks: int
    max_delay_ms: int

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "banger-bot") or "banger-bot"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        private_key = _first_env(_k("PRIVATE_KEY"), "PRIVATE_KEY", default=None)
        if private_key is not None:
            private_key = private_key.strip()

        relays = _env_list(_k("RELAYS"), DEFAULT_RELAYS)
        publish_timeout = _env_float(_k("PUBLISH_TIMEOUT"), 10.0)
        fetch_timeout = _env_float(_k("FETCH_TIMEOUT"), 10.0)
        reconnect_delay = _env_float(_k("RECONNECT_DELAY"), 5.0)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/banger"))
        # DATA_PATH is the name used by older deployments (e.g. /data/tasks.json).
        tasks_raw = _first_env(_k("TASKS_PATH"), "DATA_PATH", default=None)
        tasks_path = Path(tasks_raw).expanduser() if tasks_raw else data_dir / "tasks.json"

        max_repetitions = max(1, _env_int(_k("MAX_REPETITIONS"), 3))
        max_tasks = max(1, _env_int(_k("MAX_TASKS"), 10000))
        max_delay_ms = max(1000, _env_int(_k("MAX_DELAY_MS"), DEFAULT_MAX_DELAY_MS))

        return Settings(
            app_name=app_name,
            log_level=log_level,
            private_key=private_key,
            relays=relays,
            publish_timeout=publish_timeout,
            fetch_timeout=fetch_timeout,
            reconnect_delay=reconnect_delay,
            data_dir=data_dir,
            tasks_path=tasks_path,
            max_repetitions=max_repetitions,
            max_tasks=max_tasks,
            max_delay_ms=max_delay_ms,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS

