# src/banger_bot/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- decodes the bot identity,
- wires concrete implementations into AppState.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..connectors.nostr_keys import NostrKeys
from ..core.state import AppState
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Startup configuration is unusable (fatal)."""


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_path.parent.mkdir(parents=True, exist_ok=True)


def load_keys(settings) -> NostrKeys:
    nsec = (getattr(settings, "private_key", None) or "").strip()
    if not nsec.lower().startswith("nsec"):
        raise ConfigError("PRIVATE_KEY env var must be nsec format!")
    try:
        return NostrKeys.from_nsec(nsec)
    except ValueError as e:
        raise ConfigError(f"Invalid nsec private key: {e}") from e


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().

    Raises ConfigError when the private key is missing or malformed.
    The task store is created empty; the connector loads it right before the recovery pass.
    """
    if settings is None:
        settings = get_settings()

    keys = load_keys(settings)
    _ensure_local_dirs(settings)

    return AppState(
        settings=settings,
        keys=keys,
        task_store=TaskStore(settings.tasks_path, max_tasks=settings.max_tasks),
    )
