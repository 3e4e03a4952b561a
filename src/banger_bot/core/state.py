# src/banger_bot/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..connectors.nostr_keys import NostrKeys
from ..tasks.task_store import TaskStore


@dataclass
class AppState:
    # Settings object (real Settings or a test namespace with the same fields).
    settings: Any

    keys: NostrKeys
    task_store: TaskStore
