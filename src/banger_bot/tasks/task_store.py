# src/banger_bot/tasks/task_store.py

from __future__ import annotations

import json
import logging
import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

from .task_models import RepostTask

logger = logging.getLogger(__name__)


class TaskRefused(Exception):
    """Base class for tasks the store will not accept."""


class TaskLimitReached(TaskRefused):
    pass


class TaskAlreadyActive(TaskRefused):
    def __init__(self, target_id: str) -> None:
        super().__init__(f"active task already exists for {target_id}")
        self.target_id = target_id


class TaskStore:
    """
    JSON-file task store.

    The in-memory list is authoritative; the file is a write-through mirror:
    - load() once at startup (missing/corrupt file -> empty store)
    - every add/mutate/remove rewrites the whole file before returning
    - writes go to a temp file first and are swapped in with os.replace

    Only one writer exists (the event loop thread), so there is no locking.
    """

    def __init__(self, path: str | Path = "tasks.json", *, max_tasks: int = 10000) -> None:
        self._path = Path(path)
        self._max_tasks = max(1, int(max_tasks))
        self._tasks: list[RepostTask] = []

    @property
    def path(self) -> Path:
        return self._path

    @property
    def max_tasks(self) -> int:
        return self._max_tasks

    @property
    def tasks(self) -> list[RepostTask]:
        return list(self._tasks)

    def __len__(self) -> int:
        return len(self._tasks)

    # ---- low-level helpers ----

    def _index_of(self, task: RepostTask) -> int:
        for i, t in enumerate(self._tasks):
            if t is task:
                return i
        return -1

    def _records(self) -> list[dict[str, Any]]:
        return [t.to_record() for t in self._tasks]

    # ---- persistence ----

    def load(self) -> list[RepostTask]:
        """
        Replace the in-memory list with the contents of the file.

        Never raises: an unreadable or malformed file yields an empty store.
        """
        self._tasks = []
        if not self._path.exists():
            logger.info("TaskStore ready path=%s total=0 (no file)", self._path)
            return self.tasks

        try:
            data = json.loads(self._path.read_text("utf-8"))
        except (OSError, ValueError):
            logger.exception("Failed to load tasks from %s; starting empty", self._path)
            return self.tasks

        if not isinstance(data, list):
            logger.error("Tasks file %s does not hold a list; starting empty", self._path)
            return self.tasks

        for rec in data:
            try:
                task = RepostTask.from_record(rec)
            except ValueError as e:
                logger.warning("Skipping bad task record: %s", e)
                continue
            if not task.is_active:
                continue
            if self.find_active(task.target_id) is not None:
                logger.warning("Skipping duplicate task for target %s", task.target_id)
                continue
            self._tasks.append(task)

        logger.info("TaskStore ready path=%s total=%d", self._path, len(self._tasks))
        return self.tasks

    def save(self) -> bool:
        """
        Persist the full list. Returns False when the write failed; the
        in-memory state is kept either way.
        """
        tmp = self._path.with_name(self._path.name + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(self._records(), ensure_ascii=False, indent=2), "utf-8")
            os.replace(tmp, self._path)
        except OSError:
            logger.exception("Failed to save tasks to %s", self._path)
            return False
        logger.debug("Saved %d tasks to %s", len(self._tasks), self._path)
        return True

    # ---- public API ----

    def is_full(self) -> bool:
        return len(self._tasks) >= self._max_tasks

    def find_active(self, target_id: str) -> RepostTask | None:
        for t in self._tasks:
            if t.target_id == target_id and t.is_active:
                return t
        return None

    def add(self, task: RepostTask) -> RepostTask:
        if self.is_full():
            raise TaskLimitReached(f"task limit reached ({self._max_tasks})")
        if self.find_active(task.target_id) is not None:
            raise TaskAlreadyActive(task.target_id)
        if not task.is_active:
            raise ValueError("task has no remaining reposts")

        self._tasks.append(task)
        self.save()
        logger.debug(
            "Task added target=%s interval=%s remaining=%d next=%d",
            task.target_id,
            task.interval.value,
            task.remaining_count,
            task.next_fire_time,
        )
        return task

    def mutate(self, task: RepostTask, fn: Callable[[RepostTask], None]) -> RepostTask:
        if self._index_of(task) < 0:
            raise KeyError(task.target_id)
        fn(task)
        self.save()
        return task

    def remove(self, task: RepostTask) -> None:
        idx = self._index_of(task)
        if idx < 0:
            return
        del self._tasks[idx]
        self.save()
        logger.debug("Task removed target=%s", task.target_id)
