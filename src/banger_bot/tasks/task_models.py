# src/banger_bot/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

HOUR_MS = 60 * 60 * 1000
DAY_MS = 24 * HOUR_MS


class IntervalClass(StrEnum):
    """Named recurrence period of a repost task."""

    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"

    @property
    def period_ms(self) -> int:
        return INTERVAL_PERIODS_MS[self]

    @classmethod
    def from_db(cls, raw: str | None) -> IntervalClass:
        if not raw:
            raise ValueError("interval is required")
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            raise ValueError(f"unknown interval: {raw!r}") from None


INTERVAL_PERIODS_MS: dict[IntervalClass, int] = {
    IntervalClass.HOURLY: HOUR_MS,
    IntervalClass.DAILY: DAY_MS,
    IntervalClass.WEEKLY: 7 * DAY_MS,
    IntervalClass.MONTHLY: 30 * DAY_MS,
    IntervalClass.YEARLY: 365 * DAY_MS,
}


@dataclass(slots=True)
class RepostTask:
    """
    A scheduled sequence of future reposts bound to one target event.

    next_fire_time is epoch milliseconds. The live timer driving the task is
    owned by the scheduler and never stored here.
    """

    target_id: str
    target_author: str
    interval: IntervalClass
    remaining_count: int
    next_fire_time: int
    requester: str | None = None

    @property
    def is_active(self) -> bool:
        return self.remaining_count > 0

    def to_record(self) -> dict[str, Any]:
        return {
            "target_id": self.target_id,
            "target_author": self.target_author,
            "interval": self.interval.value,
            "remaining_count": self.remaining_count,
            "next_fire_time": self.next_fire_time,
            "requester": self.requester,
        }

    @classmethod
    def from_record(cls, rec: Any) -> RepostTask:
        """
        Build a task from a persisted record.

        Also understands the older layout where the whole target event was kept
        under "original" and counters were named repetitions/nextTime.
        """
        if not isinstance(rec, dict):
            raise ValueError("task record must be an object")

        if "original" in rec:
            original = rec.get("original")
            if not isinstance(original, dict):
                raise ValueError("legacy record has no original event")
            target_id = original.get("id")
            target_author = original.get("pubkey")
            remaining = rec.get("repetitions")
            next_fire = rec.get("nextTime")
            requester = rec.get("requesterPubkey")
        else:
            target_id = rec.get("target_id")
            target_author = rec.get("target_author")
            remaining = rec.get("remaining_count")
            next_fire = rec.get("next_fire_time")
            requester = rec.get("requester")

        if not target_id or not isinstance(target_id, str):
            raise ValueError("target_id is required")
        if not target_author or not isinstance(target_author, str):
            raise ValueError("target_author is required")
        if isinstance(remaining, bool) or not isinstance(remaining, int):
            raise ValueError(f"bad remaining count: {remaining!r}")
        if isinstance(next_fire, bool) or not isinstance(next_fire, (int, float)):
            raise ValueError(f"bad next fire time: {next_fire!r}")

        return cls(
            target_id=target_id,
            target_author=target_author,
            interval=IntervalClass.from_db(rec.get("interval")),
            remaining_count=int(remaining),
            next_fire_time=int(next_fire),
            requester=str(requester) if requester else None,
        )
