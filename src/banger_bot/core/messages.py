# src/banger_bot/core/messages.py

from __future__ import annotations

import random
from typing import Final

from ..tasks.command_parser import RepeatSchedule

CONFIRM_MESSAGES: Final[tuple[str, ...]] = (
    "You are right, that's a banger! Scheduling now.",
    "This will be even better the second time! On it.",
    "Banger detected! Setting up those reposts.",
)

REPOST_MESSAGES: Final[tuple[str, ...]] = (
    "This banger was brought to you by {user}! 🔥",
    "Blame {user} for this much heat. 🔥",
    "{user} called it: this is a certified banger! 🚀",
    "Shoutout to {user} for unearthing this gem! 💎",
    "Another banger courtesy of {user}! 🎉",
)

# Tasks recovered from old state files may not know who asked for them.
REPOST_FALLBACK: Final[str] = "Banger alert! Reposting this gem."

TASK_LIMIT_REACHED: Final[str] = "Sorry, task limit reached! Try again later."
TASK_ALREADY_ACTIVE: Final[str] = (
    "There's already a task running for this post. Wait until it completes!"
)


def confirmation_text(
    schedule: RepeatSchedule, *, max_repetitions: int, rng: random.Random | None = None
) -> str:
    line = (rng or random).choice(CONFIRM_MESSAGES)
    req = schedule.requested
    if schedule.capped:
        return f"{line} (Capped at {max_repetitions} reposts over {req.count} {req.unit}.)"
    return f"{line} ({schedule.repetitions} reposts over {req.count} {req.unit}.)"


def repost_attribution(user_ref: str | None, *, rng: random.Random | None = None) -> str:
    """Attribution line for a repost. user_ref is a ready-made "nostr:npub..." mention."""
    if not user_ref:
        return REPOST_FALLBACK
    return (rng or random).choice(REPOST_MESSAGES).replace("{user}", user_ref)
