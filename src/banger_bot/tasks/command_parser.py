# src/banger_bot/tasks/command_parser.py

"""
Recurrence command parsing.

Turns loosely formatted mention text into a repeat schedule:

    "that's a banger! daily for 3 times"  -> daily, 3 reposts
    "3 times daily"                        -> daily, 3 reposts
    "hourly for 2 days"                    -> hourly, ceil(48h / 1h) reposts (then capped)

Only the first command-looking fragment of the text is considered.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Final

from .task_models import DAY_MS, HOUR_MS, IntervalClass

DEFAULT_MAX_REPETITIONS: Final[int] = 3

_LITERAL_UNIT: Final[str] = "time"

DURATION_UNITS_MS: Final[dict[str, int]] = {
    "hour": HOUR_MS,
    "day": DAY_MS,
    "week": 7 * DAY_MS,
    "month": 30 * DAY_MS,
    "year": 365 * DAY_MS,
}

_INTERVALS = "|".join(i.value for i in IntervalClass)

# Words the unit slot recognizes. Minutes and seconds are time units too, but
# shorter than any interval, so a command using them is rejected.
_UNIT_WORDS = "|".join([_LITERAL_UNIT, *DURATION_UNITS_MS, "minute", "second"])

# Interval-first ("hourly for 5 times") or count-first ("5 times hourly").
# Any other word after the count is prose and leaves the unit unset.
COMMAND_RE: Final[re.Pattern[str]] = re.compile(
    rf"""
    \b(?:
        (?P<interval>{_INTERVALS})\b (?:\s*for\b)? \s* (?P<count>\d+)
        (?:\s* (?P<unit>(?:{_UNIT_WORDS})s?)\b)?
      |
        (?P<count_first>\d+) (?:\s* (?P<unit_first>(?:{_UNIT_WORDS})s?)\b)?
        \s* (?P<interval_last>{_INTERVALS})\b
    )
    """,
    re.VERBOSE,
)

_WS_RE = re.compile(r"\s+")


@dataclass(slots=True, frozen=True)
class RequestedDuration:
    count: int
    unit: str


@dataclass(slots=True, frozen=True)
class RepeatSchedule:
    interval: IntervalClass
    repetitions: int
    requested: RequestedDuration
    capped: bool = False


def normalize_text(text: str) -> str:
    return _WS_RE.sub(" ", (text or "").lower()).strip()


def _unit_ms(unit: str) -> int | None:
    """Length of one unit in ms, 0 for the literal "times" unit, None if unknown."""
    singular = unit[:-1] if unit.endswith("s") else unit
    if singular == _LITERAL_UNIT:
        return 0
    return DURATION_UNITS_MS.get(singular)


def parse_command(
    text: str, *, max_repetitions: int = DEFAULT_MAX_REPETITIONS
) -> RepeatSchedule | None:
    """
    Parse a recurrence command.

    Returns None when the text holds no command, the unit is minutes or seconds,
    the count is zero, or the requested duration is shorter than one interval.
    A word after the count that is not a unit is ignored (literal count).
    """
    m = COMMAND_RE.search(normalize_text(text))
    if not m:
        return None

    if m.group("interval"):
        interval_raw, count_raw, unit = m.group("interval"), m.group("count"), m.group("unit")
    else:
        interval_raw = m.group("interval_last")
        count_raw, unit = m.group("count_first"), m.group("unit_first")

    unit = unit or "times"
    interval = IntervalClass(interval_raw)
    count = int(count_raw)
    if count < 1:
        return None

    unit_ms = _unit_ms(unit)
    if unit_ms is None:
        return None

    if unit_ms == 0:
        repetitions = count
    else:
        duration_ms = count * unit_ms
        repetitions = -(-duration_ms // interval.period_ms)
        if repetitions < 1:
            return None

    limit = max(1, int(max_repetitions))
    return RepeatSchedule(
        interval=interval,
        repetitions=min(repetitions, limit),
        requested=RequestedDuration(count=count, unit=unit),
        capped=repetitions > limit,
    )
