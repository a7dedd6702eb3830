"""
Scheduler - SRS Algorithm Logic

Pure grade-driven state transitions (no database calls).

Each item sits on a level of the interval ladder (0..5). A grade moves it
down one level (HARD), up one (GOOD) or up two (EASY), clamped to the
ladder, and the item becomes due INTERVAL_DAYS[level] days later.

Caller is responsible for persisting the returned item.
"""

from __future__ import annotations

import time
from typing import Optional, Union

from core.srs.constants import DAY_MS, INTERVAL_DAYS, LEVEL_STEP, Quality
from core.srs.models import ReviewItem, clamp_level


def now_ms() -> int:
    """Current time in epoch milliseconds."""
    return int(time.time() * 1000)


def next_level(level: int, quality: Union[Quality, str]) -> int:
    """
    Level after grading an item at `level` with `quality`.

    Args:
        level: Current level (assumed already in range)
        quality: HARD, GOOD or EASY (enum or its string value)

    Returns:
        New level, clamped to [0, 5]
    """
    return clamp_level(level + LEVEL_STEP[Quality(quality)])


def due_at_for(level: int, now: int) -> int:
    """Due timestamp (epoch ms) for an item that just reached `level` at `now`."""
    return now + INTERVAL_DAYS[level] * DAY_MS


def grade(
    item: ReviewItem,
    quality: Union[Quality, str],
    now: Optional[int] = None
) -> ReviewItem:
    """
    Grade a review and return the updated item.

    The input item is left untouched.

    Args:
        item: Item being reviewed
        quality: User feedback (HARD, GOOD, EASY)
        now: Review time in epoch ms (defaults to now)

    Returns:
        New ReviewItem with updated level and due_at
    """
    if now is None:
        now = now_ms()

    level = next_level(item.level, quality)
    return item.model_copy(update={"level": level, "due_at": due_at_for(level, now)})
