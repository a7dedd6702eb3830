"""
SRS - Spaced Repetition Scheduler

Main API for reviewing archived lesson vocabulary.

Items climb a fixed six-level ladder (due after 0, 1, 3, 7, 14, 30 days).
Grading is a pure function; persistence is the gateway's job
(see core.storage).

Quick start:
    from core import srs

    # Build today's queue from the gateway's due items
    queue = srs.build_queue(items, now)

    # Grade the front item and persist the result
    graded = srs.grade(queue.pop(), srs.Quality.GOOD, now)
    await gateway.update_item(identity, graded)
"""

# Core scheduler API (algorithm logic)
from core.srs.scheduler import grade, next_level, due_at_for, now_ms
from core.srs.queue import ReviewQueue, build_queue
from core.srs.session import ReviewSession

# Data model
from core.srs.models import (
    ItemKind,
    ReviewItem,
    clamp_level,
    review_items_for_lesson,
    vocab_item_id,
)

# Constants
from core.srs.constants import (
    Quality,
    MIN_LEVEL,
    MAX_LEVEL,
    INTERVAL_DAYS,
    DAY_MS,
)


__all__ = [
    # Core algorithm
    "grade",
    "next_level",
    "due_at_for",
    "now_ms",
    "build_queue",
    "ReviewQueue",
    "ReviewSession",

    # Data model
    "ItemKind",
    "ReviewItem",
    "clamp_level",
    "review_items_for_lesson",
    "vocab_item_id",

    # Constants
    "Quality",
    "MIN_LEVEL",
    "MAX_LEVEL",
    "INTERVAL_DAYS",
    "DAY_MS",
]
