"""
SRS Constants

The fixed interval ladder and grade values for the review scheduler.
"""

from enum import Enum


# ---- Quality Grades ----

class Quality(str, Enum):
    """User's self-assessment after seeing the answer."""
    HARD = "hard"   # Forgot or barely recalled
    GOOD = "good"   # Recalled with some effort
    EASY = "easy"   # Recalled instantly


# ---- Level Ladder ----

MIN_LEVEL = 0
MAX_LEVEL = 5   # Ceiling, not an exit: level 5 items keep coming back every 30 days

# Days until an item is due again, indexed by level
INTERVAL_DAYS = (0, 1, 3, 7, 14, 30)

DAY_MS = 86_400_000

# Level change per grade (applied before clamping)
LEVEL_STEP = {
    Quality.HARD: -1,
    Quality.GOOD: +1,
    Quality.EASY: +2,
}
