"""
Review queue construction.

A queue is built once per session from the items that are due and is then
consumed strictly front to back. Items leave the queue when popped and are
never put back in the same session, even if grading leaves them due
(a level-0 item graded HARD is due again immediately).
"""

from __future__ import annotations

from collections import deque
from typing import Iterable, Iterator, Optional

from core.srs.models import ReviewItem
from core.srs.scheduler import now_ms


class ReviewQueue:
    """One-shot, finite sequence of due items in insertion order."""

    def __init__(self, items: Iterable[ReviewItem] = ()):
        self._items: deque[ReviewItem] = deque(items)

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def __iter__(self) -> Iterator[ReviewItem]:
        # Iterating consumes the queue
        while self._items:
            yield self._items.popleft()

    def peek(self) -> Optional[ReviewItem]:
        """Front item, or None when the queue is exhausted."""
        return self._items[0] if self._items else None

    def pop(self) -> ReviewItem:
        """
        Remove and return the front item.

        Raises:
            IndexError: if the queue is empty
        """
        if not self._items:
            raise IndexError("pop from an empty review queue")
        return self._items.popleft()


def build_queue(items: Iterable[ReviewItem], now: Optional[int] = None) -> ReviewQueue:
    """
    Build the session queue from every item due at `now`.

    Order follows the source; if the source repeats an id only its first
    occurrence is queued.

    Args:
        items: Candidate items (typically the gateway's due subset)
        now: Session start time in epoch ms (defaults to now)

    Returns:
        ReviewQueue of due items
    """
    if now is None:
        now = now_ms()

    seen: set[str] = set()
    due: list[ReviewItem] = []
    for item in items:
        if item.due_at > now or item.id in seen:
            continue
        seen.add(item.id)
        due.append(item)
    return ReviewQueue(due)
