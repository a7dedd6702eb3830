"""
Review session lifecycle.

Ties the queue and the scheduler to a persistence gateway:
1. start(): load the caller's due items and build the queue
2. grade_current(): grade the front item, persist it, advance
3. repeat until the queue is exhausted

One session serves one caller; grades must be submitted one at a time.
"""

from __future__ import annotations

import logging
from typing import Optional, Union

from core.errors import SessionFinishedError
from core.srs.constants import Quality
from core.srs.models import ReviewItem
from core.srs.queue import ReviewQueue, build_queue
from core.srs.scheduler import grade, now_ms

logger = logging.getLogger(__name__)


class ReviewSession:
    """A single pass over the caller's due items."""

    def __init__(self, gateway, identity: Optional[str] = None):
        self.gateway = gateway
        self.identity = identity
        self.queue = ReviewQueue()
        self.total = 0
        self.reviewed = 0

    async def start(self, now: Optional[int] = None) -> int:
        """
        Load due items and build the queue.

        Returns:
            Number of items queued for this session
        """
        if now is None:
            now = now_ms()
        items = await self.gateway.get_review_queue(self.identity, now)
        self.queue = build_queue(items, now)
        self.total = len(self.queue)
        self.reviewed = 0
        logger.info("Review session started with %d due items", self.total)
        return self.total

    @property
    def current(self) -> Optional[ReviewItem]:
        return self.queue.peek()

    @property
    def remaining(self) -> int:
        return len(self.queue)

    @property
    def finished(self) -> bool:
        return not self.queue

    async def grade_current(
        self,
        quality: Union[Quality, str],
        now: Optional[int] = None
    ) -> ReviewItem:
        """
        Grade the front item, persist it and move to the next one.

        Returns:
            The graded item as persisted

        Raises:
            SessionFinishedError: if there is no item left to grade
        """
        if not self.queue:
            raise SessionFinishedError("No items left in this review session")

        graded = grade(self.queue.peek(), quality, now)
        await self.gateway.update_item(self.identity, graded)
        self.queue.pop()
        self.reviewed += 1
        return graded
