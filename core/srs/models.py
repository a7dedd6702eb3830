"""
Review item model.

A ReviewItem is the unit the scheduler works on. It is created once, when a
lesson is archived, and only ever changed by grading. The payload is the
lesson fragment the item was derived from and is never inspected here.

Persisted items are validated leniently: documents written before a schema
change (or by older clients using type/content/srs_level/next_review) are
repaired on load rather than rejected.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from core.schemas import Lesson
from core.srs.constants import MAX_LEVEL, MIN_LEVEL


class ItemKind(str, Enum):
    """What a review item asks about."""
    VOCABULARY = "vocabulary"
    GRAMMAR = "grammar"


# Kind names used by older clients
_LEGACY_KINDS = {
    "vocab": ItemKind.VOCABULARY,
}


def clamp_level(level: int) -> int:
    """Clamp a level into [MIN_LEVEL, MAX_LEVEL]."""
    return max(MIN_LEVEL, min(MAX_LEVEL, level))


class ReviewItem(BaseModel):
    """
    Spaced-repetition state for a single learned item.

    Immutable: grading returns a new item (see core.srs.scheduler.grade).
    """
    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(..., min_length=1)
    kind: ItemKind = Field(
        default=ItemKind.VOCABULARY,
        validation_alias=AliasChoices("kind", "type"),
    )
    payload: dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("payload", "content"),
    )
    level: int = Field(
        default=MIN_LEVEL,
        validation_alias=AliasChoices("level", "srs_level"),
    )
    due_at: int = Field(
        default=0,
        validation_alias=AliasChoices("due_at", "dueAt", "next_review"),
        description="Epoch milliseconds; the item may be shown once now >= due_at",
    )

    @field_validator("kind", mode="before")
    @classmethod
    def _normalize_kind(cls, value: Any) -> Any:
        if isinstance(value, str):
            return _LEGACY_KINDS.get(value, value)
        return value

    @field_validator("level", mode="before")
    @classmethod
    def _clamp_level(cls, value: Any) -> int:
        try:
            level = int(value)
        except (TypeError, ValueError, OverflowError):
            return MIN_LEVEL
        return clamp_level(level)

    @field_validator("due_at", mode="before")
    @classmethod
    def _default_due_at(cls, value: Any) -> int:
        # Missing or unreadable due dates make the item immediately due
        try:
            return int(value)
        except (TypeError, ValueError, OverflowError):
            return 0

    def is_due(self, now: int) -> bool:
        return self.due_at <= now

    def to_document(self) -> dict[str, Any]:
        """JSON-serializable document for either store."""
        return self.model_dump(mode="json")


def vocab_item_id(lesson_id: str, index: int) -> str:
    """Stable id of the review item for a lesson's index-th vocabulary fragment."""
    return f"vocab-{lesson_id}-{index}"


def review_items_for_lesson(lesson: Lesson, now: int) -> list[ReviewItem]:
    """
    Derive one new review item per vocabulary fragment, in lesson order.

    New items start at level 0 and are due immediately.
    """
    return [
        ReviewItem(
            id=vocab_item_id(lesson.id, index),
            kind=ItemKind.VOCABULARY,
            payload=vocab.model_dump(mode="json"),
            level=MIN_LEVEL,
            due_at=now,
        )
        for index, vocab in enumerate(lesson.vocabulary)
    ]
