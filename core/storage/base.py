"""
Store interfaces used by the persistence gateway.

LocalStore is a synchronous key -> JSON document store with whole-document
writes. RemoteStore is a per-owner document store with range queries and
atomic multi-document archive writes. Both can be swapped without touching
the scheduler.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from pydantic import ValidationError

from core.srs.models import ReviewItem

logger = logging.getLogger(__name__)

# Fixed local document keys
SETTINGS_KEY = "settings"
ITEMSET_KEY = "itemset"


class LocalStore(ABC):
    """Synchronous whole-document store keyed by fixed names."""

    @abstractmethod
    def get(self, key: str) -> Optional[dict[str, Any]]:
        """Stored document, or None if missing or unreadable."""

    @abstractmethod
    def set(self, key: str, value: dict[str, Any]) -> None:
        """
        Overwrite the document stored under `key`.

        Raises:
            StorageError: if the write did not succeed
        """

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove the document stored under `key` (no-op if missing)."""

    @abstractmethod
    def clear(self) -> None:
        """Remove every document."""


class RemoteStore(ABC):
    """
    Per-owner remote document collections: settings, lessons, review items.

    Every method may raise RemoteStoreError.
    """

    @abstractmethod
    def get_settings(self, owner: str) -> Optional[dict[str, Any]]:
        ...

    @abstractmethod
    def set_settings(self, owner: str, settings: dict[str, Any]) -> None:
        ...

    @abstractmethod
    def has_lesson(self, owner: str, lesson_id: str) -> bool:
        ...

    @abstractmethod
    def list_lessons(self, owner: str) -> list[dict[str, Any]]:
        ...

    @abstractmethod
    def commit_archive(
        self,
        owner: str,
        lesson: dict[str, Any],
        items: list[dict[str, Any]]
    ) -> None:
        """Write the lesson and all its items as one all-or-nothing batch (set by id)."""

    @abstractmethod
    def query_due(self, owner: str, threshold: int) -> list[dict[str, Any]]:
        """
        Every item document with due_at <= threshold.

        Documents whose due_at is missing or not a number must be included;
        they are repaired on load and count as immediately due.
        """

    @abstractmethod
    def count_items(self, owner: str) -> int:
        ...

    @abstractmethod
    def upsert_item(self, owner: str, item: dict[str, Any]) -> None:
        """Merge a single item document into the store by id."""


# ---- Item Set Document ----

@dataclass
class LocalItemSet:
    """
    The local "itemset" document: archived lessons plus their review items.

    Lessons are kept as raw documents; items are validated on load.
    """
    lessons: list[dict[str, Any]] = field(default_factory=list)
    items: list[ReviewItem] = field(default_factory=list)

    def has_lesson(self, lesson_id: str) -> bool:
        return any(lesson.get("id") == lesson_id for lesson in self.lessons)

    def index_of(self, item_id: str) -> int:
        """Position of the item with `item_id`, or -1."""
        for index, item in enumerate(self.items):
            if item.id == item_id:
                return index
        return -1

    @classmethod
    def from_document(cls, document: Optional[dict[str, Any]]) -> "LocalItemSet":
        """
        Parse a stored document, dropping anything unusable.

        A missing or malformed document yields an empty set.
        """
        if not document:
            return cls()

        raw_lessons = document.get("lessons", document.get("courses"))
        raw_lessons = raw_lessons if isinstance(raw_lessons, list) else []
        lessons = [lesson for lesson in raw_lessons if isinstance(lesson, dict)]

        raw_items = document.get("items", document.get("srsItems"))
        raw_items = raw_items if isinstance(raw_items, list) else []
        return cls(lessons=lessons, items=parse_items(raw_items))

    def to_document(self) -> dict[str, Any]:
        return {
            "lessons": self.lessons,
            "items": [item.to_document() for item in self.items],
        }


def parse_items(documents: list[Any]) -> list[ReviewItem]:
    """
    Validate stored item documents.

    Out-of-range levels and missing due dates are repaired by the model;
    documents that cannot be repaired (no id) are skipped and logged.
    """
    items = []
    for document in documents:
        try:
            items.append(ReviewItem.model_validate(document))
        except ValidationError as exc:
            logger.warning("Skipping malformed review item %r: %s", document, exc)
    return items
