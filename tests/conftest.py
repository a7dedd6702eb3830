import copy
import os

import pytest

# Set test environment variables before core.config is imported
os.environ["TEST_MODE"] = "true"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ.pop("MONGO_URI", None)

from core.errors import RemoteStoreError
from core.schemas import Lesson
from core.storage.base import RemoteStore
from core.storage.gateway import PersistenceGateway
from core.storage.local_store import MemoryLocalStore

NOW = 1_700_000_000_000
USER = "user-123"


class FakeRemoteStore(RemoteStore):
    """
    In-memory RemoteStore.

    Methods named in `failing` raise RemoteStoreError without touching state.
    """

    def __init__(self):
        self.settings = {}
        self.lessons = {}
        self.items = {}
        self.failing = set()
        self.calls = []

    def _enter(self, name):
        self.calls.append(name)
        if name in self.failing:
            raise RemoteStoreError(f"{name} failed")

    def _items_of(self, owner):
        return self.items.setdefault(owner, {})

    def get_settings(self, owner):
        self._enter("get_settings")
        document = self.settings.get(owner)
        return copy.deepcopy(document) if document is not None else None

    def set_settings(self, owner, settings):
        self._enter("set_settings")
        self.settings[owner] = copy.deepcopy(settings)

    def has_lesson(self, owner, lesson_id):
        self._enter("has_lesson")
        return lesson_id in self.lessons.get(owner, {})

    def list_lessons(self, owner):
        self._enter("list_lessons")
        return [copy.deepcopy(lesson) for lesson in self.lessons.get(owner, {}).values()]

    def commit_archive(self, owner, lesson, items):
        self._enter("commit_archive")
        self.lessons.setdefault(owner, {})[lesson["id"]] = copy.deepcopy(lesson)
        owned = self._items_of(owner)
        for item in items:
            owned[item["id"]] = copy.deepcopy(item)

    def query_due(self, owner, threshold):
        # Same matching as the Mongo due filter: non-numeric due dates are returned
        self._enter("query_due")
        return [
            copy.deepcopy(item)
            for item in self._items_of(owner).values()
            if not isinstance(item.get("due_at"), (int, float)) or item["due_at"] <= threshold
        ]

    def count_items(self, owner):
        self._enter("count_items")
        return len(self._items_of(owner))

    def upsert_item(self, owner, item):
        self._enter("upsert_item")
        owned = self._items_of(owner)
        owned[item["id"]] = {**owned.get(item["id"], {}), **copy.deepcopy(item)}


def make_lesson(lesson_id="lesson-1", n_vocab=3, created_at=NOW):
    """Lesson with `n_vocab` simple vocabulary items."""
    return Lesson.model_validate({
        "id": lesson_id,
        "topic": "food",
        "level": "N5",
        "title": [{"text": "食べ物", "furigana": "たべもの"}],
        "vocabulary": [
            {
                "word": [{"text": f"単語{i}", "furigana": f"たんご{i}"}],
                "reading": f"たんご{i}",
                "meaning": f"word {i}",
                "grammar_tag": "noun",
                "example": {"text": [{"text": "例"}], "translation": "example", "grammar_point": ""},
            }
            for i in range(n_vocab)
        ],
        "grammar": [{"point": "〜です", "explanation": "copula"}],
        "texts": {"dialogue": []},
        "created_at": created_at,
    })


@pytest.fixture
def local_store():
    return MemoryLocalStore()


@pytest.fixture
def remote_store():
    return FakeRemoteStore()


@pytest.fixture
def gateway(local_store, remote_store):
    return PersistenceGateway(local_store, remote_store)


@pytest.fixture
def lesson():
    return make_lesson()
