"""
MongoDB remote store.

Every signed-in user owns documents in three collections:
- settings:      one document per owner (_id = owner)
- lessons:       one document per archived lesson
- review_items:  one document per review item

Lesson and item documents use _id = "<owner>/<id>" and carry an `owner`
field, so writing the same id twice overwrites instead of duplicating.
Lesson archives are written in a single transaction (requires a replica
set or Atlas cluster).
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator, Optional

from pymongo import ASCENDING, MongoClient, ReplaceOne
from pymongo.client_session import ClientSession
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from core import config
from core.errors import ArchiveError, ConfigError, RemoteStoreError
from core.storage.base import RemoteStore

logger = logging.getLogger(__name__)

SETTINGS_COLLECTION = "settings"
LESSONS_COLLECTION = "lessons"
ITEMS_COLLECTION = "review_items"

# Fields added by the store, stripped before documents are handed back
_STORE_FIELDS = ("_id", "owner")


def owned_id(owner: str, doc_id: str) -> str:
    """Remote _id of an owner's lesson or item document."""
    return f"{owner}/{doc_id}"


def due_filter(owner: str, threshold: int) -> dict[str, Any]:
    """
    Filter for an owner's items due at `threshold`.

    Documents without a numeric due_at (missing, null, or legacy
    next_review only) are returned too; ReviewItem repairs them on load
    and the caller applies the final due check.
    """
    return {
        "owner": owner,
        "$or": [
            {"due_at": {"$lte": threshold}},
            {"due_at": {"$not": {"$type": "number"}}},
        ],
    }


def _strip(document: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in document.items() if k not in _STORE_FIELDS}


@contextmanager
def _remote_errors(action: str, error_cls: type[RemoteStoreError] = RemoteStoreError) -> Iterator[None]:
    try:
        yield
    except PyMongoError as exc:
        raise error_cls(f"Remote store failed to {action}: {exc}") from exc


class MongoRemoteStore(RemoteStore):
    """
    RemoteStore on a pymongo client.

    Args:
        client: Connected MongoClient
        db_name: Database name (defaults to config.get_mongo_db_name())
    """

    def __init__(self, client: MongoClient, db_name: Optional[str] = None):
        self.client = client
        self.db = client[db_name or config.get_mongo_db_name()]
        self.settings: Collection = self.db[SETTINGS_COLLECTION]
        self.lessons: Collection = self.db[LESSONS_COLLECTION]
        self.items: Collection = self.db[ITEMS_COLLECTION]

    @classmethod
    def from_uri(cls, uri: Optional[str] = None, db_name: Optional[str] = None) -> "MongoRemoteStore":
        """
        Connect using a pooled client.

        Raises:
            ConfigError: if no URI is given and MONGO_URI is not set
        """
        mongo_uri = uri or config.get_mongo_uri()
        if not mongo_uri:
            raise ConfigError("MONGO_URI not found in environment variables")

        client = MongoClient(
            mongo_uri,
            maxPoolSize=10,  # Connection pool size
            minPoolSize=1,   # Keep at least 1 connection alive
            maxIdleTimeMS=60000  # Keep connections alive for 60 seconds
        )
        return cls(client, db_name)

    def ensure_indexes(self) -> None:
        """Create the indexes used by owner listings and the due-date range query."""
        with _remote_errors("create indexes"):
            self.items.create_index([("owner", ASCENDING), ("due_at", ASCENDING)])
            self.lessons.create_index([("owner", ASCENDING), ("created_at", ASCENDING)])

    # ---- Settings ----

    def get_settings(self, owner: str) -> Optional[dict[str, Any]]:
        with _remote_errors("fetch settings"):
            document = self.settings.find_one({"_id": owner})
        return _strip(document) if document else None

    def set_settings(self, owner: str, settings: dict[str, Any]) -> None:
        with _remote_errors("save settings"):
            self.settings.replace_one(
                {"_id": owner},
                {**settings, "_id": owner, "owner": owner},
                upsert=True
            )

    # ---- Lessons ----

    def has_lesson(self, owner: str, lesson_id: str) -> bool:
        with _remote_errors("look up lesson"):
            return self.lessons.count_documents({"_id": owned_id(owner, lesson_id)}, limit=1) > 0

    def list_lessons(self, owner: str) -> list[dict[str, Any]]:
        with _remote_errors("list lessons"):
            cursor = self.lessons.find({"owner": owner}).sort("created_at", ASCENDING)
            return [_strip(document) for document in cursor]

    def commit_archive(
        self,
        owner: str,
        lesson: dict[str, Any],
        items: list[dict[str, Any]]
    ) -> None:
        lesson_id = owned_id(owner, lesson["id"])
        item_writes = [
            ReplaceOne(
                {"_id": owned_id(owner, item["id"])},
                {**item, "_id": owned_id(owner, item["id"]), "owner": owner},
                upsert=True
            )
            for item in items
        ]

        def write_archive(session: ClientSession) -> None:
            self.lessons.replace_one(
                {"_id": lesson_id},
                {**lesson, "_id": lesson_id, "owner": owner},
                upsert=True,
                session=session
            )
            if item_writes:
                self.items.bulk_write(item_writes, ordered=True, session=session)

        with _remote_errors(f"archive lesson {lesson['id']}", ArchiveError):
            with self.client.start_session() as session:
                session.with_transaction(write_archive)

    # ---- Review Items ----

    def query_due(self, owner: str, threshold: int) -> list[dict[str, Any]]:
        with _remote_errors("query due items"):
            cursor = self.items.find(due_filter(owner, threshold))
            return [_strip(document) for document in cursor]

    def count_items(self, owner: str) -> int:
        with _remote_errors("count items"):
            return self.items.count_documents({"owner": owner})

    def upsert_item(self, owner: str, item: dict[str, Any]) -> None:
        with _remote_errors(f"update item {item['id']}"):
            self.items.update_one(
                {"_id": owned_id(owner, item["id"])},
                {"$set": {**item, "owner": owner}},
                upsert=True
            )
