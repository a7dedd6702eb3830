"""
Persistence Gateway - one storage API for anonymous and signed-in callers

Every call takes the caller's identity first:
- None (anonymous): served entirely from the local store
- an account id: served from the remote store, with settings mirrored locally

The gateway picks a backend once per call; the backends never branch on
identity themselves.

Failure policy:
- Local read problems fall back to defaults (logged)
- Remote sync problems are logged and degrade to the local value or a no-op
- A remote lesson archive that fails to commit raises ArchiveError,
  since nothing was written and the caller may retry
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

from pydantic import ValidationError

from core import config
from core.errors import ArchiveError, RemoteStoreError, StorageError
from core.schemas import Lesson, Settings
from core.srs.models import ReviewItem, review_items_for_lesson
from core.srs.scheduler import now_ms
from core.storage.base import (
    ITEMSET_KEY,
    SETTINGS_KEY,
    LocalItemSet,
    LocalStore,
    RemoteStore,
    parse_items,
)

logger = logging.getLogger(__name__)


# ---- Local Settings Mirror ----

def read_local_settings(store: LocalStore) -> Settings:
    """Stored settings over defaults; unreadable settings yield defaults."""
    document = store.get(SETTINGS_KEY)
    if not document:
        return Settings()
    try:
        return Settings().merged_with(document)
    except ValidationError:
        logger.warning("Local settings are malformed, using defaults", exc_info=True)
        return Settings()


def write_local_settings(store: LocalStore, settings: Settings) -> None:
    try:
        store.set(SETTINGS_KEY, settings.model_dump(mode="json"))
    except StorageError:
        logger.error("Failed to save settings locally", exc_info=True)


def _parse_lessons(documents: list[dict]) -> list[Lesson]:
    lessons = []
    for document in documents:
        try:
            lessons.append(Lesson.model_validate(document))
        except ValidationError:
            logger.warning("Skipping malformed lesson %r", document.get("id"))
    return lessons


# ---- Backends ----

class StorageBackend(ABC):
    """Operations the gateway routes to exactly one physical store."""

    @abstractmethod
    async def load_settings(self) -> Settings:
        ...

    @abstractmethod
    async def save_settings(self, settings: Settings) -> None:
        ...

    @abstractmethod
    async def archive_lesson(self, lesson: Lesson, now: int) -> list[ReviewItem]:
        ...

    @abstractmethod
    async def get_review_queue(self, now: int) -> list[ReviewItem]:
        ...

    @abstractmethod
    async def update_item(self, item: ReviewItem) -> None:
        ...

    @abstractmethod
    async def list_lessons(self) -> list[Lesson]:
        ...

    @abstractmethod
    async def count_items(self) -> int:
        ...


class LocalBackend(StorageBackend):
    """
    Anonymous storage: everything lives in the local store.

    Every mutation reads the whole item set, changes it, and writes it back
    in one overwrite. Nothing here suspends.
    """

    def __init__(self, store: LocalStore):
        self.store = store

    def _read_item_set(self) -> LocalItemSet:
        return LocalItemSet.from_document(self.store.get(ITEMSET_KEY))

    def _write_item_set(self, item_set: LocalItemSet) -> bool:
        try:
            self.store.set(ITEMSET_KEY, item_set.to_document())
        except StorageError:
            logger.error("Failed to save local item set", exc_info=True)
            return False
        return True

    async def load_settings(self) -> Settings:
        return read_local_settings(self.store)

    async def save_settings(self, settings: Settings) -> None:
        write_local_settings(self.store, settings)

    async def archive_lesson(self, lesson: Lesson, now: int) -> list[ReviewItem]:
        item_set = self._read_item_set()
        if item_set.has_lesson(lesson.id):
            logger.info("Lesson %s already archived locally", lesson.id)
            return []

        new_items = review_items_for_lesson(lesson, now)
        # Derived ids replace any stray item left under the same id
        new_ids = {item.id for item in new_items}
        item_set.items = [item for item in item_set.items if item.id not in new_ids]
        item_set.lessons.append(lesson.to_document())
        item_set.items.extend(new_items)

        if not self._write_item_set(item_set):
            return []
        logger.info("Archived lesson %s locally with %d review items", lesson.id, len(new_items))
        return new_items

    async def get_review_queue(self, now: int) -> list[ReviewItem]:
        return [item for item in self._read_item_set().items if item.is_due(now)]

    async def update_item(self, item: ReviewItem) -> None:
        item_set = self._read_item_set()
        index = item_set.index_of(item.id)
        if index == -1:
            logger.warning("Review item %s not found locally, update skipped", item.id)
            return
        item_set.items[index] = item
        self._write_item_set(item_set)

    async def list_lessons(self) -> list[Lesson]:
        return _parse_lessons(self._read_item_set().lessons)

    async def count_items(self) -> int:
        return len(self._read_item_set().items)


class RemoteBackend(StorageBackend):
    """
    Signed-in storage: lessons and items live in the remote store.

    Settings are also mirrored to the local store so they stay available
    offline. Remote calls run in a worker thread.
    """

    def __init__(self, local: LocalStore, remote: RemoteStore, owner: str):
        self.local = local
        self.remote = remote
        self.owner = owner

    async def _call(self, method, *args):
        return await asyncio.to_thread(method, self.owner, *args)

    async def load_settings(self) -> Settings:
        settings = read_local_settings(self.local)
        try:
            remote_settings = await self._call(self.remote.get_settings)
        except RemoteStoreError:
            logger.warning("Remote settings fetch failed, using local settings", exc_info=True)
            return settings

        if remote_settings:
            try:
                settings = settings.merged_with(remote_settings)
            except ValidationError:
                logger.warning("Remote settings are malformed, using local settings", exc_info=True)
                return settings
            write_local_settings(self.local, settings)
        return settings

    async def save_settings(self, settings: Settings) -> None:
        write_local_settings(self.local, settings)
        try:
            await self._call(self.remote.set_settings, settings.model_dump(mode="json"))
        except RemoteStoreError:
            logger.warning("Remote settings save failed, kept local copy only", exc_info=True)

    async def archive_lesson(self, lesson: Lesson, now: int) -> list[ReviewItem]:
        try:
            if await self._call(self.remote.has_lesson, lesson.id):
                logger.info("Lesson %s already archived remotely", lesson.id)
                return []
        except RemoteStoreError as exc:
            raise ArchiveError(f"Could not check archive state of lesson {lesson.id}") from exc

        new_items = review_items_for_lesson(lesson, now)
        try:
            await self._call(
                self.remote.commit_archive,
                lesson.to_document(),
                [item.to_document() for item in new_items]
            )
        except ArchiveError:
            logger.error("Remote archive of lesson %s failed, nothing was written", lesson.id)
            raise
        except RemoteStoreError as exc:
            logger.error("Remote archive of lesson %s failed, nothing was written", lesson.id)
            raise ArchiveError(f"Could not archive lesson {lesson.id}") from exc
        logger.info("Archived lesson %s remotely with %d review items", lesson.id, len(new_items))
        return new_items

    async def get_review_queue(self, now: int) -> list[ReviewItem]:
        try:
            documents = await self._call(self.remote.query_due, now)
        except RemoteStoreError:
            logger.warning("Remote review queue query failed", exc_info=True)
            return []
        # Guard against stores whose range query is looser than due_at <= now
        return [item for item in parse_items(documents) if item.is_due(now)]

    async def update_item(self, item: ReviewItem) -> None:
        try:
            await self._call(self.remote.upsert_item, item.to_document())
        except RemoteStoreError:
            logger.warning("Remote update of review item %s failed", item.id, exc_info=True)

    async def list_lessons(self) -> list[Lesson]:
        try:
            documents = await self._call(self.remote.list_lessons)
        except RemoteStoreError:
            logger.warning("Remote lesson listing failed", exc_info=True)
            return []
        return _parse_lessons(documents)

    async def count_items(self) -> int:
        try:
            return await self._call(self.remote.count_items)
        except RemoteStoreError:
            logger.warning("Remote item count failed", exc_info=True)
            return 0


# ---- Gateway ----

class PersistenceGateway:
    """
    Storage-location-agnostic persistence for settings, lessons and review items.

    Args:
        local_store: Store backing anonymous callers and the settings mirror
        remote_store: Store backing signed-in callers (None = local only)
    """

    def __init__(self, local_store: LocalStore, remote_store: Optional[RemoteStore] = None):
        self.local_store = local_store
        self.remote_store = remote_store
        self._local_backend = LocalBackend(local_store)

    def backend_for(self, identity: Optional[str]) -> StorageBackend:
        """Backend serving `identity`."""
        if not identity:
            return self._local_backend
        if self.remote_store is None:
            logger.warning("No remote store configured, serving signed-in caller locally")
            return self._local_backend
        return RemoteBackend(self.local_store, self.remote_store, identity)

    async def load_settings(self, identity: Optional[str]) -> Settings:
        """Settings for the caller: local first, refreshed from remote when signed in."""
        return await self.backend_for(identity).load_settings()

    async def save_settings(self, identity: Optional[str], settings: Settings) -> None:
        """Save settings locally, and best-effort remotely when signed in."""
        await self.backend_for(identity).save_settings(settings)

    async def archive_lesson(
        self,
        identity: Optional[str],
        lesson: Lesson,
        now: Optional[int] = None
    ) -> list[ReviewItem]:
        """
        Archive a lesson and create one review item per vocabulary fragment.

        Idempotent per lesson id: archiving an already-archived lesson
        changes nothing.

        Returns:
            Newly created review items (empty if the lesson was already archived)

        Raises:
            ArchiveError: if a remote archive could not be committed
        """
        if now is None:
            now = now_ms()
        return await self.backend_for(identity).archive_lesson(lesson, now)

    async def get_review_queue(self, identity: Optional[str], now: Optional[int] = None) -> list[ReviewItem]:
        """Every item of the caller's with due_at <= now."""
        if now is None:
            now = now_ms()
        return await self.backend_for(identity).get_review_queue(now)

    async def update_item(self, identity: Optional[str], item: ReviewItem) -> None:
        """Persist a single graded item."""
        await self.backend_for(identity).update_item(item)

    async def list_lessons(self, identity: Optional[str]) -> list[Lesson]:
        """Archived lessons of the caller."""
        return await self.backend_for(identity).list_lessons()

    async def count_items(self, identity: Optional[str]) -> int:
        """Total number of review items the caller owns."""
        return await self.backend_for(identity).count_items()


def build_gateway(local_url: Optional[str] = None, mongo_uri: Optional[str] = None) -> PersistenceGateway:
    """
    Wire a gateway from configuration.

    The remote store is only attached when a Mongo URI is configured.
    """
    from core.storage.local_store import SqlLocalStore
    from core.storage.mongo_store import MongoRemoteStore

    local_store = SqlLocalStore(local_url)
    uri = mongo_uri or config.get_mongo_uri()
    if not uri:
        logger.info("MONGO_URI not set, running with local storage only")
        return PersistenceGateway(local_store)

    remote_store = MongoRemoteStore.from_uri(uri)
    try:
        remote_store.ensure_indexes()
    except RemoteStoreError:
        logger.warning("Could not create remote indexes", exc_info=True)
    return PersistenceGateway(local_store, remote_store)
