import pytest

from conftest import NOW, USER, make_lesson
from core.errors import ArchiveError
from core.schemas import Settings
from core.srs import DAY_MS, Quality, grade
from core.storage.base import ITEMSET_KEY, SETTINGS_KEY
from core.storage.gateway import LocalBackend, PersistenceGateway, RemoteBackend


def test_backend_is_selected_by_identity(gateway):
    assert isinstance(gateway.backend_for(None), LocalBackend)
    assert isinstance(gateway.backend_for(""), LocalBackend)
    remote = gateway.backend_for(USER)
    assert isinstance(remote, RemoteBackend)
    assert remote.owner == USER


# ---- Settings ----

async def test_load_settings_merges_remote_over_local_and_mirrors(gateway, local_store, remote_store):
    await gateway.save_settings(None, Settings(openai_key="local-key", user_name="Local"))
    remote_store.settings[USER] = {"user_name": "Remote", "selected_model": "openai"}

    settings = await gateway.load_settings(USER)

    assert settings.user_name == "Remote"
    assert settings.selected_model == "openai"
    assert settings.openai_key == "local-key"
    assert local_store.get(SETTINGS_KEY)["user_name"] == "Remote"


async def test_load_settings_returns_local_when_remote_fails(gateway, remote_store):
    saved = Settings(gemini_key="g-key", user_name="Aiko")
    await gateway.save_settings(None, saved)
    remote_store.failing.add("get_settings")

    assert await gateway.load_settings(USER) == saved


async def test_load_settings_without_remote_document(gateway):
    assert await gateway.load_settings(USER) == Settings()


async def test_save_settings_writes_both_stores(gateway, local_store, remote_store):
    settings = Settings(user_name="Aiko")

    await gateway.save_settings(USER, settings)

    assert remote_store.settings[USER]["user_name"] == "Aiko"
    assert local_store.get(SETTINGS_KEY)["user_name"] == "Aiko"


async def test_save_settings_remote_failure_keeps_local_copy(gateway, local_store, remote_store):
    remote_store.failing.add("set_settings")

    await gateway.save_settings(USER, Settings(user_name="Aiko"))

    assert USER not in remote_store.settings
    assert local_store.get(SETTINGS_KEY)["user_name"] == "Aiko"


# ---- Archive ----

async def test_remote_archive_writes_lesson_and_items(gateway, local_store, remote_store):
    items = await gateway.archive_lesson(USER, make_lesson("abc", n_vocab=3), NOW)

    assert [i.id for i in items] == ["vocab-abc-0", "vocab-abc-1", "vocab-abc-2"]
    assert list(remote_store.lessons[USER]) == ["abc"]
    assert sorted(remote_store.items[USER]) == ["vocab-abc-0", "vocab-abc-1", "vocab-abc-2"]
    assert local_store.get(ITEMSET_KEY) is None


async def test_remote_archive_is_idempotent(gateway, remote_store):
    lesson = make_lesson("abc", n_vocab=3)

    await gateway.archive_lesson(USER, lesson, NOW)
    second = await gateway.archive_lesson(USER, lesson, NOW + 1)

    assert second == []
    assert len(remote_store.lessons[USER]) == 1
    assert len(remote_store.items[USER]) == 3
    assert remote_store.calls.count("commit_archive") == 1


async def test_remote_archive_failure_raises_and_writes_nothing(gateway, remote_store):
    remote_store.failing.add("commit_archive")

    with pytest.raises(ArchiveError):
        await gateway.archive_lesson(USER, make_lesson("abc"), NOW)

    assert remote_store.lessons == {}
    assert remote_store.items == {}


async def test_remote_archive_check_failure_raises(gateway, remote_store):
    remote_store.failing.add("has_lesson")

    with pytest.raises(ArchiveError):
        await gateway.archive_lesson(USER, make_lesson("abc"), NOW)

    assert "commit_archive" not in remote_store.calls


async def test_owners_are_isolated(gateway):
    await gateway.archive_lesson(USER, make_lesson("abc", n_vocab=2), NOW)

    assert await gateway.get_review_queue("someone-else", NOW) == []
    assert await gateway.get_review_queue(None, NOW) == []
    assert len(await gateway.get_review_queue(USER, NOW)) == 2


# ---- Review Queue / Updates ----

async def test_remote_update_then_queue_round_trip(gateway):
    [item] = await gateway.archive_lesson(USER, make_lesson("abc", n_vocab=1), NOW)
    graded = grade(item, Quality.EASY, NOW)

    await gateway.update_item(USER, graded)

    assert await gateway.get_review_queue(USER, graded.due_at) == [graded]
    assert await gateway.get_review_queue(USER, graded.due_at - 1) == []


async def test_remote_query_failure_degrades_to_empty_queue(gateway, remote_store):
    await gateway.archive_lesson(USER, make_lesson("abc"), NOW)
    remote_store.failing.add("query_due")

    assert await gateway.get_review_queue(USER, NOW) == []


async def test_remote_update_failure_is_not_raised(gateway, remote_store):
    [item] = await gateway.archive_lesson(USER, make_lesson("abc", n_vocab=1), NOW)
    remote_store.failing.add("upsert_item")

    await gateway.update_item(USER, grade(item, Quality.GOOD, NOW))

    assert remote_store.items[USER]["vocab-abc-0"]["level"] == 0


async def test_local_and_remote_modes_agree(local_store, remote_store):
    gateway = PersistenceGateway(local_store, remote_store)
    lesson = make_lesson("abc", n_vocab=4)

    for identity in (None, USER):
        items = await gateway.archive_lesson(identity, lesson, NOW)
        await gateway.update_item(identity, grade(items[0], Quality.GOOD, NOW))
        await gateway.update_item(identity, grade(items[2], Quality.HARD, NOW))

    for now in (NOW, NOW + DAY_MS, NOW + 2 * DAY_MS):
        local = await gateway.get_review_queue(None, now)
        remote = await gateway.get_review_queue(USER, now)
        assert sorted(i.id for i in local) == sorted(i.id for i in remote)

    assert await gateway.count_items(None) == await gateway.count_items(USER) == 4
    assert [lesson.id for lesson in await gateway.list_lessons(USER)] == ["abc"]


async def test_remote_listing_failures_degrade(gateway, remote_store):
    remote_store.failing.update({"list_lessons", "count_items"})

    assert await gateway.list_lessons(USER) == []
    assert await gateway.count_items(USER) == 0


async def test_unrepaired_items_are_due_in_both_modes(gateway, local_store, remote_store):
    stored = [
        {"id": "a", "kind": "vocabulary", "payload": {}, "level": 1},
        {"id": "b", "type": "vocab", "content": {}, "srs_level": 0, "next_review": 5},
        {"id": "c", "type": "vocab", "content": {}, "srs_level": 2, "next_review": NOW + DAY_MS},
        {"id": "d", "kind": "vocabulary", "payload": {}, "level": 1, "due_at": None},
    ]
    local_store.set(ITEMSET_KEY, {"lessons": [], "items": stored})
    remote_store.items[USER] = {item["id"]: dict(item) for item in stored}

    local = await gateway.get_review_queue(None, NOW)
    remote = await gateway.get_review_queue(USER, NOW)

    assert [i.id for i in local] == ["a", "b", "d"]
    assert remote == local
