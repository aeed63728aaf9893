"""Tests for the in-memory metadata store."""

import pytest

from idolmedia.metadata.store import (
    ANIMATIONS,
    GOD_IDOLS,
    SPLASHES,
    DuplicateKeyError,
    InMemoryMetadataStore,
    configure_indexes,
)


@pytest.mark.asyncio
async def test_create_assigns_id_and_timestamps(store):
    doc = await store.create(SPLASHES, {"serial_no": 1})

    assert len(doc["id"]) == 24
    assert doc["created_at"] == doc["updated_at"]
    assert await store.find_by_id(SPLASHES, doc["id"]) == doc


@pytest.mark.asyncio
async def test_unique_index_rejects_duplicates(store):
    await store.create(SPLASHES, {"serial_no": 1})

    with pytest.raises(DuplicateKeyError) as exc_info:
        await store.create(SPLASHES, {"serial_no": 1})

    assert exc_info.value.status_code == 409
    assert await store.count(SPLASHES) == 1


@pytest.mark.asyncio
async def test_compound_index(store):
    await store.create(ANIMATIONS, {"god_idol_id": "a", "category_id": "x"})
    await store.create(ANIMATIONS, {"god_idol_id": "a", "category_id": "y"})
    await store.create(ANIMATIONS, {"god_idol_id": "b", "category_id": "x"})

    with pytest.raises(DuplicateKeyError):
        await store.create(ANIMATIONS, {"god_idol_id": "a", "category_id": "x"})


@pytest.mark.asyncio
async def test_update_checks_unique_excluding_self(store):
    first = await store.create(SPLASHES, {"serial_no": 1})
    await store.create(SPLASHES, {"serial_no": 2})

    updated = await store.find_by_id_and_update(SPLASHES, first["id"], {"serial_no": 1, "order": 5})
    assert updated["order"] == 5

    with pytest.raises(DuplicateKeyError):
        await store.find_by_id_and_update(SPLASHES, first["id"], {"serial_no": 2})


@pytest.mark.asyncio
async def test_update_missing_returns_none(store):
    assert await store.find_by_id_and_update(SPLASHES, "0" * 24, {"order": 1}) is None


@pytest.mark.asyncio
async def test_find_sorts_by_multiple_keys(store):
    await store.create(SPLASHES, {"serial_no": 3, "order": 1})
    await store.create(SPLASHES, {"serial_no": 1, "order": 2})
    await store.create(SPLASHES, {"serial_no": 2, "order": 1})

    docs = await store.find(SPLASHES, sort=[("order", 1), ("serial_no", 1)])

    assert [d["serial_no"] for d in docs] == [2, 3, 1]


@pytest.mark.asyncio
async def test_find_one_excludes_id(store):
    doc = await store.create(GOD_IDOLS, {"god_id": "g1"})

    assert await store.find_one(GOD_IDOLS, {"god_id": "g1"}) is not None
    assert await store.find_one(GOD_IDOLS, {"god_id": "g1"}, exclude_id=doc["id"]) is None


@pytest.mark.asyncio
async def test_returned_documents_are_copies(store):
    doc = await store.create(SPLASHES, {"serial_no": 1, "video": {"key": "k"}})
    doc["video"]["key"] = "mutated"

    assert (await store.find_by_id(SPLASHES, doc["id"]))["video"]["key"] == "k"


@pytest.mark.asyncio
async def test_transaction_aborts_all_writes(store):
    existing = await store.create(SPLASHES, {"serial_no": 9, "order": 0})

    with pytest.raises(DuplicateKeyError):
        async with store.transaction() as txn:
            await store.create(GOD_IDOLS, {"god_id": "g1"}, session=txn)
            await store.find_by_id_and_update(SPLASHES, existing["id"], {"order": 4}, session=txn)
            await store.create(GOD_IDOLS, {"god_id": "g1"}, session=txn)

    assert await store.count(GOD_IDOLS) == 0
    assert (await store.find_by_id(SPLASHES, existing["id"]))["order"] == 0


@pytest.mark.asyncio
async def test_transaction_commits(store):
    async with store.transaction() as txn:
        await store.create(GOD_IDOLS, {"god_id": "g1"}, session=txn)
        await store.create(GOD_IDOLS, {"god_id": "g2"}, session=txn)

    assert await store.count(GOD_IDOLS) == 2


@pytest.mark.asyncio
async def test_delete_one(store):
    doc = await store.create(SPLASHES, {"serial_no": 1})

    assert await store.delete_one(SPLASHES, {"id": doc["id"]}) is True
    assert await store.delete_one(SPLASHES, {"id": doc["id"]}) is False


def test_configure_indexes_is_idempotent():
    store = InMemoryMetadataStore()
    configure_indexes(store)
    configure_indexes(store)

    assert store._indexes[SPLASHES] == [("serial_no",)]
