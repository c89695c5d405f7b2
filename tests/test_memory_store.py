"""In-memory signaling store tests."""

import pytest

from use_cases.signaling_store import MemoryStore, candidates_path, get_store, room_path


async def test_create_document_is_empty_and_readable():
    store = MemoryStore()

    room_id = await store.create_document("rooms")

    assert room_id
    assert await store.get_document_once(room_path(room_id)) == {}


async def test_missing_document_reads_as_none():
    store = MemoryStore()

    assert await store.get_document_once(room_path("nope")) is None


async def test_document_subscription_gets_snapshot_then_changes():
    store = MemoryStore()
    room_id = await store.create_document("rooms")
    seen = []

    subscription = store.subscribe_document(room_path(room_id), seen.append)
    await store.set_field(room_path(room_id), "offer", {"type": "offer", "sdp": "x"})

    assert seen == [{}, {"offer": {"type": "offer", "sdp": "x"}}]

    subscription.unsubscribe()
    subscription.unsubscribe()
    await store.update_field(room_path(room_id), "answer", {"type": "answer", "sdp": "y"})

    assert len(seen) == 2
    assert not subscription.active


async def test_snapshots_are_copies():
    store = MemoryStore()
    room_id = await store.create_document("rooms")
    record = {"type": "offer", "sdp": "x"}
    await store.set_field(room_path(room_id), "offer", record)

    record["sdp"] = "changed"
    data = await store.get_document_once(room_path(room_id))
    data["offer"]["sdp"] = "changed again"

    assert (await store.get_document_once(room_path(room_id)))["offer"]["sdp"] == "x"


async def test_collection_subscription_delivers_existing_records_once():
    store = MemoryStore()
    path = candidates_path("r1", "offerCandidates")
    first_id = await store.append_record(path, {"n": 1})
    batches = []

    store.subscribe_collection(path, batches.append)
    second_id = await store.append_record(path, {"n": 2})

    assert batches == [[(first_id, {"n": 1})], [(second_id, {"n": 2})]]


async def test_empty_collection_subscription_is_silent():
    store = MemoryStore()
    batches = []

    store.subscribe_collection(candidates_path("r1", "answerCandidates"), batches.append)

    assert batches == []


async def test_failing_subscriber_does_not_break_writes():
    store = MemoryStore()
    path = candidates_path("r1", "offerCandidates")
    seen = []

    def broken(batch):
        raise RuntimeError("boom")

    store.subscribe_collection(path, broken)
    store.subscribe_collection(path, seen.append)
    await store.append_record(path, {"n": 1})

    assert len(seen) == 1
    assert len(store.records(path)) == 1


def test_get_store_by_name():
    assert isinstance(get_store("memory"), MemoryStore)
    with pytest.raises(ValueError, match="Unknown signaling store"):
        get_store("carrier-pigeon")
