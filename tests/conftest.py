"""Shared fakes and fixtures.

- FakeEngine: records every negotiation call instead of running aiortc
- FakeLocalMedia: audio/video track pair without capture devices
- RecordingStore: MemoryStore that logs every call it receives
- WatchedRedisStore: RedisStore on a mocked client that keeps its subscriptions
"""

import itertools
from typing import List
from unittest.mock import AsyncMock, MagicMock

import pytest
from aiortc import RTCIceCandidate, RTCSessionDescription

from controllers.call_controller import CallSession
from use_cases.signaling_store import MemoryStore
from use_cases.signaling_store.redis_store import RedisStore

_track_ids = itertools.count(1)


def make_candidate(index: int, mid: str = "0") -> RTCIceCandidate:
    return RTCIceCandidate(
        component=1,
        foundation=str(index),
        ip=f"192.0.2.{index % 250 + 1}",
        port=50000 + index,
        priority=2130706431 - index,
        protocol="udp",
        type="host",
        sdpMid=mid,
        sdpMLineIndex=0,
    )


class FakeTrack:
    def __init__(self, kind: str, track_id: str = None):
        self.kind = kind
        self.id = track_id or f"{kind}-{next(_track_ids)}"
        self.stopped = False

    def stop(self):
        self.stopped = True


class FakeEngine:
    """Negotiation engine double that records calls."""

    def __init__(self, local_candidates: List[RTCIceCandidate] = None):
        self.local_description = None
        self.remote_description = None
        self.local_candidates = list(local_candidates or [])
        self.remote_candidates: List[RTCIceCandidate] = []
        self.outbound_tracks = []
        self.set_remote_calls = 0
        self.closed = False
        self._local_candidate_callbacks = []
        self._track_callbacks = []
        self._state_callbacks = []

    def on_local_candidate(self, callback):
        self._local_candidate_callbacks.append(callback)

    def on_inbound_track(self, callback):
        self._track_callbacks.append(callback)

    def on_connection_state(self, callback):
        self._state_callbacks.append(callback)

    def add_outbound_track(self, track):
        self.outbound_tracks.append(track)

    async def create_local_offer(self):
        return RTCSessionDescription(sdp="v=0\r\no=- 1 1 IN IP4 0.0.0.0\r\n", type="offer")

    async def create_local_answer(self):
        assert self.remote_description is not None, "answer requires a remote offer"
        return RTCSessionDescription(sdp="v=0\r\no=- 2 2 IN IP4 0.0.0.0\r\n", type="answer")

    async def set_local_description(self, description):
        self.local_description = description
        for candidate in self.local_candidates:
            self.emit_local_candidate(candidate)

    async def set_remote_description(self, description):
        self.set_remote_calls += 1
        self.remote_description = description

    def has_remote_description(self):
        return self.remote_description is not None

    async def add_remote_candidate(self, candidate):
        self.remote_candidates.append(candidate)

    async def close(self):
        self.closed = True

    def emit_local_candidate(self, candidate):
        for callback in list(self._local_candidate_callbacks):
            callback(candidate)

    def emit_track(self, track):
        for callback in list(self._track_callbacks):
            callback(track)

    def emit_connection_state(self, state: str):
        for callback in list(self._state_callbacks):
            callback(state)


class FakeLocalMedia:
    def __init__(self):
        self.audio = FakeTrack("audio")
        self.video = FakeTrack("video")
        self.muted = False
        self.stopped = False

    @property
    def tracks(self):
        return [self.audio, self.video]

    def set_muted(self, muted):
        self.muted = muted
        return muted

    def toggle_mute(self):
        return self.set_muted(not self.muted)

    def stop(self):
        self.stopped = True


class RecordingStore(MemoryStore):
    """MemoryStore that keeps a log of (operation, path, field) tuples."""

    WRITE_OPERATIONS = ("create_document", "set_field", "update_field", "append_record")

    def __init__(self):
        super().__init__()
        self.calls = []

    async def create_document(self, collection):
        self.calls.append(("create_document", collection, None))
        return await super().create_document(collection)

    async def set_field(self, doc_path, field, value):
        self.calls.append(("set_field", doc_path, field))
        await super().set_field(doc_path, field, value)

    async def update_field(self, doc_path, field, value):
        self.calls.append(("update_field", doc_path, field))
        await super().update_field(doc_path, field, value)

    async def get_document_once(self, doc_path):
        self.calls.append(("get_document_once", doc_path, None))
        return await super().get_document_once(doc_path)

    async def append_record(self, collection_path, record):
        self.calls.append(("append_record", collection_path, None))
        return await super().append_record(collection_path, record)

    def subscribe_document(self, doc_path, on_change, on_error=None):
        self.calls.append(("subscribe_document", doc_path, None))
        return super().subscribe_document(doc_path, on_change, on_error)

    def subscribe_collection(self, collection_path, on_added, on_error=None):
        self.calls.append(("subscribe_collection", collection_path, None))
        return super().subscribe_collection(collection_path, on_added, on_error)

    def operations(self, name):
        return [call for call in self.calls if call[0] == name]

    def writes(self):
        return [call for call in self.calls if call[0] in self.WRITE_OPERATIONS]


@pytest.fixture
def store():
    return RecordingStore()


def build_session(store, engine=None, media=None, on_remote_track=None):
    """CallSession wired to fakes. Returns (session, engine, media)."""
    engine = engine or FakeEngine()
    media = media or FakeLocalMedia()

    async def media_factory():
        return media

    session = CallSession(
        store,
        media_factory=media_factory,
        engine_factory=lambda: engine,
        on_remote_track=on_remote_track,
    )
    return session, engine, media


def make_redis_client():
    client = MagicMock()
    client.hset = AsyncMock()
    client.hgetall = AsyncMock()
    client.publish = AsyncMock()
    client.xadd = AsyncMock()
    client.xread = AsyncMock()
    client.aclose = AsyncMock()
    return client


class WatchedRedisStore(RedisStore):
    """RedisStore that exposes the last document and collection subscriptions."""

    def __init__(self, client):
        super().__init__(client=client)
        self.document_subscription = None
        self.collection_subscription = None

    def subscribe_document(self, doc_path, on_change, on_error=None):
        self.document_subscription = super().subscribe_document(doc_path, on_change, on_error)
        return self.document_subscription

    def subscribe_collection(self, collection_path, on_added, on_error=None):
        self.collection_subscription = super().subscribe_collection(collection_path, on_added, on_error)
        return self.collection_subscription
