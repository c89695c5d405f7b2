"""Two real aiortc peers calling each other through the in-memory store."""

import asyncio

from aiortc import AudioStreamTrack, VideoStreamTrack

from controllers.call_controller import CallSession, NegotiationState
from use_cases.local_media import LocalMedia
from use_cases.signaling_store import MemoryStore, candidates_path

CONNECT_TIMEOUT = 30


def make_session(store):
    async def media_factory():
        return LocalMedia(AudioStreamTrack(), VideoStreamTrack())

    return CallSession(store, media_factory=media_factory, ice_servers=[])


async def wait_for_engine_state(session, state):
    async def poll():
        while session.engine.connection_state != state:
            await asyncio.sleep(0.05)

    await asyncio.wait_for(poll(), CONNECT_TIMEOUT)


async def test_aiortc_peers_connect_and_exchange_candidates():
    store = MemoryStore()
    caller, callee = make_session(store), make_session(store)

    try:
        room_id, _ = await caller.create_session()
        await callee.join_session(room_id)
        await asyncio.gather(
            caller.wait_connected(CONNECT_TIMEOUT), callee.wait_connected(CONNECT_TIMEOUT)
        )
        await wait_for_engine_state(caller, "connected")
        await caller.relay.drain()
        await callee.relay.drain()
        await caller.relay.drain()

        assert caller.state is NegotiationState.CONNECTED
        assert callee.state is NegotiationState.CONNECTED
        assert callee.engine.connection_state == "connected"

        offer_candidates = store.records(candidates_path(room_id, "offerCandidates"))
        answer_candidates = store.records(candidates_path(room_id, "answerCandidates"))
        assert offer_candidates and answer_candidates
        assert caller.relay.published_count == len(offer_candidates)
        assert callee.relay.published_count == len(answer_candidates)
        assert callee.relay.ingested_count == len(offer_candidates)
        assert caller.relay.ingested_count == len(answer_candidates)
        assert caller.relay.failures == []
        assert callee.relay.failures == []

        assert sorted(t.kind for t in caller.remote_media.tracks) == ["audio", "video"]
        assert sorted(t.kind for t in callee.remote_media.tracks) == ["audio", "video"]
    finally:
        await callee.leave()
        await caller.leave()
