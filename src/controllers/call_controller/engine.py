"""
Peer Connection Engine

Adapter around aiortc's RTCPeerConnection exposing the capability set the
signaling core relies on.

aiortc gathers all local candidates while setting the local description and
does not emit "icecandidate" events. The adapter therefore announces the
candidates found in the local description once it is set, which gives the
relay the same trickle interface a browser would. Remote candidates that
arrive before the remote description are buffered here and flushed once it
is applied.
"""

from typing import Callable, List, Optional
from aiortc import (
    MediaStreamTrack,
    RTCConfiguration,
    RTCIceCandidate,
    RTCIceServer,
    RTCPeerConnection,
    RTCSessionDescription,
)
from aiortc.sdp import candidate_from_sdp
from tools.config import STUN_SERVERS
from tools.logger import log_debug, log_error, log_info, log_warning


def local_candidates_from_sdp(sdp: str) -> List[RTCIceCandidate]:
    """
    Extract the ICE candidates of every media section of an SDP blob.

    The same candidate is listed once per bundled media section; only its
    first occurrence is returned.
    """
    sections = []
    for line in sdp.splitlines():
        line = line.strip()
        if line.startswith("m="):
            sections.append({"mid": None, "candidates": []})
        elif not sections:
            continue
        elif line.startswith("a=mid:"):
            sections[-1]["mid"] = line[len("a=mid:"):]
        elif line.startswith("a=candidate:"):
            sections[-1]["candidates"].append(line[len("a=candidate:"):])

    seen = set()
    candidates = []
    for index, section in enumerate(sections):
        for candidate_sdp in section["candidates"]:
            if candidate_sdp in seen:
                continue
            seen.add(candidate_sdp)
            candidate = candidate_from_sdp(candidate_sdp)
            candidate.sdpMid = section["mid"]
            candidate.sdpMLineIndex = index
            candidates.append(candidate)
    return candidates


class PeerConnectionEngine:
    """
    One negotiation engine instance per call session.

    Args:
        ice_servers: STUN/TURN URLs passed to the RTCConfiguration
        pc: Existing peer connection, mostly useful in tests
    """

    def __init__(self, ice_servers: Optional[List[str]] = None, pc: Optional[RTCPeerConnection] = None):
        if pc is None:
            urls = STUN_SERVERS if ice_servers is None else ice_servers
            config = RTCConfiguration(iceServers=[RTCIceServer(urls=[url]) for url in urls])
            pc = RTCPeerConnection(configuration=config)
        self.pc = pc

        self._local_candidate_callbacks: List[Callable[[RTCIceCandidate], None]] = []
        self._track_callbacks: List[Callable[[MediaStreamTrack], None]] = []
        self._state_callbacks: List[Callable[[str], None]] = []
        self._pending_candidates: List[RTCIceCandidate] = []
        self._closed = False

        @self.pc.on("track")
        def on_track(track):
            log_info(f"Inbound {track.kind} track {track.id}")
            for callback in list(self._track_callbacks):
                callback(track)

        @self.pc.on("connectionstatechange")
        async def on_connection_state_change():
            state = self.pc.connectionState
            log_info(f"Peer connection state: {state}")
            for callback in list(self._state_callbacks):
                callback(state)

        @self.pc.on("iceconnectionstatechange")
        async def on_ice_connection_state_change():
            log_debug(f"ICE connection state: {self.pc.iceConnectionState}")

    @property
    def connection_state(self) -> str:
        return self.pc.connectionState

    @property
    def local_description(self) -> Optional[RTCSessionDescription]:
        return self.pc.localDescription

    @property
    def remote_description(self) -> Optional[RTCSessionDescription]:
        return self.pc.remoteDescription

    def on_local_candidate(self, callback: Callable[[RTCIceCandidate], None]):
        self._local_candidate_callbacks.append(callback)

    def on_inbound_track(self, callback: Callable[[MediaStreamTrack], None]):
        self._track_callbacks.append(callback)

    def on_connection_state(self, callback: Callable[[str], None]):
        self._state_callbacks.append(callback)

    def add_outbound_track(self, track: MediaStreamTrack):
        self.pc.addTrack(track)
        log_debug(f"Added outbound {track.kind} track")

    async def create_local_offer(self) -> RTCSessionDescription:
        return await self.pc.createOffer()

    async def create_local_answer(self) -> RTCSessionDescription:
        return await self.pc.createAnswer()

    async def set_local_description(self, description: RTCSessionDescription):
        await self.pc.setLocalDescription(description)
        log_debug(f"Local {description.type} set")
        self._emit_local_candidates()

    async def set_remote_description(self, description: RTCSessionDescription):
        await self.pc.setRemoteDescription(description)
        log_debug(f"Remote {description.type} set")
        await self._flush_pending_candidates()

    def has_remote_description(self) -> bool:
        return self.pc.remoteDescription is not None

    async def add_remote_candidate(self, candidate: RTCIceCandidate):
        if not self.has_remote_description():
            log_debug("Remote description not set yet, buffering candidate")
            self._pending_candidates.append(candidate)
            return
        await self.pc.addIceCandidate(candidate)

    async def close(self):
        if self._closed:
            return
        self._closed = True
        self._pending_candidates.clear()
        try:
            await self.pc.close()
            log_info("Peer connection closed")
        except Exception as e:
            log_error(f"Error closing peer connection: {e}")

    def _emit_local_candidates(self):
        description = self.pc.localDescription
        if description is None:
            return
        candidates = local_candidates_from_sdp(description.sdp)
        log_debug(f"Announcing {len(candidates)} local candidates")
        for candidate in candidates:
            for callback in list(self._local_candidate_callbacks):
                callback(candidate)

    async def _flush_pending_candidates(self):
        pending, self._pending_candidates = self._pending_candidates, []
        for candidate in pending:
            try:
                await self.pc.addIceCandidate(candidate)
            except Exception as e:
                log_warning(f"Dropping buffered candidate: {e}")
