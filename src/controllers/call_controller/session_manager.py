"""
Call Session Manager

Owns one call attempt: role selection (create vs. join), room allocation or
lookup, and the wiring of the candidate relay and negotiation coordinator to
a single negotiation engine.
"""

import asyncio
from typing import Callable, Optional, Tuple
from tools.config import ROOMS_COLLECTION
from tools.errors import (
    CallError,
    InvalidRoomIdError,
    NegotiationStateError,
    SignalingWriteError,
)
from tools.logger import log_error, log_info, log_warning
from tools.session_status import CallStatus
from use_cases.local_media import acquire_local_media
from use_cases.signaling_store import SignalingStore
from .engine import PeerConnectionEngine
from .remote_media import RemoteMediaProjection
from .signaling import CandidateRelay, NegotiationCoordinator
from .states import NegotiationState, SessionRole


class CallSession:
    """
    One participant's side of a two-party call.

    A session runs at most one call attempt at a time. A failed attempt is
    torn down completely and can be retried on the same object.
    """

    def __init__(
        self,
        store: SignalingStore,
        media_factory: Optional[Callable] = None,
        engine_factory: Optional[Callable] = None,
        ice_servers=None,
        on_remote_track: Optional[Callable] = None,
        status: Optional[CallStatus] = None,
    ):
        """
        Args:
            store: Signaling store shared with the peer
            media_factory: Coroutine function returning LocalMedia
            engine_factory: Callable returning a new PeerConnectionEngine
            ice_servers: STUN/TURN URLs for the default engine factory
            on_remote_track: Called once for every inbound media track
            status: Status board to report progress to
        """
        self.store = store
        self._media_factory = media_factory or acquire_local_media
        self._engine_factory = engine_factory or (lambda: PeerConnectionEngine(ice_servers))
        self._on_remote_track = on_remote_track
        self.status = status or CallStatus()

        self.role: Optional[SessionRole] = None
        self.room_id: Optional[str] = None
        self.engine = None
        self.local_media = None
        self.relay: Optional[CandidateRelay] = None
        self.coordinator: Optional[NegotiationCoordinator] = None
        self.remote_media: Optional[RemoteMediaProjection] = None
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    @property
    def state(self) -> NegotiationState:
        if self.coordinator is None:
            return NegotiationState.IDLE
        return self.coordinator.state

    def _ensure_idle(self):
        if self._active:
            raise NegotiationStateError(
                f"A call is already active in room {self.room_id} as {self.role.value}"
            )

    async def create_session(self) -> Tuple[str, SessionRole]:
        """
        Create a room and start the caller side of the negotiation.

        Local media is acquired before the room is allocated, so a capture
        failure never leaves an empty room behind.

        Returns:
            (room_id, SessionRole.CALLER)

        Raises:
            MediaAcquisitionError: local capture could not start
            SignalingWriteError: the room or the offer could not be written
        """
        self._ensure_idle()
        self._active = True
        self.status.begin_action("Creating room...")
        try:
            await self._prepare(SessionRole.CALLER)
            try:
                self.room_id = await self.store.create_document(ROOMS_COLLECTION)
            except Exception as e:
                raise SignalingWriteError("room document", e) from e
            log_info(f"Room {self.room_id} created")
            self._wire()
            await self.coordinator.start()
        except Exception as e:
            await self._abort(f"Failed to create room: {e}")
            raise
        return self.room_id, self.role

    async def join_session(self, room_id: str) -> SessionRole:
        """
        Join an existing room and run the callee side of the negotiation.

        Raises:
            InvalidRoomIdError: room_id is empty (raised before any store access)
            MediaAcquisitionError: local capture could not start
            RoomNotFoundError: no room with this id
            OfferMissingError: the room has no offer yet
            SignalingWriteError: the answer could not be written
        """
        if room_id is None or not room_id.strip():
            # A running call keeps its status line
            if not self._active:
                self.status.fail("Please enter a room id.")
            raise InvalidRoomIdError("Room id must not be empty")
        self._ensure_idle()
        self._active = True
        self.status.begin_action("Joining room...")
        try:
            self.room_id = room_id.strip()
            await self._prepare(SessionRole.CALLEE)
            self._wire()
            await self.coordinator.start()
        except Exception as e:
            await self._abort(f"Failed to join room: {e}")
            raise
        if self.state is not NegotiationState.CONNECTED:
            self.status.set_status("Joined room. Connecting...")
        return self.role

    async def _prepare(self, role: SessionRole):
        self.role = role
        self.engine = self._engine_factory()
        self.remote_media = RemoteMediaProjection(self._on_remote_track, self.status)
        self.engine.on_inbound_track(self.remote_media.handle_track)

        self.local_media = await self._media_factory()
        for track in self.local_media.tracks:
            self.engine.add_outbound_track(track)
        self.status.set_status("Local media stream acquired.")

    def _wire(self):
        self.status.set_status("Setting up signaling...")
        self.relay = CandidateRelay(
            self.role, self.engine, self.store, self.room_id, on_error=self._on_relay_error
        )
        self.coordinator = NegotiationCoordinator(
            self.role, self.engine, self.store, self.room_id, self.status
        )
        # The relay watches the peer collection before any description moves
        self.relay.start()
        self.coordinator.mark_local_media_ready()

    def _on_relay_error(self, error: CallError):
        self.status.set_error(error.message)

    async def wait_connected(self, timeout: Optional[float] = None):
        """Wait until the negotiation reaches CONNECTED."""
        if self.coordinator is None:
            raise NegotiationStateError("No call in progress")
        await asyncio.wait_for(self.coordinator.connected.wait(), timeout)

    def set_muted(self, muted: bool) -> bool:
        if self.local_media is None:
            raise NegotiationStateError("No call in progress")
        return self.local_media.set_muted(muted)

    def toggle_mute(self) -> bool:
        """Mute or unmute the local audio tracks. Returns the new muted state."""
        if self.local_media is None:
            raise NegotiationStateError("No call in progress")
        return self.local_media.toggle_mute()

    async def _abort(self, message: str):
        log_error(message)
        await self._teardown()
        self.status.fail(message)

    async def _teardown(self):
        if self.coordinator is not None:
            await self.coordinator.stop()
        if self.relay is not None:
            await self.relay.stop()
        if self.engine is not None:
            await self.engine.close()
        if self.local_media is not None:
            self.local_media.stop()

        self.coordinator = None
        self.relay = None
        self.engine = None
        self.local_media = None
        self.room_id = None
        self.role = None
        self._active = False

    async def leave(self):
        """Hang up: stop signaling, close the peer connection, release media."""
        if not self._active:
            return
        room_id = self.room_id
        await self._teardown()
        self.status.reset()
        log_info(f"Left room {room_id}")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        try:
            await self.leave()
        except Exception as e:
            log_warning(f"Error leaving call: {e}")
