"""
Negotiation Coordinator

Runs the caller or callee side of the offer/answer handshake as an explicit
state machine. Every input (the start request, room document changes, a
lost room watch, engine connection state changes) is queued and handled by
a single worker task, so only one transition is ever in flight for a
session.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Optional
from tools.config import ANSWER_FIELD, OFFER_FIELD
from tools.errors import (
    NegotiationStateError,
    OfferMissingError,
    RoomNotFoundError,
    SignalingWatchError,
    SignalingWriteError,
)
from tools.logger import log_debug, log_error, log_info, log_warning
from tools.session_status import CallStatus
from use_cases.signaling_store import SignalingStore, Subscription, room_path
from ..states import NegotiationState, SessionRole, can_transition
from .codec import description_from_record, description_to_record


@dataclass
class StartNegotiation:
    future: asyncio.Future


@dataclass
class RoomChanged:
    data: Optional[dict]


@dataclass
class ConnectionStateChanged:
    state: str


@dataclass
class RoomWatchFailed:
    error: BaseException


class NegotiationCoordinator:
    """
    Offer/answer state machine for one session.

    Caller: create offer, publish it, watch the room and apply the answer
    exactly once. Callee: read the room once, apply the offer, publish the
    answer, then wait for the engine to report the connection.
    """

    def __init__(
        self,
        role: SessionRole,
        engine,
        store: SignalingStore,
        room_id: str,
        status: Optional[CallStatus] = None,
    ):
        self.role = role
        self.engine = engine
        self.store = store
        self.room_id = room_id
        self.room_path = room_path(room_id)
        self.status = status

        self.state = NegotiationState.IDLE
        self.connected = asyncio.Event()

        self._answer_applied = False
        self._events: asyncio.Queue = asyncio.Queue()
        self._worker: Optional[asyncio.Task] = None
        self._room_subscription: Optional[Subscription] = None
        self._pending_start: Optional[asyncio.Future] = None

        self.engine.on_connection_state(self._on_connection_state)

    # ----- state -----

    def _transition(self, target: NegotiationState):
        if not can_transition(self.role, self.state, target):
            raise NegotiationStateError(
                f"{self.role.value} cannot move from {self.state.value} to {target.value}"
            )
        log_debug(f"Room {self.room_id} [{self.role.value}] state: {self.state.value} -> {target.value}")
        self.state = target

    def _set_status(self, message: str):
        if self.status:
            self.status.set_status(message)

    def mark_local_media_ready(self):
        """Called by the session once local tracks are bound to the engine."""
        self._transition(NegotiationState.LOCAL_MEDIA_READY)

    # ----- inputs -----

    async def start(self) -> NegotiationState:
        """
        Run the role's entry path and return the state it settles in.

        Raises whatever the entry path raised (RoomNotFoundError,
        OfferMissingError, SignalingWriteError, ...).
        """
        if self.state is not NegotiationState.LOCAL_MEDIA_READY:
            raise NegotiationStateError(
                f"Negotiation can only start once local media is ready (state: {self.state.value})"
            )
        self._ensure_worker()
        future = asyncio.get_running_loop().create_future()
        self._pending_start = future
        self._events.put_nowait(StartNegotiation(future))
        try:
            return await future
        finally:
            self._pending_start = None

    def _on_room_changed(self, data: Optional[dict]):
        self._events.put_nowait(RoomChanged(data))

    def _on_room_watch_error(self, error: BaseException):
        self._events.put_nowait(RoomWatchFailed(error))

    def _on_connection_state(self, state: str):
        self._events.put_nowait(ConnectionStateChanged(state))

    def _ensure_worker(self):
        if self._worker is None:
            self._worker = asyncio.create_task(self._event_loop())

    async def _event_loop(self):
        while True:
            event = await self._events.get()
            try:
                await self._dispatch(event)
            except Exception as e:
                log_error(f"Error handling {type(event).__name__} for room {self.room_id}: {e}")
                if self.status:
                    self.status.set_error(str(e))
            finally:
                self._events.task_done()

    async def _dispatch(self, event: Any):
        if isinstance(event, StartNegotiation):
            try:
                if self.role is SessionRole.CALLER:
                    await self._run_caller()
                else:
                    await self._run_callee()
            except Exception as e:
                if not event.future.done():
                    event.future.set_exception(e)
                return
            if not event.future.done():
                event.future.set_result(self.state)
        elif isinstance(event, RoomChanged):
            await self._handle_room_changed(event.data)
        elif isinstance(event, ConnectionStateChanged):
            self._handle_connection_state(event.state)
        elif isinstance(event, RoomWatchFailed):
            # Reported through the event loop error path like any failed step
            raise SignalingWatchError(f"room {self.room_id}", event.error)

    async def wait_idle(self):
        """Wait until every queued event has been handled or dropped by stop()."""
        await self._events.join()

    # ----- caller -----

    async def _run_caller(self):
        self._set_status("Creating offer...")
        offer = await self.engine.create_local_offer()
        await self.engine.set_local_description(offer)
        self._transition(NegotiationState.OFFER_CREATED)

        await self._publish_description(self.engine.local_description or offer)
        self._transition(NegotiationState.OFFER_PUBLISHED)
        log_info(f"Offer published to room {self.room_id}")

        self._room_subscription = self.store.subscribe_document(
            self.room_path, self._on_room_changed, on_error=self._on_room_watch_error
        )
        self._transition(NegotiationState.AWAITING_ANSWER)
        self._set_status("Waiting for answer...")

    async def _handle_room_changed(self, data: Optional[dict]):
        if self.role is not SessionRole.CALLER:
            return
        if self.state is not NegotiationState.AWAITING_ANSWER:
            if self.state is NegotiationState.CONNECTED:
                log_debug(f"Ignoring room change for room {self.room_id}, answer already applied")
            return
        if not data or not data.get(ANSWER_FIELD):
            return
        if self._answer_applied or self.engine.has_remote_description():
            log_debug(f"Answer already applied for room {self.room_id}")
            return

        answer = description_from_record(data[ANSWER_FIELD], "answer")
        # Set before awaiting so a notification queued behind this one is a no-op
        self._answer_applied = True
        try:
            await self.engine.set_remote_description(answer)
        except Exception:
            # Rejected by the engine: a later answer in the room may still apply
            self._answer_applied = False
            raise
        log_info(f"Answer applied for room {self.room_id}")
        self._mark_connected()

    # ----- callee -----

    async def _run_callee(self):
        self._transition(NegotiationState.AWAITING_OFFER)
        self._set_status("Fetching room info...")
        data = await self.store.get_document_once(self.room_path)
        if data is None:
            raise RoomNotFoundError(self.room_id)
        if not data.get(OFFER_FIELD):
            raise OfferMissingError(self.room_id)

        offer = description_from_record(data[OFFER_FIELD], "offer")
        self._transition(NegotiationState.OFFER_FETCHED)

        self._set_status("Setting remote description...")
        await self.engine.set_remote_description(offer)

        self._set_status("Creating answer...")
        answer = await self.engine.create_local_answer()
        await self.engine.set_local_description(answer)
        self._transition(NegotiationState.ANSWER_CREATED)

        await self._publish_description(self.engine.local_description or answer)
        log_info(f"Answer published to room {self.room_id}")
        self._transition(NegotiationState.AWAITING_CONNECTION)
        self._set_status("Answer sent. Waiting for connection...")

    # ----- shared -----

    async def _publish_description(self, description):
        field = self.role.description_field
        record = description_to_record(description)
        try:
            if self.role is SessionRole.CALLER:
                await self.store.set_field(self.room_path, field, record)
            else:
                await self.store.update_field(self.room_path, field, record)
        except Exception as e:
            raise SignalingWriteError(f"{field} of room {self.room_id}", e) from e

    def _handle_connection_state(self, state: str):
        if state == "connected":
            if self.state is NegotiationState.AWAITING_CONNECTION:
                self._mark_connected()
        elif state in ("failed", "disconnected"):
            log_warning(f"Peer connection {state} for room {self.room_id}")
            if self.status and self.state is not NegotiationState.CLOSED:
                self.status.set_error(f"Peer connection {state}")

    def _mark_connected(self):
        self._transition(NegotiationState.CONNECTED)
        self._set_status("Connected!")
        self.connected.set()
        log_info(f"Room {self.room_id} connected as {self.role.value}")

    async def stop(self):
        """Stop watching the room and drop pending events."""
        if self._room_subscription:
            self._room_subscription.unsubscribe()
            self._room_subscription = None

        if self.state is not NegotiationState.CLOSED:
            self._transition(NegotiationState.CLOSED)

        if self._worker is not None:
            self._worker.cancel()
            await asyncio.gather(self._worker, return_exceptions=True)
            self._worker = None

        if self._pending_start is not None and not self._pending_start.done():
            self._pending_start.cancel()

        while not self._events.empty():
            self._events.get_nowait()
            self._events.task_done()
