"""
Candidate Relay

Forwards local ICE candidates into the room and feeds the peer's candidates
from the room into the negotiation engine.
"""

import asyncio
from typing import Callable, List, Optional, Set
from tools.errors import (
    CallError,
    CandidateIngestionError,
    SignalingWatchError,
    SignalingWriteError,
)
from tools.logger import log_debug, log_error, log_info, log_warning
from use_cases.signaling_store import SignalingStore, Subscription, candidates_path
from ..states import SessionRole
from .codec import candidate_from_record, candidate_to_record


class CandidateRelay:
    """
    Bidirectional candidate forwarding for one session.

    Outbound: every local candidate becomes one independent append to the
    role's own collection. Inbound: records of the peer collection are
    ingested one by one in a single worker, deduplicated by record id. A bad
    record is logged and skipped.
    """

    def __init__(
        self,
        role: SessionRole,
        engine,
        store: SignalingStore,
        room_id: str,
        on_error: Optional[Callable[[CallError], None]] = None,
    ):
        """
        Args:
            role: Role of the local participant
            engine: PeerConnectionEngine of the session
            store: Signaling store holding the room
            room_id: Room identifier
            on_error: Called with a SignalingWriteError when publishing a
                candidate fails, or a SignalingWatchError when the peer
                collection can no longer be watched
        """
        self.role = role
        self.engine = engine
        self.store = store
        self.room_id = room_id
        self.on_error = on_error

        self.outbound_path = candidates_path(room_id, role.outbound_collection)
        self.inbound_path = candidates_path(room_id, role.inbound_collection)

        self.published_count = 0
        self.ingested_count = 0
        self.failures: List[CandidateIngestionError] = []

        self._seen_records: Set[str] = set()
        self._inbound: asyncio.Queue = asyncio.Queue()
        self._publish_tasks: Set[asyncio.Task] = set()
        self._worker: Optional[asyncio.Task] = None
        self._subscription: Optional[Subscription] = None
        self._stopped = False

    @property
    def started(self) -> bool:
        return self._worker is not None

    def start(self):
        """Start both directions. Must run before any description is exchanged."""
        if self._worker is not None:
            return
        self.engine.on_local_candidate(self._on_local_candidate)
        self._worker = asyncio.create_task(self._ingest_loop())
        self._subscription = self.store.subscribe_collection(
            self.inbound_path, self._on_remote_records, on_error=self._on_watch_error
        )
        log_info(
            f"Candidate relay started for room {self.room_id} "
            f"(publishing {self.role.outbound_collection}, watching {self.role.inbound_collection})"
        )

    def _on_local_candidate(self, candidate):
        if self._stopped:
            return
        task = asyncio.create_task(self._publish(candidate))
        self._publish_tasks.add(task)
        task.add_done_callback(self._publish_tasks.discard)

    async def _publish(self, candidate):
        try:
            record_id = await self.store.append_record(
                self.outbound_path, candidate_to_record(candidate)
            )
            self.published_count += 1
            log_debug(f"Local ICE candidate published as {record_id}")
        except Exception as e:
            error = SignalingWriteError(f"ICE candidate to {self.role.outbound_collection}", e)
            log_error(error.message)
            if self.on_error:
                self.on_error(error)

    def _on_watch_error(self, cause: BaseException):
        error = SignalingWatchError(f"{self.role.inbound_collection} of room {self.room_id}", cause)
        log_error(error.message)
        if self.on_error:
            self.on_error(error)

    def _on_remote_records(self, batch):
        if self._stopped:
            return
        for record_id, record in batch:
            self._inbound.put_nowait((record_id, record))

    async def _ingest_loop(self):
        while True:
            record_id, record = await self._inbound.get()
            try:
                await self._ingest(record_id, record)
            finally:
                self._inbound.task_done()

    async def _ingest(self, record_id: str, record: dict):
        if record_id in self._seen_records:
            log_debug(f"Skipping already ingested candidate {record_id}")
            return
        self._seen_records.add(record_id)

        try:
            candidate = candidate_from_record(record)
            await self.engine.add_remote_candidate(candidate)
            self.ingested_count += 1
            log_debug(f"Remote ICE candidate {record_id} added")
        except Exception as e:
            error = CandidateIngestionError(record_id, str(e))
            self.failures.append(error)
            log_warning(f"Error adding ICE candidate: {error.message}")

    async def drain(self):
        """Wait until in-flight publishes and queued inbound records are processed."""
        while self._publish_tasks:
            await asyncio.gather(*list(self._publish_tasks), return_exceptions=True)
        if self._worker is not None:
            await self._inbound.join()

    async def stop(self):
        """Stop watching the peer collection and cancel pending work."""
        if self._stopped:
            return
        self._stopped = True

        if self._subscription:
            self._subscription.unsubscribe()
            self._subscription = None

        tasks = list(self._publish_tasks)
        if self._worker is not None:
            tasks.append(self._worker)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._publish_tasks.clear()
        log_info(
            f"Candidate relay stopped for room {self.room_id} "
            f"(published={self.published_count}, ingested={self.ingested_count}, "
            f"failed={len(self.failures)})"
        )
