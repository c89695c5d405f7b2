"""
Signaling Store Interface

The store is used as a mailbox between the two participants of a room:
documents with named fields, plus append-only record collections nested
below a document. Both kinds can be watched for changes.
"""

import asyncio
from typing import Any, Callable, Dict, List, Optional, Tuple
from tools.config import ROOMS_COLLECTION

Record = Dict[str, Any]
RecordBatch = List[Tuple[str, Record]]
DocumentCallback = Callable[[Optional[Record]], None]
CollectionCallback = Callable[[RecordBatch], None]
ErrorCallback = Callable[[BaseException], None]


def room_path(room_id: str) -> str:
    """Path of a room document."""
    return f"{ROOMS_COLLECTION}/{room_id}"


def candidates_path(room_id: str, collection: str) -> str:
    """Path of a candidate collection nested below a room document."""
    return f"{room_path(room_id)}/{collection}"


class Subscription:
    """
    Handle returned by the subscribe_* methods.

    unsubscribe() may be called any number of times. When the subscription
    runs as a task and that task dies with an exception, on_error receives
    the exception and the subscription becomes inactive.
    """

    def __init__(
        self,
        cancel: Callable[[], None],
        task: Optional[asyncio.Task] = None,
        on_error: Optional[ErrorCallback] = None,
    ):
        self._cancel = cancel
        self.task = task
        self._on_error = on_error
        self._active = True
        if task is not None:
            task.add_done_callback(self._task_done)

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self):
        if not self._active:
            return
        self._active = False
        self._cancel()

    def _task_done(self, task: asyncio.Task):
        if task.cancelled():
            return
        error = task.exception()
        if error is None or not self._active:
            return
        self._active = False
        if self._on_error:
            notify(self._on_error, error, "subscription error")


class SignalingStore:
    """
    Document store capability consumed by the signaling core.

    Callbacks registered through subscribe_document/subscribe_collection are
    plain callables. They must return quickly; the signaling core only
    enqueues the delivered data.
    """

    async def create_document(self, collection: str) -> str:
        """Create an empty document and return its generated id."""
        raise NotImplementedError

    async def set_field(self, doc_path: str, field: str, value: Any):
        """Create or replace a single field of a document."""
        raise NotImplementedError

    async def update_field(self, doc_path: str, field: str, value: Any):
        """Update a single field of a document (upsert)."""
        raise NotImplementedError

    async def get_document_once(self, doc_path: str) -> Optional[Record]:
        """Read a document once. Returns None when it does not exist."""
        raise NotImplementedError

    async def append_record(self, collection_path: str, record: Record) -> str:
        """Append a record to a collection and return its generated id."""
        raise NotImplementedError

    def subscribe_document(
        self,
        doc_path: str,
        on_change: DocumentCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> Subscription:
        """
        Watch a document.

        on_change receives the current snapshot right after subscribing and a
        fresh snapshot after every change. on_error is called once if the
        watch stops because of a backend failure.
        """
        raise NotImplementedError

    def subscribe_collection(
        self,
        collection_path: str,
        on_added: CollectionCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> Subscription:
        """
        Watch a collection for added records.

        Records present before the subscription are delivered once, exactly
        like records added later. on_error behaves as in subscribe_document.
        """
        raise NotImplementedError

    async def close(self):
        """Release connections held by the store."""


def notify(callback: Callable, payload, what: str):
    """Invoke a subscriber callback without letting it break the store."""
    from tools.logger import log_error

    try:
        callback(payload)
    except Exception as e:
        log_error(f"Error in {what} subscriber: {e}")
