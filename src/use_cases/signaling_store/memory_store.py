"""
In-process signaling store.

Both participants must live in the same process (tests, loopback demo).
Subscribers are notified synchronously from the writing coroutine. Nothing
here can fail after subscribing, so on_error is accepted and never called.
"""

import copy
import uuid
from typing import Any, Dict, List, Optional
from tools.logger import log_debug
from .base import (
    CollectionCallback,
    DocumentCallback,
    ErrorCallback,
    Record,
    RecordBatch,
    SignalingStore,
    Subscription,
    notify,
)


class MemoryStore(SignalingStore):

    def __init__(self):
        self._documents: Dict[str, Record] = {}
        self._collections: Dict[str, RecordBatch] = {}
        self._document_listeners: Dict[str, List[DocumentCallback]] = {}
        self._collection_listeners: Dict[str, List[CollectionCallback]] = {}

    async def create_document(self, collection: str) -> str:
        doc_id = uuid.uuid4().hex[:20]
        path = f"{collection}/{doc_id}"
        self._documents[path] = {}
        log_debug(f"Created document {path}")
        self._notify_document(path)
        return doc_id

    async def set_field(self, doc_path: str, field: str, value: Any):
        self._write_field(doc_path, field, value)

    async def update_field(self, doc_path: str, field: str, value: Any):
        self._write_field(doc_path, field, value)

    def _write_field(self, doc_path: str, field: str, value: Any):
        self._documents.setdefault(doc_path, {})[field] = copy.deepcopy(value)
        log_debug(f"Set {doc_path}.{field}")
        self._notify_document(doc_path)

    async def get_document_once(self, doc_path: str) -> Optional[Record]:
        return self._snapshot(doc_path)

    async def append_record(self, collection_path: str, record: Record) -> str:
        record_id = uuid.uuid4().hex[:20]
        entry = (record_id, copy.deepcopy(record))
        self._collections.setdefault(collection_path, []).append(entry)
        for callback in list(self._collection_listeners.get(collection_path, [])):
            notify(callback, [(record_id, copy.deepcopy(record))], collection_path)
        return record_id

    def subscribe_document(
        self,
        doc_path: str,
        on_change: DocumentCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> Subscription:
        listeners = self._document_listeners.setdefault(doc_path, [])
        listeners.append(on_change)
        notify(on_change, self._snapshot(doc_path), doc_path)
        return Subscription(lambda: self._remove(listeners, on_change))

    def subscribe_collection(
        self,
        collection_path: str,
        on_added: CollectionCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> Subscription:
        listeners = self._collection_listeners.setdefault(collection_path, [])
        listeners.append(on_added)
        existing = copy.deepcopy(self._collections.get(collection_path, []))
        if existing:
            notify(on_added, existing, collection_path)
        return Subscription(lambda: self._remove(listeners, on_added))

    def records(self, collection_path: str) -> RecordBatch:
        """All records of a collection in insertion order."""
        return copy.deepcopy(self._collections.get(collection_path, []))

    def _snapshot(self, doc_path: str) -> Optional[Record]:
        if doc_path not in self._documents:
            return None
        return copy.deepcopy(self._documents[doc_path])

    def _notify_document(self, doc_path: str):
        for callback in list(self._document_listeners.get(doc_path, [])):
            notify(callback, self._snapshot(doc_path), doc_path)

    @staticmethod
    def _remove(listeners: List, callback):
        if callback in listeners:
            listeners.remove(callback)
