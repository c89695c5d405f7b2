"""
Redis Signaling Store

Maps the document/collection model onto Redis:
- documents are hashes (one JSON encoded value per field) at "doc:{path}"
- a change to a document is announced on the pub/sub channel "doc:{path}:changes"
- collections are streams at "col:{path}", read with XREAD from the start
"""

import asyncio
import json
import uuid
from datetime import datetime
from typing import Any, Optional
from redis.asyncio import Redis
from tools.config import REDIS_BLOCK_MS, REDIS_URL
from tools.logger import log_debug, log_error, log_info
from .base import (
    CollectionCallback,
    DocumentCallback,
    ErrorCallback,
    Record,
    SignalingStore,
    Subscription,
    notify,
)

## Hash field marking that a document exists even when it has no fields yet
CREATED_MARKER = "__created_at__"
## Maximum number of stream entries delivered per batch
READ_BATCH_SIZE = 100


class RedisStore(SignalingStore):

    def __init__(self, url: str = REDIS_URL, client: Optional[Redis] = None):
        self.url = url
        self._client = client

    def _get_client(self) -> Redis:
        """Redis connection (lazy initialization)"""
        if self._client is None:
            self._client = Redis.from_url(
                self.url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5.0,
            )
            log_info(f"Connected to Redis at {self.url}")
        return self._client

    @staticmethod
    def _doc_key(doc_path: str) -> str:
        return f"doc:{doc_path}"

    @staticmethod
    def _channel(doc_path: str) -> str:
        return f"doc:{doc_path}:changes"

    @staticmethod
    def _stream_key(collection_path: str) -> str:
        return f"col:{collection_path}"

    async def create_document(self, collection: str) -> str:
        doc_id = uuid.uuid4().hex[:20]
        path = f"{collection}/{doc_id}"
        client = self._get_client()
        await client.hset(self._doc_key(path), CREATED_MARKER, datetime.now().isoformat())
        await client.publish(self._channel(path), CREATED_MARKER)
        log_debug(f"Created document {path}")
        return doc_id

    async def set_field(self, doc_path: str, field: str, value: Any):
        client = self._get_client()
        await client.hset(self._doc_key(doc_path), field, json.dumps(value))
        await client.publish(self._channel(doc_path), field)
        log_debug(f"Set {doc_path}.{field}")

    async def update_field(self, doc_path: str, field: str, value: Any):
        await self.set_field(doc_path, field, value)

    async def get_document_once(self, doc_path: str) -> Optional[Record]:
        raw = await self._get_client().hgetall(self._doc_key(doc_path))
        if not raw:
            return None
        return {
            field: json.loads(value)
            for field, value in raw.items()
            if field != CREATED_MARKER
        }

    async def append_record(self, collection_path: str, record: Record) -> str:
        return await self._get_client().xadd(
            self._stream_key(collection_path), {"data": json.dumps(record)}
        )

    def subscribe_document(
        self,
        doc_path: str,
        on_change: DocumentCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> Subscription:
        task = asyncio.create_task(self._watch_document(doc_path, on_change))
        return Subscription(task.cancel, task, on_error)

    def subscribe_collection(
        self,
        collection_path: str,
        on_added: CollectionCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> Subscription:
        task = asyncio.create_task(self._watch_collection(collection_path, on_added))
        return Subscription(task.cancel, task, on_error)

    async def _watch_document(self, doc_path: str, on_change: DocumentCallback):
        channel = self._channel(doc_path)
        pubsub = None
        try:
            pubsub = self._get_client().pubsub()
            # Subscribe before the first read so no change falls in between
            await pubsub.subscribe(channel)
            notify(on_change, await self.get_document_once(doc_path), doc_path)

            async for message in pubsub.listen():
                if message["type"] != "message":
                    continue
                notify(on_change, await self.get_document_once(doc_path), doc_path)
        except asyncio.CancelledError:
            log_debug(f"Document subscription cancelled: {doc_path}")
            raise
        except Exception as e:
            log_error(f"Document subscription error on {doc_path}: {e}")
            raise
        finally:
            if pubsub is not None:
                await pubsub.unsubscribe(channel)
                await pubsub.aclose()

    async def _watch_collection(self, collection_path: str, on_added: CollectionCallback):
        key = self._stream_key(collection_path)
        last_id = "0"
        try:
            while True:
                response = await self._get_client().xread(
                    {key: last_id}, count=READ_BATCH_SIZE, block=REDIS_BLOCK_MS
                )
                for _stream, entries in response or []:
                    if not entries:
                        continue
                    batch = []
                    for record_id, fields in entries:
                        batch.append((record_id, json.loads(fields["data"])))
                    last_id = entries[-1][0]
                    notify(on_added, batch, collection_path)
        except asyncio.CancelledError:
            log_debug(f"Collection subscription cancelled: {collection_path}")
            raise
        except Exception as e:
            log_error(f"Collection subscription error on {collection_path}: {e}")
            raise

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            log_info("Redis connection closed")
