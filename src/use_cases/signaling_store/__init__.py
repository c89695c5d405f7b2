"""
Signaling Store

Document store backends used as the signaling mailbox between two peers.
"""

from tools.config import REDIS_URL, SIGNALING_STORE
from .base import (
    SignalingStore,
    Subscription,
    candidates_path,
    room_path,
)
from .memory_store import MemoryStore

__all__ = [
    "SignalingStore",
    "Subscription",
    "MemoryStore",
    "candidates_path",
    "room_path",
    "get_store",
]


def get_store(kind: str = SIGNALING_STORE, redis_url: str = REDIS_URL) -> SignalingStore:
    """
    Build a store backend by name.

    Args:
        kind: "memory" or "redis"
        redis_url: Connection URL used by the redis backend
    """
    if kind == "memory":
        return MemoryStore()
    if kind == "redis":
        from .redis_store import RedisStore

        return RedisStore(redis_url)
    raise ValueError(f"Unknown signaling store: {kind}")
