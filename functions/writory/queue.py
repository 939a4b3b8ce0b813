"""
Outbound email queue.

Request handlers push serialised `EmailJob`s here and the worker pops them.
Redis backs the queue in production; the in-memory list is for tests and
local runs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol

import redis
from redis import exceptions as redis_exceptions

logger = logging.getLogger(__name__)


class JobQueue(Protocol):
    def enqueue(self, payload: str) -> None:
        ...

    def dequeue(self, *, block: bool = True, timeout: int | None = None) -> Optional[str]:
        ...

    def size(self) -> int:
        ...


@dataclass
class InMemoryJobQueue:
    items: list[str] = field(default_factory=list)

    def enqueue(self, payload: str) -> None:
        self.items.append(payload)

    def dequeue(self, *, block: bool = True, timeout: int | None = None) -> Optional[str]:
        return self.items.pop(0) if self.items else None

    def size(self) -> int:
        return len(self.items)


@dataclass
class RedisJobQueue:
    """FIFO over a Redis list: RPUSH to enqueue, (B)LPOP to dequeue."""

    url: str
    queue_key: str = "writory:email"

    def __post_init__(self):
        self._connect()

    def _connect(self) -> None:
        self.client = redis.Redis.from_url(self.url, decode_responses=True)

    def enqueue(self, payload: str) -> None:
        self.client.rpush(self.queue_key, payload)

    def dequeue(self, *, block: bool = True, timeout: int | None = None) -> Optional[str]:
        try:
            if not block:
                return self.client.lpop(self.queue_key)
            popped = self.client.blpop([self.queue_key], timeout=timeout or 0)
        except (redis_exceptions.ConnectionError, redis_exceptions.TimeoutError):
            # Managed Redis drops idle connections. Reconnect and report an
            # empty queue so the worker polls again.
            logger.warning("Lost connection to Redis queue %s, reconnecting", self.queue_key)
            self._connect()
            return None
        return popped[1] if popped else None

    def size(self) -> int:
        return int(self.client.llen(self.queue_key))
