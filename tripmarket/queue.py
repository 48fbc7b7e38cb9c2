"""
Plan job queue.

The API pushes plan ids; workers pop them. Redis in production, an
in-process deque for tests and single-process dev runs.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Optional, Protocol

import redis
from redis import exceptions as redis_exceptions

logger = logging.getLogger(__name__)


class JobQueue(Protocol):
    """Dispatches plan ids to workers."""

    def enqueue(self, plan_id: str) -> None:
        ...

    def dequeue(self, *, block: bool = True, timeout: int | None = None) -> Optional[str]:
        ...


@dataclass
class InMemoryJobQueue:
    """FIFO queue shared by threads of one process."""

    items: deque = field(default_factory=deque)
    _ready: threading.Condition = field(default_factory=threading.Condition, repr=False)

    def enqueue(self, plan_id: str) -> None:
        with self._ready:
            self.items.append(plan_id)
            self._ready.notify()

    def dequeue(self, *, block: bool = True, timeout: int | None = None) -> Optional[str]:
        with self._ready:
            if block and not self.items:
                self._ready.wait_for(lambda: bool(self.items), timeout=timeout)
            if not self.items:
                return None
            return self.items.popleft()

    def __len__(self) -> int:
        return len(self.items)


@dataclass
class RedisJobQueue:
    """RPUSH on enqueue, BLPOP (or LPOP) on dequeue."""

    url: str
    queue_key: str = "tripmarket:plans"

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)

    def enqueue(self, plan_id: str) -> None:
        self.client.rpush(self.queue_key, plan_id)

    def dequeue(self, *, block: bool = True, timeout: int | None = None) -> Optional[str]:
        try:
            if block:
                result = self.client.blpop(self.queue_key, timeout=timeout or 0)
                if result is None:
                    return None
                _, plan_id = result
            else:
                plan_id = self.client.lpop(self.queue_key)
                if plan_id is None:
                    return None
        except redis_exceptions.ConnectionError as exc:
            # Managed Redis drops idle connections; reconnect and report empty.
            logger.warning("Redis connection lost (%s); reconnecting", exc)
            self.client = redis.Redis.from_url(self.url)
            return None
        if isinstance(plan_id, bytes):
            return plan_id.decode("utf-8")
        return plan_id
