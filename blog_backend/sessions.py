"""
Server-side session storage.

Supports an in-memory store for tests/local runs and a Redis-backed
implementation for production. Sessions have a fixed time-to-live that is
never extended by activity.
"""

from __future__ import annotations

import json
import time
from dataclasses import asdict, dataclass, field
from typing import Callable, Dict, Optional, Protocol

import redis


@dataclass
class SessionRecord:
    user_id: str
    username: str
    created_at: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class SessionStore(Protocol):
    """Maps opaque session tokens to session records."""

    def save(self, token: str, record: SessionRecord, ttl_seconds: int) -> None:
        ...

    def get(self, token: str) -> Optional[SessionRecord]:
        ...

    def delete(self, token: str) -> None:
        ...


@dataclass
class InMemorySessionStore:
    """Dict-backed store; expired sessions are dropped when read."""

    clock: Callable[[], float] = time.time
    sessions: Dict[str, SessionRecord] = field(default_factory=dict)

    def save(self, token: str, record: SessionRecord, ttl_seconds: int) -> None:
        self.sessions[token] = record

    def get(self, token: str) -> Optional[SessionRecord]:
        record = self.sessions.get(token)
        if record is None:
            return None
        if record.is_expired(self.clock()):
            self.sessions.pop(token, None)
            return None
        return record

    def delete(self, token: str) -> None:
        self.sessions.pop(token, None)

    def reset(self) -> None:
        self.sessions.clear()


@dataclass
class RedisSessionStore:
    """Redis-backed store; SETEX lets Redis enforce the TTL."""

    url: str
    key_prefix: str = "blog:session:"

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)

    def _key(self, token: str) -> str:
        return f"{self.key_prefix}{token}"

    def save(self, token: str, record: SessionRecord, ttl_seconds: int) -> None:
        self.client.setex(self._key(token), ttl_seconds, json.dumps(asdict(record)))

    def get(self, token: str) -> Optional[SessionRecord]:
        raw = self.client.get(self._key(token))
        if raw is None:
            return None
        record = SessionRecord(**json.loads(raw))
        if record.is_expired(time.time()):
            return None
        return record

    def delete(self, token: str) -> None:
        self.client.delete(self._key(token))
