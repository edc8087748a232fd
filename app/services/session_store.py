"""
Session Store for the comparison chat.

Keyed storage of Session records with an explicit TTL. Two backends:

- RedisSessionStore: setex per session, shared between workers
- InMemorySessionStore: bounded dict with TTL and LRU eviction, for a
  single process or tests

Read/write errors from the backend propagate so the turn is not reported
as successful when its state was not stored.
"""
import os
import json
import time
import logging
import threading
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Optional, Tuple

import redis
from redis.exceptions import RedisError

from app.services.wizard_state import Session

logger = logging.getLogger(__name__)

SESSION_STORE = os.getenv("SESSION_STORE", "memory").lower()
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
SESSION_TTL_SECONDS = int(os.getenv("SESSION_TTL_SECONDS", "86400"))  # 24 hours default
SESSION_MAX_ENTRIES = int(os.getenv("SESSION_MAX_ENTRIES", "10000"))

KEY_PREFIX = "edovia:session"


class SessionStore(ABC):
    """Keyed session storage."""

    ttl_seconds: int = SESSION_TTL_SECONDS

    @abstractmethod
    def get(self, session_id: str) -> Optional[Session]:
        """Load a session, or None if unknown or expired."""

    @abstractmethod
    def save(self, session: Session) -> None:
        """Store a session and refresh its TTL."""

    @abstractmethod
    def delete(self, session_id: str) -> bool:
        """Remove a session; True if it existed."""


class InMemorySessionStore(SessionStore):
    """
    Process-local store.

    Entries expire ttl_seconds after their last save; beyond max_entries the
    least recently used entry is evicted.
    """

    def __init__(
        self,
        ttl_seconds: int = SESSION_TTL_SECONDS,
        max_entries: int = SESSION_MAX_ENTRIES,
        clock=time.monotonic
    ):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[str, Tuple[float, dict]]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, session_id: str) -> Optional[Session]:
        with self._lock:
            entry = self._entries.get(session_id)
            if entry is None:
                return None

            expires_at, data = entry
            if self._clock() >= expires_at:
                del self._entries[session_id]
                logger.debug(f"Session {session_id} expired")
                return None

            self._entries.move_to_end(session_id)

        return Session.from_dict(data)

    def save(self, session: Session) -> None:
        data = session.to_dict()
        with self._lock:
            self._entries[session.session_id] = (self._clock() + self.ttl_seconds, data)
            self._entries.move_to_end(session.session_id)

            while len(self._entries) > self.max_entries:
                evicted_id, _ = self._entries.popitem(last=False)
                logger.info(f"Evicted session {evicted_id} (capacity {self.max_entries})")

    def delete(self, session_id: str) -> bool:
        with self._lock:
            return self._entries.pop(session_id, None) is not None

    def __len__(self) -> int:
        return len(self._entries)


class RedisSessionStore(SessionStore):
    """Redis-backed store; each session is one JSON value with a TTL."""

    def __init__(
        self,
        client: Optional[redis.Redis] = None,
        url: str = REDIS_URL,
        ttl_seconds: int = SESSION_TTL_SECONDS
    ):
        self.ttl_seconds = ttl_seconds
        if client is None:
            # Support rediss:// URLs (Upstash, etc.) which require ssl_cert_reqs
            redis_kwargs = {
                "socket_timeout": 5,
                "socket_connect_timeout": 5,
                "retry_on_timeout": True
            }
            if url.startswith("rediss://"):
                redis_kwargs["ssl_cert_reqs"] = "none"
            client = redis.from_url(url, **redis_kwargs)
        self._client = client

    @staticmethod
    def _key(session_id: str) -> str:
        return f"{KEY_PREFIX}:{session_id}"

    def ping(self) -> bool:
        return bool(self._client.ping())

    def get(self, session_id: str) -> Optional[Session]:
        raw = self._client.get(self._key(session_id))
        if raw is None:
            return None

        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")

        try:
            return Session.from_dict(json.loads(raw))
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            # A corrupt record is treated as a fresh session
            logger.warning(f"Discarding unreadable session {session_id}: {e}")
            return None

    def save(self, session: Session) -> None:
        data = json.dumps(session.to_dict(), ensure_ascii=False)
        self._client.setex(self._key(session.session_id), self.ttl_seconds, data)

    def delete(self, session_id: str) -> bool:
        return bool(self._client.delete(self._key(session_id)))


def build_session_store(backend: Optional[str] = None) -> SessionStore:
    """
    Create the configured store.

    Falls back to the in-memory store when Redis is requested but not
    reachable at startup.
    """
    backend = (backend or SESSION_STORE).lower()

    if backend == "redis":
        try:
            store = RedisSessionStore()
            store.ping()
            logger.info("Session store: Redis")
            return store
        except RedisError as e:
            logger.warning(f"Redis not available for sessions, using in-memory store: {e}")

    logger.info(
        f"Session store: in-memory (ttl={SESSION_TTL_SECONDS}s, max_entries={SESSION_MAX_ENTRIES})"
    )
    return InMemorySessionStore()
