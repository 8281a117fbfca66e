"""
Key-value backends for persisted drafts.

Every backend is scoped to one browser session and stores strings:
get(key) -> str | None, set(key, value), delete(key).
"""

import logging
import uuid
from typing import Dict, Optional

import redis
from redis.exceptions import RedisError, ConnectionError, TimeoutError
from flask import Flask, session

logger = logging.getLogger(__name__)


class MemoryDraftStorage:
    """Plain dict storage. Used by tests and as a fallback."""

    name = 'memory'

    def __init__(self):
        self.data: Dict[str, str] = {}

    def is_available(self) -> bool:
        return True

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> bool:
        self.data[key] = value
        return True

    def delete(self, key: str) -> bool:
        self.data.pop(key, None)
        return True


class SessionDraftStorage:
    """
    Drafts kept in the Flask session cookie.

    The session lives as long as the browser session, which is exactly the
    scope drafts need.
    """

    name = 'session'
    SESSION_KEY = 'drafts'

    def is_available(self) -> bool:
        return True

    def _bucket(self) -> Dict[str, str]:
        if self.SESSION_KEY not in session:
            session[self.SESSION_KEY] = {}
        return session[self.SESSION_KEY]

    def get(self, key: str) -> Optional[str]:
        return (session.get(self.SESSION_KEY) or {}).get(key)

    def set(self, key: str, value: str) -> bool:
        self._bucket()[key] = value
        session.modified = True
        return True

    def delete(self, key: str) -> bool:
        bucket = session.get(self.SESSION_KEY)
        if bucket and key in bucket:
            bucket.pop(key, None)
            session.modified = True
        return True


class RedisDraftStorage:
    """
    Redis-backed drafts for large snapshots.

    Keys pattern: {prefix}:session:{draft_sid}:draft:{key}
    The draft_sid lives in the Flask session, so drafts still die with the
    browser session (and with the TTL). When Redis is down every call
    degrades to "nothing stored".
    """

    name = 'redis'
    SID_KEY = 'draft_sid'

    def __init__(self, client: Optional[redis.Redis] = None, prefix: str = 'backoffice', ttl: int = 86400):
        self.client = client
        self._prefix = prefix
        self._ttl = ttl

    @classmethod
    def from_app(cls, app: Flask) -> 'RedisDraftStorage':
        """Build a client from app config; a failed ping leaves the backend disabled."""
        redis_url = app.config.get('REDIS_URL', 'redis://redis:6379/0')
        storage = cls(
            prefix=app.config.get('DRAFT_KEY_PREFIX', 'backoffice'),
            ttl=app.config.get('DRAFT_TTL', 86400),
        )
        try:
            storage.client = redis.from_url(
                redis_url,
                decode_responses=True,
                socket_connect_timeout=3,
                socket_timeout=3,
                retry_on_timeout=True,
                health_check_interval=30
            )
            storage.client.ping()
            logger.info(f"[DRAFT] ✓ Redis connected: {redis_url}")
        except (ConnectionError, TimeoutError, RedisError) as e:
            logger.warning(f"[DRAFT] ⚠ Redis connection failed: {e}. Drafts will not persist.")
            storage.client = None
        return storage

    def is_available(self) -> bool:
        if not self.client:
            return False
        try:
            self.client.ping()
            return True
        except (ConnectionError, RedisError):
            return False

    def _session_id(self) -> str:
        sid = session.get(self.SID_KEY)
        if not sid:
            sid = uuid.uuid4().hex
            session[self.SID_KEY] = sid
        return sid

    def _build_key(self, key: str) -> str:
        return f"{self._prefix}:session:{self._session_id()}:draft:{key}"

    def get(self, key: str) -> Optional[str]:
        if not self.client:
            return None
        try:
            return self.client.get(self._build_key(key))
        except RedisError as e:
            logger.warning(f"[DRAFT] ✗ Get error: {e}")
            return None

    def set(self, key: str, value: str) -> bool:
        if not self.client:
            return False
        try:
            self.client.setex(self._build_key(key), self._ttl, value)
            return True
        except RedisError as e:
            logger.warning(f"[DRAFT] ✗ Set error: {e}")
            return False

    def delete(self, key: str) -> bool:
        if not self.client:
            return False
        try:
            self.client.delete(self._build_key(key))
            return True
        except RedisError as e:
            logger.warning(f"[DRAFT] ✗ Delete error: {e}")
            return False


def build_storage(app: Flask):
    """Pick the configured backend."""
    backend = (app.config.get('DRAFT_BACKEND') or 'session').lower()
    if backend == 'redis':
        return RedisDraftStorage.from_app(app)
    if backend == 'memory':
        return MemoryDraftStorage()
    return SessionDraftStorage()
