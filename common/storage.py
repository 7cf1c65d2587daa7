"""
Key/value storage used by the SafeWords core.

Values are JSON-serialized and string-keyed (see common.constants for the
key layout). MemoryStore keeps everything in process for development and
tests; RedisStore persists through common.redis_client.

Writes that fail raise StorageFailureError so each caller decides whether
the failure is fatal to its operation (the alert log, for one, is not).
"""

import json
import logging
from collections import deque
from typing import Any, Deque, Dict, List, Optional

from common.constants import ALERT_FALLBACK_LIMIT, STORAGE_KEY_PREFIX
from common.errors import StorageFailureError
from common.redis_client import RedisClient, get_redis_client

logger = logging.getLogger(__name__)

# Alert entries that could not be persisted; oldest dropped once full
alert_fallback: Deque[dict] = deque(maxlen=ALERT_FALLBACK_LIMIT)


class BaseStore:
    """Base class for key/value stores"""

    async def get_json(self, key: str, default: Any = None) -> Any:
        raise NotImplementedError("Store must implement get_json()")

    async def set_json(self, key: str, value: Any) -> None:
        raise NotImplementedError("Store must implement set_json()")

    async def append_json(self, key: str, item: Any) -> None:
        """Append an item to the JSON list stored under key."""
        current = await self.get_json(key, default=[])
        if not isinstance(current, list):
            logger.warning("Value under %s is not a list, starting a new one", key)
            current = []
        current.append(item)
        await self.set_json(key, current)


class MemoryStore(BaseStore):
    """In-process store. Values round-trip through JSON like a real backend."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, str] = {}
        for key, value in (initial or {}).items():
            self._data[key] = json.dumps(value)

    async def get_json(self, key: str, default: Any = None) -> Any:
        raw = self._data.get(key)
        if raw is None:
            return default
        return json.loads(raw)

    async def set_json(self, key: str, value: Any) -> None:
        try:
            self._data[key] = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise StorageFailureError("set", key, str(e)) from e

    def keys(self) -> List[str]:
        return list(self._data)


class RedisStore(BaseStore):
    """Redis-backed store. Missing keys read as the default; an unreachable
    Redis raises StorageFailureError so callers can keep what they hold."""

    def __init__(self, client: Optional[RedisClient] = None, prefix: str = STORAGE_KEY_PREFIX):
        self._client = client or get_redis_client()
        self._prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def get_json(self, key: str, default: Any = None) -> Any:
        if not self._client.is_connected():
            raise StorageFailureError("get", key, "redis unavailable")
        value = self._client.get_json(self._key(key))
        return default if value is None else value

    async def set_json(self, key: str, value: Any) -> None:
        if not self._client.set_json(self._key(key), value):
            raise StorageFailureError("set", key, "redis write rejected or unavailable")


def create_store(backend: str) -> BaseStore:
    """Build the store configured by SAFEWORDS_STORAGE."""
    backend = (backend or "memory").lower()
    if backend == "redis":
        return RedisStore()
    if backend == "memory":
        return MemoryStore()
    raise ValueError(f"Unsupported storage backend: {backend}")
