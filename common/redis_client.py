"""
Redis client backing the SafeWords key/value store.

This module provides a Redis client with:
- Connection pooling (reuse connections, don't create new ones each time)
- Health checks and automatic reconnection
- Graceful degradation (works even if Redis is unavailable)
- JSON helpers for the string-keyed, JSON-valued storage layout

Environment Variables:
    REDIS_HOST: Redis server host (default: localhost)
    REDIS_PORT: Redis server port (default: 6379)
    REDIS_PASSWORD: Redis password (optional, can be base64 encoded)
    REDIS_DB: Redis database number (default: 0)
"""

import base64
import binascii
import json
import logging
import os
import time
from typing import Any, Optional

import redis
from redis.exceptions import ConnectionError, RedisError, TimeoutError

from common.constants import REDIS_DB, REDIS_HOST, REDIS_PORT

logger = logging.getLogger(__name__)


class RedisClient:
    """
    Redis client wrapper with connection pooling and automatic reconnection.

    Connection Management:
    - Uses connection pool (max 10 connections, single device workload)
    - Connection timeout: 5 seconds
    - Socket timeout: 5 seconds
    - Health check interval: 30 seconds
    """

    def __init__(self, host: str = REDIS_HOST, port: int = REDIS_PORT, db: int = REDIS_DB):
        self.host = host
        self.port = port
        self.db = db

        # Handle password (may be base64 encoded in K8s secrets)
        password = os.getenv("REDIS_PASSWORD", "")
        if password:
            try:
                decoded = base64.b64decode(password, validate=True).decode("utf-8")
                if decoded and decoded != password:
                    password = decoded
            except (binascii.Error, UnicodeDecodeError):
                # Not base64, use as given
                pass

        self.password = password if password else None

        self.pool = redis.ConnectionPool(
            host=self.host,
            port=self.port,
            db=self.db,
            password=self.password,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
            max_connections=10,
            health_check_interval=30,
        )

        self.client: Optional[redis.Redis] = None
        self._last_health_check = 0.0
        self._health_check_interval = 30
        self._connect()

    def _connect(self) -> None:
        """Create the Redis client on top of the pool and ping it once."""
        try:
            self.client = redis.Redis(connection_pool=self.pool)
            self.client.ping()
            self._last_health_check = time.time()
        except (ConnectionError, RedisError, TimeoutError) as e:
            self.client = None
            logger.warning("Redis connection failed: %s. Storage will be unavailable.", e)

    def _ensure_connected(self) -> bool:
        """
        Ensure Redis connection is healthy.

        Performs periodic health checks and reconnects if needed.

        Returns:
            True if connected, False otherwise
        """
        if not self.client:
            self._connect()
            return self.client is not None

        current_time = time.time()
        if current_time - self._last_health_check > self._health_check_interval:
            try:
                self.client.ping()
                self._last_health_check = current_time
                return True
            except (ConnectionError, RedisError, TimeoutError):
                self.client = None
                self._connect()
                return self.client is not None

        return True

    def is_connected(self) -> bool:
        return self._ensure_connected()

    def set(self, key: str, value: str) -> bool:
        """
        Set a key-value pair in Redis.

        Returns:
            True if successful, False otherwise
        """
        if not self.is_connected():
            return False

        try:
            return bool(self.client.set(key, value))
        except (ConnectionError, RedisError, TimeoutError) as e:
            logger.warning("Redis set error for %s: %s", key, e)
            # Mark as disconnected for next health check
            self.client = None
            return False

    def get(self, key: str) -> Optional[str]:
        """
        Get a value from Redis by key.

        Returns:
            Value if found, None otherwise
        """
        if not self.is_connected():
            return None

        try:
            value = self.client.get(key)
            return value if value else None
        except (ConnectionError, RedisError, TimeoutError) as e:
            logger.warning("Redis get error for %s: %s", key, e)
            self.client = None
            return None

    def delete(self, key: str) -> bool:
        if not self.is_connected():
            return False

        try:
            return bool(self.client.delete(key))
        except (ConnectionError, RedisError, TimeoutError) as e:
            logger.warning("Redis delete error for %s: %s", key, e)
            self.client = None
            return False

    def set_json(self, key: str, value: Any) -> bool:
        """
        Store a JSON-serializable value in Redis.

        Returns:
            True if successful, False otherwise
        """
        try:
            json_str = json.dumps(value)
        except (TypeError, ValueError) as e:
            logger.error("JSON serialization error for %s: %s", key, e)
            return False
        return self.set(key, json_str)

    def get_json(self, key: str) -> Optional[Any]:
        """
        Get and deserialize a JSON value from Redis.

        Returns:
            Deserialized value if found, None otherwise
        """
        json_str = self.get(key)
        if not json_str:
            return None

        try:
            return json.loads(json_str)
        except (TypeError, ValueError) as e:
            logger.error("JSON deserialization error for %s: %s", key, e)
            return None

    def close(self) -> None:
        """Close the Redis connection pool on shutdown."""
        if self.client:
            try:
                self.client.close()
            except RedisError:
                logger.debug("Ignoring error while closing Redis client", exc_info=True)
        if self.pool:
            self.pool.disconnect()


# Singleton instance
_redis_client: Optional[RedisClient] = None


def get_redis_client() -> RedisClient:
    """Get singleton Redis client instance."""
    global _redis_client
    if _redis_client is None:
        _redis_client = RedisClient()
    return _redis_client
