from __future__ import annotations

import logging
from typing import Optional, Protocol

import redis
from redis.exceptions import RedisError


logger = logging.getLogger("glow-engine.storage")


class KeyValueStorage(Protocol):
    backend_kind: str

    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


def _normalize_key(key: str) -> str:
    if not isinstance(key, str):
        raise TypeError("key must be a string")
    normalized = key.strip()
    if not normalized:
        raise ValueError("key must be non-empty")
    if len(normalized) > 200:
        raise ValueError("key too long")
    return normalized


class InMemoryStorage(KeyValueStorage):
    backend_kind = "memory"

    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(_normalize_key(key))

    def set_item(self, key: str, value: str) -> None:
        self._items[_normalize_key(key)] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(_normalize_key(key), None)


class RedisStorage(KeyValueStorage):
    backend_kind = "redis"

    def __init__(
        self,
        *,
        redis_url: str,
        connect_timeout_s: float = 1.0,
        socket_timeout_s: float = 1.0,
        key_prefix: str = "glow_engine",
    ) -> None:
        self._key_prefix = key_prefix.strip(":") or "glow_engine"
        self._redis = redis.Redis.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=connect_timeout_s,
            socket_timeout=socket_timeout_s,
        )

    def ping(self) -> None:
        self._redis.ping()

    def _key(self, key: str) -> str:
        return f"{self._key_prefix}:{_normalize_key(key)}"

    def get_item(self, key: str) -> Optional[str]:
        raw = self._redis.get(self._key(key))
        return raw if raw else None

    def set_item(self, key: str, value: str) -> None:
        self._redis.set(self._key(key), value)

    def remove_item(self, key: str) -> None:
        self._redis.delete(self._key(key))

    def close(self) -> None:
        try:
            self._redis.close()
        except RedisError as exc:
            logger.warning("redis_storage_close_failed err=%s", exc)


def build_storage(
    redis_url: Optional[str],
    *,
    connect_timeout_s: float = 1.0,
    socket_timeout_s: float = 1.0,
) -> KeyValueStorage:
    """Pick Redis when it is configured and answers a ping, memory otherwise."""

    url = (redis_url or "").strip() or None
    if not url:
        logger.info("session_storage_backend=memory reason=missing_REDIS_URL")
        return InMemoryStorage()

    try:
        backend = RedisStorage(
            redis_url=url,
            connect_timeout_s=connect_timeout_s,
            socket_timeout_s=socket_timeout_s,
        )
        backend.ping()
    except (RedisError, ValueError) as exc:
        logger.warning("session_storage_backend=memory reason=redis_unavailable err=%s", exc)
        return InMemoryStorage()

    logger.info("session_storage_backend=redis")
    return backend
