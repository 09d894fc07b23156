"""Durable per-conversation key-value storage."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional, Protocol

import redis
from redis import Redis
from redis.exceptions import RedisError

from .config import AppSettings, DEFAULT_KEY_PREFIX

logger = logging.getLogger(__name__)


class StorageUnavailable(RuntimeError):
    """Raised when the backing store cannot be read or written."""


class ConversationStore(Protocol):
    """Key-value storage scoped to a conversation id."""

    def get(self, conversation_id: str, key: str) -> Optional[Any]:
        ...

    def set(self, conversation_id: str, key: str, value: Any) -> None:
        ...

    def delete(self, conversation_id: str) -> None:
        ...


def _encode(value: Any) -> str:
    try:
        return json.dumps(value, ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        raise StorageUnavailable(
            f"Value of type {type(value).__name__} is not JSON serialisable"
        ) from exc


def _decode(raw: str | bytes, key: str) -> Any:
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise StorageUnavailable(f"Stored value for {key} is not valid JSON") from exc


class MemoryStore:
    """In-process store holding JSON text, for tests and the console."""

    def __init__(self) -> None:
        self._data: Dict[str, Dict[str, str]] = {}

    def get(self, conversation_id: str, key: str) -> Optional[Any]:
        raw = self._data.get(conversation_id, {}).get(key)
        if raw is None:
            return None
        return _decode(raw, key)

    def set(self, conversation_id: str, key: str, value: Any) -> None:
        self._data.setdefault(conversation_id, {})[key] = _encode(value)

    def delete(self, conversation_id: str) -> None:
        self._data.pop(conversation_id, None)

    def keys(self, conversation_id: str) -> list[str]:
        return sorted(self._data.get(conversation_id, {}))


class RedisStore:
    """Persists conversation slots as JSON strings in Redis."""

    def __init__(
        self,
        redis_url: Optional[str] = None,
        *,
        prefix: str = DEFAULT_KEY_PREFIX,
        ttl: Optional[int] = None,
        client: Optional[Redis] = None,
    ) -> None:
        if client is None and not redis_url:
            raise ValueError("RedisStore needs a redis_url or a client")
        self._redis_url = redis_url
        self._prefix = prefix
        self._ttl = ttl
        self._redis: Optional[Redis] = client

    def _get_redis(self) -> Redis:
        if self._redis is None:
            try:
                self._redis = redis.from_url(  # type: ignore[call-overload]
                    self._redis_url,
                    decode_responses=True,
                )
            except RedisError as exc:  # pragma: no cover - network guarded
                logger.error("Redis connection failed: %s", exc)
                raise StorageUnavailable("Redis connection failed") from exc
        return self._redis

    def _key(self, conversation_id: str, key: str) -> str:
        return f"{self._prefix}:{conversation_id}:{key}"

    def _index_key(self, conversation_id: str) -> str:
        # Slot keys all start with "{prefix}:", so this never collides with one.
        return f"{self._prefix}-slots:{conversation_id}"

    def get(self, conversation_id: str, key: str) -> Optional[Any]:
        full_key = self._key(conversation_id, key)
        try:
            raw = self._get_redis().get(full_key)
        except RedisError as exc:
            logger.error("Redis read failed for %s: %s", full_key, exc)
            raise StorageUnavailable(f"Redis read failed for {full_key}") from exc
        if raw is None:
            return None
        return _decode(raw, full_key)

    def set(self, conversation_id: str, key: str, value: Any) -> None:
        full_key = self._key(conversation_id, key)
        index_key = self._index_key(conversation_id)
        payload = _encode(value)
        client = self._get_redis()
        try:
            client.set(full_key, payload, ex=self._ttl)
            client.sadd(index_key, key)
            if self._ttl:
                client.expire(index_key, self._ttl)
        except RedisError as exc:
            logger.error("Redis write failed for %s: %s", full_key, exc)
            raise StorageUnavailable(f"Redis write failed for {full_key}") from exc

    def delete(self, conversation_id: str) -> None:
        index_key = self._index_key(conversation_id)
        client = self._get_redis()
        try:
            slots = sorted(client.smembers(index_key))
            keys = [self._key(conversation_id, slot) for slot in slots]
            client.delete(*keys, index_key)
        except RedisError as exc:
            logger.error("Redis delete failed for %s: %s", index_key, exc)
            raise StorageUnavailable(f"Redis delete failed for {index_key}") from exc
        logger.info("Deleted %d key(s) for conversation %s", len(keys), conversation_id)


def build_store(settings: AppSettings) -> ConversationStore:
    """Return the store configured by ``settings``."""

    if settings.redis_url:
        logger.info("Using Redis conversation store")
        return RedisStore(
            settings.redis_url,
            prefix=settings.key_prefix,
            ttl=settings.state_ttl,
        )
    logger.warning(
        "CLAIRE_REDIS_URL is not set; conversation state will not survive a restart."
    )
    return MemoryStore()
