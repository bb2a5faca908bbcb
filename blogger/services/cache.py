import json
import logging
from typing import Any, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from blogger.config import settings

logger = logging.getLogger(__name__)


class RedisCache:
    """
    Кэш поверх Redis: ленты постов и записи refresh-токенов.

    Все ключи живут под общим префиксом (namespace), чтобы несколько
    инстансов блога могли делить один Redis. Без подключения каждый
    вызов - no-op, ошибка Redis считается промахом кэша.
    """
    def __init__(self, url: str, namespace: str = "blogger"):
        self._url = url
        self._namespace = namespace
        self._client: Optional[redis.Redis] = None

    @property
    def connected(self) -> bool:
        return self._client is not None

    def _key(self, key: str) -> str:
        return f"{self._namespace}:{key}"

    async def connect(self):
        if self._client is None:
            self._client = redis.from_url(
                self._url,
                encoding="utf-8",
                decode_responses=True,
            )
            logger.info("Cache connected to %s", self._url)

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def get(self, key: str) -> Optional[Any]:
        if self._client is None:
            return None
        try:
            raw = await self._client.get(self._key(key))
        except RedisError as exc:
            logger.warning("Cache get failed for %s: %s", key, exc)
            return None
        return json.loads(raw) if raw is not None else None

    async def set(self, key: str, value: Any, ttl: int = 300):
        """Значение сериализуется в JSON, даты - строками"""
        if self._client is None:
            return
        try:
            await self._client.setex(self._key(key), ttl, json.dumps(value, default=str))
        except RedisError as exc:
            logger.warning("Cache set failed for %s: %s", key, exc)

    async def delete(self, key: str):
        if self._client is None:
            return
        try:
            await self._client.delete(self._key(key))
        except RedisError as exc:
            logger.warning("Cache delete failed for %s: %s", key, exc)

    async def delete_prefix(self, prefix: str) -> int:
        """
        Удалить все ключи, начинающиеся с prefix (например все страницы ленты).
        Возвращает число удаленных ключей.
        """
        if self._client is None:
            return 0
        try:
            keys = [key async for key in self._client.scan_iter(match=f"{self._key(prefix)}*")]
            if not keys:
                return 0
            return await self._client.delete(*keys)
        except RedisError as exc:
            logger.warning("Cache invalidation failed for %s*: %s", prefix, exc)
            return 0

    async def ping(self) -> bool:
        if self._client is None:
            return False
        try:
            await self._client.ping()
            return True
        except RedisError:
            return False


cache = RedisCache(settings.REDIS_URL)
