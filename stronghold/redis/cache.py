from __future__ import annotations

import asyncio
import json
import logging
import os
from typing import Any, Optional

try:
    import redis.asyncio as AsyncRedis
except ImportError:  # pragma: no cover - optional dependency for local dev
    AsyncRedis = None
try:
    from upstash_redis import Redis as UpstashRedis
except ImportError:  # pragma: no cover - optional dependency for local dev
    UpstashRedis = None

logger = logging.getLogger(__name__)


def _redis_client() -> Optional[Any]:
    tcp_url = os.getenv("REDIS_URL")
    if tcp_url and AsyncRedis is not None:
        return AsyncRedis.from_url(tcp_url, decode_responses=True)
    if UpstashRedis is None:
        return None
    url = os.getenv("UPSTASH_REDIS_REST_URL")
    token = os.getenv("UPSTASH_REDIS_REST_TOKEN")
    if not url or not token:
        return None
    return UpstashRedis(url=url, token=token)


class RedisJSON:
    """JSON get/set/delete over either a sync client or a redis-py asyncio client.

    Async clients are driven on a private event loop so the connection pool
    stays bound to a single loop across calls.
    """

    def __init__(self, client: Any) -> None:
        self.client = client
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @classmethod
    def from_env(cls) -> Optional["RedisJSON"]:
        client = _redis_client()
        if client is None:
            return None
        return cls(client)

    @property
    def is_async(self) -> bool:
        return AsyncRedis is not None and isinstance(self.client, AsyncRedis.Redis)

    def _run(self, call):
        if not self.is_async:
            return call
        if self._loop is None or self._loop.is_closed():
            self._loop = asyncio.new_event_loop()
        return self._loop.run_until_complete(call)

    def get_json(self, key: str) -> Optional[Any]:
        raw = self._run(self.client.get(key))
        if not raw:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("[get_json] undecodable payload key=%s", key)
            return None

    def set_json(self, key: str, value: Any) -> None:
        self._run(self.client.set(key, json.dumps(value)))

    def delete(self, key: str) -> None:
        self._run(self.client.delete(key))

