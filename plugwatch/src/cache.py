"""
Redis cache for the latest device snapshot.

The poll daemon stores each successful snapshot; the dashboard API reads
it before falling back to a live provider call. Cache operations are
best-effort: Redis failures are logged and treated as a miss, so the cache
can never break a poll or a request.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

import json
import logging

import redis.asyncio as redis

from plugwatch.src.models import DeviceReading

logger = logging.getLogger(__name__)

SNAPSHOT_KEY = "plugwatch:snapshot"


class SnapshotCache:
    """Best-effort Redis store for the latest list of device readings.

    Args:
        redis_url: Redis connection URL. An empty string disables the
            cache: every load is a miss and writes are no-ops.
        ttl_s: Expiry applied to the stored snapshot, in seconds.
    """

    def __init__(self, redis_url: str, ttl_s: int = 60) -> None:
        self._redis_url = redis_url
        self._ttl_s = ttl_s

    @property
    def enabled(self) -> bool:
        return bool(self._redis_url)

    def _connect(self) -> redis.Redis:
        return redis.from_url(self._redis_url)

    async def store_snapshot(self, readings: list[DeviceReading]) -> None:
        """Write *readings* under the snapshot key with the configured TTL."""
        if not self.enabled:
            return
        try:
            client = self._connect()
            try:
                await client.set(
                    SNAPSHOT_KEY,
                    json.dumps([r.to_dict() for r in readings]),
                    ex=self._ttl_s,
                )
            finally:
                await client.aclose()
        except Exception:
            logger.warning("Redis snapshot write failed", exc_info=True)

    async def load_snapshot(self) -> list[DeviceReading] | None:
        """Return the cached readings, or ``None`` on miss or failure."""
        if not self.enabled:
            return None
        try:
            client = self._connect()
            try:
                raw = await client.get(SNAPSHOT_KEY)
            finally:
                await client.aclose()
            if raw is None:
                return None
            return [DeviceReading.from_dict(item) for item in json.loads(raw)]
        except Exception:
            logger.warning("Redis snapshot read failed", exc_info=True)
            return None

    async def invalidate(self) -> None:
        """Delete the cached snapshot."""
        if not self.enabled:
            return
        try:
            client = self._connect()
            try:
                await client.delete(SNAPSHOT_KEY)
            finally:
                await client.aclose()
        except Exception:
            logger.warning("Redis snapshot invalidation failed", exc_info=True)
