"""Per-user request quotas backed by Redis."""

from datetime import datetime

from redis import asyncio as aioredis

from askdocs.db.context import RequestContext
from askdocs.db.repositories import RateLimitDecision

KEY_PREFIX = "ratelimit"


def make_rate_limit_key(ctx: RequestContext, bucket: str) -> str:
    """Quota key for one caller in one bucket ("ask", "ingest")."""
    return f"{ctx.user_id}:{bucket}"


def create_redis_client(url: str, timeout_seconds: float) -> aioredis.Redis:
    """Async client whose commands give up after ``timeout_seconds``."""
    return aioredis.from_url(
        url,
        decode_responses=True,
        socket_connect_timeout=timeout_seconds,
        socket_timeout=timeout_seconds,
    )


class RedisRateLimiter:
    """Fixed-window counter shared by every API worker.

    Each window is its own Redis key (``ratelimit:<key>:<window start>``),
    so counts never carry over and stale windows expire on their own.
    """

    def __init__(
        self, redis_client: aioredis.Redis, max_requests: int, window_seconds: int = 60
    ) -> None:
        self._redis = redis_client
        self._max_requests = max_requests
        self._window_seconds = window_seconds

    def window_key(self, key: str, now: datetime) -> str:
        epoch = int(now.timestamp())
        return f"{KEY_PREFIX}:{key}:{epoch - epoch % self._window_seconds}"

    async def check(self, key: str, now: datetime) -> RateLimitDecision:
        """Consume one request from the key's quota.

        INCR and TTL run in one MULTI/EXEC round trip. A key without a TTL
        was just created by this request (or lost its expiry), so the
        window length is applied to it.
        """
        redis_key = self.window_key(key, now)

        pipe = self._redis.pipeline()
        pipe.incr(redis_key)
        pipe.ttl(redis_key)
        count, ttl = await pipe.execute()

        if ttl < 0:
            await self._redis.expire(redis_key, self._window_seconds)
            ttl = self._window_seconds

        if count > self._max_requests:
            return RateLimitDecision(allowed=False, remaining=0, retry_after_seconds=max(1, ttl))

        return RateLimitDecision(allowed=True, remaining=self._max_requests - count)
