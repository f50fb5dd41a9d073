"""Route-to-bucket rate limit policy."""

from datetime import datetime

from askdocs.db.context import RequestContext
from askdocs.db.repositories import RateLimitDecision, RateLimiter
from askdocs.ratelimit import make_rate_limit_key

UNLIMITED = RateLimitDecision(allowed=True, remaining=-1)


class RateLimitMiddleware:
    """Resolves a request path to a bucket and charges that bucket's limiter.

    Buckets are matched by path prefix on segment boundaries, longest
    prefix first: ``/documents`` covers ``/documents/abc`` but not
    ``/documentsx``.
    """

    def __init__(self, limiters: dict[str, RateLimiter], bucket_map: dict[str, str]) -> None:
        self._limiters = limiters
        self._prefixes = sorted(
            ((prefix.rstrip("/"), bucket) for prefix, bucket in bucket_map.items()),
            key=lambda item: len(item[0]),
            reverse=True,
        )

    def bucket_for(self, path: str) -> str | None:
        for prefix, bucket in self._prefixes:
            if path == prefix or path.startswith(prefix + "/"):
                return bucket
        return None

    async def check_rate_limit(
        self, path: str, ctx: RequestContext, now: datetime | None = None
    ) -> RateLimitDecision:
        """Charge one request to the caller's bucket for ``path``.

        Paths without a bucket, or buckets without a limiter, are unlimited
        and report ``remaining=-1``.
        """
        bucket = self.bucket_for(path)
        limiter = self._limiters.get(bucket) if bucket else None
        if bucket is None or limiter is None:
            return UNLIMITED

        return await limiter.check(make_rate_limit_key(ctx, bucket), now or datetime.now())


def create_default_bucket_map() -> dict[str, str]:
    """Questions and uploads are limited separately."""
    return {
        "/ask": "ask",
        "/documents": "ingest",
    }
