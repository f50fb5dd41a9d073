"""Shared FastAPI dependencies (store, embedder, generator, rate limiting)."""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from askdocs.api.auth import get_current_context
from askdocs.config import get_settings
from askdocs.db.context import RequestContext
from askdocs.db.engine import get_session
from askdocs.db.inmemory import InMemoryRateLimiter
from askdocs.db.repositories import DocumentStore, RateLimiter
from askdocs.db.sql_store import SqlDocumentStore
from askdocs.docs.embedder import Embedder, build_embedder
from askdocs.llm.answer import AnswerGenerator, build_answer_generator
from askdocs.middleware.ratelimit import RateLimitMiddleware, create_default_bucket_map
from askdocs.ratelimit import RedisRateLimiter, create_redis_client


async def get_document_store(
    session: Annotated[AsyncSession, Depends(get_session)],
) -> DocumentStore:
    """Request-scoped SQL document store."""
    return SqlDocumentStore(session)


@lru_cache
def get_embedder() -> Embedder:
    """Process-wide embedder shared by ingest and ask."""
    return build_embedder(get_settings())


@lru_cache
def get_answer_generator() -> AnswerGenerator:
    """Process-wide tiered answer generator."""
    return build_answer_generator(get_settings())


@lru_cache
def get_rate_limit_middleware() -> RateLimitMiddleware:
    """Rate limiter per bucket: Redis when configured, in-memory otherwise."""
    settings = get_settings()
    quotas = {
        "ask": settings.ask_requests_per_min,
        "ingest": settings.ingest_requests_per_min,
    }

    limiters: dict[str, RateLimiter]
    if settings.redis_url:
        client = create_redis_client(settings.redis_url, settings.redis_timeout_seconds)
        limiters = {bucket: RedisRateLimiter(client, quota) for bucket, quota in quotas.items()}
    else:
        limiters = {bucket: InMemoryRateLimiter(quota) for bucket, quota in quotas.items()}

    return RateLimitMiddleware(limiters, create_default_bucket_map())


async def enforce_rate_limit(
    request: Request,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    middleware: Annotated[RateLimitMiddleware, Depends(get_rate_limit_middleware)],
) -> RequestContext:
    """Authenticate, then consume one request from the caller's bucket.

    Raises:
        HTTPException: 429 with Retry-After when over quota
    """
    decision = await middleware.check_rate_limit(request.url.path, ctx)
    if not decision.allowed:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded",
            headers={"Retry-After": str(decision.retry_after_seconds)},
        )
    return ctx
