"""FastAPI application."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from askdocs.api.routes.ask import router as ask_router
from askdocs.api.routes.documents import router as documents_router
from askdocs.api.routes.health import router as health_router
from askdocs.api.routes.metrics import router as metrics_router
from askdocs.db.engine import dispose_engine

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    logger.info("AskDocs API starting")
    yield
    await dispose_engine()
    logger.info("AskDocs API stopped")


app = FastAPI(title="AskDocs API", version="0.1.0", lifespan=lifespan)

# Register routes
app.include_router(health_router, tags=["health"])
app.include_router(metrics_router, tags=["metrics"])
app.include_router(documents_router, tags=["documents"])
app.include_router(ask_router, tags=["ask"])


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {"message": "AskDocs API", "version": "0.1.0"}
