"""Tests for embedding backends and the embedding cache.

All tests are deterministic and do not make real network calls.
"""

import json
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from openai import APIConnectionError

from askdocs.config import Settings
from askdocs.docs.embedder import (
    CachedEmbedder,
    HuggingFaceEmbedder,
    OpenAIEmbedder,
    build_embedder,
)
from askdocs.errors import EmbeddingError


def _hf_embedder(handler, dimension: int = 4, max_input_chars: int = 2000) -> HuggingFaceEmbedder:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HuggingFaceEmbedder(
        api_key="hf_test",
        dimension=dimension,
        max_input_chars=max_input_chars,
        client=client,
    )


@pytest.mark.asyncio
async def test_huggingface_embedder_unwraps_nested_vector() -> None:
    """Test that a [[...]] feature-extraction response is flattened."""
    seen: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=[[0.1, 0.2, 0.3, 0.4]])

    vector = await _hf_embedder(handler).embed("storage temperature")

    assert vector == [0.1, 0.2, 0.3, 0.4]
    assert str(seen["url"]).endswith(
        "/sentence-transformers/all-MiniLM-L6-v2/pipeline/feature-extraction"
    )
    assert seen["auth"] == "Bearer hf_test"
    assert seen["body"] == {"inputs": "storage temperature"}


@pytest.mark.asyncio
async def test_huggingface_embedder_accepts_flat_vector() -> None:
    """Test that a flat response is returned as-is."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[1, 0, 0, 0])

    assert await _hf_embedder(handler).embed("text") == [1.0, 0.0, 0.0, 0.0]


@pytest.mark.asyncio
async def test_huggingface_embedder_truncates_long_input() -> None:
    """Test that inputs longer than max_input_chars are truncated before the call."""
    seen: dict[str, str] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["inputs"] = json.loads(request.content)["inputs"]
        return httpx.Response(200, json=[0.0, 0.0, 0.0, 1.0])

    await _hf_embedder(handler, max_input_chars=10).embed("a" * 50)

    assert seen["inputs"] == "a" * 10


@pytest.mark.asyncio
async def test_huggingface_embedder_rejects_wrong_dimension() -> None:
    """Test that a vector of the wrong length raises EmbeddingError."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[0.1, 0.2])

    with pytest.raises(EmbeddingError, match="dimension mismatch"):
        await _hf_embedder(handler).embed("text")


@pytest.mark.asyncio
async def test_huggingface_embedder_rejects_non_numeric_entries() -> None:
    """Test that non-numeric vector entries raise EmbeddingError."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=["a", "b", "c", "d"])

    with pytest.raises(EmbeddingError, match="non-numeric"):
        await _hf_embedder(handler).embed("text")


@pytest.mark.asyncio
async def test_huggingface_embedder_raises_on_http_error() -> None:
    """Test that a non-2xx response raises EmbeddingError without retrying."""
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        return httpx.Response(503, json={"error": "loading"})

    with pytest.raises(EmbeddingError, match="503"):
        await _hf_embedder(handler).embed("text")

    assert calls["count"] == 1


@pytest.mark.asyncio
async def test_huggingface_embedder_raises_on_transport_error() -> None:
    """Test that connection failures raise EmbeddingError."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(EmbeddingError):
        await _hf_embedder(handler).embed("text")


@pytest.mark.asyncio
async def test_openai_embedder_requests_fixed_dimension() -> None:
    """Test that the OpenAI embedder passes dimensions and validates the result."""
    embedder = OpenAIEmbedder("sk-test", dimension=3)
    response = MagicMock()
    response.data = [MagicMock(embedding=[0.5, 0.5, 0.0])]
    embedder.client.embeddings.create = AsyncMock(return_value=response)

    vector = await embedder.embed("question")

    assert vector == [0.5, 0.5, 0.0]
    kwargs = embedder.client.embeddings.create.call_args.kwargs
    assert kwargs["dimensions"] == 3
    assert kwargs["model"] == "text-embedding-3-small"


@pytest.mark.asyncio
async def test_openai_embedder_wraps_sdk_errors() -> None:
    """Test that SDK errors surface as EmbeddingError."""
    embedder = OpenAIEmbedder("sk-test", dimension=3)
    embedder.client.embeddings.create = AsyncMock(
        side_effect=APIConnectionError(request=httpx.Request("POST", "https://api.openai.com"))
    )

    with pytest.raises(EmbeddingError):
        await embedder.embed("question")


class _CountingEmbedder:
    dimension = 2

    def __init__(self) -> None:
        self.calls = 0

    async def embed(self, text: str) -> list[float]:
        self.calls += 1
        return [float(len(text)), float(self.calls)]


@pytest.mark.asyncio
async def test_cached_embedder_reuses_fresh_entries() -> None:
    """Test that a repeated text within the TTL hits the cache."""
    inner = _CountingEmbedder()
    cached = CachedEmbedder(inner, ttl_seconds=300)
    now = datetime(2026, 1, 1, 12, 0, 0)

    first = await cached.embed("same text", now=now)
    second = await cached.embed("same text", now=now + timedelta(seconds=10))

    assert first == second
    assert inner.calls == 1


@pytest.mark.asyncio
async def test_cached_embedder_recomputes_after_expiry() -> None:
    """Test that an expired entry is dropped and recomputed."""
    inner = _CountingEmbedder()
    cached = CachedEmbedder(inner, ttl_seconds=300)
    now = datetime(2026, 1, 1, 12, 0, 0)

    await cached.embed("same text", now=now)
    await cached.embed("same text", now=now + timedelta(seconds=301))

    assert inner.calls == 2


@pytest.mark.asyncio
async def test_cached_embedder_evicts_oldest_when_full() -> None:
    """Test that the cache never grows beyond max_entries."""
    inner = _CountingEmbedder()
    cached = CachedEmbedder(inner, ttl_seconds=300, max_entries=2)
    now = datetime(2026, 1, 1, 12, 0, 0)

    await cached.embed("one", now=now)
    await cached.embed("two", now=now)
    await cached.embed("three", now=now)

    assert len(cached) == 2
    # "one" was evicted, so it is recomputed
    await cached.embed("one", now=now)
    assert inner.calls == 4


def test_build_embedder_defaults_to_cached_huggingface() -> None:
    """Test that default settings produce a cached Hugging Face embedder."""
    embedder = build_embedder(Settings(_env_file=None))

    assert isinstance(embedder, CachedEmbedder)
    assert embedder.dimension == 384


def test_build_embedder_openai_requires_key() -> None:
    """Test that selecting OpenAI embeddings without a key is a configuration error."""
    settings = Settings(_env_file=None, embedding_provider="openai", openai_api_key=None)

    with pytest.raises(ValueError, match="OPENAI_API_KEY"):
        build_embedder(settings)
