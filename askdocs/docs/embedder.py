"""Text embedding backends (Hugging Face inference, OpenAI) with an optional TTL cache."""

import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

import httpx
from openai import AsyncOpenAI, OpenAIError

from askdocs.config import Settings
from askdocs.errors import EmbeddingError

logger = logging.getLogger(__name__)


class Embedder(Protocol):
    """Maps text to a fixed-dimension vector."""

    dimension: int

    async def embed(self, text: str) -> list[float]:
        """Embed one text.

        Args:
            text: Chunk or question text

        Returns:
            Vector of length `dimension`

        Raises:
            EmbeddingError: Backend unreachable or returned an unexpected shape
        """
        ...


def _validate_vector(data: Any, dimension: int) -> list[float]:
    """Unwrap nested responses and check the vector shape."""
    # Feature extraction may wrap the sentence vector: [[...]]
    while isinstance(data, list) and len(data) == 1 and isinstance(data[0], list):
        data = data[0]

    if not isinstance(data, list) or not data:
        raise EmbeddingError(f"unexpected embedding response shape: {type(data).__name__}")

    if not all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in data):
        raise EmbeddingError("embedding response contains non-numeric entries")

    if len(data) != dimension:
        raise EmbeddingError(f"embedding dimension mismatch: expected {dimension}, got {len(data)}")

    return [float(v) for v in data]


class HuggingFaceEmbedder:
    """Sentence embeddings through the Hugging Face feature-extraction endpoint."""

    def __init__(
        self,
        *,
        model: str = "sentence-transformers/all-MiniLM-L6-v2",
        api_key: str | None = None,
        base_url: str = "https://router.huggingface.co/hf-inference/models",
        dimension: int = 384,
        max_input_chars: int = 2000,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize embedder.

        Args:
            model: Hugging Face model id
            api_key: Inference API token (optional for public models)
            base_url: Inference endpoint base URL
            dimension: Expected vector length
            max_input_chars: Longer inputs are truncated before the call
            timeout: Request timeout in seconds
            client: Optional httpx client (for testing with mocks)
        """
        self.model = model
        self.dimension = dimension
        self._url = f"{base_url.rstrip('/')}/{model}/pipeline/feature-extraction"
        self._api_key = api_key
        self._max_input_chars = max_input_chars
        self._timeout = timeout
        self._client = client

    async def embed(self, text: str) -> list[float]:
        """Embed one text via the inference API."""
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        payload = {"inputs": text[: self._max_input_chars]}

        close_client = False
        client = self._client
        if client is None:
            client = httpx.AsyncClient(timeout=self._timeout)
            close_client = True

        try:
            response = await client.post(self._url, json=payload, headers=headers)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise EmbeddingError(
                f"embedding backend returned {e.response.status_code} for {self.model}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise EmbeddingError(f"embedding backend call failed: {e}") from e
        finally:
            if close_client:
                await client.aclose()

        return _validate_vector(data, self.dimension)


class OpenAIEmbedder:
    """OpenAI embeddings truncated to a fixed dimension."""

    def __init__(
        self,
        api_key: str,
        *,
        model: str = "text-embedding-3-small",
        dimension: int = 384,
        max_input_chars: int = 2000,
        timeout: float = 10.0,
    ) -> None:
        """Initialize OpenAI embedder.

        Args:
            api_key: OpenAI API key (read from environment)
            model: Embedding model name
            dimension: Requested vector length (`dimensions` parameter)
            max_input_chars: Longer inputs are truncated before the call
            timeout: Request timeout in seconds
        """
        self.client = AsyncOpenAI(api_key=api_key, timeout=timeout)
        self.model = model
        self.dimension = dimension
        self._max_input_chars = max_input_chars

    async def embed(self, text: str) -> list[float]:
        """Embed one text via the OpenAI embeddings API."""
        try:
            response = await self.client.embeddings.create(
                model=self.model,
                input=text[: self._max_input_chars],
                dimensions=self.dimension,
            )
        except OpenAIError as e:
            raise EmbeddingError(f"OpenAI embedding call failed: {e}") from e

        if not response.data:
            raise EmbeddingError("OpenAI returned no embedding data")

        return _validate_vector(response.data[0].embedding, self.dimension)


@dataclass
class CacheEntry:
    """Cached embedding with metadata."""

    value: list[float]
    cached_at: datetime
    ttl_seconds: int

    def is_fresh(self, now: datetime) -> bool:
        """Check if cache entry is still valid."""
        return (now - self.cached_at).total_seconds() < self.ttl_seconds


class CachedEmbedder:
    """Time-boxed, size-bounded cache in front of another embedder."""

    def __init__(self, inner: Embedder, *, ttl_seconds: int = 300, max_entries: int = 1024) -> None:
        self._inner = inner
        self._ttl_seconds = ttl_seconds
        self._max_entries = max_entries
        self._cache: dict[str, CacheEntry] = {}
        self.dimension = inner.dimension

    def __len__(self) -> int:
        return len(self._cache)

    @staticmethod
    def make_key(text: str) -> str:
        """Generate deterministic cache key from text."""
        return hashlib.sha256(text.encode()).hexdigest()

    async def embed(self, text: str, now: datetime | None = None) -> list[float]:
        """Return a fresh cached vector or compute and store a new one."""
        if now is None:
            now = datetime.now()

        key = self.make_key(text)
        entry = self._cache.get(key)
        if entry and entry.is_fresh(now):
            return list(entry.value)
        elif entry:
            # Expired - remove
            del self._cache[key]

        vector = await self._inner.embed(text)

        if len(self._cache) >= self._max_entries:
            # Dicts keep insertion order; the first key is the oldest
            del self._cache[next(iter(self._cache))]
        self._cache[key] = CacheEntry(value=vector, cached_at=now, ttl_seconds=self._ttl_seconds)

        return vector


def build_embedder(settings: Settings) -> Embedder:
    """Construct the process-wide embedder from settings.

    Raises:
        ValueError: If the OpenAI provider is selected without an API key
    """
    inner: Embedder
    if settings.embedding_provider == "openai":
        if settings.openai_api_key is None:
            raise ValueError("OPENAI_API_KEY must be set when EMBEDDING_PROVIDER=openai")
        inner = OpenAIEmbedder(
            settings.openai_api_key.get_secret_value(),
            model=settings.openai_embedding_model,
            dimension=settings.embedding_dim,
            max_input_chars=settings.embedding_max_input_chars,
            timeout=settings.embedding_timeout_seconds,
        )
    else:
        api_key = settings.huggingface_api_key
        inner = HuggingFaceEmbedder(
            model=settings.embedding_model,
            api_key=api_key.get_secret_value() if api_key else None,
            base_url=settings.huggingface_base_url,
            dimension=settings.embedding_dim,
            max_input_chars=settings.embedding_max_input_chars,
            timeout=settings.embedding_timeout_seconds,
        )

    logger.info(
        "Embedder configured",
        extra={
            "structured": {"provider": settings.embedding_provider, "dim": settings.embedding_dim}
        },
    )

    if settings.embedding_cache_ttl_seconds <= 0:
        return inner
    return CachedEmbedder(
        inner,
        ttl_seconds=settings.embedding_cache_ttl_seconds,
        max_entries=settings.embedding_cache_max_entries,
    )
