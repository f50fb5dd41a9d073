"""Generative model backends (Gemini, OpenAI, Hugging Face text generation).

Security: API keys come from settings (environment) only, never hardcoded.
Backends without credentials are simply not constructed.
"""

import logging
from dataclasses import dataclass
from typing import Any, Protocol

import httpx
from openai import AsyncOpenAI, OpenAIError

from askdocs.config import Settings
from askdocs.errors import GenerationBackendError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationParams:
    """Sampling parameters shared by all backends."""

    temperature: float = 0.1
    top_k: int = 20
    top_p: float = 0.8
    max_output_tokens: int = 300


class GenerativeBackend(Protocol):
    """Protocol for text generation backends."""

    name: str

    async def generate(self, prompt: str, params: GenerationParams) -> str:
        """Generate a completion for a prompt.

        Args:
            prompt: Full prompt text
            params: Sampling parameters

        Returns:
            Stripped completion text (may be empty)

        Raises:
            GenerationBackendError: On transport, HTTP or response-shape errors
        """
        ...


async def _post_json(
    client: httpx.AsyncClient | None,
    url: str,
    payload: dict[str, Any],
    headers: dict[str, str],
    timeout: float,
    backend: str,
) -> Any:
    close_client = False
    if client is None:
        client = httpx.AsyncClient(timeout=timeout)
        close_client = True

    try:
        response = await client.post(url, json=payload, headers=headers)
        response.raise_for_status()
        return response.json()
    except httpx.HTTPStatusError as e:
        raise GenerationBackendError(f"{backend} returned {e.response.status_code}") from e
    except (httpx.HTTPError, ValueError) as e:
        raise GenerationBackendError(f"{backend} call failed: {e}") from e
    finally:
        if close_client:
            await client.aclose()


class GeminiBackend:
    """Google Gemini via the generateContent REST endpoint."""

    def __init__(
        self,
        api_key: str,
        *,
        model: str = "gemini-2.0-flash",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta/models",
        timeout: float = 20.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.name = f"gemini:{model}"
        self._url = f"{base_url.rstrip('/')}/{model}:generateContent"
        self._api_key = api_key
        self._timeout = timeout
        self._client = client

    async def generate(self, prompt: str, params: GenerationParams) -> str:
        """Generate an answer using the Gemini API."""
        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": params.temperature,
                "topK": params.top_k,
                "topP": params.top_p,
                "maxOutputTokens": params.max_output_tokens,
            },
        }
        headers = {"Content-Type": "application/json", "X-goog-api-key": self._api_key}

        data = await _post_json(self._client, self._url, payload, headers, self._timeout, "Gemini")

        # Response structure: {candidates: [{content: {parts: [{text: ...}]}}]}
        try:
            return data["candidates"][0]["content"]["parts"][0]["text"].strip()
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            raise GenerationBackendError("No answer from Gemini API") from e


class OpenAIBackend:
    """OpenAI chat completions backend."""

    def __init__(self, api_key: str, model: str = "gpt-4o-mini", timeout: float = 20.0):
        """Initialize OpenAI backend.

        Args:
            api_key: OpenAI API key (read from environment)
            model: Model name to use (default: gpt-4o-mini for cost efficiency)
            timeout: Request timeout in seconds
        """
        self.client = AsyncOpenAI(api_key=api_key, timeout=timeout)
        self.model = model
        self.name = f"openai:{model}"

    async def generate(self, prompt: str, params: GenerationParams) -> str:
        """Generate an answer using the OpenAI API."""
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=params.temperature,
                top_p=params.top_p,
                max_tokens=params.max_output_tokens,
            )
        except OpenAIError as e:
            raise GenerationBackendError(f"OpenAI API call failed: {e}") from e

        if not response.choices:
            raise GenerationBackendError("OpenAI returned no choices")

        return (response.choices[0].message.content or "").strip()


class HuggingFaceTextBackend:
    """Hugging Face inference text generation for one model."""

    def __init__(
        self,
        model: str,
        *,
        api_key: str | None = None,
        base_url: str = "https://router.huggingface.co/hf-inference/models",
        timeout: float = 20.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.name = f"huggingface:{model}"
        self.model = model
        self._url = f"{base_url.rstrip('/')}/{model}"
        self._api_key = api_key
        self._timeout = timeout
        self._client = client

    async def generate(self, prompt: str, params: GenerationParams) -> str:
        """Generate text via the inference API."""
        payload = {
            "inputs": prompt,
            "parameters": {
                "max_new_tokens": params.max_output_tokens,
                "temperature": params.temperature,
                "do_sample": True,
                "return_full_text": False,
            },
        }
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        data = await _post_json(
            self._client, self._url, payload, headers, self._timeout, self.name
        )

        # Either [{"generated_text": ...}] or {"generated_text": ...}
        if isinstance(data, list) and data:
            data = data[0]
        if not isinstance(data, dict) or not isinstance(data.get("generated_text"), str):
            raise GenerationBackendError(f"{self.name} returned an unexpected response shape")

        return data["generated_text"].strip()


def build_primary_backend(settings: Settings) -> GenerativeBackend | None:
    """Construct the primary backend, or None when it has no credentials."""
    if settings.primary_llm_provider == "openai":
        if settings.openai_api_key is None:
            logger.warning("No OPENAI_API_KEY found, primary model tier disabled")
            return None
        return OpenAIBackend(
            settings.openai_api_key.get_secret_value(),
            model=settings.openai_model,
            timeout=settings.generation_timeout_seconds,
        )

    if settings.gemini_api_key is None:
        logger.warning("No GEMINI_API_KEY found, primary model tier disabled")
        return None
    return GeminiBackend(
        settings.gemini_api_key.get_secret_value(),
        model=settings.gemini_model,
        base_url=settings.gemini_base_url,
        timeout=settings.generation_timeout_seconds,
    )


def build_secondary_backends(settings: Settings) -> list[GenerativeBackend]:
    """Construct one Hugging Face backend per configured secondary model."""
    api_key = settings.huggingface_api_key
    if api_key is None:
        logger.warning("No HUGGINGFACE_API_KEY found, secondary model tier disabled")
        return []
    return [
        HuggingFaceTextBackend(
            model,
            api_key=api_key.get_secret_value(),
            base_url=settings.huggingface_base_url,
            timeout=settings.generation_timeout_seconds,
        )
        for model in settings.secondary_models
    ]
