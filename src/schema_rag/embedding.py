"""Embedding providers and the fallback chain that drives them.

Three providers are supported:

- ``ollama``: local inference service, one request per text with pacing
- ``openai``: hosted API, one batched request
- ``hash``: deterministic offline vectors, no network

The ``Embedder`` walks an ordered provider chain and always ends on the hash
provider, so generating embeddings for retrieval never fails the caller.
"""

import asyncio
import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol, overload

import httpx
from loguru import logger
from openai import APITimeoutError, AsyncOpenAI, RateLimitError
from pydantic import BaseModel, Field

from schema_rag.errors import (
    ConfigurationError,
    DimensionMismatchError,
    EmbeddingProviderError,
    ModelUnavailableError,
)

HASH_SEED_STRIDE = 1234567


class OllamaConfig(BaseModel):
    """Local inference service settings.

    Attributes:
        base_url: Ollama server URL
        model: Embedding model name (e.g., "nomic-embed-text")
        timeout_seconds: Per-request timeout for embedding calls
        probe_timeout_seconds: Timeout for the model catalog probe
        request_delay_seconds: Pause between successive per-text requests
    """

    base_url: str = "http://localhost:11434"
    model: str = "nomic-embed-text"
    timeout_seconds: float = Field(default=30.0, ge=1.0, le=300.0)
    probe_timeout_seconds: float = Field(default=5.0, ge=0.5, le=60.0)
    request_delay_seconds: float = Field(default=0.1, ge=0.0, le=5.0)


class OpenAIConfig(BaseModel):
    """Hosted embedding API settings.

    Attributes:
        model: Model identifier (e.g., "text-embedding-3-small")
        api_key: API key (set via OPENAI_API_KEY)
        max_retries: Maximum attempts for rate-limited or timed-out requests
        timeout_seconds: API request timeout
    """

    model: str = "text-embedding-3-small"
    api_key: str | None = None
    max_retries: int = Field(default=3, ge=1, le=10)
    timeout_seconds: float = Field(default=30.0, ge=1.0, le=300.0)


class EmbeddingConfig(BaseModel):
    """Configuration for embedding generation.

    Attributes:
        provider: Primary provider ("ollama", "openai" or "hash")
        dimensions: Embedding dimensionality shared by every stored vector
        ollama: Local inference service settings
        openai: Hosted API settings
    """

    provider: str = Field(default="ollama", pattern="^(ollama|openai|hash)$")
    dimensions: int = Field(default=768, ge=8, le=4096)
    ollama: OllamaConfig = Field(default_factory=OllamaConfig)
    openai: OpenAIConfig = Field(default_factory=OpenAIConfig)


class EmbeddingProvider(Protocol):
    """Protocol for embedding provider implementations."""

    name: str

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for a batch of texts.

        Args:
            texts: List of input texts

        Returns:
            List of embedding vectors (same order as inputs)

        Raises:
            EmbeddingProviderError: If the provider cannot serve the request
            httpx.HTTPError: For transport failures
        """
        ...


def _check_dimensions(vectors: list[list[float]], expected: int, provider: str) -> None:
    for i, vector in enumerate(vectors):
        if len(vector) != expected:
            raise DimensionMismatchError(
                f"Expected {expected} dimensions from {provider}, got {len(vector)} for text {i}",
                context={"provider": provider, "expected": expected, "actual": len(vector)},
            )
        for j, value in enumerate(vector):
            if not math.isfinite(value):
                raise EmbeddingProviderError(
                    f"{provider} returned non-finite value {value} at index {j} for text {i}",
                    context={"provider": provider, "text": i, "index": j},
                )


class OllamaEmbedding:
    """Ollama embedding client.

    Texts are embedded one request at a time to stay within the model's
    context window, with a short pause between requests.
    """

    name = "ollama"

    def __init__(
        self,
        config: OllamaConfig,
        dimensions: int,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize Ollama client.

        Args:
            config: Ollama settings
            dimensions: Expected embedding dimensionality
            client: Optional pre-built HTTP client (owned by the caller)
        """
        self.config = config
        self.dimensions = dimensions
        self.base_url = config.base_url.rstrip("/")
        self._client = client or httpx.AsyncClient()
        self._owns_client = client is None
        self._model_verified = False

    async def check_model(self) -> None:
        """Verify the configured model is listed by the service.

        Raises:
            ModelUnavailableError: If the model is not in the advertised catalog
            EmbeddingProviderError: If the service is not reachable
        """
        model = self.config.model
        try:
            response = await self._client.get(
                f"{self.base_url}/api/tags", timeout=self.config.probe_timeout_seconds
            )
            response.raise_for_status()
        except httpx.ConnectError as e:
            raise EmbeddingProviderError(
                f"Ollama service is not running at {self.base_url}",
                context={"url": self.base_url},
            ) from e

        available = [entry.get("name", "") for entry in response.json().get("models") or []]
        if not any(name == model or name.startswith(model) for name in available):
            raise ModelUnavailableError(
                f'Model "{model}" not found. Available models: {", ".join(available)}. '
                f"Please run: ollama pull {model}",
                context={"model": model, "available": available},
            )

        self._model_verified = True
        logger.info(f"Ollama model '{model}' is available")

    async def _embed_one(self, text: str) -> list[float]:
        model = self.config.model
        try:
            response = await self._client.post(
                f"{self.base_url}/api/embeddings",
                json={"model": model, "prompt": text},
                timeout=self.config.timeout_seconds,
            )
        except httpx.ConnectError as e:
            raise EmbeddingProviderError(
                f"Ollama service is not running at {self.base_url}",
                context={"url": self.base_url},
            ) from e

        if response.status_code == 404:
            raise ModelUnavailableError(
                f'Model "{model}" not found. Please run: ollama pull {model}',
                context={"model": model},
            )
        response.raise_for_status()

        embedding = response.json().get("embedding")
        if not embedding:
            raise EmbeddingProviderError("Invalid response format from Ollama embeddings API")
        try:
            return [float(value) for value in embedding]
        except (TypeError, ValueError) as e:
            raise EmbeddingProviderError(
                f"Non-numeric value in Ollama embedding: {e}", context={"model": self.config.model}
            ) from e

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed texts sequentially, pausing between requests.

        Args:
            texts: List of input texts

        Returns:
            List of embedding vectors (same order as inputs)
        """
        if not texts:
            return []

        if not self._model_verified:
            await self.check_model()

        vectors: list[list[float]] = []
        for i, text in enumerate(texts):
            if i > 0 and self.config.request_delay_seconds > 0:
                await asyncio.sleep(self.config.request_delay_seconds)
            vectors.append(await self._embed_one(text))

        _check_dimensions(vectors, self.dimensions, self.name)
        logger.debug(f"Embedded {len(texts)} texts with Ollama model {self.config.model}")
        return vectors

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()


class OpenAIEmbedding:
    """OpenAI embedding client with retry logic and batching."""

    name = "openai"

    def __init__(self, config: OpenAIConfig, dimensions: int):
        """Initialize OpenAI client settings.

        The SDK client is created on first use so that a chain containing this
        provider can be built without a key; the missing key is then reported
        as a ConfigurationError on each attempt.

        Args:
            config: OpenAI settings
            dimensions: Expected embedding dimensionality
        """
        self.config = config
        self.dimensions = dimensions
        self._client: AsyncOpenAI | None = None

    def _get_client(self) -> AsyncOpenAI:
        if not self.config.api_key:
            raise ConfigurationError(
                "OpenAI API key not found. Set OPENAI_API_KEY to enable the hosted provider.",
                context={"provider": self.name},
            )
        if self._client is None:
            # embed_batch owns the retry loop
            self._client = AsyncOpenAI(
                api_key=self.config.api_key,
                timeout=self.config.timeout_seconds,
                max_retries=0,
            )
        return self._client

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for all texts in one request, with retry logic.

        Args:
            texts: List of input texts

        Returns:
            List of embedding vectors (same order as inputs)

        Raises:
            ConfigurationError: If no API key is configured
            openai.OpenAIError: For API failures after all retries
        """
        if not texts:
            return []

        client = self._get_client()
        extra = {}
        if self.config.model.startswith("text-embedding-3"):
            extra["dimensions"] = self.dimensions

        for attempt in range(self.config.max_retries):
            try:
                response = await client.embeddings.create(
                    model=self.config.model, input=texts, **extra
                )
                embeddings = [list(item.embedding) for item in response.data]
                _check_dimensions(embeddings, self.dimensions, self.name)

                logger.debug(
                    f"Embedded {len(texts)} texts with {self.config.model} "
                    f"(attempt {attempt + 1}/{self.config.max_retries})"
                )
                return embeddings

            except (APITimeoutError, RateLimitError) as e:
                logger.warning(
                    f"Transient OpenAI failure "
                    f"(attempt {attempt + 1}/{self.config.max_retries}): {e}"
                )
                if attempt < self.config.max_retries - 1:
                    await asyncio.sleep(2 ** (attempt + 1))
                else:
                    raise

        raise RuntimeError("Exhausted all retry attempts")


def text_hash(text: str) -> int:
    """Fold the text's code points into a signed 32-bit rolling hash (h * 31 + c)."""
    value = 0
    for char in text:
        value = (value * 31 + ord(char)) & 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000
    return value


def hash_embedding(text: str, dimensions: int) -> list[float]:
    """Deterministic unit vector for text.

    Args:
        text: Input text
        dimensions: Output dimensionality

    Returns:
        L2-normalized vector; identical text always yields an identical vector
    """
    seed = text_hash(text)
    values = []
    for i in range(dimensions):
        point = seed + i * HASH_SEED_STRIDE
        values.append(math.sin(point) + math.cos(0.7 * point))

    magnitude = math.sqrt(sum(v * v for v in values)) or 1.0
    return [v / magnitude for v in values]


class HashEmbedding:
    """Offline deterministic embeddings. Never fails; carries no semantics."""

    name = "hash"

    def __init__(self, dimensions: int):
        self.dimensions = dimensions

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        return [hash_embedding(text, self.dimensions) for text in texts]


@dataclass(frozen=True)
class EmbeddingSuccess:
    """Vectors produced by one provider."""

    provider: str
    vectors: list[list[float]]


@dataclass(frozen=True)
class EmbeddingFailure:
    """A provider attempt that did not produce vectors."""

    provider: str
    error: Exception


EmbeddingAttempt = EmbeddingSuccess | EmbeddingFailure

async def attempt_embedding(
    provider: EmbeddingProvider, texts: list[str], dimensions: int | None = None
) -> EmbeddingAttempt:
    """Run one provider and wrap the outcome as a success or failure value.

    Any exception raised by the provider becomes an ``EmbeddingFailure`` so the
    chain can move on to the next provider. When ``dimensions`` is given, a
    vector of the wrong length or with non-finite values is a failure too.
    """
    try:
        vectors = await provider.embed_batch(texts)
        if len(vectors) != len(texts):
            raise EmbeddingProviderError(
                f"{provider.name} returned {len(vectors)} vectors for {len(texts)} texts"
            )
        if dimensions is not None:
            _check_dimensions(vectors, dimensions, provider.name)
    except Exception as e:
        return EmbeddingFailure(provider=provider.name, error=e)
    return EmbeddingSuccess(provider=provider.name, vectors=vectors)


class Embedder:
    """Embeds text through an ordered provider chain ending on HashEmbedding."""

    def __init__(self, providers: Sequence[EmbeddingProvider], dimensions: int):
        """Initialize the provider chain.

        Args:
            providers: Providers in preference order
            dimensions: Embedding dimensionality; a HashEmbedding of this size is
                appended when the chain does not already end with one
        """
        chain = list(providers)
        if not chain or not isinstance(chain[-1], HashEmbedding):
            chain.append(HashEmbedding(dimensions))
        self.providers = chain
        self.dimensions = dimensions
        self.last_provider: str | None = None

    @property
    def provider_names(self) -> list[str]:
        return [provider.name for provider in self.providers]

    @overload
    async def embed(self, inputs: str) -> list[float]: ...

    @overload
    async def embed(self, inputs: Sequence[str]) -> list[list[float]]: ...

    async def embed(self, inputs: str | Sequence[str]) -> list[float] | list[list[float]]:
        """Embed one text or a sequence of texts, preserving arity.

        Args:
            inputs: A single string or a sequence of strings

        Returns:
            A single vector for a string input, otherwise a list of vectors
        """
        if isinstance(inputs, str):
            return (await self.embed_batch([inputs]))[0]
        return await self.embed_batch(list(inputs))

    async def embed_single(self, text: str) -> list[float]:
        return (await self.embed_batch([text]))[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed texts with the first provider that succeeds.

        Args:
            texts: Input texts

        Returns:
            List of embedding vectors (same order as inputs)
        """
        if not texts:
            return []

        logger.debug(f"Generating embeddings for {len(texts)} texts via {self.provider_names}")
        for provider in self.providers:
            result = await attempt_embedding(provider, texts, self.dimensions)
            if isinstance(result, EmbeddingSuccess):
                self.last_provider = result.provider
                return result.vectors
            logger.warning(f"Embedding provider '{result.provider}' failed: {result.error}")

        raise EmbeddingProviderError("All embedding providers failed")

    async def aclose(self) -> None:
        """Release provider resources."""
        for provider in self.providers:
            close = getattr(provider, "aclose", None)
            if close is not None:
                await close()


def create_embedder(config: EmbeddingConfig) -> Embedder:
    """Factory function to build the provider chain for the configured provider.

    Args:
        config: Embedding configuration

    Returns:
        Embedder whose chain is ollama -> openai -> hash, openai -> hash, or hash

    Raises:
        ConfigurationError: If the hosted provider is selected without an API key

    Example:
        >>> embedder = create_embedder(EmbeddingConfig(provider="hash", dimensions=64))
        >>> embedder.provider_names
        ['hash']
    """
    dims = config.dimensions
    if config.provider == "ollama":
        providers: list[EmbeddingProvider] = [
            OllamaEmbedding(config.ollama, dims),
            OpenAIEmbedding(config.openai, dims),
        ]
    elif config.provider == "openai":
        if not config.openai.api_key:
            raise ConfigurationError(
                "Embedding provider 'openai' requires an API key (OPENAI_API_KEY)",
                context={"provider": "openai"},
            )
        providers = [OpenAIEmbedding(config.openai, dims)]
    elif config.provider == "hash":
        providers = []
    else:
        raise ConfigurationError(f"Unknown embedding provider {config.provider!r}")

    embedder = Embedder(providers, dims)
    logger.info(f"Embedding provider chain: {' -> '.join(embedder.provider_names)}")
    return embedder
