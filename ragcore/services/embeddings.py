"""
Embedding service for generating text embeddings.

Supports local models (sentence-transformers) and the OpenAI embeddings
API. Includes content-hash based caching to avoid recomputing embeddings.
Every vector returned for a deployment has the same dimensionality;
a provider answering with another size is an error, never truncated or padded.
"""

import asyncio
import hashlib
import logging
import os
from abc import ABC, abstractmethod
from typing import Optional

from openai import APIConnectionError, APIStatusError, AsyncOpenAI, RateLimitError
from sentence_transformers import SentenceTransformer
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from ragcore.config.presets import EmbeddingConfig
from ragcore.errors import EmbeddingError
from ragcore.utils import LRUCache


logger = logging.getLogger(__name__)


def _is_transient(exc: BaseException) -> bool:
    """Timeouts, connection failures, rate limits and 5xx answers are worth another attempt."""
    if isinstance(exc, (APIConnectionError, RateLimitError)):
        return True
    return isinstance(exc, APIStatusError) and exc.status_code >= 500


class EmbeddingService(ABC):
    """Abstract base class for embedding services."""

    config: EmbeddingConfig

    @abstractmethod
    async def embed_query(self, text: str) -> list[float]:
        """
        Generate embedding for a single query text.

        Args:
            text: Input text

        Returns:
            Embedding vector as list of floats
        """
        pass

    @abstractmethod
    async def embed_documents(self, texts: list[str]) -> list[list[float]]:
        """
        Generate embeddings for multiple texts.

        Args:
            texts: List of input texts

        Returns:
            List of embedding vectors, same length and order as ``texts``
        """
        pass

    @abstractmethod
    def get_embedding_dim(self) -> int:
        """Get the dimensionality of embeddings."""
        pass

    @staticmethod
    def compute_content_hash(text: str) -> str:
        """
        Compute SHA256 hash of text content for caching.

        Args:
            text: Input text

        Returns:
            Hex string of hash
        """
        return hashlib.sha256(text.encode("utf-8")).hexdigest()

    def _check_vectors(self, texts: list[str], vectors: list[list[float]]):
        if len(vectors) != len(texts):
            raise EmbeddingError(
                "Embedding response size mismatch",
                model=self.config.model_name,
                details={"expected": len(texts), "got": len(vectors)},
            )
        expected_dim = self.config.dimensions
        for vector in vectors:
            if expected_dim is not None and len(vector) != expected_dim:
                raise EmbeddingError(
                    "Embedding dimension mismatch",
                    model=self.config.model_name,
                    details={"expected_dimension": expected_dim, "actual_dimension": len(vector)},
                )


class _CachingEmbeddingService(EmbeddingService):
    """Shared cache handling; subclasses implement ``_embed_uncached``."""

    def __init__(self, config: EmbeddingConfig):
        self.config = config
        self._embedding_cache: LRUCache[list[float]] = LRUCache(config.cache_size)

    @abstractmethod
    async def _embed_uncached(self, texts: list[str]) -> list[list[float]]:
        pass

    async def embed_query(self, text: str) -> list[float]:
        """Generate embedding for a single text."""
        vectors = await self.embed_documents([text])
        return vectors[0]

    async def embed_documents(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts."""
        if not texts:
            return []

        uncached_texts = []
        uncached_indices = []
        results: list[Optional[list[float]]] = [None] * len(texts)

        if self.config.cache_enabled:
            for i, text in enumerate(texts):
                cached = self._embedding_cache.get(self.compute_content_hash(text))
                if cached is not None:
                    results[i] = cached
                else:
                    uncached_texts.append(text)
                    uncached_indices.append(i)
        else:
            uncached_texts = list(texts)
            uncached_indices = list(range(len(texts)))

        if uncached_texts:
            logger.info(f"Generating embeddings for {len(uncached_texts)} texts")
            embeddings = await self._embed_uncached(uncached_texts)
            self._check_vectors(uncached_texts, embeddings)

            for i, idx in enumerate(uncached_indices):
                results[idx] = embeddings[i]
                if self.config.cache_enabled:
                    self._embedding_cache.put(self.compute_content_hash(texts[idx]), embeddings[i])
        else:
            logger.debug(f"Cache hit for all {len(texts)} texts")

        return results

    def clear_cache(self):
        """Clear the embedding cache."""
        self._embedding_cache.clear()
        logger.info("Embedding cache cleared")


class LocalEmbeddingService(_CachingEmbeddingService):
    """
    Embedding service using local sentence-transformer models.

    Uses HuggingFace sentence-transformers for local inference. Encoding
    runs in a worker thread so the event loop stays responsive.
    """

    def __init__(
        self,
        config: EmbeddingConfig,
        cache_dir: Optional[str] = None,
        hf_token: Optional[str] = None,
    ):
        """
        Initialize local embedding service.

        Args:
            config: Embedding configuration
            cache_dir: Directory to cache model weights
            hf_token: HuggingFace token for model downloads
        """
        super().__init__(config)
        self.cache_dir = cache_dir
        self.hf_token = hf_token
        self._model: Optional[SentenceTransformer] = None

        logger.info(f"Initialized LocalEmbeddingService with model: {config.model_name}")

    def _load_model(self):
        """Lazy load the embedding model."""
        if self._model is None:
            logger.info(f"Loading embedding model: {self.config.model_name}")

            model_kwargs = self.config.model_kwargs.copy()
            if self.cache_dir:
                model_kwargs["cache_folder"] = self.cache_dir
            if self.hf_token:
                os.environ["HF_TOKEN"] = self.hf_token
                model_kwargs["token"] = self.hf_token

            try:
                self._model = SentenceTransformer(self.config.model_name, **model_kwargs)
            except Exception as e:
                raise EmbeddingError(f"Failed to load embedding model: {e}", model=self.config.model_name) from e

            logger.info(
                f"Model loaded. Embedding dimension: {self._model.get_sentence_embedding_dimension()}"
            )

    def _encode(self, texts: list[str]) -> list[list[float]]:
        self._load_model()
        embeddings = self._model.encode(
            texts,
            batch_size=self.config.batch_size,
            convert_to_numpy=True,
            show_progress_bar=len(texts) > 10,
        )
        return [embedding.tolist() for embedding in embeddings]

    async def _embed_uncached(self, texts: list[str]) -> list[list[float]]:
        try:
            return await asyncio.to_thread(self._encode, texts)
        except EmbeddingError:
            raise
        except Exception as e:
            raise EmbeddingError(f"Local embedding failed: {e}", model=self.config.model_name) from e

    def get_embedding_dim(self) -> int:
        """Get the dimensionality of embeddings."""
        if self.config.dimensions:
            return self.config.dimensions
        self._load_model()
        return self._model.get_sentence_embedding_dimension()


class RemoteEmbeddingService(_CachingEmbeddingService):
    """
    Embedding service using the OpenAI embeddings API (or a compatible endpoint).

    Each batch request is bounded by ``config.timeout``. Timeouts, connection
    failures, rate limits and 5xx answers are retried up to ``config.max_retries``
    attempts with exponential backoff; other API errors fail at once.
    """

    def __init__(
        self,
        config: EmbeddingConfig,
        api_key: Optional[str] = None,
    ):
        """
        Initialize remote embedding service.

        Args:
            config: Embedding configuration
            api_key: API key for the service
        """
        super().__init__(config)
        self.api_key = api_key
        self._client: Optional[AsyncOpenAI] = None

        logger.info(f"Initialized RemoteEmbeddingService with model: {config.model_name}")

    def _get_client(self) -> AsyncOpenAI:
        """Lazy initialize OpenAI client."""
        if self._client is None:
            api_key_env = self.config.model_kwargs.get("api_key_env", "OPENAI_API_KEY")
            api_key = self.api_key or os.getenv(api_key_env)
            if not api_key:
                raise EmbeddingError(
                    f"API key not found in environment variable: {api_key_env}",
                    model=self.config.model_name,
                )

            # Retries are handled here, not inside the SDK
            client_kwargs = {"api_key": api_key, "timeout": self.config.timeout, "max_retries": 0}
            base_url = self.config.model_kwargs.get("base_url")
            if base_url:
                client_kwargs["base_url"] = base_url
            self._client = AsyncOpenAI(**client_kwargs)
            logger.info(f"Initialized OpenAI embeddings client (base_url={base_url or 'default'})")

        return self._client

    async def _embed_batch(self, client: AsyncOpenAI, inputs: list[str]) -> list[list[float]]:
        """Embed one batch of texts."""
        request = {"model": self.config.model_name, "input": inputs}
        if self.config.dimensions:
            request["dimensions"] = self.config.dimensions
        response = await client.embeddings.create(**request)
        return [item.embedding for item in sorted(response.data, key=lambda d: d.index)]

    async def _embed_batch_with_retry(self, client: AsyncOpenAI, inputs: list[str]) -> list[list[float]]:
        try:
            async for attempt in AsyncRetrying(
                reraise=True,
                stop=stop_after_attempt(self.config.max_retries),
                wait=wait_exponential(multiplier=1, min=1, max=30),
                retry=retry_if_exception(_is_transient),
            ):
                with attempt:
                    return await self._embed_batch(client, inputs)
        except Exception as e:
            raise EmbeddingError(f"Embedding request failed: {e}", model=self.config.model_name) from e

    async def _embed_uncached(self, texts: list[str]) -> list[list[float]]:
        client = self._get_client()
        vectors: list[list[float]] = []
        batch_size = max(1, self.config.batch_size)
        for start in range(0, len(texts), batch_size):
            vectors.extend(await self._embed_batch_with_retry(client, texts[start:start + batch_size]))
        return vectors

    def get_embedding_dim(self) -> int:
        """Get the dimensionality of embeddings."""
        if self.config.dimensions:
            return self.config.dimensions
        if "large" in self.config.model_name:
            return 3072
        return 1536


def create_embedding_service(
    config: EmbeddingConfig,
    cache_dir: Optional[str] = None,
    api_key: Optional[str] = None,
    hf_token: Optional[str] = None,
) -> EmbeddingService:
    """
    Factory function to create the appropriate embedding service.

    Args:
        config: Embedding configuration
        cache_dir: Directory to cache model weights (for local models)
        api_key: API key (for remote services)
        hf_token: HuggingFace token for model downloads (for local models)

    Returns:
        Configured embedding service

    Raises:
        ValueError: If model type is invalid
    """
    if config.model_type == "local":
        return LocalEmbeddingService(config, cache_dir=cache_dir, hf_token=hf_token)
    elif config.model_type == "remote":
        return RemoteEmbeddingService(config, api_key=api_key)
    else:
        raise ValueError(f"Invalid model_type: {config.model_type}")
