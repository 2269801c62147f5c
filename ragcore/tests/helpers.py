"""
Test doubles shared across test modules.
"""

from ragcore.config.presets import EmbeddingConfig
from ragcore.errors import EmbeddingError
from ragcore.services.embeddings import EmbeddingService


class HashingEmbeddingService(EmbeddingService):
    """
    Deterministic bag-of-characters embedder.

    Texts made of the same characters get parallel vectors, which is
    enough to make similarity ordering predictable in tests.
    """

    def __init__(self, dim: int = 32):
        self.config = EmbeddingConfig(model_name="hashing", dimensions=dim)
        self.dim = dim
        self.document_calls = 0
        self.query_calls = 0

    def _vector(self, text: str) -> list[float]:
        vector = [0.0] * self.dim
        vector[-1] = 0.01
        for char in text.lower():
            if not char.isspace():
                vector[ord(char) % (self.dim - 1)] += 1.0
        return vector

    async def embed_documents(self, texts: list[str]) -> list[list[float]]:
        self.document_calls += 1
        return [self._vector(text) for text in texts]

    async def embed_query(self, text: str) -> list[float]:
        self.query_calls += 1
        return self._vector(text)

    def get_embedding_dim(self) -> int:
        return self.dim


class FailingEmbeddingService(HashingEmbeddingService):
    """Embedder whose provider is always down."""

    async def embed_documents(self, texts: list[str]) -> list[list[float]]:
        self.document_calls += 1
        raise EmbeddingError("Provider timeout after 3 attempts", model="hashing")

    async def embed_query(self, text: str) -> list[float]:
        self.query_calls += 1
        raise EmbeddingError("Provider timeout after 3 attempts", model="hashing")
