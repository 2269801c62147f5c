"""
Ephemeral in-process vector index.

Holds documents and their embeddings for the lifetime of the process and
answers filtered cosine-similarity queries by brute force. Nothing is
persisted. Concurrent ``add`` and ``search`` calls never corrupt the index,
but a search running alongside an add may not see the new documents.
"""

import logging
import threading
from typing import Callable, Optional

import numpy as np

from ragcore.errors import ValidationError
from ragcore.models.document import Document
from ragcore.services.embeddings import EmbeddingService


logger = logging.getLogger(__name__)

DocumentPredicate = Callable[[Document], bool]


class InMemoryVectorIndex:
    """Brute-force cosine similarity index over documents."""

    def __init__(self, embedding_service: EmbeddingService):
        """
        Initialize the index.

        Args:
            embedding_service: Service used to embed added documents and query text
        """
        self.embedding_service = embedding_service
        self._documents: list[Document] = []
        self._vectors: Optional[np.ndarray] = None
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._documents)

    async def add(self, documents: list[Document]) -> None:
        """
        Embed and add documents.

        Args:
            documents: Documents to add; their content is embedded as-is
        """
        if not documents:
            return

        vectors = await self.embedding_service.embed_documents([doc.content for doc in documents])
        await self.add_vectors(vectors, documents)

    async def add_vectors(self, vectors: list[list[float]], documents: list[Document]) -> None:
        """Add documents with precomputed vectors."""
        if len(vectors) != len(documents):
            raise ValidationError(
                "Vectors and documents length mismatch",
                details={"vectors": len(vectors), "documents": len(documents)},
            )
        if not documents:
            return

        matrix = np.asarray(vectors, dtype=np.float32)
        if matrix.ndim != 2:
            raise ValidationError("Vectors must share one dimensionality")
        norms = np.linalg.norm(matrix, axis=1, keepdims=True)
        norms[norms == 0] = 1.0
        matrix = matrix / norms

        with self._lock:
            if self._vectors is not None and self._vectors.shape[1] != matrix.shape[1]:
                raise ValidationError(
                    "Vector dimension mismatch",
                    details={"expected": self._vectors.shape[1], "actual": matrix.shape[1]},
                )
            self._vectors = matrix if self._vectors is None else np.vstack([self._vectors, matrix])
            self._documents.extend(documents)

        logger.debug(f"Added {len(documents)} documents to in-memory index")

    async def search(
        self,
        query: str,
        k: int = 4,
        predicate: Optional[DocumentPredicate] = None,
    ) -> list[Document]:
        """
        Return up to ``k`` documents most similar to the query text.

        Args:
            query: Query text
            k: Maximum number of results
            predicate: Optional filter; only documents it accepts are returned

        Returns:
            Documents ordered by descending similarity
        """
        query_vector = await self.embedding_service.embed_query(query)
        return [doc for doc, _ in self.search_by_vector(query_vector, k, predicate)]

    def search_by_vector(
        self,
        query_vector: list[float],
        k: int = 4,
        predicate: Optional[DocumentPredicate] = None,
    ) -> list[tuple[Document, float]]:
        """Return up to ``k`` (document, score) pairs for a query vector."""
        if k <= 0:
            return []

        with self._lock:
            documents = list(self._documents)
            vectors = self._vectors

        if vectors is None:
            return []

        query = np.asarray(query_vector, dtype=np.float32)
        if query.shape != (vectors.shape[1],):
            raise ValidationError(
                "Query vector dimension mismatch",
                details={"expected": vectors.shape[1], "actual": int(query.size)},
            )
        norm = np.linalg.norm(query)
        scores = vectors @ (query / norm if norm else query)

        results = []
        for idx in np.argsort(-scores, kind="stable"):
            doc = documents[idx]
            if predicate is not None and not predicate(doc):
                continue
            results.append((doc, float(scores[idx])))
            if len(results) >= k:
                break
        return results

    def clear(self) -> None:
        """Drop every document."""
        with self._lock:
            self._documents = []
            self._vectors = None
