"""
Durable vector store.

``VectorStore`` is the capability the orchestrator depends on; the
Qdrant adapter implements it against a Qdrant server or an embedded
(on-disk or in-memory) Qdrant database.

Every search, count and delete must carry an equality condition on
``tenantId``. Upserts are idempotent per point id; a batch upsert is not
atomic across points, so a failure mid-batch can leave part of a
document indexed until the caller retries.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar

from qdrant_client import QdrantClient
from qdrant_client.http.exceptions import ResponseHandlingException, UnexpectedResponse
from qdrant_client.models import (
    Distance,
    FieldCondition,
    FilterSelector,
    MatchAny as QdrantMatchAny,
    MatchValue as QdrantMatchValue,
    PayloadSchemaType,
    PointStruct,
    VectorParams,
)
from qdrant_client.models import Filter as QdrantFilter
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from ragcore.errors import RAGException, StoreError, ValidationError
from ragcore.models.document import SearchHit, VectorPoint
from ragcore.models.filter import Filter, MatchValue


logger = logging.getLogger(__name__)

TENANT_KEY = "tenantId"

T = TypeVar("T")


def _is_transient(exc: BaseException) -> bool:
    """Connection failures and 5xx answers from a Qdrant server are worth another attempt."""
    if isinstance(exc, ResponseHandlingException):
        return True
    if isinstance(exc, UnexpectedResponse):
        return exc.status_code is not None and exc.status_code >= 500
    return False


class VectorStore(ABC):
    """Persistent, filterable vector database."""

    @abstractmethod
    async def upsert(self, points: list[VectorPoint]) -> None:
        """Insert or replace points by id."""
        pass

    @abstractmethod
    async def delete(self, filter: Filter) -> None:
        """Delete every point matching the filter."""
        pass

    @abstractmethod
    async def search(self, query_vector: list[float], filter: Filter, limit: int = 10) -> list[SearchHit]:
        """Return matching points ranked by descending similarity."""
        pass

    @abstractmethod
    async def count(self, filter: Filter) -> int:
        """Exact number of points matching the filter."""
        pass

    async def close(self) -> None:
        """Release client resources."""
        return None

    @staticmethod
    def estimate_size(points: list[VectorPoint]) -> int:
        """
        Estimate the storage footprint of points.

        Args:
            points: Points as they would be upserted

        Returns:
            Size in bytes of the UTF-8 JSON serialisation of all points
        """
        return sum(len(point.model_dump_json().encode("utf-8")) for point in points)

    @staticmethod
    def require_tenant_scope(filter: Filter):
        """Raise unless the filter pins ``tenantId`` to a single value."""
        for condition in filter.must:
            if condition.key == TENANT_KEY and isinstance(condition.match, MatchValue):
                return
        raise ValidationError(
            "Vector store operations must be scoped by a tenantId equality condition",
            details={"keys": filter.keys()},
        )


class QdrantVectorStore(VectorStore):
    """
    Vector store backed by Qdrant.

    Blocking client calls run in a worker thread; cancelling the awaiting
    task abandons the wait but cannot recall a request already sent.
    """

    INDEXED_FIELDS = ("tenantId", "nodeType", "noteId", "resourceId", "collectionId", "url")

    def __init__(
        self,
        collection_name: str,
        embedding_dim: int,
        url: Optional[str] = None,
        path: Optional[Path] = None,
        location: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: int = 10,
        max_retries: int = 3,
        distance: Distance = Distance.COSINE,
    ):
        """
        Initialize vector store.

        Exactly one of ``url``, ``path`` or ``location`` selects the backend.

        Args:
            collection_name: Qdrant collection holding the points
            embedding_dim: Dimensionality of embeddings
            url: Qdrant server URL
            path: Directory for an embedded on-disk database
            location: ``":memory:"`` for an embedded in-memory database
            api_key: Qdrant API key (server only)
            timeout: Request timeout in seconds (server only)
            max_retries: Attempts per call for transient server errors
            distance: Distance metric (COSINE, EUCLID, DOT)
        """
        if sum(option is not None for option in (url, path, location)) != 1:
            raise ValueError("Exactly one of url, path or location must be given")

        self.collection_name = collection_name
        self.embedding_dim = embedding_dim
        self.max_retries = max_retries
        self.distance = distance

        try:
            if url:
                self.client = QdrantClient(url=url, api_key=api_key, timeout=timeout)
                backend = url
            elif path is not None:
                Path(path).mkdir(parents=True, exist_ok=True)
                self.client = QdrantClient(path=str(path))
                backend = str(path)
            else:
                self.client = QdrantClient(location=location)
                backend = location
            self._ensure_collection()
        except RAGException:
            raise
        except Exception as e:
            raise StoreError(f"Failed to initialize Qdrant: {e}", details={"collection": collection_name}) from e

        logger.info(f"Initialized QdrantVectorStore ({backend}, collection={collection_name})")

    def _ensure_collection(self):
        """Create the collection if needed and verify its vector size."""
        if self.client.collection_exists(self.collection_name):
            info = self.client.get_collection(self.collection_name)
            current_size = getattr(info.config.params.vectors, "size", None)
            if current_size is not None and int(current_size) != int(self.embedding_dim):
                raise StoreError(
                    "Qdrant collection vector size mismatch",
                    details={
                        "collection": self.collection_name,
                        "expected": self.embedding_dim,
                        "actual": int(current_size),
                    },
                )
            return

        logger.info(f"Creating collection: {self.collection_name}")
        self.client.create_collection(
            collection_name=self.collection_name,
            vectors_config=VectorParams(size=self.embedding_dim, distance=self.distance),
        )
        for field_name in self.INDEXED_FIELDS:
            self.client.create_payload_index(
                collection_name=self.collection_name,
                field_name=field_name,
                field_schema=PayloadSchemaType.KEYWORD,
            )

    def _check_dimension(self, vector: list[float], what: str):
        if len(vector) != self.embedding_dim:
            raise ValidationError(
                f"{what} dimension mismatch",
                details={"expected": self.embedding_dim, "actual": len(vector)},
            )

    @staticmethod
    def _to_qdrant_filter(filter: Filter) -> QdrantFilter:
        conditions = []
        for condition in filter.must:
            if isinstance(condition.match, MatchValue):
                match = QdrantMatchValue(value=condition.match.value)
            else:
                match = QdrantMatchAny(any=condition.match.any)
            conditions.append(FieldCondition(key=condition.key, match=match))
        return QdrantFilter(must=conditions)

    async def _run(self, operation: str, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        try:
            async for attempt in AsyncRetrying(
                reraise=True,
                stop=stop_after_attempt(self.max_retries),
                wait=wait_exponential(multiplier=0.5, min=0.5, max=8),
                retry=retry_if_exception(_is_transient),
            ):
                with attempt:
                    return await asyncio.to_thread(fn, *args, **kwargs)
        except RAGException:
            raise
        except Exception as e:
            raise StoreError(
                f"Qdrant {operation} failed: {e}",
                details={"collection": self.collection_name},
            ) from e

    async def upsert(self, points: list[VectorPoint]) -> None:
        """
        Insert or replace points.

        Args:
            points: Points to store; ids are stable so re-upserting overwrites

        Raises:
            ValidationError: If a vector has the wrong dimensionality
            StoreError: If Qdrant rejects the request
        """
        if not points:
            return
        for point in points:
            self._check_dimension(point.vector, "Point vector")

        structs = [PointStruct(id=p.id, vector=p.vector, payload=p.payload) for p in points]
        await self._run(
            "upsert",
            self.client.upsert,
            collection_name=self.collection_name,
            points=structs,
            wait=True,
        )
        logger.info(f"Upserted {len(structs)} points")

    async def delete(self, filter: Filter) -> None:
        """Delete all points matching a tenant-scoped filter."""
        self.require_tenant_scope(filter)
        await self._run(
            "delete",
            self.client.delete,
            collection_name=self.collection_name,
            points_selector=FilterSelector(filter=self._to_qdrant_filter(filter)),
            wait=True,
        )
        logger.info(f"Deleted points matching {filter.keys()}")

    async def search(self, query_vector: list[float], filter: Filter, limit: int = 10) -> list[SearchHit]:
        """
        Search for similar points.

        Args:
            query_vector: Query embedding vector
            filter: Tenant-scoped conjunction of conditions
            limit: Maximum number of results

        Returns:
            Hits ordered by descending similarity
        """
        self.require_tenant_scope(filter)
        self._check_dimension(query_vector, "Query vector")

        response = await self._run(
            "search",
            self.client.query_points,
            collection_name=self.collection_name,
            query=query_vector,
            query_filter=self._to_qdrant_filter(filter),
            limit=limit,
            with_payload=True,
        )
        hits = [
            SearchHit(id=str(point.id), score=point.score, payload=point.payload or {})
            for point in response.points
        ]
        logger.info(f"Search returned {len(hits)} results")
        return hits

    async def count(self, filter: Filter) -> int:
        """Count points matching a tenant-scoped filter."""
        self.require_tenant_scope(filter)
        result = await self._run(
            "count",
            self.client.count,
            collection_name=self.collection_name,
            count_filter=self._to_qdrant_filter(filter),
            exact=True,
        )
        return result.count

    async def close(self) -> None:
        """
        Close the vector store and release resources.

        Releases file locks held by an embedded database.
        """
        if getattr(self, "client", None) is not None:
            try:
                self.client.close()
                logger.debug("Closed QdrantVectorStore client")
            finally:
                self.client = None
