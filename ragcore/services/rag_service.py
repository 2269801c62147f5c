"""
Retrieval orchestrator.

Coordinates the remote reader, chunker, embedding service, in-memory
index, durable vector store and archival storage. Every read and delete
against the durable store is scoped to the calling user's tenant id,
whatever filter the caller supplies.

Ingestion runs ``received -> chunked -> embedded -> stored`` as one
sequential pipeline inside the calling task; any failure ends it in
``failed`` and nothing is resumed. Embedding happens before any write,
so an embedding failure leaves the store untouched.
"""

import logging
import uuid
from enum import Enum
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from ragcore.db.vector_store import TENANT_KEY, VectorStore
from ragcore.errors import EmbeddingError, StoreError, ValidationError
from ragcore.models.document import (
    ContentData,
    ContentPayload,
    Document,
    HybridSearchFilter,
    HybridSearchParam,
    IndexResult,
    OwnerKind,
    User,
    VectorPoint,
)
from ragcore.models.filter import Condition, Filter
from ragcore.models.reader import ReaderResult
from ragcore.services.archive import decode_content, encode_content
from ragcore.services.chunking import TextChunk, TextChunker
from ragcore.services.embeddings import EmbeddingService
from ragcore.services.memory_index import DocumentPredicate, InMemoryVectorIndex
from ragcore.services.remote_reader import RemoteReader
from ragcore.services.text_cleaning import clean_markdown_for_ingest
from ragcore.storage.object_store import ObjectStorage


logger = logging.getLogger(__name__)

# Namespace for deterministic point ids derived from (document id, sequence)
POINT_ID_NAMESPACE = uuid.UUID("5d0c1f6e-8a0b-4d2b-9a53-6f1e0c7b2a94")

# (HybridSearchFilter attribute, payload key)
FILTER_FACETS = (
    ("node_types", "nodeType"),
    ("urls", "url"),
    ("note_ids", "noteId"),
    ("resource_ids", "resourceId"),
    ("collection_ids", "collectionId"),
)


class IngestStage(str, Enum):
    RECEIVED = "received"
    CHUNKED = "chunked"
    EMBEDDED = "embedded"
    STORED = "stored"
    FAILED = "failed"


def gen_point_id(document_id: str, seq: int) -> str:
    """Stable point id for chunk ``seq`` of a document."""
    return str(uuid.uuid5(POINT_ID_NAMESPACE, f"{document_id}-{seq}"))


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


class RAGService:
    """
    Ingestion and hybrid retrieval over tenant-isolated content.

    Collaborators are injected; ``ragcore.main.create_rag_service`` wires
    them from settings.
    """

    def __init__(
        self,
        embedding_service: EmbeddingService,
        vector_store: VectorStore,
        object_storage: ObjectStorage,
        reader: Optional[RemoteReader] = None,
        chunker: Optional[TextChunker] = None,
        memory_index: Optional[InMemoryVectorIndex] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            embedding_service: Service for document and query embeddings
            vector_store: Durable vector store
            object_storage: Storage for archived chunk sets
            reader: Remote reader with its cache (None disables crawling)
            chunker: Text chunker (defaults to 1000-char chunks, no overlap)
            memory_index: In-memory index (None disables in-memory indexing)
        """
        self.embedding_service = embedding_service
        self.vector_store = vector_store
        self.object_storage = object_storage
        self.reader = reader
        self.chunker = chunker or TextChunker(max_chunk_size=1000, overlap_size=0)
        self.memory_index = memory_index

        logger.info("Initialized RAGService")

    # Remote content

    async def crawl_from_remote_reader(self, url: str) -> ReaderResult:
        """Fetch a page through the cached remote reader."""
        if self.reader is None:
            raise ValidationError("Remote reader is not configured")
        return await self.reader.crawl(url)

    # Chunking

    def chunk_text(self, text: str, document_id: Optional[str] = None) -> list[TextChunk]:
        """Clean markdown and split the result into chunks."""
        return self.chunker.chunk_text(clean_markdown_for_ingest(text), source_document_id=document_id)

    # In-memory index

    def _require_memory_index(self) -> InMemoryVectorIndex:
        if self.memory_index is None:
            raise ValidationError("In-memory index is disabled")
        return self.memory_index

    async def in_memory_index_content(self, user: User, doc: Document, need_chunk: bool = True) -> None:
        """
        Chunk a document and add the chunks to the in-memory index.

        Args:
            user: Owning tenant
            doc: Document to index
            need_chunk: When False the whole content is indexed as a single chunk
        """
        index = self._require_memory_index()
        if need_chunk:
            chunks = self.chunk_text(doc.content, doc.document_id)
        else:
            chunks = [TextChunk(doc.content.strip(), 0, 0, len(doc.content), doc.document_id)]

        documents = [
            Document(
                content=chunk.text,
                metadata={
                    **doc.metadata,
                    TENANT_KEY: user.uid,
                    "seq": chunk.chunk_index,
                    "start": chunk.start_char,
                    "end": chunk.end_char,
                },
            )
            for chunk in chunks
            if chunk.text
        ]
        await index.add(documents)

    async def in_memory_index_documents(self, user: User, docs: list[Document]) -> None:
        """Add prebuilt documents to the in-memory index, stamped with the tenant id."""
        index = self._require_memory_index()
        await index.add([
            Document(content=doc.content, metadata={**doc.metadata, TENANT_KEY: user.uid})
            for doc in docs
        ])

    async def in_memory_search(
        self,
        user: User,
        query: str,
        k: int = 10,
        predicate: Optional[DocumentPredicate] = None,
    ) -> list[Document]:
        """Similarity search over the in-memory index, restricted to the user's documents."""
        index = self._require_memory_index()

        def tenant_predicate(doc: Document) -> bool:
            if doc.metadata.get(TENANT_KEY) != user.uid:
                return False
            return predicate(doc) if predicate is not None else True

        return await index.search(query, k, tenant_predicate)

    # Durable ingestion

    async def index_content(self, user: User, doc: Document) -> IndexResult:
        """
        Chunk, embed and upsert a document into the durable store.

        Args:
            user: Owning tenant
            doc: Document with ``nodeType`` and ``noteId``/``resourceId`` metadata

        Returns:
            Estimated storage size of the upserted points

        Raises:
            ValidationError: If the document has no id for its node type
            EmbeddingError: If embedding fails (nothing is written)
            StoreError: If the upsert fails (points already written are kept)
        """
        document_id = doc.document_id
        if not document_id:
            raise ValidationError(
                "Document metadata must carry noteId (notes) or resourceId (other node types)",
                details={"nodeType": doc.node_type},
            )

        stage = IngestStage.RECEIVED
        logger.info(f"Ingest {document_id}: {stage.value}")
        try:
            chunks = self.chunk_text(doc.content, document_id)
            stage = IngestStage.CHUNKED
            logger.info(f"Ingest {document_id}: {stage.value} ({len(chunks)} chunks)")
            if not chunks:
                return IndexResult(size=0, chunk_count=0)

            vectors = await self.embedding_service.embed_documents([chunk.text for chunk in chunks])
            if len(vectors) != len(chunks):
                raise EmbeddingError(
                    "Embedding response size mismatch",
                    details={"expected": len(chunks), "got": len(vectors)},
                )
            stage = IngestStage.EMBEDDED
            logger.info(f"Ingest {document_id}: {stage.value}")

            metadata = {key: _plain(value) for key, value in doc.metadata.items()}
            points = [
                VectorPoint(
                    id=gen_point_id(document_id, chunk.chunk_index),
                    vector=vector,
                    payload={
                        **metadata,
                        "seq": chunk.chunk_index,
                        "start": chunk.start_char,
                        "end": chunk.end_char,
                        "content": chunk.text,
                        TENANT_KEY: user.uid,
                    },
                )
                for chunk, vector in zip(chunks, vectors)
            ]

            await self.vector_store.upsert(points)
            stage = IngestStage.STORED
            logger.info(f"Ingest {document_id}: {stage.value} ({len(points)} points)")
        except Exception:
            logger.error(f"Ingest {document_id}: {IngestStage.FAILED.value} after {stage.value}")
            raise

        return IndexResult(size=self.vector_store.estimate_size(points), chunk_count=len(points))

    # Archival

    async def save_content_chunks(self, storage_key: str, data: ContentData) -> None:
        """Encode a chunk set and put it into object storage."""
        await self.object_storage.put(storage_key, encode_content(data))

    async def load_content_chunks(self, storage_key: str) -> ContentData:
        """Get a chunk set from object storage and decode it."""
        return decode_content(await self.object_storage.get(storage_key))

    # Deletion

    async def delete_by_owner(self, user: User, owner_kind: OwnerKind, owner_id: str) -> None:
        """Delete the user's points whose owner field (noteId or resourceId) equals ``owner_id``."""
        if not owner_id:
            raise ValidationError("owner_id must not be empty")
        owner_kind = OwnerKind(owner_kind)
        await self.vector_store.delete(Filter(must=[
            Condition.equals(TENANT_KEY, user.uid),
            Condition.equals(owner_kind.value, owner_id),
        ]))

    async def delete_resource_nodes(self, user: User, resource_id: str) -> None:
        await self.delete_by_owner(user, OwnerKind.RESOURCE, resource_id)

    async def delete_note_nodes(self, user: User, note_id: str) -> None:
        await self.delete_by_owner(user, OwnerKind.NOTE, note_id)

    # Retrieval

    @staticmethod
    def build_filter(user: User, search_filter: Optional[HybridSearchFilter] = None) -> Filter:
        """Tenant equality first, then one any-of condition per non-empty facet."""
        conditions = [Condition.equals(TENANT_KEY, user.uid)]
        if search_filter is not None:
            for attr, key in FILTER_FACETS:
                values = getattr(search_filter, attr)
                if values:
                    conditions.append(Condition.any_of(key, values))
        return Filter(must=conditions)

    async def retrieve(self, user: User, param: HybridSearchParam) -> list[ContentPayload]:
        """
        Hybrid search: vector similarity constrained by tenant and metadata facets.

        Args:
            user: Requesting tenant
            param: Query text and/or vector plus optional facet filter

        Returns:
            Payloads of the matching chunks, most similar first

        Raises:
            ValidationError: If neither query text nor vector is given
        """
        vector = param.vector
        if vector is None:
            if not param.query.strip():
                raise ValidationError("Search needs either query text or a vector")
            vector = await self.embedding_service.embed_query(param.query)

        query_filter = self.build_filter(user, param.filter)
        hits = await self.vector_store.search(vector, query_filter, param.limit)

        payloads = []
        for hit in hits:
            if not query_filter.matches(hit.payload):
                raise StoreError("Vector store returned a point outside the filter scope", details={"id": hit.id})
            try:
                payloads.append(ContentPayload.model_validate(hit.payload))
            except PydanticValidationError as e:
                raise StoreError(f"Malformed point payload: {e}", details={"id": hit.id}) from e
        return payloads

    async def close(self) -> None:
        """Release reader and store resources."""
        if self.reader is not None:
            await self.reader.close()
        await self.vector_store.close()
