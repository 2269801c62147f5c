"""
Data models for documents, vector points and search requests.

Payload keys stored in the vector database are camelCase (``tenantId``,
``noteId``, ``resourceId``...) so that filters and archived payloads stay
compatible with the other services reading the same collection.
"""

from enum import Enum
from typing import Any, Optional

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class NodeType(str, Enum):
    """Kind of knowledge node a document belongs to."""

    NOTE = "note"
    RESOURCE = "resource"
    OTHER = "other"


class OwnerKind(str, Enum):
    """Payload field identifying the owner of a set of points."""

    NOTE = "noteId"
    RESOURCE = "resourceId"


class User(BaseModel):
    """The tenant on whose behalf an operation runs."""

    uid: str = Field(..., min_length=1, description="Tenant (user) ID")


class Document(BaseModel):
    """A raw document handed to ingestion, or a hit from the in-memory index."""

    content: str = Field(..., description="Document text (markdown allowed)")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Node metadata")

    @property
    def node_type(self) -> Optional[str]:
        node_type = self.metadata.get("nodeType")
        if isinstance(node_type, NodeType):
            return node_type.value
        return node_type

    @property
    def document_id(self) -> Optional[str]:
        """``noteId`` for notes, ``resourceId`` for everything else."""
        if self.node_type == NodeType.NOTE.value:
            return self.metadata.get("noteId")
        return self.metadata.get("resourceId")


class VectorPoint(BaseModel):
    """One chunk embedding with its payload, as stored in the vector database."""

    id: str = Field(..., description="Deterministic UUID of (document id, sequence)")
    vector: list[float] = Field(..., description="Embedding vector")
    payload: dict[str, Any] = Field(default_factory=dict, description="Metadata + tenantId, seq, content")


class SearchHit(BaseModel):
    """A scored search result from the vector database."""

    id: str
    score: float
    payload: dict[str, Any] = Field(default_factory=dict)


class ContentPayload(BaseModel):
    """Payload of a retrieved chunk."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    tenant_id: str
    seq: int
    content: str
    node_type: Optional[str] = None
    note_id: Optional[str] = None
    resource_id: Optional[str] = None
    collection_id: Optional[str] = None
    url: Optional[str] = None
    title: Optional[str] = None
    type: Optional[str] = None


class HybridSearchFilter(BaseModel):
    """Metadata facets for hybrid search; each non-empty facet is an any-of condition."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    node_types: list[str] = Field(default_factory=list)
    urls: list[str] = Field(default_factory=list)
    note_ids: list[str] = Field(default_factory=list)
    resource_ids: list[str] = Field(default_factory=list)
    collection_ids: list[str] = Field(default_factory=list)


class HybridSearchParam(BaseModel):
    """Hybrid search request: query text or precomputed vector plus optional filter."""

    query: str = ""
    vector: Optional[list[float]] = None
    filter: Optional[HybridSearchFilter] = None
    limit: int = Field(default=10, gt=0)


class IndexResult(BaseModel):
    """Outcome of a durable ingestion."""

    size: int = Field(..., description="Estimated storage size in bytes")
    chunk_count: int = Field(default=0, description="Number of points upserted")


class ContentChunk(BaseModel):
    """One archived chunk. Vector values are held at float32 precision."""

    id: str
    url: str = ""
    type: str = ""
    title: str = ""
    content: str = ""
    vector: list[float] = Field(default_factory=list)

    @field_validator("vector")
    @classmethod
    def round_to_float32(cls, v):
        return np.asarray(v, dtype=np.float32).tolist()


class ContentData(BaseModel):
    """A document's full chunk set for cold storage."""

    chunks: list[ContentChunk] = Field(default_factory=list)
