"""Data models for the pipeline."""

from ragcore.models.document import (
    NodeType,
    OwnerKind,
    User,
    Document,
    VectorPoint,
    SearchHit,
    ContentPayload,
    HybridSearchFilter,
    HybridSearchParam,
    IndexResult,
    ContentChunk,
    ContentData,
)
from ragcore.models.filter import Condition, Filter, MatchAny, MatchValue
from ragcore.models.reader import ReaderData, ReaderResult

__all__ = [
    "NodeType",
    "OwnerKind",
    "User",
    "Document",
    "VectorPoint",
    "SearchHit",
    "ContentPayload",
    "HybridSearchFilter",
    "HybridSearchParam",
    "IndexResult",
    "ContentChunk",
    "ContentData",
    "Condition",
    "Filter",
    "MatchAny",
    "MatchValue",
    "ReaderData",
    "ReaderResult",
]
