"""Exception classes for the ingestion and retrieval pipeline."""

from typing import Any, Dict, Optional


class RAGException(Exception):
    """Base exception for all pipeline errors."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a dictionary for structured logging or responses."""
        return {
            "error": {
                "message": self.message,
                "code": self.code,
                "details": self.details,
            }
        }


class RetrievalError(RAGException):
    """Raised when fetching remote content fails."""

    def __init__(
        self,
        message: str = "Remote retrieval failed",
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.url = url
        self.status_code = status_code
        self.body = body
        error_details = details or {}
        if url:
            error_details["url"] = url
        if status_code is not None:
            error_details["status_code"] = status_code
        if body:
            error_details["body"] = body[:500]
        super().__init__(message=message, code="RETRIEVAL_ERROR", details=error_details)


class EmbeddingError(RAGException):
    """Raised when the embedding provider fails after its retry budget."""

    def __init__(
        self,
        message: str = "Embedding generation failed",
        model: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.model = model
        error_details = details or {}
        if model:
            error_details["model"] = model
        super().__init__(message=message, code="EMBEDDING_ERROR", details=error_details)


class CodecError(RAGException):
    """Raised when archival bytes cannot be encoded or decoded."""

    def __init__(
        self,
        message: str = "Archival codec failure",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, code="CODEC_ERROR", details=details)


class StoreError(RAGException):
    """Raised when the durable vector store is unavailable or rejects an operation."""

    def __init__(
        self,
        message: str = "Vector store operation failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, code="STORE_ERROR", details=details)


class StorageError(RAGException):
    """Raised for object storage put/get failures."""

    def __init__(
        self,
        message: str = "Object storage operation failed",
        key: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        error_details = details or {}
        if key:
            error_details["key"] = key
        super().__init__(message=message, code="STORAGE_ERROR", details=error_details)


class ValidationError(RAGException):
    """Raised for malformed documents or queries."""

    def __init__(
        self,
        message: str = "Validation failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, code="VALIDATION_ERROR", details=details)
