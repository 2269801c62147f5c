"""
Process wiring for the ingestion and retrieval pipeline.

Builds the process-wide collaborators (embedding service, vector store,
object storage, reader cache, in-memory index) from settings and tears
them down on exit.
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from ragcore.config.settings import Settings, get_settings
from ragcore.db.vector_store import QdrantVectorStore
from ragcore.services.chunking import TextChunker
from ragcore.services.embeddings import create_embedding_service
from ragcore.services.memory_index import InMemoryVectorIndex
from ragcore.services.rag_service import RAGService
from ragcore.services.remote_reader import RemoteReader
from ragcore.storage.object_store import LocalObjectStorage

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings):
    """Configure root logging with console and optional file output."""
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handlers: list[logging.Handler] = [console_handler]

    # Path("") becomes Path("."), which is not a file
    log_file_str = str(settings.log_file).strip() if settings.log_file else ""
    if log_file_str and log_file_str != ".":
        settings.log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(settings.log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handlers.append(file_handler)

    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )

    # Suppress overly verbose third-party loggers
    logging.getLogger("httpcore").setLevel(logging.INFO)
    logging.getLogger("httpx").setLevel(logging.INFO)
    logging.getLogger("urllib3").setLevel(logging.INFO)


def create_rag_service(settings: Settings) -> RAGService:
    """
    Build a RAGService from settings.

    The deployment preset picks the embedding variant and chunking
    parameters; ``vector_db_url`` picks a Qdrant server over the embedded
    database.
    """
    preset = settings.get_deployment_preset()

    embedding_service = create_embedding_service(
        preset.embedding,
        cache_dir=str(settings.model_weights_path),
        hf_token=settings.get_api_key("HF_TOKEN"),
    )

    if settings.vector_db_url:
        vector_store = QdrantVectorStore(
            collection_name=settings.vector_collection,
            embedding_dim=embedding_service.get_embedding_dim(),
            url=settings.vector_db_url,
            api_key=settings.vector_db_api_key,
            timeout=settings.vector_db_timeout,
            max_retries=settings.vector_db_max_retries,
        )
    else:
        vector_store = QdrantVectorStore(
            collection_name=settings.vector_collection,
            embedding_dim=embedding_service.get_embedding_dim(),
            path=settings.vector_db_path,
        )

    reader = RemoteReader(
        reader_url=settings.reader_url,
        cache_size=settings.fetch_cache_size,
        timeout=settings.reader_timeout,
        max_retries=settings.reader_max_retries,
        token=settings.reader_token,
    )

    chunking = preset.chunking
    return RAGService(
        embedding_service=embedding_service,
        vector_store=vector_store,
        object_storage=LocalObjectStorage(settings.object_storage_path),
        reader=reader,
        chunker=TextChunker(
            max_chunk_size=chunking.chunk_size,
            overlap_size=chunking.chunk_overlap,
            language=chunking.language,
        ),
        memory_index=InMemoryVectorIndex(embedding_service) if settings.memory_index_enabled else None,
    )


@asynccontextmanager
async def rag_lifespan(settings: Optional[Settings] = None) -> AsyncIterator[RAGService]:
    """Create the service at startup and release its resources on exit."""
    settings = settings or get_settings()
    configure_logging(settings)
    logger.info(f"Starting ragcore v{settings.version} (preset: {settings.deployment_preset})")

    service = create_rag_service(settings)
    try:
        yield service
    finally:
        logger.info("Shutting down ragcore")
        await service.close()
