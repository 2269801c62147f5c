"""
Deployment presets.

Each preset selects the embedding provider variant and the chunking
parameters for one kind of deployment.
"""

from typing import Literal, Optional
from pydantic import BaseModel, Field


class EmbeddingConfig(BaseModel):
    """Configuration for embedding models."""

    model_type: Literal["local", "remote"] = "local"
    model_name: str = Field(..., description="Model identifier")
    dimensions: Optional[int] = Field(
        default=None,
        description="Fixed vector dimensionality for the deployment (None = whatever the model returns)"
    )
    model_kwargs: dict = Field(default_factory=dict, description="Additional model parameters")
    batch_size: int = Field(default=512, description="Batch size for embedding generation")
    max_retries: int = Field(default=3, ge=1, description="Attempts per provider call")
    timeout: float = Field(default=5.0, description="Per-request timeout in seconds (remote only)")
    cache_enabled: bool = Field(default=True, description="Enable content-hash based caching")
    cache_size: int = Field(default=10000, gt=0, description="Maximum cached embeddings (least recently used are evicted)")


class ChunkingConfig(BaseModel):
    """Configuration for the text chunker."""

    chunk_size: int = Field(default=1000, gt=0, description="Maximum characters per chunk")
    chunk_overlap: int = Field(default=0, ge=0, description="Characters of previous chunk to repeat")
    language: str = Field(default="en", description="spaCy language code for sentence boundaries")


class DeploymentPreset(BaseModel):
    """Complete deployment-specific configuration preset."""

    name: str
    description: str
    embedding: EmbeddingConfig
    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)


PRESETS = {
    "development": DeploymentPreset(
        name="development",
        description="Local nomic embeddings for development machines",
        embedding=EmbeddingConfig(
            model_type="local",
            model_name="nomic-ai/nomic-embed-text-v1.5",
            dimensions=768,
            model_kwargs={"trust_remote_code": True},
            batch_size=32,
        ),
    ),

    "cpu-only": DeploymentPreset(
        name="cpu-only",
        description="Small CPU-friendly local embedding model",
        embedding=EmbeddingConfig(
            model_type="local",
            model_name="sentence-transformers/all-MiniLM-L6-v2",
            dimensions=384,
            batch_size=16,
        ),
    ),

    "production": DeploymentPreset(
        name="production",
        description="OpenAI embeddings API",
        embedding=EmbeddingConfig(
            model_type="remote",
            model_name="text-embedding-3-large",
            dimensions=1024,
            batch_size=512,
            max_retries=3,
            timeout=5.0,
            model_kwargs={"api_key_env": "OPENAI_API_KEY"},
        ),
    ),
}


def get_preset(name: str) -> DeploymentPreset:
    """
    Get a deployment preset by name.

    Args:
        name: Preset name (e.g., "production")

    Returns:
        DeploymentPreset configuration

    Raises:
        ValueError: If preset name is not found
    """
    if name not in PRESETS:
        available = ", ".join(PRESETS.keys())
        raise ValueError(f"Unknown preset '{name}'. Available: {available}")

    return PRESETS[name]


def list_presets() -> list[str]:
    """List all available preset names."""
    return list(PRESETS.keys())
