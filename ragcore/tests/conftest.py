"""
Pytest configuration and shared fixtures.

Loads ``.env.test`` (if present) before any settings are created, so
integration runs can point at real services without touching the
developer's ``.env``.
"""

import sys
from pathlib import Path

import pytest
from dotenv import load_dotenv

# Make the package importable when running pytest from a checkout
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

_project_root = Path(__file__).parent.parent.parent
_env_test_path = _project_root / ".env.test"

# Environment variables win over .env.test
if _env_test_path.exists():
    load_dotenv(_env_test_path, override=False)

from ragcore.config.settings import reset_settings
from ragcore.tests.helpers import HashingEmbeddingService


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: marks tests that require real external services (Qdrant server, embedding APIs)"
    )


@pytest.fixture(autouse=True)
def _fresh_settings():
    """Never leak a cached Settings instance between tests."""
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def embedding_service():
    return HashingEmbeddingService(dim=32)
