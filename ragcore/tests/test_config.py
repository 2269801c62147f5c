"""
Unit tests for configuration system.
"""

import os
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from pydantic import ValidationError

from ragcore.config.presets import PRESETS, get_preset, list_presets
from ragcore.config.settings import Settings, get_settings, reset_settings


class TestPresets(unittest.TestCase):
    """Test deployment presets."""

    def test_get_preset_development(self):
        preset = get_preset("development")

        self.assertEqual(preset.embedding.model_type, "local")
        self.assertEqual(preset.embedding.model_name, "nomic-ai/nomic-embed-text-v1.5")
        self.assertEqual(preset.embedding.dimensions, 768)
        self.assertTrue(preset.embedding.model_kwargs["trust_remote_code"])

    def test_get_preset_cpu_only(self):
        """Test getting cpu-only preset."""
        preset = get_preset("cpu-only")

        self.assertEqual(preset.name, "cpu-only")
        self.assertEqual(preset.embedding.model_name, "sentence-transformers/all-MiniLM-L6-v2")
        self.assertEqual(preset.embedding.dimensions, 384)

    def test_get_preset_production(self):
        preset = get_preset("production")

        self.assertEqual(preset.embedding.model_type, "remote")
        self.assertEqual(preset.embedding.model_name, "text-embedding-3-large")
        self.assertEqual(preset.embedding.max_retries, 3)
        self.assertEqual(preset.embedding.timeout, 5.0)

    def test_default_chunking(self):
        """Every preset chunks at 1000 characters without overlap."""
        for preset in PRESETS.values():
            self.assertEqual(preset.chunking.chunk_size, 1000)
            self.assertEqual(preset.chunking.chunk_overlap, 0)

    def test_get_invalid_preset(self):
        """Test getting invalid preset raises error."""
        with self.assertRaises(ValueError) as context:
            get_preset("nonexistent-preset")

        self.assertIn("Unknown preset", str(context.exception))
        self.assertIn("cpu-only", str(context.exception))

    def test_list_presets(self):
        """Test listing all presets."""
        self.assertEqual(set(list_presets()), {"development", "cpu-only", "production"})


class TestSettings(unittest.TestCase):
    """Test settings management."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        reset_settings()

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)
        reset_settings()

    def test_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(_env_file=None)

        self.assertEqual(settings.deployment_preset, "cpu-only")
        self.assertIsNone(settings.vector_db_url)
        self.assertEqual(settings.vector_collection, "content_chunks")
        self.assertEqual(settings.reader_url, "https://r.jina.ai/")
        self.assertEqual(settings.fetch_cache_size, 1000)
        self.assertTrue(settings.memory_index_enabled)
        self.assertEqual(settings.log_level, "INFO")
        self.assertIsNone(settings.log_file)

    def test_environment_overrides(self):
        env = {
            "DEPLOYMENT_PRESET": "production",
            "VECTOR_DB_URL": "http://qdrant:6333",
            "FETCH_CACHE_SIZE": "50",
            "MEMORY_INDEX_ENABLED": "false",
            "LOG_LEVEL": "debug",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = Settings(_env_file=None)

        self.assertEqual(settings.get_deployment_preset().name, "production")
        self.assertEqual(settings.vector_db_url, "http://qdrant:6333")
        self.assertEqual(settings.fetch_cache_size, 50)
        self.assertFalse(settings.memory_index_enabled)
        self.assertEqual(settings.log_level, "DEBUG")

    def test_invalid_log_level(self):
        with self.assertRaises(ValidationError):
            Settings(_env_file=None, log_level="chatty")

    def test_invalid_cache_size(self):
        with self.assertRaises(ValidationError):
            Settings(_env_file=None, fetch_cache_size=0)

    def test_path_expansion(self):
        settings = Settings(_env_file=None, vector_db_path="~/qdrant", log_file="")

        self.assertEqual(settings.vector_db_path, Path.home() / "qdrant")
        self.assertIsNone(settings.log_file)

    def test_unknown_preset(self):
        settings = Settings(_env_file=None, deployment_preset="nope")
        with self.assertRaises(ValueError):
            settings.get_deployment_preset()

    def test_get_settings_is_cached_and_creates_directories(self):
        root = Path(self.temp_dir)
        env = {
            "MODEL_WEIGHTS_PATH": str(root / "models"),
            "VECTOR_DB_PATH": str(root / "qdrant"),
            "OBJECT_STORAGE_PATH": str(root / "objects"),
            "LOG_FILE": str(root / "logs" / "ragcore.log"),
        }
        with patch.dict(os.environ, env, clear=True):
            settings = get_settings()
            self.assertIs(get_settings(), settings)

        for name in ("models", "qdrant", "objects", "logs"):
            self.assertTrue((root / name).is_dir())

        reset_settings()
        with patch.dict(os.environ, env, clear=True):
            self.assertIsNot(get_settings(), settings)

    def test_get_api_key(self):
        with patch.dict(os.environ, {"OPENAI_API_KEY": "sk-test"}, clear=True):
            settings = Settings(_env_file=None)
            self.assertEqual(settings.get_api_key("OPENAI_API_KEY"), "sk-test")
            self.assertIsNone(settings.get_api_key("MISSING_KEY"))


if __name__ == "__main__":
    unittest.main()
