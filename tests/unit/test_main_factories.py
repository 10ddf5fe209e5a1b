"""Unit tests for the application factories in src/main.py.

Builds the real component graph against temp directories; nothing here
contacts OpenAI or S3 (clients are only constructed, never called).
"""

from __future__ import annotations

from pathlib import Path

import pytest
from fastapi import FastAPI

from src.config.settings import Settings
from src.utils.errors import ConfigurationError


def _settings(tmp_path: Path, **overrides) -> Settings:
    values = {
        "openai_api_key": "sk-test",
        "aws_bucket_name": "kb-bucket",
        "chromadb_persist_dir": str(tmp_path / "chroma"),
        "metadata_db_path": str(tmp_path / "kb.db"),
        "ingestion_tmp_dir": str(tmp_path / "tmp"),
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class TestBuildAll:
    def test_components_for_app_state(self, tmp_path: Path) -> None:
        from src.main import _build_all

        components = _build_all(_settings(tmp_path))

        for name in (
            "settings",
            "metadata_store",
            "storage",
            "ingestion_queue",
            "retrieval_service",
            "deletion_service",
            "provider_registry",
        ):
            assert name in components
        assert components["provider_registry"]["embedding"] is True
        assert components["ingestion_queue"].is_running is False

    def test_missing_api_key_is_reported_unavailable(self, tmp_path: Path) -> None:
        from src.main import _build_all

        components = _build_all(_settings(tmp_path, openai_api_key=""))

        assert components["provider_registry"]["embedding"] is False
        assert components["provider_registry"]["llm"] is False

    def test_missing_bucket_is_a_configuration_error(self, tmp_path: Path) -> None:
        from src.main import _build_all

        with pytest.raises(ConfigurationError):
            _build_all(_settings(tmp_path, aws_bucket_name=""))

    def test_legacy_point_ids_are_configurable(self, tmp_path: Path) -> None:
        from src.main import _build_all
        from src.services.vector_store_manager import legacy_point_id

        components = _build_all(_settings(tmp_path, point_id_scheme="v1"))

        assert components["vector_store"].point_id("doc_chunk_0") == legacy_point_id(
            "doc_chunk_0"
        )


class TestCreateApp:
    def test_routes_are_registered(self) -> None:
        from src.main import create_app

        app = create_app()

        assert isinstance(app, FastAPI)
        paths = {route.path for route in app.routes}
        assert "/api/v1/health" in paths
        assert "/api/v1/documents" in paths
        assert "/api/v1/tenants/{tenant_id}/folders/{folder_id}" in paths
