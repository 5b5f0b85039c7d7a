from __future__ import annotations

from typing import Iterator

import pytest

from json_fields.core.config import get_settings
from json_fields.metadata import ModelBuilder


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Drop cached settings so each test sees its own environment."""
    for name in (
        "JSON_FIELDS_SKIP_CONVENTIONAL_ENTITIES",
        "JSON_FIELDS_EXCLUDE_NONE",
        "JSON_FIELDS_USE_JSONB",
        "JSON_FIELDS_LOG_LEVEL",
        "JSON_FIELDS_LOG_FORMAT",
        "JSON_FIELDS_LOG_FILE_DIR",
        "JSON_FIELDS_DATABASE_URL",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def builder() -> Iterator[ModelBuilder]:
    """Model builder with its own metadata and registry, disposed after the test."""
    model_builder = ModelBuilder()
    yield model_builder
    model_builder.registry.dispose()
