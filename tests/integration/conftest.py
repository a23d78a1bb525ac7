"""Integration test fixtures: real SQLite files, network mocked with respx."""

from __future__ import annotations

from pathlib import Path

import pytest

from structura.core.config import StorageConfig
from structura.core.models import StorageBackend
from structura.prices.store import SqlitePriceStore


@pytest.fixture
async def integration_store(tmp_path: Path) -> SqlitePriceStore:
    """An initialized file-backed SqlitePriceStore."""
    config = StorageConfig(
        backend=StorageBackend.SQLITE,
        sqlite_path=str(tmp_path / "integration.db"),
    )
    store = SqlitePriceStore(config)
    await store.initialize()
    yield store
    await store.close()
