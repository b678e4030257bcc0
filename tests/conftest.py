"""Shared fixtures for tests."""

from __future__ import annotations

from pathlib import Path

import pytest
import pytest_asyncio

from flipbook.config import AppConfig
from flipbook.library.store import ConfigDocumentStore
from flipbook.storage.kv_store import KeyValueStore
from flipbook.storage.mirror import MirrorStore


@pytest.fixture
def config(tmp_path: Path) -> AppConfig:
    return AppConfig(
        data_dir=tmp_path / "data",
        config_dir=tmp_path / "config",
    )


@pytest_asyncio.fixture
async def kv(tmp_path: Path) -> KeyValueStore:
    store = KeyValueStore(tmp_path / "kv.db")
    yield store
    await store.close()


@pytest.fixture
def mirror(tmp_path: Path) -> MirrorStore:
    return MirrorStore(tmp_path / "mirror")


@pytest_asyncio.fixture
async def store(kv: KeyValueStore, mirror: MirrorStore) -> ConfigDocumentStore:
    doc_store = await ConfigDocumentStore.create(kv, mirror)
    yield doc_store
    await doc_store.wait_for_save()
