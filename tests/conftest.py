"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable

import pytest

from docmap.adapters.memory import MemoryCollection
from docmap.core.connection import StoreConfig
from docmap.core.service import Service


@pytest.fixture
def memory_config() -> StoreConfig:
    """In-memory store config."""
    return StoreConfig(driver="memory", name="docmap_test")


@pytest.fixture
async def service(memory_config: StoreConfig) -> AsyncIterator[Service]:
    """A service over a fresh in-memory store, closed after the test."""
    svc = Service.from_config(memory_config)
    yield svc
    await svc.close()


@pytest.fixture
def raw(service: Service) -> Callable[[str], MemoryCollection]:
    """Direct access to a collection, bypassing mappers.

    Usage:
        doc = await raw("parents").find_one({"_id": parent_id})
    """

    def _collection(name: str) -> MemoryCollection:
        return service.store.collection(name)  # type: ignore[no-any-return]

    return _collection


@pytest.fixture
def make_collection() -> Callable[[str], MemoryCollection]:
    """Standalone in-memory collections for mapper-level tests."""

    def _make(name: str) -> MemoryCollection:
        return MemoryCollection(name)

    return _make
