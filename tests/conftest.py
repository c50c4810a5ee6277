"""Shared pytest fixtures for BucketDAV tests.

A single FastAPI app is created per test session to avoid duplicate
Prometheus metric registration errors (the instrumentator registers
gauges in the global prometheus_client registry).

Each test gets a fresh in-memory object store placed on ``app.state``
directly, so the lifespan never has to run under ASGITransport. The store
uses a tiny listing page size so every recursive operation crosses page
boundaries.
"""

import pytest
from httpx import ASGITransport, AsyncClient

from bucketdav.config import (
    AuthConfig,
    BucketDavConfig,
    ServerConfig,
    StorageConfig,
)
from bucketdav.server import create_app
from bucketdav.storage.backend import Metadata
from bucketdav.storage.memory import MemoryObjectStore

TEST_PAGE_SIZE = 2


@pytest.fixture(scope="session")
def config() -> BucketDavConfig:
    """Create a test BucketDavConfig with auth disabled.

    test_server.py builds its own apps with auth enabled.
    """
    return BucketDavConfig(
        server=ServerConfig(host="127.0.0.1", port=8090),
        auth=AuthConfig(enabled=False),
        storage=StorageConfig(backend="memory", list_page_size=TEST_PAGE_SIZE),
    )


@pytest.fixture(scope="session")
def app(config: BucketDavConfig):
    """Create a single test FastAPI application for the whole session."""
    return create_app(config)


@pytest.fixture
async def store(app) -> MemoryObjectStore:
    """A fresh memory store installed on the session app."""
    store = MemoryObjectStore(page_size=TEST_PAGE_SIZE)
    await store.init()
    app.state.store = store
    yield store
    await store.close()


@pytest.fixture
async def client(app, store) -> AsyncClient:
    """Async test client talking to the session app in-process."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac


@pytest.fixture
def seed(store):
    """Write entries straight into the store, bypassing the handlers.

    Usage: ``await seed("docs", collection=True)``,
    ``await seed("docs/a.txt", b"hello", content_type="text/plain")``.
    """

    async def _seed(
        key: str,
        body: bytes = b"",
        collection: bool = False,
        **metadata,
    ):
        return await store.put(key, body, Metadata(is_collection=collection, **metadata))

    return _seed
