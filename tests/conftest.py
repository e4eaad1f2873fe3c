"""Shared pytest fixtures for DirStore tests.

A single FastAPI app is created per test session to avoid duplicate
Prometheus metric registration errors (the instrumentator registers
gauges in the global prometheus_client registry).

The store is attached to the app manually for each test, since the
lifespan context does not run under ASGITransport. Every test gets a
fresh in-memory catalog and its own storage root and tmp directory.
"""

import pytest
from httpx import ASGITransport, AsyncClient

from dirstore.config import (
    DirStoreConfig,
    MetadataConfig,
    ObservabilityConfig,
    ServerConfig,
    StorageConfig,
)
from dirstore.metadata.sqlite import SQLiteMetadataStore
from dirstore.multipart import MultipartSessionManager
from dirstore.server import attach_store, create_app
from dirstore.storage.local import LocalStorageBackend
from dirstore.store import ObjectStore


@pytest.fixture(scope="session")
def config() -> DirStoreConfig:
    """Create a test DirStoreConfig with the HTTP instrumentator disabled."""
    return DirStoreConfig(
        server=ServerConfig(host="127.0.0.1", port=9010, region="us-east-1"),
        metadata=MetadataConfig(sqlite_path=":memory:"),
        storage=StorageConfig(root_dir="/tmp/dirstore-test", tmp_dir="/tmp/dirstore-test-tmp"),
        observability=ObservabilityConfig(metrics=False, health_check=True),
    )


@pytest.fixture(scope="session")
def app(config: DirStoreConfig):
    """Create a single test FastAPI application for the whole session."""
    return create_app(config)


@pytest.fixture
async def store(tmp_path) -> ObjectStore:
    """An initialized ObjectStore over an in-memory catalog and ``tmp_path/objects``."""
    object_store = ObjectStore(
        SQLiteMetadataStore(":memory:"),
        LocalStorageBackend(tmp_path / "objects"),
    )
    await object_store.init()
    yield object_store
    await object_store.close()


@pytest.fixture
def sessions(tmp_path) -> MultipartSessionManager:
    """A multipart session manager rooted at ``tmp_path/tmp``."""
    return MultipartSessionManager(tmp_path / "tmp")


@pytest.fixture
async def client(app, store, sessions) -> AsyncClient:
    """Create an async test client with a fresh store attached to the app."""
    attach_store(app, store, sessions)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac
