"""
Integration test fixtures for imgforge.

A FastAPI test client backed by SQLite in memory, dict storage and a mocked
job queue.
"""

import os
from typing import Generator
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

# Ensure test environment
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["DEBUG"] = "true"

from imgforge.api.dependencies import (
    get_ai_analyzer,
    get_bus,
    get_job_queue,
    get_repository,
    get_storage,
)
from imgforge.api.main import app
from imgforge.domain.ports import JobQueue
from imgforge.services.repository import SqlAlchemyJobRepository


@pytest.fixture(scope="function")
def api_repository(db_engine) -> SqlAlchemyJobRepository:
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    return SqlAlchemyJobRepository(session_factory=TestingSessionLocal)


@pytest.fixture
def job_queue() -> MagicMock:
    return MagicMock(spec=JobQueue)


@pytest.fixture(scope="function")
def client(api_repository, storage, job_queue, event_bus) -> Generator[TestClient, None, None]:
    """Create a test client with overridden dependencies."""
    app.dependency_overrides[get_repository] = lambda: api_repository
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_job_queue] = lambda: job_queue
    app.dependency_overrides[get_bus] = lambda: event_bus
    app.dependency_overrides[get_ai_analyzer] = lambda: None
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def upload(client: TestClient, jpeg_bytes: bytes):
    """POST a file to the upload endpoint and return the response."""

    def _upload(
        name: str = "shoe.jpg",
        content: bytes | None = None,
        content_type: str = "image/jpeg",
        **form,
    ):
        files = {"file": (name, content if content is not None else jpeg_bytes, content_type)}
        return client.post("/api/v1/images/upload", files=files, data=form)

    return _upload
