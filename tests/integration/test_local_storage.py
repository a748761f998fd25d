"""
Integration tests for serving local-storage files through the API.
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from imgforge.api.main import app, mount_local_storage
from imgforge.services.storage import LocalStorageService


@pytest.fixture
def local_storage(tmp_path) -> LocalStorageService:
    return LocalStorageService(root=tmp_path, public_base_url="http://testserver/storage")


@pytest.fixture
def storage_client(tmp_path):
    target = FastAPI()
    mount_local_storage(target, str(tmp_path), "/storage")
    with TestClient(target) as client:
        yield client


class TestLocalStorageMount:
    """Tests for the /storage static mount."""

    @pytest.mark.integration
    def test_public_url_serves_stored_file(self, storage_client, local_storage):
        path = local_storage.store(b"RIFF-webp-bytes", "SKU1/v4_thumbnail", "SKU1_thumb_600x600.webp")

        response = storage_client.get(local_storage.get_public_url(path))

        assert response.status_code == 200
        assert response.content == b"RIFF-webp-bytes"

    @pytest.mark.integration
    def test_missing_file_not_found(self, storage_client):
        assert storage_client.get("/storage/SKU1/nothing.webp").status_code == 404

    @pytest.mark.integration
    def test_app_mounts_storage_for_local_backend(self):
        assert any(getattr(route, "name", None) == "storage" for route in app.routes)
