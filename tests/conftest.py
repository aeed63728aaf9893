"""Pytest configuration and shared fixtures."""

import io
import zipfile
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from idolmedia.api.deps import get_services
from idolmedia.main import create_app
from idolmedia.metadata.store import InMemoryMetadataStore, configure_indexes
from idolmedia.services.registry import build_services
from idolmedia.storage.local import LocalStorageBackend

BOUNDARY = "----idolmediaTestBoundary"


@pytest.fixture
def store():
    """Fresh metadata store with the production indexes."""
    store = InMemoryMetadataStore()
    configure_indexes(store)
    return store


@pytest.fixture
def backend(tmp_path):
    """Filesystem object store rooted in a temp directory."""
    return LocalStorageBackend(
        base_path=str(tmp_path / "objects"),
        public_base_url="http://testserver/objects",
        signing_secret="test-secret",
    )


@pytest.fixture
def stored_keys(backend):
    """Return the keys currently present in the backend."""

    def _keys():
        base = Path(backend.base_path)
        if not base.exists():
            return []
        return sorted(p.relative_to(base).as_posix() for p in base.rglob("*") if p.is_file())

    return _keys


@pytest.fixture
def services(backend, store):
    return build_services(backend=backend, store=store)


@pytest.fixture
def client(services):
    """Test client wired to the temp backend and in-memory store."""
    app = create_app()
    app.dependency_overrides[get_services] = lambda: services
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def god(client):
    response = client.post("/api/v1/gods", json={"name": "Ganesha", "image": "ganesha.png"})
    assert response.status_code == 201
    return response.json()["data"]


@pytest.fixture
def category(client):
    response = client.post(
        "/api/v1/animation-categories", json={"name": "Aarti Flames", "icon": "flame.png"}
    )
    assert response.status_code == 201
    return response.json()["data"]


def build_multipart(parts, boundary=BOUNDARY) -> bytes:
    """Encode (name, value) fields and (name, filename, content_type, data) files."""
    body = b""
    for part in parts:
        body += f"--{boundary}\r\n".encode()
        if len(part) == 2:
            name, value = part
            body += f'Content-Disposition: form-data; name="{name}"\r\n\r\n'.encode()
            body += value.encode() + b"\r\n"
        else:
            name, filename, content_type, data = part
            body += (
                f'Content-Disposition: form-data; name="{name}"; filename="{filename}"\r\n'
                f"Content-Type: {content_type}\r\n\r\n"
            ).encode()
            body += data + b"\r\n"
    body += f"--{boundary}--\r\n".encode()
    return body


def build_zip(entries) -> bytes:
    """Build an in-memory ZIP from (name, data) pairs; data None makes a directory."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
        for name, data in entries:
            if data is None:
                archive.writestr(zipfile.ZipInfo(name), b"")
            else:
                archive.writestr(name, data)
    return buffer.getvalue()


@pytest.fixture
def multipart():
    return build_multipart


@pytest.fixture
def make_zip():
    return build_zip
