import os
import tempfile
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

os.environ["DATABASE_URL"] = "sqlite:///./test.db"
os.environ["ENVIRONMENT"] = "test"
os.environ["AUTO_CREATE_TABLES"] = "true"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["MEDIA_BACKEND"] = "local"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="blog-uploads-")
os.environ["RATE_LIMIT_PER_MINUTE"] = "10000"

from app.core.errors import UploadError
from app.db.base import Base
from app.db.session import SessionLocal, engine
from app.main import create_app
from app.services.media import MediaFile, StoredMedia, get_media_store

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


class FakeMediaStore:
    """Records every call; uploads land under /uploads like the local backend."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []
        self.fail_upload = False
        self.fail_delete = False
        self._counter = 0

    @property
    def uploads(self) -> list[str]:
        return [arg for name, arg in self.calls if name == "upload"]

    @property
    def deletes(self) -> list[str]:
        return [arg for name, arg in self.calls if name == "delete"]

    def upload(self, media: MediaFile, namespace: str) -> StoredMedia:
        self.calls.append(("upload", namespace))
        if self.fail_upload:
            raise UploadError("Failed to upload file")
        self._counter += 1
        key = f"{namespace}/file{self._counter}{media.extension}"
        return StoredMedia(url=f"/uploads/{key}", key=key)

    def delete(self, key: str) -> None:
        self.calls.append(("delete", key))
        if self.fail_delete:
            raise RuntimeError("media host unavailable")


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    engine.dispose()
    path = Path("test.db")
    if path.exists():
        path.unlink()


@pytest.fixture()
def media_store():
    return FakeMediaStore()


@pytest.fixture()
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(media_store):
    app = create_app()
    app.dependency_overrides[get_media_store] = lambda: media_store
    with TestClient(app) as test_client:
        yield test_client


def avatar_file(name: str = "avatar.png"):
    return {"file": (name, PNG_BYTES, "image/png")}


def register_user(client, email="reader@example.com", password="secret123", name="Reader", files=None, **extra):
    data = {"name": name, "email": email, "password": password, **extra}
    return client.post("/api/auth/register", data=data, files=files)


@pytest.fixture()
def auth_headers(client):
    response = register_user(client)
    assert response.status_code == 201, response.text
    token = response.json()["data"]["token"]
    return {"Authorization": f"Bearer {token}"}
