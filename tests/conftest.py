import os

import mongomock
import pytest
from fastapi.testclient import TestClient

from config import Settings
from errors import UploadError
from main import create_app


class FakeMediaStore:
    """In-memory stand-in for the Cloudinary store."""

    def __init__(self):
        self.configured = True
        self.uploads = []
        self.deleted = []
        self.fail_uploads = False
        self.fail_names = set()
        self.fail_deletes = False

    def log_status(self):
        pass

    def is_remote(self, url):
        return "cloudinary.com" in (url or "")

    def upload(self, local_path, kind="auto"):
        name = os.path.basename(local_path)
        if self.fail_uploads or any(n in name for n in self.fail_names):
            raise UploadError("upload refused")
        self.uploads.append((local_path, kind))
        return f"https://res.cloudinary.com/demo/{kind}/upload/v1/mca_shop/{name.split('.')[0]}.jpg"

    def delete(self, url):
        self.deleted.append(url)
        if self.fail_deletes:
            raise UploadError("delete refused")

    def ping(self):
        return {"status": "ok"}


@pytest.fixture
def settings(tmp_path):
    return Settings(public_dir=str(tmp_path / "public"), database_name="mca_shop_test", app_env="development")


@pytest.fixture
def db():
    return mongomock.MongoClient(tz_aware=True)["mca_shop_test"]


@pytest.fixture
def media_store():
    return FakeMediaStore()


@pytest.fixture
def app(settings, db, media_store):
    return create_app(settings, db=db, media_store=media_store)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c
