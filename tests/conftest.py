import os
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Ensure predictable environment variables for tests before importing the app.
BASE_DIR = Path(__file__).resolve().parents[1]
TESTS_DIR = Path(__file__).resolve().parent
TEST_DB_PATH = BASE_DIR / "test.db"

for path in (BASE_DIR, TESTS_DIR):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

os.environ.setdefault("DATABASE_URL", f"sqlite:///{TEST_DB_PATH}")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("IMAGE_STORAGE_BACKEND", "local")
os.environ.setdefault("UPLOAD_DIR", str(BASE_DIR / "test_uploads"))
os.environ.setdefault("VALIDATION_LOCALE", "en")
os.environ.setdefault("CLIENT_LOCALE", "ro")

import app.main as main  # noqa: E402  (import after env vars are set)
from app.database import Base, engine  # noqa: E402
from app.dependencies import get_identity_provider, get_image_store, get_profile_store  # noqa: E402
from fakes import FakeIdentityProvider, FakeImageStore, FakeProfileStore  # noqa: E402


@pytest.fixture()
def identity():
    return FakeIdentityProvider()


@pytest.fixture()
def profiles():
    return FakeProfileStore()


@pytest.fixture()
def images():
    return FakeImageStore()


@pytest.fixture()
def client(identity, profiles, images):
    """Provide a TestClient with Firebase and storage swapped for in-memory fakes."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    main.app.dependency_overrides[get_identity_provider] = lambda: identity
    main.app.dependency_overrides[get_profile_store] = lambda: profiles
    main.app.dependency_overrides[get_image_store] = lambda: images

    with TestClient(main.app) as test_client:
        yield test_client

    main.app.dependency_overrides.clear()
