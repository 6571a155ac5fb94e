"""
Shared pytest fixtures for the production logger tests.
Points the service at a throwaway database before the app is imported.
"""
import os
import tempfile

_tmp_root = tempfile.mkdtemp(prefix="production-logger-tests-")
os.environ.pop("DATABASE_URL", None)
os.environ["DATABASE_PATH"] = os.path.join(_tmp_root, "test.db")
os.environ["UPLOAD_DIR"] = os.path.join(_tmp_root, "uploads")
os.environ["CLAUDE_API_KEY"] = "test-key"
os.environ["ON_EXTRACTION_FAILURE"] = "propagate"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlmodel import Session, delete  # noqa: E402

from app import app, get_extractor  # noqa: E402
from config import Settings, get_settings  # noqa: E402
from db import create_db_and_tables, engine, get_session  # noqa: E402
from extraction import ExtractionFailure  # noqa: E402
from models import BladeLog, ProductionLog  # noqa: E402
from schemas import BladeReading, EngelReading  # noqa: E402


class FakeExtractor:
    """Stands in for the vision client; returns canned readings or fails."""

    def __init__(self):
        self.engel = EngelReading(good_parts=120, scrap_parts=5, reject_parts=3, total_parts=128)
        self.blade = BladeReading(
            coil_count=3, total_length=250.0, coil_ids=["A1", "B2", "C3"], estimated_blades=1100
        )
        self.error: ExtractionFailure | None = None
        self.calls = []

    async def read_engel_screen(self, image_bytes, media_type="image/jpeg"):
        self.calls.append(("engel", image_bytes, media_type))
        if self.error:
            raise self.error
        return self.engel

    async def read_coil_labels(self, image_bytes, media_type="image/jpeg"):
        self.calls.append(("blade", image_bytes, media_type))
        if self.error:
            raise self.error
        return self.blade


@pytest.fixture(scope="function")
def test_session():
    """Create a test database session."""
    create_db_and_tables()
    with Session(engine) as session:
        yield session
        # Clean up all test data after test
        session.exec(delete(ProductionLog))
        session.exec(delete(BladeLog))
        session.commit()


@pytest.fixture
def upload_dir(tmp_path):
    return tmp_path / "uploads"


@pytest.fixture
def settings(upload_dir, monkeypatch):
    monkeypatch.setenv("UPLOAD_DIR", str(upload_dir))
    monkeypatch.setenv("ON_EXTRACTION_FAILURE", "propagate")
    return Settings()


@pytest.fixture
def extractor():
    return FakeExtractor()


@pytest.fixture(scope="function")
def client(test_session, settings, extractor):
    """Create a test client with dependency overrides."""

    def get_test_session():
        yield test_session

    app.dependency_overrides[get_session] = get_test_session
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_extractor] = lambda: extractor
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
