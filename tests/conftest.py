from __future__ import annotations

from pathlib import Path
from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from ao_coverage.config import Settings
from ao_coverage.service import create_app
from ao_coverage.stores import Metadata
from tests._fixtures.fake_mongo import FakeClient, FakeDatabase

TOKEN = "s3cret-token"


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    host_dir = tmp_path / "host"
    host_dir.mkdir()
    return Settings(
        host_dir=host_dir,
        token=TOKEN,
        upload_limit=16 * 1024,
        stage1=95,
        stage2=80,
        target_url="https://coverage.example.com",
    )


@pytest.fixture
def fake_db() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def client(settings: Settings, fake_db: FakeDatabase, fake_client: FakeClient) -> Iterator[TestClient]:
    """Test client with the app started against the in-memory store."""

    async def metadata_factory(_: Settings) -> Metadata:
        return Metadata(fake_db, client=fake_client)

    app = create_app(settings, metadata_factory=metadata_factory)
    with TestClient(app) as test_client:
        yield test_client
