from __future__ import annotations

import pytest

from app import create_app
from services.config import Settings
from tests.fakes import FakeGenerator, png_bytes


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def app(generator):
    app = create_app(Settings(api_key=None, model=generator.model), generator=generator)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def session_id(client) -> str:
    response = client.post("/api/session", json={})
    return response.get_json()["session"]["session_id"]


@pytest.fixture
def photo_bytes() -> bytes:
    return png_bytes()
