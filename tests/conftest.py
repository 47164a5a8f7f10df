from typing import Generator

import mongomock
import pytest
from fastapi.testclient import TestClient

from database import Store
from main import create_app
from settings import Settings

TEST_DB_NAME = "dressup_test"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        database_name=TEST_DB_NAME,
        jwt_secret="test-secret",
        expires_in="1h",
        log_level="WARNING",
    )


@pytest.fixture
def mongo_client() -> mongomock.MongoClient:
    """In-memory MongoDB; every test gets its own empty server."""
    return mongomock.MongoClient()


@pytest.fixture
def app(settings, mongo_client):
    return create_app(settings, client=mongo_client)


@pytest.fixture
def store(app) -> Store:
    return app.state.store


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    # entering the context runs the lifespan, which creates the indexes
    with TestClient(app) as c:
        yield c


def product_payload(**overrides):
    payload = {
        "image": "https://img.example.org/dress.png",
        "title": "Summer Dress",
        "price": 49.99,
        "ratings": 4.5,
        "category": "dresses",
        "description": "Light cotton dress",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def make_product(client):
    def _make(**overrides):
        resp = client.post("/api/v1/products", json=product_payload(**overrides))
        assert resp.status_code == 201, resp.text
        return resp.json()["product"]

    return _make
