import os

# Cheap hashes and a fixed prefix for the whole test run; must be set before config is imported
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("ORDER_PREFIX", "FM")

import mongomock
import pytest
from fastapi.testclient import TestClient

from database import ensure_indexes, get_db
from main import app


@pytest.fixture
def db():
    database = mongomock.MongoClient().freelance_test
    ensure_indexes(database)
    return database


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def project_payload():
    return {
        "projectName": "Brand identity",
        "clientName": "Kopi Senja",
        "clientPhone": "081234567890",
        "deadline": "2025-03-31",
        "brief": "<p>Logo and stationery</p>",
        "price": 500000,
        "quantity": 2,
        "discount": 100000,
    }
