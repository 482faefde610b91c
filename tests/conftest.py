import mongomock
import pytest
from fastapi.testclient import TestClient

import main
from database import ensure_indexes, get_database
from security import CredentialService
from tests.helpers import signup


@pytest.fixture
def db():
    db = mongomock.MongoClient().db
    ensure_indexes(db)
    return db


@pytest.fixture
def credentials():
    return CredentialService(secret_key="test-secret", bcrypt_rounds=4)


@pytest.fixture
def client(db, credentials):
    main.app.dependency_overrides[get_database] = lambda: db
    main.app.dependency_overrides[main.get_credentials] = lambda: credentials
    with TestClient(main.app) as c:
        yield c
    main.app.dependency_overrides.clear()


@pytest.fixture
def products(db):
    db["product"].insert_many([
        {"product_id": "P", "title": "Linen shirt", "price": 10},
        {"product_id": "Q", "title": "Wool socks", "price": 5},
    ])
    return db["product"]


@pytest.fixture
def token(client):
    return signup(client).json()["token"]
