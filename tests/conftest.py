import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ["ADMIN_USERNAME"] = "admin"
os.environ["ADMIN_PASSWORD"] = "admin"
os.environ["USER_USERNAME"] = "user"
os.environ["USER_PASSWORD"] = "user"
os.environ["SEED_STRATEGY"] = "file"
os.environ["SEED_ON_STARTUP"] = "true"
os.environ.pop("SEED_DATA_DIR", None)
os.environ.pop("MAJOR_OPTIONS", None)

import mongomock
import pytest
from fastapi.testclient import TestClient

import database
from main import app


@pytest.fixture()
def db():
    mock_db = mongomock.MongoClient()["academic_records_test"]
    database.set_database(mock_db)
    yield mock_db
    database.set_database(None)


def login(client: TestClient, username: str, password: str) -> TestClient:
    resp = client.post("/login", data={"username": username, "password": password}, follow_redirects=False)
    assert resp.status_code == 303
    assert resp.headers["location"] == "/index"
    return client


@pytest.fixture()
def client(db):
    return TestClient(app)


@pytest.fixture()
def admin_client(db):
    return login(TestClient(app), "admin", "admin")


@pytest.fixture()
def user_client(db):
    return login(TestClient(app), "user", "user")
