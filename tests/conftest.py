"""
Pytest fixtures: the FastAPI app wired to an in-memory MongoDB
(mongomock-motor) and helpers for registering callers.
"""
import os

os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from core.database import get_db
from main import create_app


SAMPLE_QUESTIONS = [
    {"questionText": "What is 2 + 2?", "options": ["1", "2", "3", "4"], "correctOptionIndex": 3, "marks": 2},
    {"questionText": "Capital of France?", "options": ["Berlin", "Madrid", "Paris", "Rome"], "correctOptionIndex": 2, "marks": 5},
]


@pytest.fixture(autouse=True)
def no_admin_code(monkeypatch):
    monkeypatch.delenv("ADMIN_SIGNUP_CODE", raising=False)


@pytest.fixture
def db():
    return AsyncMongoMockClient()["quiz_test"]


@pytest.fixture
def app(db):
    app = create_app(lifespan=None)
    app.dependency_overrides[get_db] = lambda: db
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


def auth(token):
    return {"Authorization": f"Bearer {token}"}


def register(client, name, email, role="student", password="secret123", **extra):
    body = {"name": name, "email": email, "password": password, "role": role, **extra}
    response = client.post("/api/auth/register", json=body)
    # Callers authenticate by header in tests, never by the shared cookie jar
    client.cookies.clear()
    return response


@pytest.fixture
def admin(client):
    response = register(client, "Admin", "admin@example.com", role="admin")
    assert response.status_code == 201
    payload = response.json()
    return {"token": payload["token"], "user": payload["data"]}


@pytest.fixture
def student(client, admin):
    response = register(client, "Stu Dent", "student@example.com")
    assert response.status_code == 201
    payload = response.json()
    return {"token": payload["token"], "user": payload["data"]}


@pytest.fixture
def quiz(client, admin):
    body = {
        "title": "General Knowledge",
        "description": "Warm-up",
        "examDuration": 10,
        "tabSwitchLimit": 2,
        "questions": SAMPLE_QUESTIONS,
    }
    response = client.post("/api/quizzes/", json=body, headers=auth(admin["token"]))
    assert response.status_code == 201
    return response.json()["data"]
