from pathlib import Path
import os
import tempfile
import uuid

# Must run before quizcraft is imported: the engine is built at import time.
_DB_DIR = tempfile.mkdtemp(prefix="quizcraft-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{Path(_DB_DIR) / 'test.db'}"
os.environ.setdefault("ENV", "dev")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi.testclient import TestClient

from quizcraft.main import app
from quizcraft.utils.rate_limit import login_limiter, submit_limiter


@pytest.fixture(autouse=True)
def reset_rate_limits():
    """Each test starts with empty rate-limit windows."""
    login_limiter.reset()
    submit_limiter.reset()
    yield


@pytest.fixture(scope="session")
def client():
    return TestClient(app)


def unique_email(prefix="user"):
    return f"{prefix}-{uuid.uuid4().hex[:10]}@example.com"


def register(client, role="teacher", **extra):
    """Register an account and return `(user, headers)`."""
    payload = {
        "name": f"Test {role.title()}",
        "email": unique_email(role),
        "password": "secret123",
        "role": role,
    }
    if role == "teacher":
        payload["institution"] = "Springfield High"
    if role == "admin":
        payload["organization"] = "District Office"
    payload.update(extra)
    r = client.post("/auth/register", json=payload)
    assert r.status_code == 201, r.text
    body = r.json()
    return body["user"], {"Authorization": f"Bearer {body['access_token']}"}


def question(text="What is two plus two?", correct=0, points=1):
    return {
        "question_text": text,
        "points": points,
        "options": [{"text": f"Option {i}", "is_correct": i == correct} for i in range(4)],
    }


@pytest.fixture
def teacher(client):
    return register(client, "teacher")


@pytest.fixture
def admin(client):
    return register(client, "admin")


@pytest.fixture
def category(client, admin):
    _, headers = admin
    r = client.post("/categories", json={"name": f"Cat {uuid.uuid4().hex[:8]}"}, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()["category"]


@pytest.fixture
def make_quiz(client, teacher, category):
    """Factory creating a quiz owned by the `teacher` fixture."""
    _, headers = teacher

    def _make(questions=None, **fields):
        payload = {
            "title": "Arithmetic basics",
            "category": str(category["id"]),
            "is_published": True,
            "questions": [question()] if questions is None else questions,
        }
        payload.update(fields)
        r = client.post("/quizzes", json=payload, headers=headers)
        assert r.status_code == 201, r.text
        return r.json()["quiz"]

    return _make


@pytest.fixture
def student(client):
    r = client.post("/students/create", json={
        "name": "Guest Student", "email": unique_email("student"), "avatar": "avatar-3", "class_name": "7B",
    })
    assert r.status_code == 201, r.text
    return r.json()["student"]
