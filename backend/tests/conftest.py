import json
import os
import tempfile

# Must be set before the app modules read their configuration
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["LOGS_DIR"] = tempfile.mkdtemp(prefix="code-review-logs-")
os.environ["SECRET_KEY"] = "test-secret"
os.environ.pop("LLM_API_KEY", None)
os.environ.pop("GEMINI_API_KEY", None)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.database import Base, get_db
from app.core.models import Review, User
from app.main import app, get_llm_service


SAMPLE_REPORT = {
    "overall_summary": "Simple assignment with no functional issues. Consider a descriptive name.",
    "issues_by_category": [
        {
            "category": "Best Practices & Readability",
            "findings": [
                {"line": 1, "severity": "Low", "description": "Use a descriptive variable name instead of 'x'."}
            ],
        },
        {"category": "Security", "findings": []},
        {
            "category": "Suggestions for Improvement",
            "findings": [
                {"line": 0, "severity": "Informational", "description": "Add a module docstring."}
            ],
        },
    ],
}


class FakeLLM:
    """Stands in for LLMService, returns a fixed answer and records the calls"""

    def __init__(self, answer=None, error=None):
        self.answer = json.dumps(SAMPLE_REPORT) if answer is None else answer
        self.error = error
        self.calls = []

    async def generate_json(self, system, prompt, schema, schema_name="response"):
        self.calls.append({"system": system, "prompt": prompt, "schema": schema})
        if self.error is not None:
            raise self.error
        return self.answer


@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def client(db_session, fake_llm):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_llm_service] = lambda: fake_llm
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def register(client, username="alice", email="alice@example.com", password="secret123"):
    response = client.post(
        "/api/auth/register",
        json={"username": username, "email": email, "password": password},
    )
    assert response.status_code == 201, response.text
    return response.json()


def auth_headers(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def alice(client):
    return register(client)


@pytest.fixture
def bob(client):
    return register(client, username="bob", email="bob@example.com")


def count_users(db):
    return db.query(User).count()


def count_reviews(db, user_id=None):
    query = db.query(Review)
    if user_id is not None:
        query = query.filter(Review.user_id == user_id)
    return query.count()
