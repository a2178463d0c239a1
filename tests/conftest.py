"""
Pytest configuration and shared fixtures.

The database fixtures build a fresh in-memory SQLite engine per test; the
app's ``get_db`` dependency is pointed at it so nothing touches app.db.
"""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from celpip_prep import models  # noqa: F401
from celpip_prep.database import Base, get_db
from celpip_prep.schemas.attempt import WritingEvaluation
from celpip_prep.schemas.practice_set import PracticeSet
from celpip_prep.utils.gateway import Gateway


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (in-memory database)")


def pytest_collection_modifyitems(config, items):
    """Mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


def mcq(qid, correct="yes", **extra):
    data = {"id": qid, "type": "MCQ", "text": f"Question {qid}?", "options": ["yes", "no"], "correctAnswer": correct}
    data.update(extra)
    return data


def full_set_dict():
    """One section of every type, exercising every timer rule."""
    return {
        "id": "set-full",
        "title": "Full Practice",
        "description": "All four skills",
        "isPublished": True,
        "sections": [
            {
                "id": "sec-r",
                "type": "READING",
                "title": "Reading",
                "parts": [
                    {
                        "id": "r1",
                        "timerSeconds": 600,
                        "instructions": "Read the email.",
                        "contentText": "Dear Sir,",
                        "questions": [
                            {"id": "q1", "type": "MCQ", "text": "Why?", "options": ["A", "B", "C"], "correctAnswer": "B"},
                            {"id": "q2", "type": "MCQ", "text": "When?", "options": ["A", "B"], "correctAnswer": "A", "weight": 2},
                            {"id": "p1", "type": "PASSAGE", "text": "The badger is [[1]]."},
                            {"id": "c1", "type": "CLOZE", "text": "1", "options": ["x", "y"], "correctAnswer": "x"},
                        ],
                    },
                    {
                        "id": "r2",
                        "timerSeconds": 0,
                        "audioData": "r2.mp3",
                        "questions": [
                            {"id": "q3", "type": "MCQ", "text": "Opinion?", "options": ["A", "B"]},
                        ],
                    },
                ],
            },
            {
                "id": "sec-w",
                "type": "WRITING",
                "title": "Writing",
                "parts": [
                    {"id": "w1", "timerSeconds": 1200, "instructions": "Write an email.", "contentText": "Your sofa arrived broken."},
                    {"id": "w2", "timerSeconds": 600, "instructions": "Answer the survey.", "contentText": "Park or pool?"},
                ],
            },
            {
                "id": "sec-l",
                "type": "LISTENING",
                "title": "Listening",
                "parts": [
                    {
                        "id": "l1",
                        "timerSeconds": 300,
                        "audioData": "l1.mp3",
                        "segments": [
                            {"id": "s1", "prepTimeSeconds": 10, "timerSeconds": 0, "questions": [mcq("lq1"), mcq("lq2")]},
                            {
                                "id": "s2",
                                "prepTimeSeconds": 0,
                                "timerSeconds": 60,
                                "audioData": "s2.mp3",
                                "questions": [
                                    mcq("lq3", timerSeconds=20),
                                    mcq("lq4", timerSeconds=0, audioData="lq4.mp3"),
                                ],
                            },
                        ],
                    },
                ],
            },
            {
                "id": "sec-s",
                "type": "SPEAKING",
                "title": "Speaking",
                "parts": [
                    {
                        "id": "sp1",
                        "timerSeconds": 90,
                        "segments": [
                            {"id": "ss1", "contentText": "Describe a friend.", "prepTimeSeconds": 30, "timerSeconds": 60},
                            {"id": "ss2", "contentText": "Describe a trip.", "prepTimeSeconds": 0, "timerSeconds": 0},
                        ],
                    },
                ],
            },
        ],
    }


@pytest.fixture
def full_set():
    return PracticeSet.model_validate(full_set_dict())


@pytest.fixture
def full_set_payload():
    return full_set_dict()


class FakeGateway(Gateway):
    """Records what the delivery engine hands to persistence and AI."""

    def __init__(self, evaluation=None):
        self.evaluation = evaluation
        self.attempts = []
        self.evaluated = []

    async def login(self, email, password):
        return None

    async def signup(self, email, password, name):
        return None

    async def get_sets(self):
        return []

    async def save_set(self, practice_set):
        return True

    async def delete_set(self, set_id):
        return None

    async def save_attempt(self, attempt):
        self.attempts.append(attempt)

    async def get_attempts(self, user_id):
        return [a for a in self.attempts if a.user_id == user_id]

    async def evaluate_writing(self, prompt, response):
        self.evaluated.append((prompt, response))
        return self.evaluation

    async def generate_speech(self, script):
        return None


@pytest.fixture
def fake_gateway():
    return FakeGateway(evaluation=WritingEvaluation(band_score=8, feedback="Good"))


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client(session_factory):
    from celpip_prep.main import app
    from celpip_prep.routers import session as session_router
    from celpip_prep.utils.gateway import LocalGateway

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[session_router.get_gateway] = lambda: LocalGateway(session_factory)
    # no context manager: the startup hook would touch the real database
    yield TestClient(app)
    app.dependency_overrides.clear()
    session_router.SESSIONS.clear()
