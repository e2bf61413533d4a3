from datetime import datetime

import pytest

from safety_tutor.auth import Identity
from safety_tutor.db import DocumentStore, init_db
from safety_tutor.lessons import LessonCache
from safety_tutor.progress import ProgressStore
from safety_tutor.vocabulary import Dictionary


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    db_path = str(tmp_path / "test_tutor.db")
    return db_path


@pytest.fixture
def store(tmp_db):
    init_db(tmp_db)
    return DocumentStore(tmp_db)


def make_content(question_count=5, duplicate=False):
    quiz = [
        {
            "prompt": "Same question?" if duplicate else f"Question {i + 1} about PPE?",
            "options": ["Wear it", "Ignore it", "Sell it", "Hide it"],
            "correct_option": i % 4,
        }
        for i in range(question_count)
    ]
    return {
        "vocabulary": [
            {"term": "Hard hat", "meaning": "Protective helmet", "example": "Wear your hard hat.",
             "pronunciation": "/hɑːrd hæt/"},
        ],
        "dialogue": [
            {"speaker": "Tom", "role": "Worker", "text": "Where is my hard hat?"},
            {"speaker": "Sam", "role": "Safety Officer", "text": "On the table."},
        ],
        "scenario": {"title": "Missing PPE", "description": "A worker has no helmet.", "risk_level": "High"},
        "quiz": quiz,
    }


class FakeGenerator:
    """Replays scripted replies; with no script left it returns valid content."""

    def __init__(self, replies=None, term_replies=None):
        self.replies = list(replies or [])
        self.term_replies = list(term_replies or [])
        self.requests = []
        self.term_requests = []

    def generate_vocabulary(self, topic_id, count, existing):
        self.term_requests.append((topic_id, count, list(existing)))
        if self.term_replies:
            reply = self.term_replies.pop(0)
            if isinstance(reply, Exception):
                raise reply
            return reply
        return {"terms": [
            {"term": "Lockout", "meaning": "Locking a power source before work",
             "example": "Apply the lockout first.", "pronunciation": "/ˈlɒk.aʊt/"},
        ]}

    def generate(self, request):
        self.requests.append(request)
        if self.replies:
            reply = self.replies.pop(0)
            if isinstance(reply, Exception):
                raise reply
            return reply
        return make_content(request.question_count)


class Clock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def content():
    return make_content


@pytest.fixture
def make_generator():
    return FakeGenerator


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def cache(store, generator):
    return LessonCache(store, generator, sleep=lambda seconds: None)


@pytest.fixture
def clock():
    return Clock(datetime(2025, 3, 10, 9, 0))


@pytest.fixture
def progress_store(store, clock):
    return ProgressStore(store, clock=clock)


@pytest.fixture
def identity():
    return Identity(uid="u1", email="linh@example.com", display_name="Linh")


@pytest.fixture
def user(progress_store, identity):
    return progress_store.sign_in(identity)


@pytest.fixture
def started_user(progress_store, user):
    progress_store.initialize_topic(user, "electrical")
    return user


@pytest.fixture
def dictionary(store, generator):
    return Dictionary(store, generator)
