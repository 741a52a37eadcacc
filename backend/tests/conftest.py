"""Test configuration and fixtures."""

import os

# Point the application engine at SQLite before anything imports it
os.environ.setdefault("DATABASE_URL", "sqlite://")

import hashlib
from datetime import datetime, UTC

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from gradebook.database import Base
from gradebook.grading import DependencyFailureError, GradingEngine
from gradebook.grading.storage import StoredFile


# Use in-memory SQLite for testing
TEST_DATABASE_URL = "sqlite:///:memory:"


class FixedClock:
    """Clock returning a settable instant."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, *args) -> None:
        self.now = datetime(*args, tzinfo=UTC)


class MemoryStorage:
    """File storage keeping bytes in a dict; can be told to fail."""

    def __init__(self):
        self.files = {}
        self.deleted = []
        self.fail_on = None
        self._counter = 0

    def store(self, filename: str, data: bytes) -> StoredFile:
        if self.fail_on is not None and filename == self.fail_on:
            raise DependencyFailureError("file_storage", f"Failed to save file {filename}")
        self._counter += 1
        stored_filename = f"{self._counter}_{filename}"
        self.files[stored_filename] = data
        return StoredFile(
            original_filename=filename,
            stored_filename=stored_filename,
            size=len(data),
            mime_type="text/plain",
            hash=hashlib.sha256(data).hexdigest(),
        )

    def delete(self, stored_filename: str) -> None:
        self.files.pop(stored_filename, None)
        self.deleted.append(stored_filename)


class RecordingNotifier:
    def __init__(self):
        self.events = []
        self.fail = False

    def notify(self, event, payload):
        if self.fail:
            raise DependencyFailureError("notifications", "webhook unreachable")
        self.events.append((event, payload))


@pytest.fixture(scope="function")
def engine():
    """Create a fresh test database engine per test."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(engine):
    """Create test database session."""
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FixedClock(datetime(2025, 1, 5, 12, 0, tzinfo=UTC))


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def grading(db_session, storage, notifier, clock):
    """GradingEngine wired to in-memory collaborators and a fixed clock."""
    return GradingEngine(db_session, storage=storage, notifier=notifier, clock=clock)


def make_assignment(db_session, **overrides):
    from gradebook.models import Assignment, AssignmentType
    fields = dict(
        course_id=1,
        title="Persuasive Essay",
        type=AssignmentType.essay,
        due_date=datetime(2025, 1, 10, 23, 59, tzinfo=UTC),
        max_score=100,
        allow_late_submissions=True,
        late_submission_penalty=10,
        max_late_days=7,
        auto_grading_enabled=False,
    )
    fields.update(overrides)
    assignment = Assignment(**fields)
    db_session.add(assignment)
    db_session.commit()
    db_session.refresh(assignment)
    return assignment


QUIZ_QUESTIONS = [
    {"type": "multiple_choice", "question": "2 + 2 = ?", "options": ["3", "4", "5"], "correct_answer": "4", "points": 20},
    {"type": "true_false", "question": "The earth is round.", "correct_answer": True, "points": 20},
    {"type": "short_answer", "question": "Simplify x + x", "correct_answer": "2x", "acceptable_answers": ["2*x"], "points": 20},
    {"type": "multiple_choice", "question": "Capital of France?", "options": ["Paris", "Rome"], "correct_answer": "Paris", "points": 20},
    {"type": "short_answer", "question": "Name a primary colour", "correct_answer": "red", "acceptable_answers": ["blue", "yellow"], "points": 20},
]


@pytest.fixture
def sample_assignment(db_session):
    """Create a sample essay assignment for testing."""
    return make_assignment(db_session)


@pytest.fixture
def sample_quiz(db_session, grading):
    """Create an auto-graded quiz worth 100 points over five questions."""
    from gradebook.models import AssignmentType
    quiz = make_assignment(
        db_session, title="Algebra Quiz", type=AssignmentType.quiz, auto_grading_enabled=True,
    )
    grading.define_quiz_questions(quiz.id, QUIZ_QUESTIONS)
    return quiz


@pytest.fixture
def sample_rubric(db_session, sample_assignment):
    """Create a sample rubric for testing."""
    from gradebook.models import Rubric
    rubric = Rubric(
        assignment_id=sample_assignment.id,
        name="Essay Rubric",
        description="A test rubric for essays",
        criteria=[
            {"id": 1, "name": "Thesis", "description": "Clear thesis statement", "maxPoints": 25, "weight": 2},
            {"id": 2, "name": "Organization", "description": "Logical structure", "maxPoints": 25},
            {"id": 3, "name": "Evidence", "description": "Supporting evidence", "maxPoints": 25},
            {"id": 4, "name": "Grammar", "description": "Proper grammar", "maxPoints": 25, "weight": 0.5},
        ],
        created_by=100,
    )
    db_session.add(rubric)
    db_session.commit()
    db_session.refresh(rubric)
    return rubric


@pytest.fixture
def submitted_essay(grading, sample_assignment, clock):
    """An on-time essay submission awaiting manual grading."""
    submission = grading.save_draft(sample_assignment.id, 7, {"text": "My essay"})
    clock.set(2025, 1, 9, 9, 0)
    return grading.submit_final(submission.id)


@pytest.fixture
def assignment_factory(db_session):
    """Create assignments with the given overrides."""
    def factory(**overrides):
        return make_assignment(db_session, **overrides)
    return factory


@pytest.fixture
def quiz_questions():
    return [dict(question) for question in QUIZ_QUESTIONS]
