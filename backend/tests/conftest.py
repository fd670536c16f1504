"""Общие фикстуры: хранилища, фейковый генератор контента и фиксированные часы."""
from collections import defaultdict
from datetime import date
from typing import Any, Dict, List, Optional
import copy

import pytest

from adaptlearn.core.database import DatabaseHelper
from adaptlearn.repositories.document_store import DocumentLearningStore
from adaptlearn.repositories.sql_store import SqlLearningStore
from adaptlearn.services.content_generator import ContentGenerator
from adaptlearn.services.progress_engine import CourseProgressEngine
from adaptlearn.services.syllabus import parse_syllabus

# Правильные ответы выходного теста каждого модуля
EXIT_ANSWERS = [1, 2, 0]


def make_diagnostic_quiz(count: int = 5) -> List[Dict[str, Any]]:
    return [
        {
            "question": f"Diagnostic question {i + 1}?",
            "options": ["A", "B", "C", "D"],
            "correctIndex": i % 4,
            "weak_topic": f"Subtopic {i + 1}",
        }
        for i in range(count)
    ]


def make_exit_quiz(module_number: int) -> List[Dict[str, Any]]:
    return [
        {
            "question": f"Module {module_number} check {i + 1}?",
            "options": ["w", "x", "y", "z"],
            "correctIndex": correct,
            "review_topic": f"Topic {module_number}.{i + 1}",
            "explanation": f"Because of rule {i + 1}.",
        }
        for i, correct in enumerate(EXIT_ANSWERS)
    ]


def make_syllabus_payload(level: Optional[str] = "Beginner", modules: int = 6) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "syllabus": [
            {
                "title": f"Module {n}",
                "description": f"What module {n} covers",
                "topics": [f"Topic {n}.1", f"Topic {n}.2", f"Topic {n}.3"],
                "exit_quiz": make_exit_quiz(n),
            }
            for n in range(1, modules + 1)
        ],
    }
    if level is not None:
        payload["level"] = level
    return payload


def syllabus_documents() -> List[Dict[str, Any]]:
    syllabus = parse_syllabus(make_syllabus_payload(), score=2)
    return [m.to_document() for m in syllabus.modules]


class FakeContentGenerator(ContentGenerator):
    """Генератор с заранее заданными ответами; считает вызовы"""

    def __init__(
        self,
        quiz: Any = None,
        grading: Any = None,
        syllabus: Any = None,
        lesson: Any = "# Lesson\n\nSome explanation.",
        answer: Any = "Short answer.",
    ):
        self.quiz = make_diagnostic_quiz() if quiz is None else quiz
        self.grading = {"score": 2, "weak_topics": ["Joins"], "feedback_text": "Keep going."} if grading is None else grading
        self.syllabus = make_syllabus_payload() if syllabus is None else syllabus
        self.lesson = lesson
        self.answer = answer
        self.calls: Dict[str, int] = defaultdict(int)
        self.last_grade_answers: Optional[List[Optional[int]]] = None

    async def generate_quiz(self, topic):
        self.calls["generate_quiz"] += 1
        return copy.deepcopy(self.quiz)

    async def grade_quiz(self, topic, quiz, answers):
        self.calls["grade_quiz"] += 1
        self.last_grade_answers = list(answers)
        return copy.deepcopy(self.grading)

    async def generate_syllabus(self, topic, score, weak_topics):
        self.calls["generate_syllabus"] += 1
        return copy.deepcopy(self.syllabus)

    async def generate_lesson(self, topic, level):
        self.calls["generate_lesson"] += 1
        return self.lesson

    async def answer_question(self, question, course_topic, level, lesson_topic="", lesson_text=""):
        self.calls["answer_question"] += 1
        return self.answer


class FixedClock:
    """Подменяет utc_today; дату можно сдвигать внутри теста"""

    def __init__(self, today: date):
        self.today = today

    def __call__(self) -> date:
        return self.today


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(date(2026, 3, 10))


@pytest.fixture
def generator() -> FakeContentGenerator:
    return FakeContentGenerator()


@pytest.fixture
def store() -> DocumentLearningStore:
    return DocumentLearningStore()


@pytest.fixture
async def user(store):
    return await store.create_user("Ada", "ada@example.com", "not-a-real-hash")


@pytest.fixture
async def other_user(store):
    return await store.create_user("Bob", "bob@example.com", "not-a-real-hash")


@pytest.fixture
async def course(store, user):
    return await store.create_course(user.id, "SQL", "Beginner", syllabus_documents())


@pytest.fixture
def engine(store, clock) -> CourseProgressEngine:
    return CourseProgressEngine(store, today=clock)


# --- SQL хранилище на SQLite-файле ---

@pytest.fixture
async def session_factory(tmp_path):
    database = DatabaseHelper(f"sqlite+aiosqlite:///{tmp_path / 'adaptlearn.db'}")
    await database.create_schema()
    yield database.session_factory
    await database.dispose()


@pytest.fixture
async def sql_store(session_factory):
    async with session_factory() as session:
        yield SqlLearningStore(session)
