# adaptlearn/repositories/document_store.py
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
import asyncio
import copy
import itertools
import logging

from adaptlearn.core.exceptions import ConflictIgnoredError, ValidationError
from adaptlearn.core.schemas.records import (
    AssessmentRecord,
    CourseRecord,
    LessonCompletionRecord,
    LessonContentRecord,
    PendingAssessmentRecord,
    ProgressCounters,
    UserRecord,
)
from .base import LearningStore

logger = logging.getLogger(__name__)


def completion_doc_id(user_id: int, course_id: int, module_index: int, topic_index: int) -> str:
    """Составной id документа - он же уникальный ключ завершения урока"""
    return f"{user_id}_{course_id}_{module_index}_{topic_index}"


def lesson_doc_id(course_id: int, module_index: int, topic_index: int) -> str:
    return f"{course_id}_{module_index}_{topic_index}"


class DocumentLearningStore(LearningStore):
    """
    Документное хранилище в памяти процесса: коллекции словарей-документов.
    Атомарность составных операций обеспечивается одним asyncio.Lock.
    Подходит для локальной разработки и тестов (один процесс).
    """

    def __init__(self):
        self.collections: Dict[str, Dict[Any, Dict[str, Any]]] = {
            "users": {},
            "courses": {},
            "assessments": {},
            "pending_assessments": {},
            "lesson_completions": {},
            "lessons": {},
        }
        self._ids = {name: itertools.count(1) for name in ("users", "courses", "assessments")}
        self._lock = asyncio.Lock()

    def _doc(self, collection: str, key) -> Optional[Dict[str, Any]]:
        doc = self.collections[collection].get(key)
        return copy.deepcopy(doc) if doc is not None else None

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    # --- Пользователи ---

    async def get_user(self, user_id: int) -> Optional[UserRecord]:
        doc = self._doc("users", user_id)
        return UserRecord.model_validate(doc) if doc else None

    async def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        email = email.lower()
        for doc in self.collections["users"].values():
            if doc["email"] == email:
                return UserRecord.model_validate(copy.deepcopy(doc))
        return None

    async def create_user(self, name: str, email: str, password_hash: str, role: str = "user") -> UserRecord:
        async with self._lock:
            if await self.get_user_by_email(email):
                raise ValidationError("User with this email already exists")
            user_id = next(self._ids["users"])
            doc = {
                "id": user_id,
                "name": name,
                "email": email.lower(),
                "password_hash": password_hash,
                "role": role,
                "total_xp": 0,
                "streak_days": 0,
                "last_lesson_date": None,
                "created_at": self._now(),
            }
            self.collections["users"][user_id] = doc
            return UserRecord.model_validate(copy.deepcopy(doc))

    # --- Курсы ---

    async def get_course(self, course_id: int, user_id: int) -> Optional[CourseRecord]:
        doc = self._doc("courses", course_id)
        if doc is None or doc["user_id"] != user_id:
            return None
        return CourseRecord.model_validate(doc)

    async def list_courses(self, user_id: int) -> List[CourseRecord]:
        docs = [d for d in self.collections["courses"].values() if d["user_id"] == user_id]
        docs.sort(key=lambda d: d["id"], reverse=True)
        return [CourseRecord.model_validate(copy.deepcopy(d)) for d in docs]

    def _insert_course(self, user_id: int, topic: str, level: str, syllabus: List[Dict[str, Any]]) -> CourseRecord:
        """Вызывается под self._lock"""
        if user_id not in self.collections["users"]:
            raise ValidationError("Course owner does not exist")
        course_id = next(self._ids["courses"])
        doc = {
            "id": course_id,
            "user_id": user_id,
            "topic": topic,
            "level": level,
            "syllabus": copy.deepcopy(syllabus),
            "completed_modules": 0,
            "progress": 0,
            "created_at": self._now(),
        }
        self.collections["courses"][course_id] = doc
        return CourseRecord.model_validate(copy.deepcopy(doc))

    async def create_course(self, user_id: int, topic: str, level: str, syllabus: List[Dict[str, Any]]) -> CourseRecord:
        async with self._lock:
            return self._insert_course(user_id, topic, level, syllabus)

    async def advance_course(self, course_id: int, expected_completed: int, completed_modules: int, progress: int) -> bool:
        async with self._lock:
            doc = self.collections["courses"].get(course_id)
            if doc is None or doc["completed_modules"] != expected_completed:
                return False
            doc["completed_modules"] = completed_modules
            doc["progress"] = progress
            return True

    # --- Диагностика ---

    def _insert_assessment(
        self,
        user_id: int,
        topic: str,
        score: int,
        feedback_text: str,
        weak_topics: List[str],
        analysis: List[Dict[str, Any]],
    ) -> AssessmentRecord:
        if user_id not in self.collections["users"]:
            raise ValidationError("Assessment owner does not exist")
        assessment_id = next(self._ids["assessments"])
        doc = {
            "id": assessment_id,
            "user_id": user_id,
            "topic": topic,
            "score": score,
            "feedback_text": feedback_text,
            "weak_topics": list(weak_topics),
            "analysis": copy.deepcopy(analysis),
            "created_at": self._now(),
        }
        self.collections["assessments"][assessment_id] = doc
        return AssessmentRecord.model_validate(copy.deepcopy(doc))

    async def create_assessment(
        self,
        user_id: int,
        topic: str,
        score: int,
        feedback_text: str,
        weak_topics: List[str],
        analysis: List[Dict[str, Any]],
    ) -> AssessmentRecord:
        async with self._lock:
            return self._insert_assessment(user_id, topic, score, feedback_text, weak_topics, analysis)

    async def list_assessments(self, user_id: int, limit: Optional[int] = None) -> List[AssessmentRecord]:
        docs = [d for d in self.collections["assessments"].values() if d["user_id"] == user_id]
        docs.sort(key=lambda d: d["id"], reverse=True)
        if limit:
            docs = docs[:limit]
        return [AssessmentRecord.model_validate(copy.deepcopy(d)) for d in docs]

    async def save_pending_assessment(self, pending: PendingAssessmentRecord) -> None:
        self.collections["pending_assessments"][pending.id] = pending.model_dump()

    async def get_pending_assessment(self, pending_id: str) -> Optional[PendingAssessmentRecord]:
        doc = self._doc("pending_assessments", pending_id)
        return PendingAssessmentRecord.model_validate(doc) if doc else None

    async def delete_pending_assessment(self, pending_id: str) -> None:
        self.collections["pending_assessments"].pop(pending_id, None)

    async def claim_pending_assessment(
        self,
        pending_id: str,
        user_id: int,
        topic: str,
        score: int,
        feedback_text: str,
        weak_topics: List[str],
        analysis: List[Dict[str, Any]],
        level: str,
        syllabus: List[Dict[str, Any]],
    ) -> Optional[Tuple[AssessmentRecord, CourseRecord]]:
        async with self._lock:
            pending = self.collections["pending_assessments"].get(pending_id)
            if pending is None or pending["user_id"] != user_id:
                logger.info(f"Pending assessment {pending_id} already claimed")
                return None
            if user_id not in self.collections["users"]:
                raise ValidationError("Assessment owner does not exist")
            del self.collections["pending_assessments"][pending_id]
            assessment = self._insert_assessment(user_id, topic, score, feedback_text, weak_topics, analysis)
            course = self._insert_course(user_id, topic, level, syllabus)
            return assessment, course

    # --- Завершение уроков ---

    async def get_lesson_completion(
        self, user_id: int, course_id: int, module_index: int, topic_index: int
    ) -> Optional[LessonCompletionRecord]:
        doc = self._doc("lesson_completions", completion_doc_id(user_id, course_id, module_index, topic_index))
        return LessonCompletionRecord.model_validate(doc) if doc else None

    async def list_lesson_completions(self, user_id: int, course_id: int) -> List[LessonCompletionRecord]:
        return [
            LessonCompletionRecord.model_validate(copy.deepcopy(d))
            for d in self.collections["lesson_completions"].values()
            if d["user_id"] == user_id and d["course_id"] == course_id
        ]

    async def record_lesson_completion(
        self,
        completion: LessonCompletionRecord,
        expected: ProgressCounters,
        updated: ProgressCounters,
    ) -> bool:
        doc_id = completion_doc_id(
            completion.user_id, completion.course_id, completion.module_index, completion.topic_index
        )
        async with self._lock:
            if doc_id in self.collections["lesson_completions"]:
                raise ConflictIgnoredError("Lesson already completed")

            user = self.collections["users"].get(completion.user_id)
            course = self.collections["courses"].get(completion.course_id)
            if user is None or course is None or course["user_id"] != completion.user_id:
                raise ValidationError("Completion must reference an owned course")

            current = ProgressCounters(
                total_xp=user["total_xp"],
                streak_days=user["streak_days"],
                last_lesson_date=user["last_lesson_date"],
            )
            if current != expected:
                return False

            doc = completion.model_dump()
            doc["completed_at"] = self._now()
            self.collections["lesson_completions"][doc_id] = doc
            user["total_xp"] = updated.total_xp
            user["streak_days"] = updated.streak_days
            user["last_lesson_date"] = updated.last_lesson_date
            return True

    # --- Кэш уроков ---

    async def get_lesson_content(self, course_id: int, module_index: int, topic_index: int) -> Optional[LessonContentRecord]:
        doc = self._doc("lessons", lesson_doc_id(course_id, module_index, topic_index))
        return LessonContentRecord.model_validate(doc) if doc else None

    async def save_lesson_content(self, lesson: LessonContentRecord) -> LessonContentRecord:
        doc_id = lesson_doc_id(lesson.course_id, lesson.module_index, lesson.topic_index)
        async with self._lock:
            existing = self.collections["lessons"].setdefault(doc_id, lesson.model_dump())
            return LessonContentRecord.model_validate(copy.deepcopy(existing))

    async def ping(self) -> bool:
        return True
