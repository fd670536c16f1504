# adaptlearn/repositories/base.py
"""
Единый интерфейс хранилища. Движок прогресса работает только через него
и не знает, что под ним: реляционная БД или документное хранилище.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

from adaptlearn.core.schemas.records import (
    AssessmentRecord,
    CourseRecord,
    LessonCompletionRecord,
    LessonContentRecord,
    PendingAssessmentRecord,
    ProgressCounters,
    UserRecord,
)


class LearningStore(ABC):

    # --- Пользователи ---

    @abstractmethod
    async def get_user(self, user_id: int) -> Optional[UserRecord]:
        ...

    @abstractmethod
    async def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        """Поиск по уникальному ключу (email без учёта регистра)"""

    @abstractmethod
    async def create_user(self, name: str, email: str, password_hash: str, role: str = "user") -> UserRecord:
        """Создать пользователя. ValidationError, если email уже занят."""

    # --- Курсы ---

    @abstractmethod
    async def get_course(self, course_id: int, user_id: int) -> Optional[CourseRecord]:
        """Курс по id, только если он принадлежит user_id"""

    @abstractmethod
    async def list_courses(self, user_id: int) -> List[CourseRecord]:
        """Курсы пользователя, новые первыми"""

    @abstractmethod
    async def create_course(self, user_id: int, topic: str, level: str, syllabus: List[Dict[str, Any]]) -> CourseRecord:
        ...

    @abstractmethod
    async def advance_course(self, course_id: int, expected_completed: int, completed_modules: int, progress: int) -> bool:
        """
        Compare-and-swap по completed_modules: обновляет курс, только если
        в хранилище всё ещё expected_completed. Возвращает True при успехе.
        """

    # --- Диагностика ---

    @abstractmethod
    async def create_assessment(
        self,
        user_id: int,
        topic: str,
        score: int,
        feedback_text: str,
        weak_topics: List[str],
        analysis: List[Dict[str, Any]],
    ) -> AssessmentRecord:
        ...

    @abstractmethod
    async def list_assessments(self, user_id: int, limit: Optional[int] = None) -> List[AssessmentRecord]:
        """История диагностик, новые первыми"""

    @abstractmethod
    async def save_pending_assessment(self, pending: PendingAssessmentRecord) -> None:
        ...

    @abstractmethod
    async def get_pending_assessment(self, pending_id: str) -> Optional[PendingAssessmentRecord]:
        ...

    @abstractmethod
    async def delete_pending_assessment(self, pending_id: str) -> None:
        ...

    @abstractmethod
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
        """
        Атомарно забирает ожидающую диагностику пользователя и сохраняет
        по ней результат и курс одной операцией.
        Возвращает None, если диагностику уже забрали (или её нет), и тогда
        ничего не записывается.
        """

    # --- Завершение уроков ---

    @abstractmethod
    async def get_lesson_completion(
        self, user_id: int, course_id: int, module_index: int, topic_index: int
    ) -> Optional[LessonCompletionRecord]:
        ...

    @abstractmethod
    async def list_lesson_completions(self, user_id: int, course_id: int) -> List[LessonCompletionRecord]:
        ...

    @abstractmethod
    async def record_lesson_completion(
        self,
        completion: LessonCompletionRecord,
        expected: ProgressCounters,
        updated: ProgressCounters,
    ) -> bool:
        """
        В одной транзакции: вставить запись о завершении урока и обновить
        счётчики пользователя с expected на updated.

        - ConflictIgnoredError, если запись с таким ключом уже есть
          (ничего не изменено);
        - False, если счётчики пользователя уже не равны expected
          (ничего не изменено, вставка откатывается);
        - True, если применено всё.
        """

    # --- Кэш уроков ---

    @abstractmethod
    async def get_lesson_content(self, course_id: int, module_index: int, topic_index: int) -> Optional[LessonContentRecord]:
        ...

    @abstractmethod
    async def save_lesson_content(self, lesson: LessonContentRecord) -> LessonContentRecord:
        """Сохранить урок; при гонке вернуть уже сохранённый"""

    # --- Служебное ---

    @abstractmethod
    async def ping(self) -> bool:
        ...
