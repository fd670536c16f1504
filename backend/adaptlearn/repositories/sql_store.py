# adaptlearn/repositories/sql_store.py
from typing import Any, Dict, List, Optional, Tuple
import logging
from sqlalchemy import delete, func, select, text, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

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
from adaptlearn.models import (
    Assessment,
    Course,
    LessonCompletion,
    LessonContent,
    PendingAssessment,
    User,
)
from .base import LearningStore

logger = logging.getLogger(__name__)


class SqlLearningStore(LearningStore):
    """
    Реляционное хранилище на SQLAlchemy (PostgreSQL в проде, SQLite в тестах).

    Каждый метод завершает свою транзакцию сам, поэтому между вызовами
    (например, пока ждём ответа генератора) транзакция не висит открытой.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _one(self, stmt):
        result = await self.session.execute(stmt.execution_options(populate_existing=True))
        obj = result.scalar_one_or_none()
        await self.session.commit()
        return obj

    async def _all(self, stmt):
        result = await self.session.execute(stmt.execution_options(populate_existing=True))
        objs = result.scalars().all()
        await self.session.commit()
        return objs

    # --- Пользователи ---

    async def get_user(self, user_id: int) -> Optional[UserRecord]:
        """Получить пользователя по ID"""
        user = await self._one(select(User).where(User.id == user_id))
        return UserRecord.model_validate(user) if user else None

    async def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        """Получить пользователя по email"""
        user = await self._one(select(User).where(func.lower(User.email) == email.lower()))
        return UserRecord.model_validate(user) if user else None

    async def create_user(self, name: str, email: str, password_hash: str, role: str = "user") -> UserRecord:
        """Создать нового пользователя"""
        db_user = User(
            name=name,
            email=email.lower(),
            password_hash=password_hash,
            role=role,
            total_xp=0,
            streak_days=0,
        )
        self.session.add(db_user)
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise ValidationError("User with this email already exists")
        await self.session.refresh(db_user)
        return UserRecord.model_validate(db_user)

    # --- Курсы ---

    async def get_course(self, course_id: int, user_id: int) -> Optional[CourseRecord]:
        # Владение и существование проверяются одним запросом
        course = await self._one(
            select(Course).where(Course.id == course_id, Course.user_id == user_id)
        )
        return CourseRecord.model_validate(course) if course else None

    async def list_courses(self, user_id: int) -> List[CourseRecord]:
        courses = await self._all(
            select(Course)
            .where(Course.user_id == user_id)
            .order_by(Course.created_at.desc(), Course.id.desc())
        )
        return [CourseRecord.model_validate(c) for c in courses]

    async def create_course(self, user_id: int, topic: str, level: str, syllabus: List[Dict[str, Any]]) -> CourseRecord:
        course = Course(
            user_id=user_id,
            topic=topic,
            level=level,
            syllabus=syllabus,
            completed_modules=0,
            progress=0,
        )
        self.session.add(course)
        await self.session.commit()
        await self.session.refresh(course)
        return CourseRecord.model_validate(course)

    async def advance_course(self, course_id: int, expected_completed: int, completed_modules: int, progress: int) -> bool:
        stmt = (
            update(Course)
            .where(Course.id == course_id, Course.completed_modules == expected_completed)
            .values(completed_modules=completed_modules, progress=progress)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        await self.session.commit()
        return result.rowcount == 1

    # --- Диагностика ---

    async def create_assessment(
        self,
        user_id: int,
        topic: str,
        score: int,
        feedback_text: str,
        weak_topics: List[str],
        analysis: List[Dict[str, Any]],
    ) -> AssessmentRecord:
        assessment = Assessment(
            user_id=user_id,
            topic=topic,
            score=score,
            feedback_text=feedback_text,
            weak_topics=weak_topics,
            analysis=analysis,
        )
        self.session.add(assessment)
        await self.session.commit()
        await self.session.refresh(assessment)
        return AssessmentRecord.model_validate(assessment)

    async def list_assessments(self, user_id: int, limit: Optional[int] = None) -> List[AssessmentRecord]:
        stmt = (
            select(Assessment)
            .where(Assessment.user_id == user_id)
            .order_by(Assessment.created_at.desc(), Assessment.id.desc())
        )
        if limit:
            stmt = stmt.limit(limit)
        return [AssessmentRecord.model_validate(a) for a in await self._all(stmt)]

    async def save_pending_assessment(self, pending: PendingAssessmentRecord) -> None:
        self.session.add(PendingAssessment(**pending.model_dump()))
        await self.session.commit()

    async def get_pending_assessment(self, pending_id: str) -> Optional[PendingAssessmentRecord]:
        pending = await self._one(select(PendingAssessment).where(PendingAssessment.id == pending_id))
        return PendingAssessmentRecord.model_validate(pending) if pending else None

    async def delete_pending_assessment(self, pending_id: str) -> None:
        await self.session.execute(
            delete(PendingAssessment)
            .where(PendingAssessment.id == pending_id)
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()

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
        # DELETE блокирует строку: второй такой же запрос дождётся коммита и удалит 0 строк
        result = await self.session.execute(
            delete(PendingAssessment)
            .where(PendingAssessment.id == pending_id, PendingAssessment.user_id == user_id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await self.session.rollback()
            logger.info(f"Pending assessment {pending_id} already claimed")
            return None

        assessment = Assessment(
            user_id=user_id,
            topic=topic,
            score=score,
            feedback_text=feedback_text,
            weak_topics=weak_topics,
            analysis=analysis,
        )
        course = Course(
            user_id=user_id,
            topic=topic,
            level=level,
            syllabus=syllabus,
            completed_modules=0,
            progress=0,
        )
        self.session.add_all([assessment, course])
        try:
            await self.session.commit()
        except IntegrityError:
            # Откат возвращает и удалённую диагностику
            await self.session.rollback()
            raise ValidationError("Assessment owner does not exist")
        await self.session.refresh(assessment)
        await self.session.refresh(course)
        return AssessmentRecord.model_validate(assessment), CourseRecord.model_validate(course)

    # --- Завершение уроков ---

    async def get_lesson_completion(
        self, user_id: int, course_id: int, module_index: int, topic_index: int
    ) -> Optional[LessonCompletionRecord]:
        completion = await self._one(
            select(LessonCompletion).where(
                LessonCompletion.user_id == user_id,
                LessonCompletion.course_id == course_id,
                LessonCompletion.module_index == module_index,
                LessonCompletion.topic_index == topic_index,
            )
        )
        return LessonCompletionRecord.model_validate(completion) if completion else None

    async def list_lesson_completions(self, user_id: int, course_id: int) -> List[LessonCompletionRecord]:
        completions = await self._all(
            select(LessonCompletion).where(
                LessonCompletion.user_id == user_id,
                LessonCompletion.course_id == course_id,
            )
        )
        return [LessonCompletionRecord.model_validate(c) for c in completions]

    async def record_lesson_completion(
        self,
        completion: LessonCompletionRecord,
        expected: ProgressCounters,
        updated: ProgressCounters,
    ) -> bool:
        self.session.add(LessonCompletion(**completion.model_dump(exclude={"completed_at"})))
        try:
            # Уникальный ключ (user, course, module, topic) - настоящая защита от двойного XP
            await self.session.flush()
        except IntegrityError:
            await self.session.rollback()
            raise ConflictIgnoredError("Lesson already completed")

        if expected.last_lesson_date is None:
            same_date = User.last_lesson_date.is_(None)
        else:
            same_date = User.last_lesson_date == expected.last_lesson_date

        stmt = (
            update(User)
            .where(
                User.id == completion.user_id,
                User.total_xp == expected.total_xp,
                User.streak_days == expected.streak_days,
                same_date,
            )
            .values(
                total_xp=updated.total_xp,
                streak_days=updated.streak_days,
                last_lesson_date=updated.last_lesson_date,
            )
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.session.execute(stmt)
            if result.rowcount != 1:
                # Счётчики изменил параллельный запрос - откатываем и вставку
                await self.session.rollback()
                return False
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        return True

    # --- Кэш уроков ---

    async def get_lesson_content(self, course_id: int, module_index: int, topic_index: int) -> Optional[LessonContentRecord]:
        lesson = await self._one(
            select(LessonContent).where(
                LessonContent.course_id == course_id,
                LessonContent.module_index == module_index,
                LessonContent.topic_index == topic_index,
            )
        )
        return LessonContentRecord.model_validate(lesson) if lesson else None

    async def save_lesson_content(self, lesson: LessonContentRecord) -> LessonContentRecord:
        self.session.add(LessonContent(**lesson.model_dump()))
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            logger.info(
                f"Lesson {lesson.course_id}/{lesson.module_index}/{lesson.topic_index} "
                f"was cached by a concurrent request"
            )
            existing = await self.get_lesson_content(lesson.course_id, lesson.module_index, lesson.topic_index)
            if existing is None:
                raise
            return existing
        return lesson

    async def ping(self) -> bool:
        result = await self.session.execute(text("SELECT 1"))
        value = result.scalar()
        await self.session.commit()
        return value == 1
