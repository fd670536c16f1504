# adaptlearn/services/progress_engine.py
"""
Движок прогресса по курсу.

Модули открываются строго по порядку: модуль i доступен только при
completed_modules == i, пройденные (i < completed_modules) повторно
подтверждаются без изменений. Счётчики обновляются через compare-and-swap
в хранилище, поэтому параллельные запросы не могут засчитать модуль или
урок дважды.
"""
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Sequence
import logging
import math

from adaptlearn.core.exceptions import (
    ConflictError,
    ConflictIgnoredError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from adaptlearn.core.schemas.learning import (
    AssessmentView,
    CourseDetail,
    CourseSummary,
    DashboardResponse,
    ExitQuizQuestionView,
    LessonCompletionResult,
    ModuleState,
    ModuleVerificationResult,
    ModuleView,
    TopicView,
    UserProgressView,
)
from adaptlearn.core.schemas.records import CourseRecord, LessonCompletionRecord
from adaptlearn.repositories.base import LearningStore
from .gamification import reward_lesson, utc_today
from .grading import exit_quiz_for_module, grade_exit_quiz

logger = logging.getLogger(__name__)


def compute_progress(completed_modules: int, module_count: int) -> int:
    """round(completed / count * 100) с округлением половины вверх"""
    if module_count <= 0:
        return 0
    return int(math.floor(completed_modules * 100 / module_count + 0.5))


def module_state(index: int, completed_modules: int) -> ModuleState:
    if index < completed_modules:
        return ModuleState.PASSED
    if index == completed_modules:
        return ModuleState.CURRENT
    return ModuleState.LOCKED


def course_module(course: CourseRecord, module_index: int) -> Dict[str, Any]:
    if not 0 <= module_index < course.module_count:
        raise NotFoundError("Module not found")
    module = course.syllabus[module_index]
    return module if isinstance(module, dict) else {}


async def get_owned_course(store: LearningStore, user_id: int, course_id: int) -> CourseRecord:
    """Чужой и несуществующий курс неотличимы: оба дают 404"""
    course = await store.get_course(course_id, user_id)
    if course is None:
        raise NotFoundError("Course not found")
    return course


def resolve_topic(course: CourseRecord, module_index: int, topic_index: int) -> str:
    """Название темы урока или NotFoundError"""
    if not 0 <= module_index < course.module_count:
        raise NotFoundError("Topic not found")
    topics = course_module(course, module_index).get("topics")
    if not isinstance(topics, list) or not 0 <= topic_index < len(topics):
        raise NotFoundError("Topic not found")
    topic = topics[topic_index]
    if not isinstance(topic, str) or not topic.strip():
        raise NotFoundError("Topic not found")
    return topic


def summarize_course(course: CourseRecord) -> CourseSummary:
    return CourseSummary(
        id=course.id,
        topic=course.topic,
        level=course.level,
        progress=course.progress,
        completed_modules=course.completed_modules,
        module_count=course.module_count,
        created_at=course.created_at,
    )


class CourseProgressEngine:
    def __init__(
        self,
        store: LearningStore,
        today: Callable[[], date] = utc_today,
        default_xp: int = 100,
        max_xp: int = 1000,
        cas_retries: int = 5,
        recent_assessments: int = 10,
    ):
        self.store = store
        self.today = today
        self.default_xp = default_xp
        self.max_xp = max_xp
        self.cas_retries = cas_retries
        self.recent_assessments = recent_assessments

    async def get_owned_course(self, user_id: int, course_id: int) -> CourseRecord:
        return await get_owned_course(self.store, user_id, course_id)

    # --- Выходные тесты модулей ---

    async def verify_module(
        self,
        user_id: int,
        course_id: int,
        module_index: int,
        answers: Sequence[Optional[int]],
    ) -> ModuleVerificationResult:
        course = await self.get_owned_course(user_id, course_id)
        module = course_module(course, module_index)

        if module_index < course.completed_modules:
            return self._already_unlocked(course, module_index)
        if module_index != course.completed_modules:
            logger.info(
                f"User {user_id} tried to skip ahead to module {module_index} "
                f"of course {course_id} (unlocked: {course.completed_modules})"
            )
            raise ForbiddenError("Module is locked. Pass the previous modules first.")

        grade = grade_exit_quiz(exit_quiz_for_module(module), answers)
        if not grade.passed:
            return ModuleVerificationResult(
                passed=False,
                module_index=module_index,
                correct_count=grade.correct_count,
                total=grade.total,
                feedback=grade.feedback,
                mistakes=grade.mistakes,
                completed_modules=course.completed_modules,
                progress=course.progress,
            )

        completed = min(course.module_count, course.completed_modules + 1)
        progress = compute_progress(completed, course.module_count)
        advanced = await self.store.advance_course(course.id, course.completed_modules, completed, progress)

        if not advanced:
            # Параллельный запрос уже засчитал этот модуль
            fresh = await self.get_owned_course(user_id, course_id)
            logger.warning(f"Module {module_index} of course {course_id} was unlocked by a concurrent request")
            return self._already_unlocked(fresh, module_index)

        logger.info(f"User {user_id} unlocked module {module_index} of course {course_id} ({progress}%)")
        return ModuleVerificationResult(
            passed=True,
            module_index=module_index,
            correct_count=grade.correct_count,
            total=grade.total,
            feedback=grade.feedback,
            mistakes=grade.mistakes,
            completed_modules=completed,
            progress=progress,
        )

    @staticmethod
    def _already_unlocked(course: CourseRecord, module_index: int) -> ModuleVerificationResult:
        return ModuleVerificationResult(
            passed=True,
            already_unlocked=True,
            module_index=module_index,
            feedback="Module already unlocked.",
            completed_modules=course.completed_modules,
            progress=course.progress,
        )

    # --- XP и серии ---

    async def complete_lesson(
        self,
        user_id: int,
        course_id: int,
        module_index: int,
        topic_index: int,
        xp_earned: Optional[int] = None,
    ) -> LessonCompletionResult:
        course = await self.get_owned_course(user_id, course_id)
        resolve_topic(course, module_index, topic_index)

        xp = self.default_xp if xp_earned is None else xp_earned
        if isinstance(xp, bool) or not isinstance(xp, int) or not 0 <= xp <= self.max_xp:
            raise ValidationError(f"xp_earned must be an integer between 0 and {self.max_xp}")

        existing = await self.store.get_lesson_completion(user_id, course_id, module_index, topic_index)
        if existing is not None:
            return await self._replay(user_id, existing)

        completion = LessonCompletionRecord(
            user_id=user_id,
            course_id=course_id,
            module_index=module_index,
            topic_index=topic_index,
            xp_earned=xp,
        )
        for attempt in range(1, self.cas_retries + 1):
            user = await self.store.get_user(user_id)
            if user is None:
                raise NotFoundError("User not found")

            updated = reward_lesson(user.counters, xp, self.today())
            try:
                applied = await self.store.record_lesson_completion(completion, user.counters, updated)
            except ConflictIgnoredError:
                # Параллельный запрос успел вставить ту же запись
                existing = await self.store.get_lesson_completion(user_id, course_id, module_index, topic_index)
                return await self._replay(user_id, existing or completion)

            if applied:
                logger.info(
                    f"User {user_id} earned {xp} XP for lesson {module_index}/{topic_index} "
                    f"of course {course_id} (total {updated.total_xp}, streak {updated.streak_days})"
                )
                return LessonCompletionResult(
                    xp_earned=xp,
                    total_xp=updated.total_xp,
                    streak_days=updated.streak_days,
                    last_lesson_date=updated.last_lesson_date,
                )
            logger.warning(f"XP update for user {user_id} lost a race, retrying ({attempt}/{self.cas_retries})")

        raise ConflictError("Could not record lesson completion, please retry")

    async def _replay(self, user_id: int, completion: LessonCompletionRecord) -> LessonCompletionResult:
        logger.info(
            f"Lesson {completion.module_index}/{completion.topic_index} of course {completion.course_id} "
            f"already completed by user {user_id}, no XP awarded"
        )
        user = await self.store.get_user(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return LessonCompletionResult(
            xp_earned=completion.xp_earned,
            already_completed=True,
            total_xp=user.total_xp,
            streak_days=user.streak_days,
            last_lesson_date=user.last_lesson_date,
        )

    # --- Представления ---

    async def list_courses(self, user_id: int) -> List[CourseSummary]:
        return [summarize_course(c) for c in await self.store.list_courses(user_id)]

    async def course_detail(self, user_id: int, course_id: int) -> CourseDetail:
        course = await self.get_owned_course(user_id, course_id)
        completions = await self.store.list_lesson_completions(user_id, course_id)
        done = {(c.module_index, c.topic_index) for c in completions}

        modules: List[ModuleView] = []
        for index, module in enumerate(course.syllabus):
            module = module if isinstance(module, dict) else {}
            topics = module.get("topics") if isinstance(module.get("topics"), list) else []
            modules.append(ModuleView(
                index=index,
                title=str(module.get("title") or f"Module {index + 1}"),
                description=str(module.get("description") or ""),
                layout=module.get("layout") if isinstance(module.get("layout"), str) else None,
                state=module_state(index, course.completed_modules),
                topics=[
                    TopicView(index=t_idx, title=str(title), completed=(index, t_idx) in done)
                    for t_idx, title in enumerate(topics)
                ],
                exit_quiz=[
                    ExitQuizQuestionView(question=q.question, options=list(q.options))
                    for q in exit_quiz_for_module(module)
                ],
            ))

        return CourseDetail(**summarize_course(course).model_dump(), modules=modules)

    async def dashboard(self, user_id: int) -> DashboardResponse:
        user = await self.store.get_user(user_id)
        if user is None:
            raise NotFoundError("User not found")
        courses = await self.store.list_courses(user_id)
        assessments = await self.store.list_assessments(user_id, limit=self.recent_assessments)
        return DashboardResponse(
            user=UserProgressView.model_validate(user),
            courses=[summarize_course(c) for c in courses],
            assessments=[AssessmentView.model_validate(a) for a in assessments],
        )
