# adaptlearn/services/assessment_service.py
"""
Диагностика: генерация теста, проверка ответов и создание курса.

Сгенерированный тест хранится как ожидающая диагностика с ограниченным
сроком жизни; правильные ответы клиенту не отдаются.
"""
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Sequence
import logging
import secrets

from adaptlearn.core.exceptions import NotFoundError, ValidationError
from adaptlearn.core.schemas.content import OPTIONS_PER_QUESTION, QuizQuestion
from adaptlearn.core.schemas.learning import (
    AssessmentOutcome,
    AssessmentView,
    DiagnosticQuestionView,
    PendingAssessmentView,
    QuestionAnalysis,
)
from adaptlearn.core.schemas.records import PendingAssessmentRecord
from adaptlearn.repositories.base import LearningStore
from .content_generator import ContentGenerator
from .content_validation import parse_diagnostic_quiz, parse_grading
from .syllabus import build_syllabus

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def normalize_answer(value) -> Optional[int]:
    """Индекс варианта или None для пропущенного/некорректного ответа"""
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value if 0 <= value < OPTIONS_PER_QUESTION else None


def analyze_answers(quiz: List[QuizQuestion], answers: Sequence[Optional[int]]) -> List[QuestionAnalysis]:
    analysis = []
    for idx, question in enumerate(quiz):
        selected = normalize_answer(answers[idx]) if idx < len(answers) else None
        analysis.append(QuestionAnalysis(
            index=idx,
            selected=selected,
            correct_index=question.correct_index,
            correct=selected == question.correct_index,
            weak_topic=question.weak_topic,
        ))
    return analysis


class AssessmentService:
    def __init__(
        self,
        store: LearningStore,
        generator: ContentGenerator,
        ttl: timedelta = timedelta(minutes=30),
        now: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.generator = generator
        self.ttl = ttl
        self.now = now

    async def start_assessment(self, user_id: int, topic: str) -> PendingAssessmentView:
        quiz = parse_diagnostic_quiz(await self.generator.generate_quiz(topic))

        created_at = self.now()
        pending = PendingAssessmentRecord(
            id=secrets.token_urlsafe(24),
            user_id=user_id,
            topic=topic,
            quiz=[q.model_dump(by_alias=True) for q in quiz],
            created_at=created_at,
            expires_at=created_at + self.ttl,
        )
        await self.store.save_pending_assessment(pending)
        logger.info(f"Started diagnostic '{topic}' for user {user_id}")

        return PendingAssessmentView(
            id=pending.id,
            topic=topic,
            questions=[
                DiagnosticQuestionView(index=idx, question=q.question, options=list(q.options))
                for idx, q in enumerate(quiz)
            ],
            expires_at=pending.expires_at,
        )

    async def submit_assessment(
        self,
        user_id: int,
        pending_id: str,
        answers: Sequence[Optional[int]],
    ) -> AssessmentOutcome:
        pending = await self.store.get_pending_assessment(pending_id)
        if pending is None or pending.user_id != user_id:
            raise NotFoundError("Assessment not found")
        if pending.is_expired(self.now()):
            await self.store.delete_pending_assessment(pending_id)
            raise ValidationError("Assessment expired, please start a new one")

        quiz = parse_diagnostic_quiz(pending.quiz)
        if len(answers) != len(quiz):
            raise ValidationError(f"Expected {len(quiz)} answers, got {len(answers)}")

        normalized = [normalize_answer(a) for a in answers]
        grading = parse_grading(await self.generator.grade_quiz(pending.topic, pending.quiz, normalized))

        # Генерация силлабуса до записи в хранилище: при ошибке ничего не сохраняется
        syllabus = await build_syllabus(self.generator, pending.topic, grading.score, grading.weak_topics)

        analysis = analyze_answers(quiz, normalized)
        claimed = await self.store.claim_pending_assessment(
            pending_id,
            user_id=user_id,
            topic=pending.topic,
            score=grading.score,
            feedback_text=grading.feedback_text,
            weak_topics=grading.weak_topics,
            analysis=[a.model_dump() for a in analysis],
            level=syllabus.level.value,
            syllabus=[m.to_document() for m in syllabus.modules],
        )
        if claimed is None:
            # Параллельный запрос с тем же id успел первым
            raise NotFoundError("Assessment not found")
        assessment, course = claimed

        logger.info(
            f"User {user_id} scored {grading.score}/5 on '{pending.topic}', "
            f"created course {course.id} ({course.level})"
        )
        return AssessmentOutcome(
            course_id=course.id,
            level=course.level,
            assessment=AssessmentView.model_validate(assessment),
        )

    async def list_assessments(self, user_id: int, limit: Optional[int] = None) -> List[AssessmentView]:
        records = await self.store.list_assessments(user_id, limit=limit)
        return [AssessmentView.model_validate(r) for r in records]
