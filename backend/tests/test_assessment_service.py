from datetime import datetime, timedelta, timezone
import asyncio

import pytest

from adaptlearn.core.exceptions import GenerationError, NotFoundError, ValidationError
from adaptlearn.services.assessment_service import AssessmentService, analyze_answers
from adaptlearn.services.content_validation import parse_diagnostic_quiz

from conftest import FakeContentGenerator, make_diagnostic_quiz, make_syllabus_payload

CORRECT = [0, 1, 2, 3, 0]


class Clock:
    def __init__(self):
        self.now = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now


@pytest.fixture
def now():
    return Clock()


@pytest.fixture
def service(store, generator, now):
    return AssessmentService(store, generator, ttl=timedelta(minutes=30), now=now)


class TestStartAssessment:

    async def test_hides_correct_answers(self, service, user):
        pending = await service.start_assessment(user.id, "SQL")
        assert len(pending.questions) == 5
        assert "correct" not in str(pending.model_dump())
        assert pending.expires_at == datetime(2026, 3, 10, 12, 30, tzinfo=timezone.utc)

    async def test_malformed_quiz_is_not_stored(self, store, user, now):
        quiz = make_diagnostic_quiz(4)
        service = AssessmentService(store, FakeContentGenerator(quiz=quiz), now=now)
        with pytest.raises(GenerationError):
            await service.start_assessment(user.id, "SQL")
        assert store.collections["pending_assessments"] == {}


class TestSubmitAssessment:

    async def test_creates_assessment_and_course(self, service, store, generator, user):
        pending = await service.start_assessment(user.id, "SQL")
        outcome = await service.submit_assessment(user.id, pending.id, [0, 1, 0, None, 7])

        assert outcome.level == "Beginner"
        assert outcome.assessment.score == 2
        assert outcome.assessment.weak_topics == ["Joins"]
        assert [a.correct for a in outcome.assessment.analysis] == [True, True, False, False, False]
        assert outcome.assessment.analysis[4].selected is None
        assert generator.last_grade_answers == [0, 1, 0, None, None]

        course = await store.get_course(outcome.course_id, user.id)
        assert course.module_count == 6 and course.completed_modules == 0
        assert await store.get_pending_assessment(pending.id) is None

    async def test_pending_is_single_use(self, service, user):
        pending = await service.start_assessment(user.id, "SQL")
        await service.submit_assessment(user.id, pending.id, CORRECT)
        with pytest.raises(NotFoundError):
            await service.submit_assessment(user.id, pending.id, CORRECT)

    async def test_concurrent_submits_create_one_course(self, store, user, now):
        class SlowGrader(FakeContentGenerator):
            async def grade_quiz(self, topic, quiz, answers):
                await asyncio.sleep(0.05)
                return await super().grade_quiz(topic, quiz, answers)

        service = AssessmentService(store, SlowGrader(), now=now)
        pending = await service.start_assessment(user.id, "SQL")

        results = await asyncio.gather(
            *[service.submit_assessment(user.id, pending.id, CORRECT) for _ in range(2)],
            return_exceptions=True,
        )
        assert sum(isinstance(r, NotFoundError) for r in results) == 1
        assert len(await store.list_courses(user.id)) == 1
        assert len(await store.list_assessments(user.id)) == 1

    async def test_other_users_pending_is_not_found(self, service, user, other_user):
        pending = await service.start_assessment(user.id, "SQL")
        with pytest.raises(NotFoundError):
            await service.submit_assessment(other_user.id, pending.id, CORRECT)

    async def test_expired(self, service, store, user, now):
        pending = await service.start_assessment(user.id, "SQL")
        now.now += timedelta(minutes=31)
        with pytest.raises(ValidationError):
            await service.submit_assessment(user.id, pending.id, CORRECT)
        assert await store.get_pending_assessment(pending.id) is None

    async def test_answer_count_must_match(self, service, user):
        pending = await service.start_assessment(user.id, "SQL")
        with pytest.raises(ValidationError):
            await service.submit_assessment(user.id, pending.id, [0, 1])

    async def test_bad_syllabus_persists_nothing(self, store, user, now):
        generator = FakeContentGenerator(syllabus=make_syllabus_payload(modules=5))
        service = AssessmentService(store, generator, now=now)
        pending = await service.start_assessment(user.id, "SQL")

        with pytest.raises(GenerationError):
            await service.submit_assessment(user.id, pending.id, CORRECT)
        assert await store.list_courses(user.id) == []
        assert await store.list_assessments(user.id) == []
        # Тест можно отправить повторно
        assert await store.get_pending_assessment(pending.id) is not None

    async def test_grading_without_score_fails(self, store, user, now):
        service = AssessmentService(store, FakeContentGenerator(grading={"weak_topics": []}), now=now)
        pending = await service.start_assessment(user.id, "SQL")
        with pytest.raises(GenerationError):
            await service.submit_assessment(user.id, pending.id, CORRECT)

    async def test_history_newest_first(self, service, user):
        for topic in ("SQL", "Graphs"):
            pending = await service.start_assessment(user.id, topic)
            await service.submit_assessment(user.id, pending.id, CORRECT)
        history = await service.list_assessments(user.id)
        assert [a.topic for a in history] == ["Graphs", "SQL"]


def test_analyze_answers_handles_short_input():
    quiz = parse_diagnostic_quiz(make_diagnostic_quiz())
    analysis = analyze_answers(quiz, [0])
    assert analysis[0].correct
    assert all(not a.correct and a.selected is None for a in analysis[1:])
    assert analysis[2].weak_topic == "Subtopic 3"
