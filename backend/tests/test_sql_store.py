from datetime import date, datetime, timedelta, timezone

import pytest

from adaptlearn.core.database import engine_options
from adaptlearn.core.exceptions import ConflictIgnoredError, ValidationError
from adaptlearn.core.schemas.records import (
    LessonCompletionRecord,
    LessonContentRecord,
    PendingAssessmentRecord,
    ProgressCounters,
)
from adaptlearn.services.progress_engine import CourseProgressEngine

from conftest import EXIT_ANSWERS, FixedClock, syllabus_documents


@pytest.fixture
async def sql_user(sql_store):
    return await sql_store.create_user("Ada", "Ada@Example.com", "hash")


@pytest.fixture
async def sql_course(sql_store, sql_user):
    return await sql_store.create_course(sql_user.id, "SQL", "Beginner", syllabus_documents())


class TestUsers:

    async def test_email_lookup_is_case_insensitive(self, sql_store, sql_user):
        assert sql_user.email == "ada@example.com"
        found = await sql_store.get_user_by_email("ADA@example.COM")
        assert found.id == sql_user.id
        assert found.total_xp == 0 and found.last_lesson_date is None

    async def test_duplicate_email(self, sql_store, sql_user):
        with pytest.raises(ValidationError):
            await sql_store.create_user("Other", "ada@example.com", "hash")
        # Сессия пригодна после отката
        assert await sql_store.ping()


class TestCourses:

    async def test_ownership(self, sql_store, sql_user, sql_course):
        other = await sql_store.create_user("Bob", "bob@example.com", "hash")
        assert await sql_store.get_course(sql_course.id, other.id) is None
        stored = await sql_store.get_course(sql_course.id, sql_user.id)
        assert stored.module_count == 6
        assert stored.syllabus[0]["exit_quiz"][0]["correctIndex"] == EXIT_ANSWERS[0]

    async def test_advance_is_compare_and_swap(self, sql_store, sql_user, sql_course):
        assert await sql_store.advance_course(sql_course.id, 0, 1, 17)
        assert not await sql_store.advance_course(sql_course.id, 0, 1, 17)
        stored = await sql_store.get_course(sql_course.id, sql_user.id)
        assert (stored.completed_modules, stored.progress) == (1, 17)


class TestLessonCompletions:

    def completion(self, user, course, topic_index=0, xp=100):
        return LessonCompletionRecord(
            user_id=user.id, course_id=course.id, module_index=0, topic_index=topic_index, xp_earned=xp
        )

    async def test_records_completion_and_counters(self, sql_store, sql_user, sql_course):
        updated = ProgressCounters(total_xp=100, streak_days=1, last_lesson_date=date(2026, 3, 10))
        assert await sql_store.record_lesson_completion(self.completion(sql_user, sql_course), ProgressCounters(), updated)

        user = await sql_store.get_user(sql_user.id)
        assert user.counters == updated
        assert await sql_store.get_lesson_completion(sql_user.id, sql_course.id, 0, 0) is not None

    async def test_duplicate_key_raises_conflict_ignored(self, sql_store, sql_user, sql_course):
        updated = ProgressCounters(total_xp=100, streak_days=1, last_lesson_date=date(2026, 3, 10))
        await sql_store.record_lesson_completion(self.completion(sql_user, sql_course), ProgressCounters(), updated)

        with pytest.raises(ConflictIgnoredError):
            await sql_store.record_lesson_completion(
                self.completion(sql_user, sql_course),
                updated,
                ProgressCounters(total_xp=200, streak_days=1, last_lesson_date=date(2026, 3, 10)),
            )
        assert (await sql_store.get_user(sql_user.id)).total_xp == 100

    async def test_stale_counters_roll_back_insert(self, sql_store, sql_user, sql_course):
        stale = ProgressCounters(total_xp=50, streak_days=0)
        updated = ProgressCounters(total_xp=150, streak_days=1, last_lesson_date=date(2026, 3, 10))
        assert not await sql_store.record_lesson_completion(self.completion(sql_user, sql_course), stale, updated)

        assert await sql_store.get_lesson_completion(sql_user.id, sql_course.id, 0, 0) is None
        assert (await sql_store.get_user(sql_user.id)).total_xp == 0

    async def test_engine_on_sql_store(self, sql_store, sql_user, sql_course):
        engine = CourseProgressEngine(sql_store, today=FixedClock(date(2026, 3, 10)))
        first = await engine.complete_lesson(sql_user.id, sql_course.id, 0, 0)
        replay = await engine.complete_lesson(sql_user.id, sql_course.id, 0, 0)
        second_day = FixedClock(date(2026, 3, 11))
        engine.today = second_day
        next_day = await engine.complete_lesson(sql_user.id, sql_course.id, 0, 1)

        assert first.total_xp == 100
        assert replay.already_completed and replay.total_xp == 100
        assert next_day.total_xp == 200 and next_day.streak_days == 2

        verified = await engine.verify_module(sql_user.id, sql_course.id, 0, EXIT_ANSWERS)
        assert verified.completed_modules == 1


class TestPendingAndCache:

    async def test_pending_assessment_roundtrip(self, sql_store, sql_user):
        created = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
        pending = PendingAssessmentRecord(
            id="abc",
            user_id=sql_user.id,
            topic="SQL",
            quiz=[{"question": "q"}],
            created_at=created,
            expires_at=created + timedelta(minutes=30),
        )
        await sql_store.save_pending_assessment(pending)

        stored = await sql_store.get_pending_assessment("abc")
        assert stored.expires_at == pending.expires_at
        assert not stored.is_expired(created + timedelta(minutes=29))
        assert stored.is_expired(created + timedelta(minutes=30))

        await sql_store.delete_pending_assessment("abc")
        assert await sql_store.get_pending_assessment("abc") is None

    async def test_claim_pending_assessment_once(self, sql_store, sql_user):
        created = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
        await sql_store.save_pending_assessment(PendingAssessmentRecord(
            id="claim-me",
            user_id=sql_user.id,
            topic="SQL",
            quiz=[],
            created_at=created,
            expires_at=created + timedelta(minutes=30),
        ))
        fields = dict(
            topic="SQL",
            score=3,
            feedback_text="ok",
            weak_topics=["Joins"],
            analysis=[],
            level="Intermediate",
            syllabus=syllabus_documents(),
        )

        # Чужой пользователь диагностику не забирает
        assert await sql_store.claim_pending_assessment("claim-me", sql_user.id + 1, **fields) is None

        assessment, course = await sql_store.claim_pending_assessment("claim-me", sql_user.id, **fields)
        assert assessment.score == 3
        assert course.level == "Intermediate" and course.completed_modules == 0
        assert await sql_store.get_pending_assessment("claim-me") is None

        assert await sql_store.claim_pending_assessment("claim-me", sql_user.id, **fields) is None
        assert len(await sql_store.list_courses(sql_user.id)) == 1
        assert len(await sql_store.list_assessments(sql_user.id)) == 1

    async def test_lesson_cache_keeps_first_version(self, sql_store, sql_course):
        first = LessonContentRecord(course_id=sql_course.id, module_index=0, topic_index=0, title="T", content_md="one")
        second = first.model_copy(update={"content_md": "two"})
        await sql_store.save_lesson_content(first)
        kept = await sql_store.save_lesson_content(second)
        assert kept.content_md == "one"

    async def test_assessments_newest_first(self, sql_store, sql_user):
        await sql_store.create_assessment(sql_user.id, "A", 1, "", [], [])
        await sql_store.create_assessment(sql_user.id, "B", 4, "", ["x"], [{"index": 0}])
        listed = await sql_store.list_assessments(sql_user.id, limit=1)
        assert [a.topic for a in listed] == ["B"]


@pytest.mark.parametrize("url, expected", [
    ("sqlite+aiosqlite:///./dev.db", {}),
    ("postgresql+asyncpg://u:p@db:5432/adaptlearn", {"pool_size": 3, "max_overflow": 4, "pool_pre_ping": True}),
])
def test_engine_options(url, expected):
    assert engine_options(url, pool_size=3, max_overflow=4) == expected
