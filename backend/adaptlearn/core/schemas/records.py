# adaptlearn/core/schemas/records.py
"""Записи, которыми обмениваются хранилища и сервисы"""
from pydantic import BaseModel, ConfigDict, field_validator
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite возвращает наивные datetime - считаем их UTC"""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class ProgressCounters(BaseModel):
    """Снимок геймификационных полей пользователя"""
    total_xp: int = 0
    streak_days: int = 0
    last_lesson_date: Optional[date] = None

    model_config = ConfigDict(frozen=True)


class UserRecord(BaseModel):
    id: int
    name: str
    email: str
    password_hash: str
    role: str = "user"
    total_xp: int = 0
    streak_days: int = 0
    last_lesson_date: Optional[date] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def counters(self) -> ProgressCounters:
        return ProgressCounters(
            total_xp=self.total_xp,
            streak_days=self.streak_days,
            last_lesson_date=self.last_lesson_date,
        )


class CourseRecord(BaseModel):
    id: int
    user_id: int
    topic: str
    level: str
    syllabus: List[Dict[str, Any]]
    completed_modules: int = 0
    progress: int = 0
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def module_count(self) -> int:
        return len(self.syllabus)


class AssessmentRecord(BaseModel):
    id: int
    user_id: int
    topic: str
    score: int
    feedback_text: Optional[str] = None
    weak_topics: List[str] = []
    analysis: List[Dict[str, Any]] = []
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator("weak_topics", "analysis", mode="before")
    @classmethod
    def none_as_empty(cls, v):
        return [] if v is None else v


class LessonCompletionRecord(BaseModel):
    user_id: int
    course_id: int
    module_index: int
    topic_index: int
    xp_earned: int
    completed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class LessonContentRecord(BaseModel):
    course_id: int
    module_index: int
    topic_index: int
    title: str
    content_md: str

    model_config = ConfigDict(from_attributes=True)


class PendingAssessmentRecord(BaseModel):
    id: str
    user_id: int
    topic: str
    quiz: List[Dict[str, Any]]
    created_at: datetime
    expires_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_validator("created_at", "expires_at")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        return as_utc(v)

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at
