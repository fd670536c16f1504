# adaptlearn/core/schemas/learning.py
from pydantic import BaseModel, ConfigDict, Field, field_validator
from datetime import date, datetime
from typing import List, Optional
import enum


class ModuleState(str, enum.Enum):
    LOCKED = "locked"
    CURRENT = "current"
    PASSED = "passed"


# --- Выходной тест модуля ---

class QuizMistake(BaseModel):
    index: int
    question: str
    selected: Optional[int] = None
    correct_index: int
    review_topic: Optional[str] = None
    explanation: Optional[str] = None


class ExitQuizGrade(BaseModel):
    correct_count: int
    total: int
    passed: bool
    mistakes: List[QuizMistake] = []
    feedback: str


class VerifyModuleRequest(BaseModel):
    # None или -1 = вопрос без ответа
    answers: List[Optional[int]] = Field(..., max_length=20)


class ModuleVerificationResult(BaseModel):
    passed: bool
    already_unlocked: bool = False
    module_index: int
    correct_count: Optional[int] = None
    total: Optional[int] = None
    feedback: str
    mistakes: List[QuizMistake] = []
    completed_modules: int
    progress: int


# --- Уроки и XP ---

class CompleteLessonRequest(BaseModel):
    module_index: int = Field(..., ge=0)
    topic_index: int = Field(..., ge=0)
    xp_earned: Optional[int] = Field(None, description="XP за урок; по умолчанию из настроек")


class LessonCompletionResult(BaseModel):
    success: bool = True
    xp_earned: int
    already_completed: bool = False
    total_xp: int
    streak_days: int
    last_lesson_date: Optional[date] = None


class LessonResponse(BaseModel):
    course_id: int
    module_index: int
    topic_index: int
    title: str
    content: str


class TutorRequest(BaseModel):
    question: str = Field(..., max_length=2000)
    lesson_topic: str = Field("", max_length=300)
    lesson_text: str = Field("", max_length=20000)


class TutorResponse(BaseModel):
    answer: str


# --- Курсы ---

class CourseSummary(BaseModel):
    id: int
    topic: str
    level: str
    progress: int = 0
    completed_modules: int = 0
    module_count: int = 0
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ExitQuizQuestionView(BaseModel):
    """Вопрос выходного теста без правильного ответа"""
    question: str
    options: List[str]


class TopicView(BaseModel):
    index: int
    title: str
    completed: bool = False


class ModuleView(BaseModel):
    index: int
    title: str
    description: str = ""
    layout: Optional[str] = None
    state: ModuleState
    topics: List[TopicView] = []
    exit_quiz: List[ExitQuizQuestionView] = []


class CourseDetail(CourseSummary):
    modules: List[ModuleView] = []


# --- Диагностика ---

class StartAssessmentRequest(BaseModel):
    topic: str = Field(..., max_length=100)

    @field_validator("topic")
    @classmethod
    def topic_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Topic is required")
        return v


class DiagnosticQuestionView(BaseModel):
    index: int
    question: str
    options: List[str]


class PendingAssessmentView(BaseModel):
    id: str
    topic: str
    questions: List[DiagnosticQuestionView]
    expires_at: datetime


class SubmitAssessmentRequest(BaseModel):
    answers: List[Optional[int]] = Field(..., max_length=20)


class QuestionAnalysis(BaseModel):
    index: int
    selected: Optional[int] = None
    correct_index: int
    correct: bool
    weak_topic: Optional[str] = None


class AssessmentView(BaseModel):
    id: int
    topic: str
    score: int
    feedback_text: Optional[str] = None
    weak_topics: List[str] = []
    analysis: List[QuestionAnalysis] = []
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class AssessmentOutcome(BaseModel):
    course_id: int
    level: str
    assessment: AssessmentView


# --- Дашборд ---

class UserProgressView(BaseModel):
    id: int
    name: str
    email: str
    total_xp: int = 0
    streak_days: int = 0
    last_lesson_date: Optional[date] = None

    model_config = ConfigDict(from_attributes=True)


class DashboardResponse(BaseModel):
    user: UserProgressView
    courses: List[CourseSummary] = []
    assessments: List[AssessmentView] = []
