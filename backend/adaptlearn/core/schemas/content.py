# adaptlearn/core/schemas/content.py
"""
Схемы учебного контента: диагностический тест, модули силлабуса,
выходные тесты модулей. Всё, что приходит от генератора, проходит через
эти модели до того, как попасть в движок прогресса.
"""
from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, field_validator
from typing import Annotated, Any, List, Optional
import enum

OPTIONS_PER_QUESTION = 4
DIAGNOSTIC_QUESTIONS = 5
EXIT_QUIZ_QUESTIONS = 3
SYLLABUS_MODULES = 6
MAX_DIAGNOSTIC_SCORE = 5

Options = Annotated[List[StrictStr], Field(min_length=OPTIONS_PER_QUESTION, max_length=OPTIONS_PER_QUESTION)]
CorrectIndex = Annotated[StrictInt, Field(ge=0, le=OPTIONS_PER_QUESTION - 1)]


class CourseLevel(str, enum.Enum):
    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"

    @classmethod
    def for_score(cls, score: int) -> "CourseLevel":
        """Уровень по результату диагностики (шкала 0..5)"""
        if score < 3:
            return cls.BEGINNER
        if score < MAX_DIAGNOSTIC_SCORE:
            return cls.INTERMEDIATE
        return cls.ADVANCED


class _Question(BaseModel):
    question: StrictStr
    options: Options
    correct_index: CorrectIndex = Field(alias="correctIndex")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("question")
    @classmethod
    def question_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("question text is empty")
        return v


class QuizQuestion(_Question):
    """Вопрос диагностического теста"""
    weak_topic: Optional[StrictStr] = None


class ExitQuizQuestion(_Question):
    """Вопрос выходного теста модуля"""
    review_topic: Optional[StrictStr] = None
    explanation: Optional[StrictStr] = None


class SyllabusModule(BaseModel):
    """Модуль курса в нормализованном виде (так он хранится в Course.syllabus)"""
    title: str
    description: str = ""
    topics: List[str] = []
    layout: Optional[str] = None
    exit_quiz: Annotated[
        List[ExitQuizQuestion],
        Field(min_length=EXIT_QUIZ_QUESTIONS, max_length=EXIT_QUIZ_QUESTIONS),
    ]

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class Syllabus(BaseModel):
    modules: List[SyllabusModule]
    level: CourseLevel


# --- Сырые ответы генератора ---

class GeneratedModule(BaseModel):
    """
    Модуль в том виде, в котором его вернул генератор. Отсутствующие поля
    допустимы и заполняются значениями по умолчанию, но присутствующие
    обязаны иметь правильную форму.
    """
    title: Optional[StrictStr] = None
    description: Optional[StrictStr] = None
    topics: Optional[List[StrictStr]] = None
    layout: Optional[StrictStr] = None
    exit_quiz: Optional[List[ExitQuizQuestion]] = None

    @field_validator("exit_quiz")
    @classmethod
    def exit_quiz_size(cls, v):
        if v and len(v) != EXIT_QUIZ_QUESTIONS:
            raise ValueError(f"exit quiz must have exactly {EXIT_QUIZ_QUESTIONS} questions, got {len(v)}")
        return v


class GeneratedSyllabus(BaseModel):
    syllabus: Annotated[
        List[GeneratedModule],
        Field(min_length=SYLLABUS_MODULES, max_length=SYLLABUS_MODULES),
    ]
    level: Optional[StrictStr] = None


class QuizGrading(BaseModel):
    """Оценка диагностического теста от генератора (после нормализации)"""
    score: int = Field(ge=0, le=MAX_DIAGNOSTIC_SCORE)
    weak_topics: List[str] = []
    feedback_text: str = ""
    per_question: List[Any] = []
