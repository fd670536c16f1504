# adaptlearn/services/content_validation.py
"""Проверка ответов генератора на границе: либо валидные данные, либо GenerationError"""
from typing import Any, List
import logging
import math
import re

from pydantic import TypeAdapter, ValidationError as PydanticValidationError

from adaptlearn.core.exceptions import GenerationError
from adaptlearn.core.schemas.content import (
    DIAGNOSTIC_QUESTIONS,
    MAX_DIAGNOSTIC_SCORE,
    QuizGrading,
    QuizQuestion,
)

logger = logging.getLogger(__name__)

MAX_WEAK_TOPICS = 10

_quiz_adapter = TypeAdapter(List[QuizQuestion])


def describe_errors(exc: PydanticValidationError, limit: int = 3) -> str:
    parts = []
    for error in exc.errors()[:limit]:
        location = ".".join(str(p) for p in error["loc"]) or "root"
        parts.append(f"{location}: {error['msg']}")
    return "; ".join(parts)


def parse_diagnostic_quiz(raw: Any) -> List[QuizQuestion]:
    """Ровно 5 вопросов, в каждом 4 строки-варианта и correctIndex 0..3"""
    if not isinstance(raw, list) or len(raw) != DIAGNOSTIC_QUESTIONS:
        raise GenerationError(f"AI quiz must be an array of exactly {DIAGNOSTIC_QUESTIONS} questions")
    try:
        return _quiz_adapter.validate_python(raw)
    except PydanticValidationError as e:
        logger.error(f"Invalid diagnostic quiz from generator: {describe_errors(e)}")
        raise GenerationError(f"AI quiz is malformed: {describe_errors(e)}")


def parse_grading(raw: Any) -> QuizGrading:
    """
    Оценка обязана содержать числовой score; он округляется и зажимается
    в 0..5. Остальные поля необязательны и нормализуются.
    """
    if not isinstance(raw, dict):
        raise GenerationError("AI grading response was not an object")

    score = raw.get("score")
    if isinstance(score, bool) or not isinstance(score, (int, float)) or not math.isfinite(score):
        raise GenerationError("AI grading response missing score")

    weak_topics = raw.get("weak_topics")
    if not isinstance(weak_topics, list):
        weak_topics = []
    weak_topics = [t.strip() for t in weak_topics if isinstance(t, str) and t.strip()][:MAX_WEAK_TOPICS]

    feedback_text = raw.get("feedback_text")
    per_question = raw.get("per_question")

    return QuizGrading(
        score=max(0, min(MAX_DIAGNOSTIC_SCORE, int(math.floor(score + 0.5)))),
        weak_topics=weak_topics,
        feedback_text=feedback_text if isinstance(feedback_text, str) else "",
        per_question=per_question if isinstance(per_question, list) else [],
    )


def clean_markdown(text: Any) -> str:
    """
    Снимает ограждение ```markdown ... ```, если модель обернула им весь
    ответ. Внутренние блоки кода не трогаем.
    """
    if not isinstance(text, str) or not text.strip():
        raise GenerationError("AI failed to generate content")

    clean = text.strip()
    if re.match(r'^```(?:markdown|md)\s*\n', clean, flags=re.IGNORECASE):
        clean = re.sub(r'^```(?:markdown|md)\s*', '', clean, flags=re.IGNORECASE)
        clean = re.sub(r'\s*```$', '', clean)
    elif clean.startswith("```") and clean.endswith("```") and "\n```" not in clean[3:-3]:
        clean = re.sub(r'^```\w*\s*', '', clean)
        clean = re.sub(r'\s*```$', '', clean)

    clean = clean.strip()
    if not clean:
        raise GenerationError("AI failed to generate content")
    return clean
