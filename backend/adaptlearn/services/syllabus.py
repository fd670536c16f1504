# adaptlearn/services/syllabus.py
from typing import Any, List
import logging

from pydantic import ValidationError as PydanticValidationError

from adaptlearn.core.exceptions import GenerationError
from adaptlearn.core.schemas.content import (
    CourseLevel,
    GeneratedSyllabus,
    SYLLABUS_MODULES,
    Syllabus,
    SyllabusModule,
)
from .content_generator import ContentGenerator
from .content_validation import describe_errors
from .grading import fallback_exit_quiz

logger = logging.getLogger(__name__)


def resolve_level(level: Any, score: int) -> CourseLevel:
    """Уровень от генератора (без учёта регистра) или по баллам диагностики"""
    if level is None or (isinstance(level, str) and not level.strip()):
        return CourseLevel.for_score(score)
    for candidate in CourseLevel:
        if candidate.value.lower() == str(level).strip().lower():
            return candidate
    raise GenerationError(f"AI returned an unknown course level: {str(level)[:50]}")


def parse_syllabus(raw: Any, score: int) -> Syllabus:
    """
    Проверяет и нормализует силлабус от генератора.

    Ровно 6 модулей-объектов, иначе GenerationError. Отсутствующие поля
    получают значения по умолчанию, отсутствующий выходной тест заменяется
    запасным. Присутствующий, но битый тест - это GenerationError.
    """
    if not isinstance(raw, dict) or not isinstance(raw.get("syllabus"), list):
        raise GenerationError('AI syllabus must be an object with a "syllabus" array')
    if len(raw["syllabus"]) != SYLLABUS_MODULES:
        raise GenerationError(
            f"AI syllabus must contain exactly {SYLLABUS_MODULES} modules, got {len(raw['syllabus'])}"
        )

    try:
        generated = GeneratedSyllabus.model_validate(raw)
    except PydanticValidationError as e:
        logger.error(f"Invalid syllabus from generator: {describe_errors(e)}")
        raise GenerationError(f"AI syllabus is malformed: {describe_errors(e)}")

    modules: List[SyllabusModule] = []
    for idx, module in enumerate(generated.syllabus):
        title = (module.title or "").strip() or f"Module {idx + 1}"
        topics = [t.strip() for t in (module.topics or []) if t.strip()]
        exit_quiz = module.exit_quiz
        if not exit_quiz:
            logger.info(f"Module {idx + 1} '{title}' came without an exit quiz, using fallback")
            exit_quiz = fallback_exit_quiz(topics, title)

        modules.append(SyllabusModule(
            title=title,
            description=(module.description or "").strip(),
            topics=topics,
            layout=module.layout,
            exit_quiz=exit_quiz,
        ))

    return Syllabus(modules=modules, level=resolve_level(generated.level, score))


async def build_syllabus(generator: ContentGenerator, topic: str, diagnostic_score: int, weak_topics: List[str]) -> Syllabus:
    raw = await generator.generate_syllabus(topic, diagnostic_score, weak_topics)
    return parse_syllabus(raw, diagnostic_score)
