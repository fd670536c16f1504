# adaptlearn/services/grading.py
"""
Проверка выходных тестов модулей.

Модуль открывается при доле правильных ответов не ниже 2/3. Порог задан
отношением, а не числом, поэтому работает при любом размере теста.
"""
from typing import Any, Dict, List, Optional, Sequence
import logging

from pydantic import TypeAdapter, ValidationError as PydanticValidationError

from adaptlearn.core.schemas.content import EXIT_QUIZ_QUESTIONS, ExitQuizQuestion
from adaptlearn.core.schemas.learning import ExitQuizGrade, QuizMistake

logger = logging.getLogger(__name__)

PASS_NUMERATOR = 2
PASS_DENOMINATOR = 3
MAX_REVIEW_TOPICS = 3

_exit_quiz_adapter = TypeAdapter(List[ExitQuizQuestion])


def is_passing(correct_count: int, total: int) -> bool:
    """correct/total >= 2/3 без float-арифметики"""
    if total <= 0:
        return False
    return correct_count * PASS_DENOMINATOR >= total * PASS_NUMERATOR


def grade_exit_quiz(quiz: Sequence[ExitQuizQuestion], submitted_answers: Sequence[Optional[int]]) -> ExitQuizGrade:
    """
    Сравнивает ответы с правильными. Отсутствующий ответ, None, -1 или
    индекс вне диапазона просто считаются неверными.
    """
    correct_count = 0
    mistakes: List[QuizMistake] = []

    for index, question in enumerate(quiz):
        selected = submitted_answers[index] if index < len(submitted_answers) else None
        if not isinstance(selected, int) or isinstance(selected, bool) or not 0 <= selected < len(question.options):
            selected = None

        if selected is not None and selected == question.correct_index:
            correct_count += 1
            continue

        mistakes.append(QuizMistake(
            index=index,
            question=question.question,
            selected=selected,
            correct_index=question.correct_index,
            review_topic=question.review_topic,
            explanation=question.explanation,
        ))

    total = len(quiz)
    passed = is_passing(correct_count, total)
    return ExitQuizGrade(
        correct_count=correct_count,
        total=total,
        passed=passed,
        mistakes=mistakes,
        feedback="Module completed! Next module unlocked." if passed else review_feedback(mistakes),
    )


def review_feedback(mistakes: Sequence[QuizMistake]) -> str:
    """Одно предложение с темами для повторения (до трёх, в порядке вопросов)"""
    topics: List[str] = []
    for mistake in mistakes:
        tag = (mistake.review_topic or "").strip()
        if tag and tag not in topics:
            topics.append(tag)
        if len(topics) == MAX_REVIEW_TOPICS:
            break

    if not topics:
        return "Review the lesson material and try the quiz again."
    return f"Review {_join_topics(topics)} and try the quiz again."


def _join_topics(topics: List[str]) -> str:
    if len(topics) == 1:
        return topics[0]
    return ", ".join(topics[:-1]) + f" and {topics[-1]}"


def fallback_exit_quiz(topics: Sequence[str], module_title: str = "") -> List[ExitQuizQuestion]:
    """
    Детерминированный запасной тест по темам модуля: первые три темы
    (первая повторяется, если тем меньше трёх), правильный ответ всегда 0.
    """
    names = [t.strip() for t in topics if isinstance(t, str) and t.strip()]
    if not names:
        names = [module_title.strip() or "this module"]
    while len(names) < EXIT_QUIZ_QUESTIONS:
        names.append(names[0])
    picked = names[:EXIT_QUIZ_QUESTIONS]

    return [
        ExitQuizQuestion(
            question=f"Which statement best describes the core concept of {name}?",
            options=[
                f"{name} is a core concept covered in this module",
                f"{name} is unrelated to this module",
                f"{name} is only an optional historical footnote",
                "None of the above",
            ],
            correct_index=0,
            review_topic=name,
            explanation=f"Revisit the lesson on {name} to reinforce the core concept.",
        )
        for name in picked
    ]


def exit_quiz_for_module(module: Dict[str, Any]) -> List[ExitQuizQuestion]:
    """
    Выходной тест сохранённого модуля. Если тест повреждён (не ровно три
    корректных вопроса по четыре варианта), возвращает запасной тест, чтобы
    пользователь никогда не упирался в непроходимый модуль.
    """
    raw_quiz = module.get("exit_quiz")
    try:
        quiz = _exit_quiz_adapter.validate_python(raw_quiz)
    except PydanticValidationError:
        quiz = None

    if quiz is not None and len(quiz) == EXIT_QUIZ_QUESTIONS:
        return quiz

    logger.warning(f"Module '{module.get('title', '')}' has an unusable exit quiz, using fallback")
    topics = module.get("topics")
    return fallback_exit_quiz(topics if isinstance(topics, list) else [], str(module.get("title") or ""))
