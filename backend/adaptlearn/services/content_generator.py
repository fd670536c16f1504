# adaptlearn/services/content_generator.py
"""
Генератор учебного контента.

ContentGenerator - контракт, который нужен ядру. Методы возвращают сырые
данные (распарсенный JSON или текст); проверка формы выполняется в ядре
(см. content_validation и syllabus), поэтому реализация генератора может
быть любой.

LLMContentGenerator - реализация поверх OpenAI-совместимого
/v1/chat/completions (локальный llama.cpp сервер или любой облачный).
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
import json as json_lib
import logging
import re

import httpx

from adaptlearn.core.config import AIConfig
from adaptlearn.core.exceptions import GenerationError, GenerationTimeoutError

logger = logging.getLogger(__name__)


class ContentGenerator(ABC):

    @abstractmethod
    async def generate_quiz(self, topic: str) -> Any:
        """5 вопросов: {question, options[4], correctIndex, weak_topic}"""

    @abstractmethod
    async def grade_quiz(self, topic: str, quiz: List[Dict[str, Any]], answers: List[Optional[int]]) -> Any:
        """{score, weak_topics, feedback_text, per_question}"""

    @abstractmethod
    async def generate_syllabus(self, topic: str, score: int, weak_topics: List[str]) -> Any:
        """{syllabus: [6 модулей], level}"""

    @abstractmethod
    async def generate_lesson(self, topic: str, level: str) -> str:
        """Текст урока в Markdown"""

    @abstractmethod
    async def answer_question(
        self,
        question: str,
        course_topic: str,
        level: str,
        lesson_topic: str = "",
        lesson_text: str = "",
    ) -> str:
        """Ответ AI-тьютора в контексте курса и урока"""


# --- Разбор JSON из ответа модели ---

def extract_json(raw_text: str) -> Any:
    """
    Достаёт JSON из ответа модели: снимает markdown-ограждения, ищет границы
    объекта или массива и пробует несколько стратегий восстановления.
    """
    if not raw_text or not raw_text.strip():
        raise GenerationError("AI returned an empty response")

    # Шаг 1: Удаляем блоки кода ``` ... ```
    cleaned = re.sub(r'^```(?:json|javascript)?\s*', '', raw_text.strip(), flags=re.MULTILINE | re.IGNORECASE)
    cleaned = re.sub(r'```\s*$', '', cleaned, flags=re.MULTILINE)
    cleaned = cleaned.strip()

    try:
        return json_lib.loads(cleaned)
    except json_lib.JSONDecodeError:
        pass

    # Шаг 2: Находим границы JSON (первая открывающая и последняя закрывающая скобка)
    starts = [i for i in (cleaned.find('{'), cleaned.find('[')) if i != -1]
    if not starts:
        logger.error(f"No JSON boundaries in AI response. First 500 chars:\n{cleaned[:500]}")
        raise GenerationError("AI returned invalid JSON")
    start_idx = min(starts)
    closing = '}' if cleaned[start_idx] == '{' else ']'
    end_idx = cleaned.rfind(closing)
    if end_idx <= start_idx:
        logger.error(f"Unbalanced JSON in AI response. First 500 chars:\n{cleaned[:500]}")
        raise GenerationError("AI returned invalid JSON")

    json_candidate = cleaned[start_idx:end_idx + 1]

    # Шаг 3: Пробуем распарсить с несколькими стратегиями восстановления
    strategies = [
        ("original", json_candidate),
        ("fix_trailing_commas", re.sub(r',\s*([}\]])', r'\1', json_candidate)),
        ("fix_single_quotes", json_candidate.replace("'", '"')),
    ]
    for strategy_name, candidate in strategies:
        try:
            parsed = json_lib.loads(candidate)
            logger.debug(f"JSON parsed with strategy: {strategy_name}")
            return parsed
        except json_lib.JSONDecodeError as e:
            logger.debug(f"Strategy {strategy_name} failed: {str(e)[:100]}")

    logger.error(f"All JSON parsing strategies failed. Raw response (first 1000 chars):\n{raw_text[:1000]}")
    raise GenerationError("AI returned invalid JSON")


JSON_ONLY = "Return ONLY valid JSON. No markdown. No code fences. No comments."


class LLMContentGenerator(ContentGenerator):
    def __init__(self, config: AIConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self._transport = transport

    @property
    def completions_url(self) -> str:
        return f"{self.config.AI_API_BASE.rstrip('/')}/v1/chat/completions"

    async def _chat(self, prompt: str) -> str:
        """Один запрос к модели с ограничением по времени"""
        headers = {}
        api_key = self.config.AI_API_KEY.get_secret_value()
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"

        try:
            async with httpx.AsyncClient(timeout=self.config.AI_TIMEOUT, transport=self._transport) as client:
                response = await client.post(
                    self.completions_url,
                    json={
                        "model": self.config.AI_DEFAULT_MODEL,
                        "messages": [{"role": "user", "content": prompt}],
                        "temperature": self.config.AI_TEMPERATURE,
                        "stream": False,
                    },
                    headers=headers,
                )
        except httpx.TimeoutException:
            logger.error(f"LLM server timeout after {self.config.AI_TIMEOUT} seconds")
            raise GenerationTimeoutError()
        except httpx.HTTPError as e:
            logger.error(f"LLM server request failed: {e}")
            raise GenerationError("AI service is unavailable")

        if response.status_code != 200:
            logger.error(f"LLM server error {response.status_code}: {response.text[:500]}")
            raise GenerationError(f"AI service error: {response.status_code}")

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError):
            logger.error(f"Unexpected LLM response shape: {response.text[:500]}")
            raise GenerationError("AI service returned a malformed response")

        if not isinstance(content, str) or not content.strip():
            raise GenerationError("AI returned an empty response")
        return content

    async def _chat_json(self, prompt: str) -> Any:
        return extract_json(await self._chat(prompt))

    async def generate_quiz(self, topic: str) -> Any:
        prompt = "\n".join([
            JSON_ONLY,
            "Generate a multiple-choice diagnostic quiz for the topic below.",
            "Constraints:",
            "- Exactly 5 questions, from fundamentals to advanced.",
            "- Each question has exactly 4 options.",
            "- correctIndex is the index (0-3) of the correct option.",
            "- weak_topic is a short subtopic tag, e.g. \"Normalization\" or \"Big-O\".",
            "",
            "JSON shape:",
            '[{"question": "...", "options": ["...", "...", "...", "..."], "correctIndex": 0, "weak_topic": "..."}]',
            "",
            f"Topic: {topic}",
        ])
        return await self._chat_json(prompt)

    async def grade_quiz(self, topic: str, quiz: List[Dict[str, Any]], answers: List[Optional[int]]) -> Any:
        prompt = "\n".join([
            JSON_ONLY,
            "You are grading a diagnostic quiz submission.",
            "Use correctIndex from the quiz and the learner answers (-1 means unanswered) to compute the score.",
            "List weak topics from missed questions (use weak_topic when present).",
            "",
            "JSON shape:",
            '{"score": 0, "weak_topics": ["..."], "feedback_text": "Short, actionable feedback.",',
            ' "per_question": [{"index": 0, "correct": true, "weak_topic": "...", "note": "..."}]}',
            "",
            f"Topic: {topic}",
            f"Quiz: {json_lib.dumps(quiz, ensure_ascii=False)}",
            f"Answers: {json_lib.dumps([-1 if a is None else a for a in answers])}",
        ])
        return await self._chat_json(prompt)

    async def generate_syllabus(self, topic: str, score: int, weak_topics: List[str]) -> Any:
        prompt = "\n".join([
            JSON_ONLY,
            "You are creating a personalized syllabus for a learner.",
            f'The learner scored {score} out of 5 on a diagnostic quiz about "{topic}".',
            f"Weak areas: {', '.join(weak_topics) if weak_topics else 'none'}.",
            "",
            "Create exactly 6 modules. Low scores (0-2) start from fundamentals, high scores (4-5) go to advanced material.",
            "Each module has: title, description, topics (3-5 subtopic strings),",
            "and exit_quiz: exactly 3 questions with exactly 4 options each, correctIndex 0-3,",
            "review_topic (which subtopic to revisit when missed) and a one-sentence explanation.",
            "",
            "JSON shape:",
            '{"syllabus": [{"title": "...", "description": "...", "topics": ["..."],',
            ' "exit_quiz": [{"question": "...", "options": ["...", "...", "...", "..."], "correctIndex": 0,',
            ' "review_topic": "...", "explanation": "..."}]}],',
            ' "level": "Beginner | Intermediate | Advanced"}',
        ])
        return await self._chat_json(prompt)

    async def generate_lesson(self, topic: str, level: str) -> str:
        prompt = "\n".join([
            f'Write a comprehensive tutorial on "{topic}" for a {level} learner.',
            "Use Markdown formatting with headings.",
            "Include clear explanations, examples (code examples if the topic is technical) and practical applications.",
            "Return raw Markdown, not JSON.",
        ])
        return await self._chat(prompt)

    async def answer_question(
        self,
        question: str,
        course_topic: str,
        level: str,
        lesson_topic: str = "",
        lesson_text: str = "",
    ) -> str:
        lines = [
            f"You are a patient tutor in a {course_topic} course for a {level} learner.",
            "Answer the learner's question concisely in Markdown. If the question is off-topic, steer back to the course.",
        ]
        if lesson_topic:
            lines.append(f"Current lesson: {lesson_topic}")
        if lesson_text:
            # Контекст урока обрезаем, чтобы не раздувать промпт
            lines.append(f"Lesson excerpt:\n{lesson_text[:4000]}")
        lines.append(f"Question: {question}")
        return await self._chat("\n".join(lines))
