# adaptlearn/services/lesson_service.py
import logging

from adaptlearn.core.exceptions import ValidationError
from adaptlearn.core.schemas.learning import LessonResponse, TutorRequest, TutorResponse
from adaptlearn.core.schemas.records import LessonContentRecord
from adaptlearn.repositories.base import LearningStore
from .content_generator import ContentGenerator
from .content_validation import clean_markdown
from .progress_engine import get_owned_course, resolve_topic

logger = logging.getLogger(__name__)


class LessonService:
    """Уроки генерируются один раз на тему курса и дальше отдаются из кэша"""

    def __init__(self, store: LearningStore, generator: ContentGenerator):
        self.store = store
        self.generator = generator

    async def get_lesson(self, user_id: int, course_id: int, module_index: int, topic_index: int) -> LessonResponse:
        course = await get_owned_course(self.store, user_id, course_id)
        title = resolve_topic(course, module_index, topic_index)

        lesson = await self.store.get_lesson_content(course_id, module_index, topic_index)
        if lesson is None:
            logger.info(f"Generating lesson '{title}' for course {course_id} ({course.level})")
            content = clean_markdown(await self.generator.generate_lesson(title, course.level))
            lesson = await self.store.save_lesson_content(LessonContentRecord(
                course_id=course_id,
                module_index=module_index,
                topic_index=topic_index,
                title=title,
                content_md=content,
            ))

        return LessonResponse(
            course_id=course_id,
            module_index=module_index,
            topic_index=topic_index,
            title=lesson.title,
            content=lesson.content_md,
        )

    async def ask_tutor(self, user_id: int, course_id: int, request: TutorRequest) -> TutorResponse:
        question = request.question.strip()
        if not question:
            raise ValidationError("Question is required")

        course = await get_owned_course(self.store, user_id, course_id)
        answer = await self.generator.answer_question(
            question,
            course.topic,
            course.level,
            lesson_topic=request.lesson_topic.strip(),
            lesson_text=request.lesson_text,
        )
        return TutorResponse(answer=clean_markdown(answer))
