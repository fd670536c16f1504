# adaptlearn/api/v1/routes/courses.py
from fastapi import APIRouter, Depends, Path
from typing import List
import logging

from adaptlearn.core.schemas.learning import (
    CompleteLessonRequest,
    CourseDetail,
    CourseSummary,
    LessonCompletionResult,
    LessonResponse,
    ModuleVerificationResult,
    TutorRequest,
    TutorResponse,
    VerifyModuleRequest,
)
from adaptlearn.core.schemas.records import UserRecord
from adaptlearn.core.utils import get_current_user, get_lesson_service, get_progress_engine
from adaptlearn.services.lesson_service import LessonService
from adaptlearn.services.progress_engine import CourseProgressEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/courses", tags=["courses"])


@router.get("", response_model=List[CourseSummary])
async def list_courses(
    current_user: UserRecord = Depends(get_current_user),
    engine: CourseProgressEngine = Depends(get_progress_engine),
):
    return await engine.list_courses(current_user.id)


@router.get("/{course_id}", response_model=CourseDetail)
async def get_course_details(
    course_id: int,
    current_user: UserRecord = Depends(get_current_user),
    engine: CourseProgressEngine = Depends(get_progress_engine),
):
    """Курс с состоянием модулей; правильные ответы выходных тестов не отдаются"""
    return await engine.course_detail(current_user.id, course_id)


@router.post("/{course_id}/modules/{module_index}/verify", response_model=ModuleVerificationResult)
async def verify_module(
    course_id: int,
    payload: VerifyModuleRequest,
    module_index: int = Path(..., ge=0),
    current_user: UserRecord = Depends(get_current_user),
    engine: CourseProgressEngine = Depends(get_progress_engine),
):
    return await engine.verify_module(current_user.id, course_id, module_index, payload.answers)


@router.post("/{course_id}/complete", response_model=LessonCompletionResult)
async def complete_lesson(
    course_id: int,
    payload: CompleteLessonRequest,
    current_user: UserRecord = Depends(get_current_user),
    engine: CourseProgressEngine = Depends(get_progress_engine),
):
    """Завершение урока: XP и серия начисляются один раз на тему"""
    return await engine.complete_lesson(
        current_user.id,
        course_id,
        payload.module_index,
        payload.topic_index,
        payload.xp_earned,
    )


@router.get("/{course_id}/modules/{module_index}/lessons/{topic_index}", response_model=LessonResponse)
async def get_lesson(
    course_id: int,
    module_index: int = Path(..., ge=0),
    topic_index: int = Path(..., ge=0),
    current_user: UserRecord = Depends(get_current_user),
    lessons: LessonService = Depends(get_lesson_service),
):
    return await lessons.get_lesson(current_user.id, course_id, module_index, topic_index)


@router.post("/{course_id}/tutor", response_model=TutorResponse)
async def ask_tutor(
    course_id: int,
    payload: TutorRequest,
    current_user: UserRecord = Depends(get_current_user),
    lessons: LessonService = Depends(get_lesson_service),
):
    return await lessons.ask_tutor(current_user.id, course_id, payload)
