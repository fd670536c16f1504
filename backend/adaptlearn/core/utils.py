# adaptlearn/core/utils.py
"""FastAPI-зависимости: хранилище, генератор, сервисы и текущий пользователь"""
from datetime import timedelta
from functools import lru_cache
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from adaptlearn.core.config import settings
from adaptlearn.core.database import db_helper
from adaptlearn.core.exceptions import AuthenticationError
from adaptlearn.core.schemas.records import UserRecord
from adaptlearn.repositories.base import LearningStore
from adaptlearn.repositories.document_store import DocumentLearningStore
from adaptlearn.repositories.sql_store import SqlLearningStore
from adaptlearn.services.assessment_service import AssessmentService
from adaptlearn.services.auth_service import AuthService
from adaptlearn.services.content_generator import ContentGenerator, LLMContentGenerator
from adaptlearn.services.lesson_service import LessonService
from adaptlearn.services.progress_engine import CourseProgressEngine
import logging

logger = logging.getLogger(__name__)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/v1/auth/login")


@lru_cache()
def get_document_store() -> DocumentLearningStore:
    """Документное хранилище живёт в памяти процесса, поэтому оно одно"""
    return DocumentLearningStore()


def get_store(session: AsyncSession = Depends(db_helper.session_getter)) -> LearningStore:
    # Сессия не открывает соединение, пока к ней не обратились
    if settings.store_backend == "document":
        return get_document_store()
    return SqlLearningStore(session)


@lru_cache()
def get_content_generator() -> ContentGenerator:
    return LLMContentGenerator(settings.ai)


def get_progress_engine(store: LearningStore = Depends(get_store)) -> CourseProgressEngine:
    return CourseProgressEngine(
        store,
        default_xp=settings.learning.DEFAULT_LESSON_XP,
        max_xp=settings.learning.MAX_LESSON_XP,
        cas_retries=settings.learning.CAS_RETRIES,
        recent_assessments=settings.learning.RECENT_ASSESSMENTS,
    )


def get_assessment_service(
    store: LearningStore = Depends(get_store),
    generator: ContentGenerator = Depends(get_content_generator),
) -> AssessmentService:
    return AssessmentService(
        store,
        generator,
        ttl=timedelta(minutes=settings.learning.ASSESSMENT_TTL_MINUTES),
    )


def get_lesson_service(
    store: LearningStore = Depends(get_store),
    generator: ContentGenerator = Depends(get_content_generator),
) -> LessonService:
    return LessonService(store, generator)


def get_auth_service(store: LearningStore = Depends(get_store)) -> AuthService:
    return AuthService(store)


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    auth_service: AuthService = Depends(get_auth_service),
) -> UserRecord:
    """Зависимость для получения текущего пользователя из токена"""
    try:
        return await auth_service.get_current_user(token)
    except AuthenticationError as e:
        logger.warning(f"Authentication failed: {e.detail}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
