# adaptlearn/api/v1/routes/assessments.py
from fastapi import APIRouter, Depends, Query, status
from typing import List

from adaptlearn.core.schemas.learning import (
    AssessmentOutcome,
    AssessmentView,
    PendingAssessmentView,
    StartAssessmentRequest,
    SubmitAssessmentRequest,
)
from adaptlearn.core.schemas.records import UserRecord
from adaptlearn.core.utils import get_assessment_service, get_current_user
from adaptlearn.services.assessment_service import AssessmentService

router = APIRouter(prefix="/assessments", tags=["assessments"])


@router.post("", response_model=PendingAssessmentView, status_code=status.HTTP_201_CREATED)
async def start_assessment(
    payload: StartAssessmentRequest,
    current_user: UserRecord = Depends(get_current_user),
    service: AssessmentService = Depends(get_assessment_service),
):
    """Генерирует диагностический тест из 5 вопросов по теме"""
    return await service.start_assessment(current_user.id, payload.topic)


@router.post("/{assessment_id}/submit", response_model=AssessmentOutcome, status_code=status.HTTP_201_CREATED)
async def submit_assessment(
    assessment_id: str,
    payload: SubmitAssessmentRequest,
    current_user: UserRecord = Depends(get_current_user),
    service: AssessmentService = Depends(get_assessment_service),
):
    """Оценивает ответы и создаёт персональный курс из 6 модулей"""
    return await service.submit_assessment(current_user.id, assessment_id, payload.answers)


@router.get("", response_model=List[AssessmentView])
async def list_assessments(
    limit: int = Query(20, ge=1, le=100),
    current_user: UserRecord = Depends(get_current_user),
    service: AssessmentService = Depends(get_assessment_service),
):
    return await service.list_assessments(current_user.id, limit=limit)
