# adaptlearn/api/v1/routes/dashboard.py
from fastapi import APIRouter, Depends

from adaptlearn.core.schemas.learning import DashboardResponse
from adaptlearn.core.schemas.records import UserRecord
from adaptlearn.core.utils import get_current_user, get_progress_engine
from adaptlearn.services.progress_engine import CourseProgressEngine

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("", response_model=DashboardResponse)
async def get_dashboard(
    current_user: UserRecord = Depends(get_current_user),
    engine: CourseProgressEngine = Depends(get_progress_engine),
):
    """XP, серия, курсы и последние диагностики пользователя"""
    return await engine.dashboard(current_user.id)
