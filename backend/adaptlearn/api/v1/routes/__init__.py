from fastapi import APIRouter
from adaptlearn.api.v1.routes import auth
from .assessments import router as assessments_router
from .courses import router as courses_router
from .dashboard import router as dashboard_router


api_router = APIRouter()

api_router.include_router(auth.router, tags=["auth"])

api_router.include_router(dashboard_router)
api_router.include_router(assessments_router)
api_router.include_router(courses_router)
