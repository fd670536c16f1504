# main.py
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from datetime import datetime, timezone
from contextlib import asynccontextmanager
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
import logging

from adaptlearn.core.admin import setup_admin
from adaptlearn.api.v1.routes import api_router
from adaptlearn.api.v1.routes.auth import limiter
from adaptlearn.core.config import settings
from adaptlearn.core.database import db_helper
from adaptlearn.core.exceptions import AppException
from adaptlearn.core.utils import get_document_store
from adaptlearn.repositories.sql_store import SqlLearningStore

# Настройка логирования
logging.basicConfig(
    level=logging.INFO if settings.debug else logging.WARNING,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


async def ping_store() -> bool:
    if settings.store_backend == "document":
        return await get_document_store().ping()
    async with db_helper.session_factory() as session:
        return await SqlLearningStore(session).ping()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Контекстный менеджер для жизненного цикла приложения"""
    # Startup
    logger.info(f"🚀 Starting {settings.app_name} in {'DEBUG' if settings.debug else 'PRODUCTION'} mode")
    logger.info(f"🗄️ Store backend: {settings.store_backend}")
    logger.info(f"🤖 AI API: {settings.ai.AI_API_BASE} ({settings.ai.AI_DEFAULT_MODEL})")

    if settings.store_backend == "sql":
        # Маскируем пароль в URL для логов
        masked_db_url = settings.db.DATABASE_URL.replace(settings.db.DB_PASSWORD.get_secret_value(), "***")
        logger.info(f"📝 Database: {masked_db_url}")

    # Проверка хранилища при старте
    try:
        await ping_store()
        logger.info("✅ Store connection successful")
    except Exception as e:
        logger.error(f"❌ Store connection failed: {e}")
        raise

    if settings.store_backend == "sql":
        setup_admin(app, db_helper.engine)

    yield

    # Shutdown
    await db_helper.dispose()
    logger.info("👋 Application shutdown complete")


app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Настройка CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Подключение роутеров
app.include_router(api_router, prefix="/api/v1")


@app.get("/", summary="Root endpoint", tags=["root"])
async def root():
    """Корневой эндпоинт API"""
    return {
        "message": f"Welcome to {settings.app_name} API",
        "docs": {
            "swagger": "/docs",
            "redoc": "/redoc"
        } if settings.debug else None,
        "environment": "development" if settings.debug else "production",
        "timestamp": utc_timestamp(),
    }


@app.get("/health", summary="Health check", tags=["health"])
async def health_check():
    """Проверка здоровья приложения"""
    try:
        await ping_store()
        return {
            "status": "healthy",
            "timestamp": utc_timestamp(),
            "environment": "development" if settings.debug else "production",
            "store": settings.store_backend,
            "database": "connected",
            "app_name": settings.app_name,
        }
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={
                "status": "unhealthy",
                "timestamp": utc_timestamp(),
                "database": "connection failed",
                "error": str(e) if settings.debug else "Database connection error",
            },
        )


# Глобальный обработчик исключений
@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
    """Глобальный обработчик кастомных исключений"""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(f"AppException: {exc.detail} (type: {type(exc).__name__}, path: {request.url.path})")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "detail": exc.detail,
            "error": type(exc).__name__,
            "retryable": exc.retryable,
            "timestamp": utc_timestamp(),
        },
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Глобальный обработчик всех исключений"""
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "error": "InternalServerError",
            "timestamp": utc_timestamp(),
            "debug_info": str(exc) if settings.debug else None,
        },
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level="info" if settings.debug else "warning",
        access_log=False,
    )
