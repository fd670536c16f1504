from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field, SecretStr
from typing import List, Literal
from functools import lru_cache


class DataBaseConfig(BaseModel):
    DB_HOST: str = Field("localhost", description="Database host")
    DB_PORT: int = Field(5432, description="Database port")
    DB_NAME: str = Field("adaptlearn", description="Database name")
    DB_USER: str = Field("adaptlearn", description="Database user")
    DB_PASSWORD: SecretStr = Field(SecretStr("adaptlearn"), description="Database password")  # SecretStr скрывает значение в логах
    DB_ECHO: bool = Field(False, description="Enable SQL echo")
    DB_POOL_SIZE: int = Field(5, description="Database pool size")
    DB_MAX_OVERFLOW: int = Field(10, description="Database max overflow")

    @property
    def DATABASE_URL(self) -> str:
        return f"postgresql+asyncpg://{self.DB_USER}:{self.DB_PASSWORD.get_secret_value()}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

    naming_convention: dict[str, str] = {
        "ix": "ix_%(column_0_label)s",
        "uq": "uq_%(table_name)s_%(column_0_N_name)s",
        "ck": "ck_%(table_name)s_%(constraint_name)s",
        "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
        "pk": "pk_%(table_name)s",
    }


class AIConfig(BaseModel):
    AI_API_BASE: str = Field("http://llm-server:8000", description="OpenAI-compatible API base URL")
    AI_API_KEY: SecretStr = Field(SecretStr(""), description="Bearer key for the AI API (optional)")
    AI_DEFAULT_MODEL: str = Field("local-model", description="Default AI model")
    AI_TIMEOUT: int = Field(60, description="AI request timeout in seconds")
    AI_TEMPERATURE: float = Field(0.4, ge=0.0, le=2.0, description="Sampling temperature")


class SecurityConfig(BaseModel):
    JWT_SECRET_KEY: SecretStr = Field(SecretStr("dev-only-change-me"), description="JWT secret key")
    JWT_ALGORITHM: str = Field("HS256", description="JWT algorithm")
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(30, description="Access token expiration")
    JWT_REFRESH_TOKEN_EXPIRE_DAYS: int = Field(7, description="Refresh token expiration")


class LearningConfig(BaseModel):
    DEFAULT_LESSON_XP: int = Field(100, ge=0, description="XP for one completed lesson")
    MAX_LESSON_XP: int = Field(1000, ge=0, description="Upper bound for client-reported XP")
    ASSESSMENT_TTL_MINUTES: int = Field(30, gt=0, description="Lifetime of a pending diagnostic quiz")
    RECENT_ASSESSMENTS: int = Field(10, gt=0, description="Assessments shown on the dashboard")
    CAS_RETRIES: int = Field(5, gt=0, description="Attempts for optimistic counter updates")


class Settings(BaseSettings):
    app_name: str = Field("AdaptLearn AI", description="Application name")
    debug: bool = Field(False, description="Debug mode")
    cors_origins: List[str] = Field(
        default_factory=lambda: [
            "http://localhost:5173",
            "http://localhost:3000",
        ],
        description="CORS origins"
    )
    store_backend: Literal["sql", "document"] = Field("sql", description="Persistent store implementation")

    db: DataBaseConfig = Field(default_factory=DataBaseConfig)
    ai: AIConfig = Field(default_factory=AIConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    learning: LearningConfig = Field(default_factory=LearningConfig)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_nested_delimiter="__",  # Для вложенных объектов: DB__DB_HOST, AI__AI_TIMEOUT
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """Кэшированный экземпляр настроек"""
    return Settings()

settings = get_settings()
