# adaptlearn/models/base.py
from sqlalchemy import JSON, MetaData
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase
from adaptlearn.core.config import settings


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=settings.db.naming_convention)


# JSONB в PostgreSQL, обычный JSON в остальных диалектах (SQLite в тестах)
JSONDocument = JSON().with_variant(JSONB(), "postgresql")
