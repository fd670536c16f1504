# adaptlearn/models/__init__.py
from .base import Base
from .user import User, UserRole
from .course import Course, LessonContent
from .learning import Assessment, LessonCompletion, PendingAssessment

# Этот список нужен, чтобы IDE и инструменты видели, что экспортируется
__all__ = [
    "Base",
    "User", "UserRole",
    "Course", "LessonContent",
    "Assessment", "LessonCompletion", "PendingAssessment",
]
