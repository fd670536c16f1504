# adaptlearn/models/course.py
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, func, Text, CheckConstraint, UniqueConstraint
from sqlalchemy.orm import relationship
from .base import Base, JSONDocument

class Course(Base):
    __tablename__ = "courses"
    __table_args__ = (
        CheckConstraint("completed_modules >= 0", name="completed_modules_non_negative"),
        CheckConstraint("progress >= 0 AND progress <= 100", name="progress_range"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    topic = Column(String, nullable=False)
    level = Column(String, nullable=False, default="Beginner")  # Beginner / Intermediate / Advanced

    # [{"title": ..., "description": ..., "topics": [...], "layout": ..., "exit_quiz": [...]}, ...]
    syllabus = Column(JSONDocument, nullable=False)

    completed_modules = Column(Integer, default=0, nullable=False)
    progress = Column(Integer, default=0, nullable=False)  # 0-100%
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="courses")
    lessons = relationship("LessonContent", back_populates="course", cascade="all, delete-orphan", passive_deletes=True)

    def __str__(self):
        return self.topic

class LessonContent(Base):
    """Кэш сгенерированных уроков: один урок на (курс, модуль, тема)"""
    __tablename__ = "lesson_contents"
    __table_args__ = (
        UniqueConstraint("course_id", "module_index", "topic_index", name="uq_lesson_contents_key"),
    )

    id = Column(Integer, primary_key=True, index=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False)
    module_index = Column(Integer, nullable=False)
    topic_index = Column(Integer, nullable=False)
    title = Column(Text, nullable=False)
    content_md = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    course = relationship("Course", back_populates="lessons")

    def __str__(self):
        return self.title
