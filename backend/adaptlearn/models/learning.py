# adaptlearn/models/learning.py
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, func, Text, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
from .base import Base, JSONDocument

class Assessment(Base):
    """Результат диагностического теста. Только добавление, без изменений."""
    __tablename__ = "assessments"
    __table_args__ = (
        CheckConstraint("score >= 0 AND score <= 5", name="score_range"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    topic = Column(String, nullable=False)
    score = Column(Integer, nullable=False)
    feedback_text = Column(Text, nullable=True)
    weak_topics = Column(JSONDocument, nullable=True)  # ["...", ...]
    analysis = Column(JSONDocument, nullable=True)  # [{"index": 0, "selected": 1, "correct_index": 2, ...}]
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="assessments")

class LessonCompletion(Base):
    """
    Факт прохождения урока. Существование строки - единственный источник
    истины о том, что XP за урок уже начислен.
    """
    __tablename__ = "lesson_completions"
    __table_args__ = (
        UniqueConstraint("user_id", "course_id", "module_index", "topic_index", name="uq_lesson_completions_key"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    module_index = Column(Integer, nullable=False)
    topic_index = Column(Integer, nullable=False)
    xp_earned = Column(Integer, nullable=False, default=100)
    completed_at = Column(DateTime(timezone=True), server_default=func.now())

class PendingAssessment(Base):
    """Сгенерированный диагностический тест, ожидающий ответа пользователя"""
    __tablename__ = "pending_assessments"

    id = Column(String(64), primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    topic = Column(String, nullable=False)
    quiz = Column(JSONDocument, nullable=False)  # вопросы вместе с правильными ответами
    created_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
