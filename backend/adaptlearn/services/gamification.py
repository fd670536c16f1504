# adaptlearn/services/gamification.py
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from adaptlearn.core.schemas.records import ProgressCounters


def utc_today() -> date:
    """Текущая календарная дата по UTC - единая для расчёта серий"""
    return datetime.now(timezone.utc).date()


def next_streak(streak_days: int, last_lesson_date: Optional[date], today: date) -> int:
    if last_lesson_date == today:
        # Второй урок за день серию не увеличивает
        return streak_days
    if last_lesson_date == today - timedelta(days=1):
        return streak_days + 1
    # Пропуск от двух дней или первый урок вообще
    return 1


def reward_lesson(counters: ProgressCounters, xp_earned: int, today: date) -> ProgressCounters:
    """Новые значения XP и серии после завершения нового урока"""
    return ProgressCounters(
        total_xp=counters.total_xp + xp_earned,
        streak_days=next_streak(counters.streak_days, counters.last_lesson_date, today),
        last_lesson_date=today,
    )
