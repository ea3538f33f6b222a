from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from datetime import date, timedelta
from typing import Optional

from leadcrm.models.streak import Streak


def advance_streak(streak: Streak, day: date) -> Streak:
    """Same day: unchanged. Next day: +1. Any gap: restart at 1."""
    last = streak.last_action_date
    if last == day:
        return streak

    if last is not None and last == day - timedelta(days=1):
        streak.current_streak = (streak.current_streak or 0) + 1
    else:
        streak.current_streak = 1
        streak.streak_started_at = day

    streak.last_action_date = day
    streak.longest_streak = max(streak.longest_streak or 0, streak.current_streak)
    return streak


class StreakService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_streak(self, user_id: int) -> Optional[Streak]:
        result = await self.db.execute(select(Streak).where(Streak.user_id == user_id))
        return result.scalar_one_or_none()

    async def current_streak_days(self, user_id: int, today: date) -> int:
        """Streak still alive as of ``today``; a gap of more than a day breaks it."""
        streak = await self.get_streak(user_id)
        if streak is None or streak.last_action_date is None:
            return 0
        if streak.last_action_date < today - timedelta(days=1):
            return 0
        return streak.current_streak or 0

    async def record_activity(self, user_id: int, day: date) -> Streak:
        """Caller commits."""
        streak = await self.get_streak(user_id)
        if streak is None:
            streak = Streak(user_id=user_id, current_streak=0, longest_streak=0)
            self.db.add(streak)
        return advance_streak(streak, day)
