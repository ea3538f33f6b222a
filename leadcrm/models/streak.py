from sqlalchemy import Column, Integer, Date, ForeignKey

from .base import Base, TimestampMixin


class Streak(Base, TimestampMixin):
    """Consecutive days on which a user logged at least one lead."""
    __tablename__ = "streaks"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)
    current_streak = Column(Integer, default=0, nullable=False)
    longest_streak = Column(Integer, default=0, nullable=False)
    last_action_date = Column(Date, nullable=True)
    streak_started_at = Column(Date, nullable=True)
