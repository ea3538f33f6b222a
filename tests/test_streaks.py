from datetime import date, timedelta

from leadcrm.models.streak import Streak
from leadcrm.services.streak_service import StreakService, advance_streak

DAY = date(2024, 5, 10)


def fresh():
    return Streak(user_id=1, current_streak=0, longest_streak=0)


def test_first_activity_starts_a_streak():
    streak = advance_streak(fresh(), DAY)
    assert streak.current_streak == 1
    assert streak.longest_streak == 1
    assert streak.streak_started_at == DAY
    assert streak.last_action_date == DAY


def test_same_day_is_counted_once():
    streak = advance_streak(advance_streak(fresh(), DAY), DAY)
    assert streak.current_streak == 1


def test_consecutive_days_extend_the_streak():
    streak = fresh()
    for offset in range(5):
        advance_streak(streak, DAY + timedelta(days=offset))
    assert streak.current_streak == 5
    assert streak.longest_streak == 5
    assert streak.streak_started_at == DAY


def test_gap_resets_but_keeps_longest():
    streak = fresh()
    for offset in range(3):
        advance_streak(streak, DAY + timedelta(days=offset))
    advance_streak(streak, DAY + timedelta(days=5))
    assert streak.current_streak == 1
    assert streak.longest_streak == 3
    assert streak.streak_started_at == DAY + timedelta(days=5)


async def test_current_streak_expires_after_a_missed_day(db_session, org):
    rep = org["rep"]
    service = StreakService(db_session)
    assert await service.current_streak_days(rep.id, DAY) == 0

    await service.record_activity(rep.id, DAY - timedelta(days=1))
    await service.record_activity(rep.id, DAY)
    await db_session.commit()

    assert await service.current_streak_days(rep.id, DAY) == 2
    assert await service.current_streak_days(rep.id, DAY + timedelta(days=1)) == 2
    assert await service.current_streak_days(rep.id, DAY + timedelta(days=2)) == 0
