from datetime import date, timedelta
from typing import List, Optional

from models.api_models import DayActivity, TrackerStatsResponse
from models.plan_models import StudySession

RECENT_SESSION_COUNT = 4


def _hours_on(history: List[StudySession], day: date) -> float:
    return sum(s.duration for s in history if s.date == day)


def _newest_first(history: List[StudySession]) -> List[StudySession]:
    return sorted(
        history,
        key=lambda s: (s.date, s.created_at.timestamp() if s.created_at else 0.0),
        reverse=True,
    )


def seven_day_activity(history: List[StudySession], today: date) -> List[DayActivity]:
    days = [today - timedelta(days=offset) for offset in range(6, -1, -1)]
    return [
        DayActivity(day=d.strftime("%a"), date=d, hours=round(_hours_on(history, d), 2))
        for d in days
    ]


def build_insight(history: List[StudySession], streak: int) -> str:
    if not history:
        return "Log your first session to get personalized insights from the AI."

    latest = _newest_first(history)[0]
    hours = round(latest.duration, 2)
    if streak > 2:
        return (
            f"You're on a 🔥 {streak}-day streak! Incredible focus. Your last session was "
            f"{hours} hours of {latest.subject}. Let's keep it going!"
        )
    return (
        f"Great work on your last session in {latest.subject}! You studied for {hours} hours. "
        f"Tackle another session today to keep the momentum going."
    )


def build_tracker_stats(
    history: List[StudySession],
    streak: int,
    today: Optional[date] = None,
) -> TrackerStatsResponse:
    """Summarise the study history for the tracker and dashboard views"""
    today = today or date.today()

    todays_sessions = [s for s in history if s.date == today]
    completed_today = sum(1 for s in todays_sessions if s.completed)
    completion = completed_today / len(todays_sessions) * 100 if todays_sessions else 0.0

    return TrackerStatsResponse(
        total_hours_today=round(sum(s.duration for s in todays_sessions), 2),
        completion_percentage=completion,
        focus_score=round(completion),
        seven_day_activity=seven_day_activity(history, today),
        total_hours=round(sum(s.duration for s in history), 1),
        total_sessions=len(history),
        recent_sessions=_newest_first(history)[:RECENT_SESSION_COUNT],
        streak=streak,
        insight=build_insight(history, streak),
    )
