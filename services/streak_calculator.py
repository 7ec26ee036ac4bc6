from datetime import date, timedelta
from typing import Iterable, List, Optional

from models.plan_models import StudySession


def _distinct_dates(sessions: Iterable[StudySession]) -> List[date]:
    return sorted({s.date for s in sessions}, reverse=True)


def compute_streak(sessions: Iterable[StudySession], today: Optional[date] = None) -> int:
    """
    Count consecutive study days ending today or yesterday.

    Only the presence of a date matters; several sessions on one day count once.
    """
    dates = _distinct_dates(sessions)
    if not dates:
        return 0

    today = today or date.today()
    if dates[0] not in (today, today - timedelta(days=1)):
        return 0

    streak = 1
    for current, previous in zip(dates, dates[1:]):
        if (current - previous).days != 1:
            break
        streak += 1
    return streak


def compute_longest_streak(sessions: Iterable[StudySession]) -> int:
    dates = _distinct_dates(sessions)
    if not dates:
        return 0

    longest = run = 1
    for current, previous in zip(dates, dates[1:]):
        run = run + 1 if (current - previous).days == 1 else 1
        longest = max(longest, run)
    return longest
