from datetime import timedelta

from services.tracker_stats import build_insight, build_tracker_stats, seven_day_activity

from tests.conftest import TODAY, make_session


def test_empty_history():
    stats = build_tracker_stats([], 0, today=TODAY)

    assert stats.total_hours_today == 0
    assert stats.completion_percentage == 0
    assert stats.total_sessions == 0
    assert stats.recent_sessions == []
    assert stats.insight.startswith("Log your first session")
    assert len(stats.seven_day_activity) == 7


def test_today_totals_and_completion():
    history = [
        make_session(TODAY, hours=0.5, completed=True),
        make_session(TODAY, hours=0.25, completed=False),
        make_session(TODAY - timedelta(days=1), hours=2.25),
    ]

    stats = build_tracker_stats(history, 2, today=TODAY)

    assert stats.total_hours_today == 0.75
    assert stats.completion_percentage == 50
    assert stats.focus_score == 50
    assert stats.total_hours == 3.0
    assert stats.total_sessions == 3


def test_seven_day_activity_runs_oldest_to_today():
    history = [make_session(TODAY, hours=1.0), make_session(TODAY - timedelta(days=6), hours=0.5)]

    activity = seven_day_activity(history, TODAY)

    assert activity[0].date == TODAY - timedelta(days=6)
    assert activity[0].hours == 0.5
    assert activity[-1].date == TODAY
    assert activity[-1].day == TODAY.strftime("%a")
    assert [a.hours for a in activity[1:-1]] == [0, 0, 0, 0, 0]


def test_recent_sessions_are_newest_first_and_capped():
    history = [make_session(TODAY - timedelta(days=n), subject=f"S{n}") for n in range(6)]

    stats = build_tracker_stats(list(reversed(history)), 6, today=TODAY)

    assert [s.subject for s in stats.recent_sessions] == ["S0", "S1", "S2", "S3"]


def test_insight_mentions_streak():
    history = [make_session(TODAY, subject="Physics", hours=1.5)]

    assert "3-day streak" in build_insight(history, 3)
    assert "Great work on your last session in Physics" in build_insight(history, 1)
