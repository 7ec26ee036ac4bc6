import asyncio

import pytest

from db.history_repository import HistoryStoreError
from models.plan_models import StudyPlan, StudyPlanSubject
from services.session_manager import (
    MISSING_TABLE_MESSAGE, NoActiveSessionError, PlanSubjectNotFoundError,
    SessionAlreadyActiveError, StudySessionManager
)

from tests.conftest import PLAN_TEXT, TODAY, FakeHistoryStore, make_session


def run_to_end(manager):
    outcome = None
    while outcome is None:
        outcome = manager.tick()
    return outcome


def test_chat_reply_without_plan_keeps_current_plan(manager):
    manager.apply_chat_response(PLAN_TEXT)
    first = manager.plan

    assert manager.apply_chat_response("What subjects are on your list?") is None
    assert manager.plan is first


def test_unknown_subject_index_is_rejected(manager):
    with pytest.raises(PlanSubjectNotFoundError):
        manager.start_plan_session(0)

    manager.apply_chat_response(PLAN_TEXT)
    with pytest.raises(PlanSubjectNotFoundError):
        manager.start_plan_session(7)


async def test_second_session_is_rejected_without_touching_the_first(manager):
    manager.apply_chat_response(PLAN_TEXT)
    manager.start_plan_session(0)
    manager.tick()
    before = manager.active_session

    with pytest.raises(SessionAlreadyActiveError):
        manager.start_plan_session(1)

    assert manager.active_session == before
    assert manager.active_session.time_left == 2699


async def test_completed_session_logs_full_duration_and_marks_subject(manager, store):
    manager.apply_chat_response(PLAN_TEXT)
    manager.start_plan_session(0)

    outcome = run_to_end(manager)
    await manager.drain()

    assert outcome.completed is True
    assert outcome.logged is True
    assert manager.active_session is None
    assert manager.plan.subjects[0].completed is True
    assert manager.plan.subjects[1].completed is False

    assert len(store.inserted) == 1
    record = store.inserted[0]
    assert record.subject == "Physics"
    assert record.duration == 2700 / 3600
    assert record.date == TODAY
    assert record.completed is True
    assert manager.history[0].subject == "Physics"


async def test_short_stopped_session_is_not_logged(manager, store):
    manager.apply_chat_response(PLAN_TEXT)
    manager.start_plan_session(2)
    for _ in range(10):
        manager.tick()

    outcome = manager.stop_plan_session()
    await manager.drain()

    assert outcome.completed is False
    assert outcome.logged is False
    assert outcome.time_left == 1790
    assert store.inserted == []
    assert manager.plan.subjects[2].completed is False
    assert manager.active_session is None


async def test_stopped_session_logs_elapsed_time_as_incomplete(manager, store):
    manager.apply_chat_response(PLAN_TEXT)
    manager.start_plan_session(0)
    for _ in range(600):
        manager.tick()

    manager.stop_plan_session()
    await manager.drain()

    assert store.inserted[0].duration == 600 / 3600
    assert store.inserted[0].completed is False
    assert manager.plan.subjects[0].completed is False


async def test_paused_session_holds_its_time(manager):
    manager.apply_chat_response(PLAN_TEXT)
    manager.start_plan_session(0)
    manager.tick()
    manager.pause_plan_session()

    manager.tick()
    assert manager.active_session.time_left == 2699

    manager.resume_plan_session()
    manager.tick()
    assert manager.active_session.time_left == 2698


def test_stop_without_session_is_rejected(manager):
    with pytest.raises(NoActiveSessionError):
        manager.stop_plan_session()


async def test_duplicate_subjects_complete_first_open_match(manager):
    entry = StudyPlanSubject(subject="Math", duration="1 min", topic="Algebra")
    manager.set_plan(StudyPlan(subjects=[entry, entry.model_copy()]))

    manager.start_plan_session(1)
    run_to_end(manager)
    await manager.drain()

    assert [s.completed for s in manager.plan.subjects] == [True, False]


async def test_failed_background_write_becomes_an_alert():
    store = FakeHistoryStore(fail=True)
    manager = StudySessionManager("owner-1", store, tick_interval=None, today=lambda: TODAY)
    manager.apply_chat_response(PLAN_TEXT)
    manager.start_plan_session(0)

    outcome = run_to_end(manager)
    await manager.drain()

    assert outcome.completed is True
    assert manager.plan.subjects[0].completed is True
    assert manager.history == []
    alerts = manager.pop_alerts()
    assert len(alerts) == 1
    assert alerts[0].startswith("Failed to save your session")
    assert manager.pop_alerts() == []


async def test_log_session_failure_leaves_history_untouched():
    manager = StudySessionManager("owner-1", FakeHistoryStore(fail=True), tick_interval=None)

    with pytest.raises(HistoryStoreError):
        await manager.log_session("Math", 1.0)

    assert manager.history == []


async def test_load_history_reports_missing_table():
    manager = StudySessionManager(
        "owner-1", FakeHistoryStore(fail=True, missing_table=True), tick_interval=None
    )

    assert await manager.load_history() == []
    assert manager.db_error == MISSING_TABLE_MESSAGE


async def test_load_history_and_streak(store, manager):
    store.sessions = [make_session(TODAY), make_session(TODAY.replace(day=14))]

    await manager.load_history()

    assert manager.db_error is None
    assert manager.streak == 2
    assert manager.longest_streak == 2


async def test_focus_interval_logs_general_focus(manager, store):
    manager.start_pomodoro()
    manager.pomodoro.time_left = 1

    assert manager.tick_pomodoro() is False
    await manager.drain()

    assert store.inserted[0].subject == "General Focus"
    assert store.inserted[0].duration == 25 / 60
    assert manager.pomodoro.sessions_completed == 1


async def test_ticker_driven_session_completes_and_logs(store):
    manager = StudySessionManager("owner-1", store, tick_interval=0.001, today=lambda: TODAY)
    manager.set_plan(StudyPlan(subjects=[StudyPlanSubject(subject="Math", duration="1 min", topic="Algebra")]))

    manager.start_plan_session(0)
    for _ in range(500):
        if manager.active_timer is None:
            break
        await asyncio.sleep(0.01)
    await manager.drain()

    assert manager.active_timer is None
    assert manager._plan_ticker.running is False
    assert manager.plan.subjects[0].completed is True
    assert [s.duration for s in store.inserted] == [60 / 3600]
    manager.close()


async def test_zero_minute_subject_completes_on_first_tick(manager, store):
    manager.set_plan(StudyPlan(subjects=[StudyPlanSubject(subject="Quiz", duration="0 min", topic="Warmup")]))

    session = manager.start_plan_session(0)
    outcome = manager.tick()
    await manager.drain()

    assert session.duration == 1
    assert outcome.completed is True
    assert manager.plan.subjects[0].completed is True
    assert store.inserted == []
