import asyncio
import logging
from dataclasses import dataclass
from datetime import date
from typing import Awaitable, Callable, List, Optional, Set, Union

from db.history_repository import HistoryStoreError
from models.plan_models import (
    ActiveTimerSession, StudyPlan, StudyPlanSubject, StudySession, StudySessionCreate
)
from services.plan_parser import parse_study_plan
from services.session_timer import (
    PlanSessionTimer, PomodoroTimer, Ticker, TimerEnd, parse_duration_seconds
)
from services.streak_calculator import compute_longest_streak, compute_streak

logger = logging.getLogger(__name__)

MIN_LOGGED_HOURS = 0.01
POMODORO_SUBJECT = "General Focus"

MISSING_TABLE_MESSAGE = (
    "Database Connection Error: The 'study_sessions' table was not found. This is a setup issue. "
    "If you are the administrator, please ensure the database schema is correctly initialized."
)


class SessionAlreadyActiveError(Exception):
    def __init__(self, message: str = "Another session is already in progress!"):
        super().__init__(message)


class NoActiveSessionError(Exception):
    def __init__(self, message: str = "No study session is in progress."):
        super().__init__(message)


class PlanSubjectNotFoundError(Exception):
    pass


def describe_history_error(error: HistoryStoreError) -> str:
    if error.missing_table:
        return MISSING_TABLE_MESSAGE
    return f"Failed to fetch study history: {error}"


@dataclass(frozen=True)
class SessionOutcome:
    subject: str
    topic: str
    completed: bool
    time_left: int
    elapsed_hours: float
    logged: bool


class StudySessionManager:
    """
    Owns one user's study state: the current plan, the session history,
    the single plan-driven countdown and the Pomodoro timer.

    Timer transitions are plain method calls (`tick`, `stop_plan_session`,
    `tick_pomodoro`). When `tick_interval` is set, a Ticker drives them once
    per interval; with `tick_interval=None` the caller ticks by hand.
    History writes triggered by timers run as separate asyncio tasks so a
    slow or failing store never holds up a timer transition. Their failures
    are logged and kept as user-facing alerts.
    """

    def __init__(
        self,
        owner_id: str,
        store,
        tick_interval: Optional[float] = 1.0,
        today: Callable[[], date] = date.today,
    ):
        self.owner_id = owner_id
        self.store = store
        self.tick_interval = tick_interval
        self.today = today

        self.plan: Optional[StudyPlan] = None
        self.history: List[StudySession] = []
        self.db_error: Optional[str] = None

        self.active_timer: Optional[PlanSessionTimer] = None
        self.pomodoro = PomodoroTimer(on_focus_complete=self._on_focus_complete)

        self._plan_ticker = Ticker(self.tick, tick_interval or 1.0, name=f"plan-session:{owner_id}")
        self._pomodoro_ticker = Ticker(self.tick_pomodoro, tick_interval or 1.0, name=f"pomodoro:{owner_id}")
        self._pending: Set[asyncio.Task] = set()
        self._alerts: List[str] = []

    # History

    async def load_history(self) -> List[StudySession]:
        self.db_error = None
        try:
            self.history = await self.store.list_sessions(self.owner_id)
        except HistoryStoreError as e:
            logger.error(f"Error fetching study history for {self.owner_id}: {e}")
            self.db_error = describe_history_error(e)
        return self.history

    async def log_session(
        self,
        subject: str,
        hours: float,
        completed: bool = True,
        on: Optional[date] = None,
    ) -> StudySession:
        """Append a record to the store, then to the in-memory history.

        Raises HistoryStoreError when the store rejects the write; the
        in-memory history is left as it was.
        """
        payload = StudySessionCreate(
            subject=subject,
            duration=hours,
            date=on or self.today(),
            completed=completed,
        )
        record = await self.store.insert_session(self.owner_id, payload)
        self.history.insert(0, record)
        return record

    @property
    def streak(self) -> int:
        return compute_streak(self.history, today=self.today())

    @property
    def longest_streak(self) -> int:
        return compute_longest_streak(self.history)

    def pop_alerts(self) -> List[str]:
        alerts, self._alerts = self._alerts, []
        return alerts

    def _dispatch(self, write: Awaitable[StudySession], source: str) -> None:
        task = asyncio.get_running_loop().create_task(write)
        self._pending.add(task)
        task.add_done_callback(lambda t: self._on_write_done(t, source))

    def _on_write_done(self, task: asyncio.Task, source: str) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error:
            logger.error(f"Error logging session from {source}: {error}")
            self._alerts.append(
                f"Failed to save your session: {error}. Please check your database setup."
            )

    async def drain(self) -> None:
        """Wait for history writes started by timers"""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # Plan

    def apply_chat_response(self, text: str) -> Optional[StudyPlan]:
        plan = parse_study_plan(text)
        if plan:
            self.plan = plan
        return plan

    def set_plan(self, plan: StudyPlan) -> None:
        self.plan = plan

    def _resolve_subject(self, subject: Union[int, StudyPlanSubject]) -> StudyPlanSubject:
        if isinstance(subject, StudyPlanSubject):
            return subject
        if not self.plan:
            raise PlanSubjectNotFoundError("There is no study plan yet.")
        if not 0 <= subject < len(self.plan.subjects):
            raise PlanSubjectNotFoundError(f"The plan has no subject #{subject + 1}.")
        return self.plan.subjects[subject]

    def _mark_completed(self, subject: str, topic: str) -> bool:
        # First incomplete entry with the same (subject, topic) wins
        if not self.plan:
            return False
        for entry in self.plan.subjects:
            if entry.subject == subject and entry.topic == topic and not entry.completed:
                entry.completed = True
                return True
        return False

    # Plan-driven sessions

    @property
    def active_session(self) -> Optional[ActiveTimerSession]:
        return self.active_timer.snapshot() if self.active_timer else None

    def start_plan_session(self, subject: Union[int, StudyPlanSubject]) -> ActiveTimerSession:
        if self.active_timer is not None:
            raise SessionAlreadyActiveError()

        entry = self._resolve_subject(subject)
        timer = PlanSessionTimer(entry.subject, entry.topic, parse_duration_seconds(entry.duration))
        timer.start()
        self.active_timer = timer
        if self.tick_interval:
            self._plan_ticker.start()

        logger.info(f"Started {timer.duration}s session for {entry.subject} ({entry.topic})")
        return timer.snapshot()

    def pause_plan_session(self) -> ActiveTimerSession:
        timer = self._require_active()
        timer.pause()
        self._plan_ticker.stop()
        return timer.snapshot()

    def resume_plan_session(self) -> ActiveTimerSession:
        timer = self._require_active()
        timer.resume()
        if self.tick_interval:
            self._plan_ticker.start()
        return timer.snapshot()

    def tick(self) -> Optional[SessionOutcome]:
        timer = self.active_timer
        if timer is None:
            return None
        end = timer.tick()
        if end:
            return self._finish(timer, end)
        return None

    def stop_plan_session(self) -> SessionOutcome:
        timer = self._require_active()
        return self._finish(timer, timer.stop())

    def _require_active(self) -> PlanSessionTimer:
        if self.active_timer is None:
            raise NoActiveSessionError()
        return self.active_timer

    def _finish(self, timer: PlanSessionTimer, end: TimerEnd) -> SessionOutcome:
        self._plan_ticker.stop()
        self.active_timer = None

        elapsed_hours = (timer.duration - end.time_left) / 3600
        logged = elapsed_hours > MIN_LOGGED_HOURS
        if logged:
            self._dispatch(
                self.log_session(timer.subject, elapsed_hours, completed=end.completed),
                "plan session",
            )
        if end.completed:
            self._mark_completed(timer.subject, timer.topic)

        logger.info(
            f"Session for {timer.subject} ended: completed={end.completed}, "
            f"time_left={end.time_left}s, logged={logged}"
        )
        return SessionOutcome(
            subject=timer.subject,
            topic=timer.topic,
            completed=end.completed,
            time_left=end.time_left,
            elapsed_hours=elapsed_hours,
            logged=logged,
        )

    # Pomodoro

    def start_pomodoro(self) -> None:
        self.pomodoro.start()
        if self.tick_interval:
            self._pomodoro_ticker.start()

    def pause_pomodoro(self) -> None:
        self.pomodoro.pause()
        self._pomodoro_ticker.stop()

    def reset_pomodoro(self) -> None:
        self.pomodoro.reset()
        self._pomodoro_ticker.stop()

    def tick_pomodoro(self) -> Optional[bool]:
        if self.pomodoro.tick() is not None:
            # The timer waits for a new start after each mode change
            return False
        return None

    def _on_focus_complete(self, minutes: int) -> None:
        self._dispatch(self.log_session(POMODORO_SUBJECT, minutes / 60, completed=True), "pomodoro")

    def close(self) -> None:
        self._plan_ticker.stop()
        self._pomodoro_ticker.stop()
