import asyncio
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from models.plan_models import ActiveTimerSession

logger = logging.getLogger(__name__)

DEFAULT_SESSION_SECONDS = 25 * 60

MINUTES_PATTERN = re.compile(r"(\d+)\s*min")
HOURS_PATTERN = re.compile(r"(\d+(?:\.\d+)?)\s*hour")


def parse_duration_seconds(duration: str) -> int:
    """
    Convert a free-text plan duration into seconds.

    "45 min" -> 2700, "1.5 hours" -> 5400. Anything else falls back to a
    25 minute session. A zero-length duration becomes one second, so the
    session completes on its first tick.
    """
    minutes = MINUTES_PATTERN.search(duration or "")
    if minutes:
        return max(int(minutes.group(1)) * 60, 1)

    hours = HOURS_PATTERN.search(duration or "")
    if hours:
        return max(int(round(float(hours.group(1)) * 3600)), 1)

    return DEFAULT_SESSION_SECONDS


class TimerStateError(Exception):
    """Raised on a transition the timer's current state does not allow"""


class TimerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class TimerEnd:
    time_left: int
    completed: bool


class Ticker:
    """Calls a tick callback once per interval until stopped.

    The callback may return False to end the loop itself. After stop()
    returns no further tick fires, even when stop() is called from inside
    the callback.
    """

    def __init__(self, callback: Callable[[], Optional[bool]], interval: float = 1.0, name: str = "ticker"):
        self.callback = callback
        self.interval = interval
        self.name = name
        self._task: Optional[asyncio.Task] = None
        self._stopped = True

    @property
    def running(self) -> bool:
        return not self._stopped

    def start(self) -> None:
        if self.running:
            return
        self._stopped = False
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self.name)

    def stop(self) -> None:
        self._stopped = True
        task, self._task = self._task, None
        if task and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _run(self) -> None:
        try:
            while not self._stopped:
                await asyncio.sleep(self.interval)
                if self._stopped:
                    break
                if self.callback() is False:
                    self._stopped = True
        except asyncio.CancelledError:
            pass
        except Exception as e:
            self._stopped = True
            logger.error(f"Ticker {self.name} stopped after a failing tick: {e}", exc_info=True)


class PlanSessionTimer:
    """Countdown for one plan subject: idle -> running <-> paused -> completed | cancelled"""

    def __init__(self, subject: str, topic: str, duration: int):
        if duration <= 0:
            raise ValueError("Session duration must be positive")
        self.subject = subject
        self.topic = topic
        self.duration = duration
        self.time_left = duration
        self.state = TimerState.IDLE

    @property
    def finished(self) -> bool:
        return self.state in (TimerState.COMPLETED, TimerState.CANCELLED)

    @property
    def elapsed_seconds(self) -> int:
        return self.duration - self.time_left

    @property
    def progress(self) -> float:
        return self.elapsed_seconds / self.duration

    def _require(self, *states: TimerState) -> None:
        if self.state not in states:
            raise TimerStateError(f"Cannot do that while the session is {self.state.value}")

    def start(self) -> None:
        self._require(TimerState.IDLE)
        self.state = TimerState.RUNNING

    def pause(self) -> None:
        self._require(TimerState.RUNNING)
        self.state = TimerState.PAUSED

    def resume(self) -> None:
        self._require(TimerState.PAUSED)
        self.state = TimerState.RUNNING

    def tick(self) -> Optional[TimerEnd]:
        if self.state != TimerState.RUNNING:
            return None

        self.time_left = max(self.time_left - 1, 0)
        if self.time_left == 0:
            self.state = TimerState.COMPLETED
            return TimerEnd(time_left=0, completed=True)
        return None

    def stop(self) -> TimerEnd:
        if self.finished:
            raise TimerStateError(f"Session already {self.state.value}")
        self.state = TimerState.CANCELLED
        return TimerEnd(time_left=self.time_left, completed=False)

    def snapshot(self) -> ActiveTimerSession:
        return ActiveTimerSession(
            subject=self.subject,
            topic=self.topic,
            duration=self.duration,
            time_left=self.time_left,
        )


class PomodoroMode(str, Enum):
    FOCUS = "focus"
    SHORT_BREAK = "short_break"
    LONG_BREAK = "long_break"


MODE_CONFIG = {
    PomodoroMode.FOCUS: {"duration": 25 * 60, "label": "Focus"},
    PomodoroMode.SHORT_BREAK: {"duration": 5 * 60, "label": "Short Break"},
    PomodoroMode.LONG_BREAK: {"duration": 15 * 60, "label": "Long Break"},
}
SESSIONS_PER_CYCLE = 4


class PomodoroTimer:
    """Cyclic focus/break timer.

    Every completed focus interval is reported to `on_focus_complete` with
    the focus length in minutes before the mode advances. The timer stops
    after each mode change and waits for the next start.
    """

    def __init__(self, on_focus_complete: Optional[Callable[[int], None]] = None):
        self.on_focus_complete = on_focus_complete
        self.mode = PomodoroMode.FOCUS
        self.time_left = MODE_CONFIG[self.mode]["duration"]
        self.is_active = False
        self.sessions_completed = 0
        self.message = "Ready when you are. Let's begin a focus session."

    @property
    def mode_duration(self) -> int:
        return MODE_CONFIG[self.mode]["duration"]

    @property
    def label(self) -> str:
        return MODE_CONFIG[self.mode]["label"]

    @property
    def cycle_progress(self) -> int:
        return self.sessions_completed % SESSIONS_PER_CYCLE

    @property
    def progress(self) -> float:
        return self.time_left / self.mode_duration

    def start(self) -> None:
        self.is_active = True
        self.message = "Timer initiated. Let's lock in and make these minutes matter."

    def pause(self) -> None:
        self.is_active = False
        self.message = "Paused. Take a moment and resume when you're ready."

    def reset(self) -> None:
        self.is_active = False
        self.time_left = self.mode_duration
        self.message = "Timer reset. Ready for a fresh start."

    def tick(self) -> Optional[PomodoroMode]:
        """Advance one second; returns the new mode when the interval elapses"""
        if not self.is_active:
            return None

        self.time_left = max(self.time_left - 1, 0)
        if self.time_left == 0:
            return self._next_mode()
        return None

    def _next_mode(self) -> PomodoroMode:
        if self.mode == PomodoroMode.FOCUS:
            if self.on_focus_complete:
                self.on_focus_complete(MODE_CONFIG[PomodoroMode.FOCUS]["duration"] // 60)
            self.sessions_completed += 1
            if self.sessions_completed % SESSIONS_PER_CYCLE == 0:
                self.mode = PomodoroMode.LONG_BREAK
                self.message = "Outstanding consistency! Take a well-deserved long break."
            else:
                self.mode = PomodoroMode.SHORT_BREAK
                self.message = "Focus session complete. Take a deep breath, you earned this break."
        else:
            self.mode = PomodoroMode.FOCUS
            self.message = "Break's over. Time to lock in for another productive session."

        self.time_left = self.mode_duration
        self.is_active = False
        return self.mode
