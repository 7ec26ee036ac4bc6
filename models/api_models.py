from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import date as Date

from models.chat_models import ChatMessage, TranscriptionEntry
from models.plan_models import ActiveTimerSession, StudyPlan, StudySession


class ChatRequest(BaseModel):
    message: str = Field(..., description="User message for the study coach")

class ChatResponse(BaseModel):
    replies: List[ChatMessage]
    study_plan: Optional[StudyPlan] = None

class MessagesResponse(BaseModel):
    messages: List[ChatMessage]

class PlanParseRequest(BaseModel):
    text: str = Field(..., description="Markdown chat response to parse")

class PlanResponse(BaseModel):
    study_plan: Optional[StudyPlan]
    completed_count: int = 0
    progress_percent: float = 0.0

class PlanGenerateRequest(BaseModel):
    subjects: List[str] = Field(..., min_length=1, description="Subjects or topics to study")
    available_hours: float = Field(..., gt=0, description="Total hours available for the session")
    priorities: List[str] = Field(default_factory=list, description="Priority or difficult subjects")

class StartPlanSessionRequest(BaseModel):
    subject_index: int = Field(..., ge=0, description="Position of the subject in the current plan")

class ActiveSessionResponse(BaseModel):
    active: bool
    session: Optional[ActiveTimerSession] = None
    state: Optional[str] = None
    progress: float = 0.0

class SessionEndResponse(BaseModel):
    completed: bool
    time_left: int
    logged: bool
    elapsed_hours: float

class PomodoroResponse(BaseModel):
    mode: str
    label: str
    time_left: int
    is_active: bool
    sessions_completed: int
    cycle_progress: str
    progress: float
    message: str

class HistoryCreateRequest(BaseModel):
    subject: str = Field(..., description="Subject studied")
    duration_minutes: float = Field(..., gt=0, description="Minutes studied")
    date: Optional[Date] = Field(None, description="Calendar day, defaults to today")
    completed: bool = True

class HistoryResponse(BaseModel):
    sessions: List[StudySession]
    total_count: int
    db_error: Optional[str] = None

class StreakResponse(BaseModel):
    current_streak: int
    longest_streak: int

class DayActivity(BaseModel):
    day: str
    date: Date
    hours: float

class TrackerStatsResponse(BaseModel):
    total_hours_today: float
    completion_percentage: float
    focus_score: int
    seven_day_activity: List[DayActivity]
    total_hours: float
    total_sessions: int
    recent_sessions: List[StudySession]
    streak: int
    insight: str

class AlertsResponse(BaseModel):
    alerts: List[str]

class VoiceEventRequest(BaseModel):
    input_transcription: Optional[str] = None
    output_transcription: Optional[str] = None
    turn_complete: bool = False

class TranscriptResponse(BaseModel):
    entries: List[TranscriptionEntry]
    pending_user: str
    pending_agent: str
