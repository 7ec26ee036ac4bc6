from datetime import date as Date, datetime
from typing import List, Optional
from pydantic import BaseModel, Field


class StudyPlanSubject(BaseModel):
    subject: str = Field(..., description="Subject to study, e.g. Physics.")
    duration: str = Field(..., description="Free-text duration, e.g. '45 min' or '1.5 hours'.")
    topic: str = Field(default="N/A", description="Topic or task within the subject.")
    completed: bool = Field(default=False, description="Set once a timer session for it completes.")


class StudyPlan(BaseModel):
    total_time: str = Field(default="N/A", description="Total study time label.")
    subjects: List[StudyPlanSubject] = Field(default_factory=list, description="Subjects in execution order.")
    study_tip: str = Field(default="N/A", description="A productivity or focus tip.")
    motivation: str = Field(default="N/A", description="One motivational line or quote.")

    @property
    def completed_count(self) -> int:
        return sum(1 for s in self.subjects if s.completed)

    @property
    def progress_percent(self) -> float:
        if not self.subjects:
            return 0.0
        return self.completed_count / len(self.subjects) * 100


class StudySessionCreate(BaseModel):
    subject: str
    duration: float = Field(..., ge=0, description="Study time in hours.")
    date: Date
    completed: bool = True


class StudySession(StudySessionCreate):
    id: str
    user_id: str
    created_at: Optional[datetime] = None


class ActiveTimerSession(BaseModel):
    subject: str
    topic: str
    duration: int = Field(..., description="Total duration in seconds.")
    time_left: int = Field(..., description="Seconds left on the countdown.")
