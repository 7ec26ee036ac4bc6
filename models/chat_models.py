from typing import Literal, Optional, Union
from uuid import uuid4
from pydantic import BaseModel, Field, StrictFloat, StrictInt, StrictStr, field_validator


class ChatMessage(BaseModel):
    id: str = Field(default_factory=lambda: uuid4().hex)
    role: Literal["user", "model"]
    text: str


class TranscriptionEntry(BaseModel):
    id: str = Field(default_factory=lambda: uuid4().hex)
    user: str
    agent: str


class LogStudySessionArgs(BaseModel):
    """Arguments of the logStudySession tool call, checked strictly before logging"""
    subject: StrictStr
    duration: Union[StrictInt, StrictFloat] = Field(..., description="Minutes studied.")
    date: Optional[StrictStr] = None

    @field_validator("duration")
    @classmethod
    def duration_not_negative(cls, v):
        if v < 0:
            raise ValueError("duration must not be negative")
        return v
