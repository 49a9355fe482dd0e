"""Assistant schemas - request/response models and parser value objects"""

from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator


class ParsedDate(BaseModel):
    date: date
    date_str: str


class ParsedTime(BaseModel):
    hours: int
    minutes: int
    time_str: str


class BookingDetails(BaseModel):
    """Everything the extractor could pull out of a booking request"""

    email: Optional[str] = None
    name: Optional[str] = None
    date: Optional[ParsedDate] = None
    time: Optional[ParsedTime] = None
    start_time: Optional[datetime] = None
    duration: int = 30
    meeting_type: Optional[str] = None
    title: str = "Meeting"

    def missing_fields(self) -> list[str]:
        missing = []
        if not self.email:
            missing.append("email")
        if not self.date:
            missing.append("date")
        if not self.time:
            missing.append("time")
        return missing


class MeetingReference(BaseModel):
    """Which existing meeting a cancel/reschedule message points at, and where to move it"""

    email: Optional[str] = None
    name: Optional[str] = None
    date: Optional[ParsedDate] = None
    time: Optional[ParsedTime] = None
    new_date: Optional[ParsedDate] = None
    new_time: Optional[ParsedTime] = None


class ChatMessage(BaseModel):
    role: str
    content: str


class ScheduleRequest(BaseModel):
    message: str
    history: list[ChatMessage] = Field(default_factory=list)

    @field_validator("message")
    @classmethod
    def validate_message(cls, v):
        if not v or not v.strip():
            raise ValueError("Message is required")
        return v.strip()


class AssistantResponse(BaseModel):
    type: str
    message: str
    data: Optional[dict[str, Any]] = None


class ConfirmBookingRequest(BaseModel):
    title: Optional[str] = None
    start_time: datetime
    end_time: Optional[datetime] = None
    attendee_email: EmailStr
    attendee_name: Optional[str] = None
    notes: Optional[str] = None
    duration: Optional[int] = None
    team_id: Optional[int] = None
    template_id: Optional[int] = None

    @field_validator("duration")
    @classmethod
    def validate_duration(cls, v):
        if v is not None and v <= 0:
            raise ValueError("Duration must be greater than 0")
        return v


class SuggestRequest(BaseModel):
    message: Optional[str] = None
