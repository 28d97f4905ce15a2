"""
Request shapes for the call service.

These pydantic models are the canonical call shape: ``to``/``from`` numbers,
a provider tag and the normalized status vocabulary. API payloads arrive in
camelCase (``recordingEnabled``); Python code uses snake_case attributes.
"""
from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .constants import WEEKDAYS, CallProviderType, ReminderMethod


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CallOptions(CamelModel):
    to: str = Field(min_length=1)
    from_number: str = Field(alias='from', min_length=1)
    recording_enabled: bool = False
    transcription_enabled: bool = False
    callback_url: Optional[str] = None
    provider: Optional[CallProviderType] = None


class RecurrenceRule(CamelModel):
    frequency: Literal['daily', 'weekly', 'monthly', 'yearly']
    interval: int = Field(default=1, ge=1)
    end_date: Optional[datetime] = None
    weekdays: Optional[List[str]] = None

    @field_validator('weekdays')
    @classmethod
    def _check_weekdays(cls, value):
        if value is None:
            return value
        normalized = [day.upper() for day in value]
        unknown = [day for day in normalized if day not in WEEKDAYS]
        if unknown:
            raise ValueError(f"Unknown weekday(s): {', '.join(unknown)}")
        return normalized


class ReminderRule(CamelModel):
    minutes_before: int = Field(ge=0)
    method: ReminderMethod = ReminderMethod.SMS
    enabled: bool = True


class ScheduledCallOptions(CallOptions):
    # Naive datetimes are wall-clock times in ``timezone``
    scheduled_time: datetime
    timezone: str = 'UTC'
    recurrence: Optional[RecurrenceRule] = None
    reminder: Optional[ReminderRule] = None


class ConferenceOptions(CamelModel):
    name: str = Field(min_length=1)
    participants: List[str] = Field(default_factory=list)
    provider: Optional[CallProviderType] = None
    recording_enabled: bool = False
    transcription_enabled: bool = False
    max_participants: Optional[int] = Field(default=None, ge=1)
    waiting_room: bool = False
    mute_on_entry: bool = False
    scheduled_start: Optional[datetime] = None


class CallResponseOptions(CamelModel):
    message: Optional[str] = None
    gather_input: bool = False
    recording_enabled: bool = False
    transcription_enabled: bool = False


class AssistantConfig(CamelModel):
    voice: Optional[str] = None
    language: Optional[str] = None
    message: Optional[str] = None


class CallStatusUpdate(CamelModel):
    status: str = Field(min_length=1)
    duration: Optional[int] = Field(default=None, ge=0)


class CallListFilters(CamelModel):
    status: Optional[str] = None
    direction: Optional[Literal['inbound', 'outbound']] = None
    provider: Optional[CallProviderType] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class ParticipantRequest(CamelModel):
    phone_number: str = Field(min_length=1)


class MuteRequest(CamelModel):
    muted: bool = True
