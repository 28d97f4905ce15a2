"""
Vocabulary shared by the call models, providers and orchestrator.
"""
from enum import Enum


class CallProviderType(str, Enum):
    TWILIO = 'twilio'
    VAPI = 'vapi'

    @classmethod
    def choices(cls):
        return [(member.value, member.name.title()) for member in cls]


class CallStatus(str, Enum):
    """Normalized call lifecycle status."""
    SCHEDULED = 'scheduled'
    QUEUED = 'queued'
    INITIATED = 'initiated'
    RINGING = 'ringing'
    IN_PROGRESS = 'in-progress'
    COMPLETED = 'completed'
    FAILED = 'failed'
    BUSY = 'busy'
    NO_ANSWER = 'no-answer'
    CANCELED = 'canceled'

    @classmethod
    def choices(cls):
        return [(member.value, member.value) for member in cls]


TERMINAL_CALL_STATUSES = frozenset({
    CallStatus.COMPLETED.value,
    CallStatus.FAILED.value,
    CallStatus.BUSY.value,
    CallStatus.NO_ANSWER.value,
    CallStatus.CANCELED.value,
})

# Non-terminal statuses in lifecycle order; a call never moves back down this list
CALL_STATUS_PROGRESSION = (
    CallStatus.SCHEDULED.value,
    CallStatus.QUEUED.value,
    CallStatus.INITIATED.value,
    CallStatus.RINGING.value,
    CallStatus.IN_PROGRESS.value,
)


class CallDirection(str, Enum):
    INBOUND = 'inbound'
    OUTBOUND = 'outbound'

    @classmethod
    def choices(cls):
        return [(member.value, member.value) for member in cls]


class ScheduledCallStatus(str, Enum):
    SCHEDULED = 'scheduled'
    CANCELED = 'canceled'
    DISPATCHED = 'dispatched'

    @classmethod
    def choices(cls):
        return [(member.value, member.value) for member in cls]


class RecurrenceFrequency(str, Enum):
    DAILY = 'daily'
    WEEKLY = 'weekly'
    MONTHLY = 'monthly'
    YEARLY = 'yearly'


WEEKDAYS = ('MO', 'TU', 'WE', 'TH', 'FR', 'SA', 'SU')


class ReminderMethod(str, Enum):
    SMS = 'sms'
    EMAIL = 'email'
    PUSH = 'push'

    @classmethod
    def choices(cls):
        return [(member.value, member.value) for member in cls]


class ReminderStatus(str, Enum):
    PENDING = 'pending'
    SENT = 'sent'
    FAILED = 'failed'

    @classmethod
    def choices(cls):
        return [(member.value, member.value) for member in cls]


class ConferenceStatus(str, Enum):
    SCHEDULED = 'scheduled'
    IN_PROGRESS = 'in-progress'
    COMPLETED = 'completed'

    @classmethod
    def choices(cls):
        return [(member.value, member.value) for member in cls]


class ParticipantStatus(str, Enum):
    INVITED = 'invited'
    WAITING = 'waiting'
    CONNECTED = 'connected'
    DISCONNECTED = 'disconnected'

    @classmethod
    def choices(cls):
        return [(member.value, member.value) for member in cls]


class Capability(str, Enum):
    """Optional provider operations; the orchestrator checks these before persisting."""
    SCHEDULING = 'scheduling'
    CONFERENCING = 'conferencing'
    ANALYTICS = 'analytics'
    ASSISTANT_CONFIG = 'assistant_config'


class AnalyticsView(str, Enum):
    DAILY = 'daily'
    WEEKLY = 'weekly'
    MONTHLY = 'monthly'
