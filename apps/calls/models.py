from django.conf import settings
from django.db import models
from django.utils import timezone

from apps.core.models import BaseModel

from .constants import (
    CallDirection,
    CallProviderType,
    CallStatus,
    ConferenceStatus,
    ParticipantStatus,
    ReminderMethod,
    ReminderStatus,
    ScheduledCallStatus,
)


# ==========================
# CALLS
# ==========================
class Call(BaseModel):
    provider_call_id = models.CharField(max_length=128, unique=True)

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="calls",
        null=True,
        blank=True,
    )

    from_number = models.CharField(max_length=32)
    to_number = models.CharField(max_length=32, blank=True, default="")
    direction = models.CharField(max_length=16, choices=CallDirection.choices())
    provider = models.CharField(max_length=16, choices=CallProviderType.choices())
    status = models.CharField(max_length=16, choices=CallStatus.choices())

    duration = models.PositiveIntegerField(blank=True, null=True)
    recording_url = models.URLField(max_length=1024, blank=True, null=True)
    transcription = models.TextField(blank=True, null=True)
    analytics = models.JSONField(blank=True, null=True)

    class Meta:
        db_table = "calls"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["user", "-created_at"], name="calls_user_id_5a1c2e_idx"),
            models.Index(fields=["status"], name="calls_status_8c1f0b_idx"),
        ]

    def __str__(self):
        return f"{self.provider}:{self.provider_call_id} ({self.status})"


# ==========================
# SCHEDULED CALLS
# ==========================
class ScheduledCallQuerySet(models.QuerySet):
    def due(self, now=None):
        """Schedules whose target time has arrived and were not yet dispatched."""
        now = now or timezone.now()
        return self.filter(
            status=ScheduledCallStatus.SCHEDULED.value,
            scheduled_time__lte=now,
        ).order_by("scheduled_time")


class ScheduledCall(BaseModel):
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="scheduled_calls",
        null=True,
        blank=True,
    )

    provider = models.CharField(max_length=16, choices=CallProviderType.choices())
    provider_schedule_id = models.CharField(max_length=128, blank=True, default="")

    from_number = models.CharField(max_length=32)
    to_number = models.CharField(max_length=32)
    recording_enabled = models.BooleanField(default=False)
    transcription_enabled = models.BooleanField(default=False)
    callback_url = models.URLField(max_length=1024, blank=True, null=True)

    # Always UTC; ``timezone`` records what the caller asked in
    scheduled_time = models.DateTimeField()
    timezone = models.CharField(max_length=64, default="UTC")
    recurrence = models.JSONField(blank=True, null=True)

    status = models.CharField(
        max_length=16,
        choices=ScheduledCallStatus.choices(),
        default=ScheduledCallStatus.SCHEDULED.value,
    )

    objects = ScheduledCallQuerySet.as_manager()

    class Meta:
        db_table = "scheduled_calls"
        ordering = ["scheduled_time"]
        indexes = [
            models.Index(fields=["status", "scheduled_time"], name="scheduled_c_status_3d9e41_idx"),
        ]


class ReminderQuerySet(models.QuerySet):
    def due(self, now=None):
        now = now or timezone.now()
        return self.filter(
            status=ReminderStatus.PENDING.value,
            remind_at__lte=now,
            scheduled_call__status=ScheduledCallStatus.SCHEDULED.value,
        ).select_related("scheduled_call").order_by("remind_at")


class Reminder(BaseModel):
    scheduled_call = models.OneToOneField(
        ScheduledCall,
        on_delete=models.CASCADE,
        related_name="reminder",
    )

    remind_at = models.DateTimeField()
    minutes_before = models.PositiveIntegerField()
    method = models.CharField(max_length=16, choices=ReminderMethod.choices())
    status = models.CharField(
        max_length=16,
        choices=ReminderStatus.choices(),
        default=ReminderStatus.PENDING.value,
    )
    sent_at = models.DateTimeField(blank=True, null=True)
    error = models.TextField(blank=True, null=True)

    objects = ReminderQuerySet.as_manager()

    class Meta:
        db_table = "call_reminders"
        indexes = [
            models.Index(fields=["status", "remind_at"], name="call_remind_status_7b2a90_idx"),
        ]

    def mark_sent(self, when=None):
        self.status = ReminderStatus.SENT.value
        self.sent_at = when or timezone.now()
        self.error = None
        self.save(update_fields=["status", "sent_at", "error", "updated_at"])

    def mark_failed(self, error):
        self.status = ReminderStatus.FAILED.value
        self.error = str(error)
        self.save(update_fields=["status", "error", "updated_at"])


# ==========================
# CONFERENCES
# ==========================
class Conference(BaseModel):
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="conferences",
        null=True,
        blank=True,
    )

    name = models.CharField(max_length=255)
    status = models.CharField(
        max_length=16,
        choices=ConferenceStatus.choices(),
        default=ConferenceStatus.SCHEDULED.value,
    )
    provider = models.CharField(max_length=16, choices=CallProviderType.choices())
    provider_conference_id = models.CharField(max_length=128, unique=True)

    recording_enabled = models.BooleanField(default=False)
    transcription_enabled = models.BooleanField(default=False)
    max_participants = models.PositiveIntegerField(blank=True, null=True)
    waiting_room = models.BooleanField(default=False)
    mute_on_entry = models.BooleanField(default=False)

    started_at = models.DateTimeField(blank=True, null=True)
    ended_at = models.DateTimeField(blank=True, null=True)

    class Meta:
        db_table = "conferences"
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.name} ({self.status})"


class ConferenceParticipant(BaseModel):
    conference = models.ForeignKey(
        Conference,
        on_delete=models.CASCADE,
        related_name="participants",
    )

    phone_number = models.CharField(max_length=32)
    status = models.CharField(
        max_length=16,
        choices=ParticipantStatus.choices(),
        default=ParticipantStatus.INVITED.value,
    )
    muted = models.BooleanField(default=False)
    joined_at = models.DateTimeField(blank=True, null=True)
    left_at = models.DateTimeField(blank=True, null=True)

    class Meta:
        db_table = "conference_participants"
        ordering = ["created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["conference", "phone_number"],
                name="unique_conference_participant",
            ),
        ]


# ==========================
# ANALYSIS & ARTIFACTS
# ==========================
class CallAnalysis(BaseModel):
    call = models.ForeignKey(
        Call,
        on_delete=models.CASCADE,
        related_name="analyses",
    )

    source = models.CharField(max_length=32, default="insights")
    analysis = models.JSONField(default=dict)
    insights = models.TextField(blank=True, default="")

    class Meta:
        db_table = "call_analyses"
        ordering = ["created_at"]


class CallRecording(BaseModel):
    call = models.OneToOneField(
        Call,
        on_delete=models.CASCADE,
        related_name="recording",
    )

    storage_key = models.CharField(max_length=512)
    duration = models.PositiveIntegerField(default=0)
    format = models.CharField(max_length=16, default="wav")
    size = models.PositiveBigIntegerField(default=0)
    bitrate = models.PositiveIntegerField(blank=True, null=True)
    channels = models.PositiveSmallIntegerField(blank=True, null=True)
    sample_rate = models.PositiveIntegerField(blank=True, null=True)
    quality_score = models.FloatField(blank=True, null=True)
    quality_issues = models.JSONField(default=list, blank=True)

    class Meta:
        db_table = "call_recordings"
        ordering = ["-created_at"]


class CallTranscript(BaseModel):
    call = models.OneToOneField(
        Call,
        on_delete=models.CASCADE,
        related_name="transcript",
    )

    text = models.TextField()
    segments = models.JSONField(default=list, blank=True)

    class Meta:
        db_table = "call_transcripts"
