"""
Call orchestration.

``CallService`` selects a provider adapter per call, drives the call
lifecycle from API requests and vendor webhooks, and persists the normalized
state. Scheduling and conference roster bookkeeping live here too.
"""
import logging
from typing import Any, Callable, Dict, List, Optional

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils import timezone

from apps.core.exceptions import (
    ConferenceFanOutError,
    NotFoundError,
    ProviderError,
    ValidationError,
)

from .constants import (
    CALL_STATUS_PROGRESSION,
    TERMINAL_CALL_STATUSES,
    Capability,
    CallDirection,
    CallProviderType,
    CallStatus,
    ConferenceStatus,
    ParticipantStatus,
    ReminderStatus,
    ScheduledCallStatus,
)
from .models import Call, Conference, ConferenceParticipant, Reminder, ScheduledCall
from .providers import CallProvider, build_providers
from .scheduling import reminder_time, to_utc, validate_schedule
from .types import (
    CallOptions,
    CallResponseOptions,
    ConferenceOptions,
    ScheduledCallOptions,
)

logger = logging.getLogger(__name__)

_CALL_STATUSES = {status.value for status in CallStatus}
_PARTICIPANT_STATUSES = {status.value for status in ParticipantStatus}


def _resolve_provider(value) -> CallProviderType:
    try:
        return CallProviderType(value)
    except ValueError as e:
        raise ValidationError(f"Invalid provider: {value}") from e


def _is_backward(current: str, new: str) -> bool:
    if current not in CALL_STATUS_PROGRESSION or new not in CALL_STATUS_PROGRESSION:
        return False
    return CALL_STATUS_PROGRESSION.index(new) < CALL_STATUS_PROGRESSION.index(current)


class CallService:
    """Orchestrates calls, schedules and conferences for one user."""

    def __init__(
        self,
        user=None,
        default_provider=None,
        providers: Optional[Dict[CallProviderType, CallProvider]] = None,
        clock: Optional[Callable] = None,
    ):
        """
        Args:
            user: Owning user; ``None`` for webhook and system use (unscoped lookups)
            default_provider: Provider used when an operation does not name one
            providers: Adapter per provider type; built from settings when omitted
            clock: Returns the current aware datetime (defaults to ``timezone.now``)
        """
        self.user = user
        self.default_provider = _resolve_provider(
            default_provider or settings.APP_SETTINGS.calls.default_provider
        )
        self.providers = providers if providers is not None else build_providers()
        self.clock = clock or timezone.now

    # -------------------------
    # Helpers
    # -------------------------
    def get_provider(self, provider=None) -> CallProvider:
        provider_type = _resolve_provider(provider) if provider else self.default_provider
        try:
            return self.providers[provider_type]
        except KeyError as e:
            raise ValidationError(f"Provider not configured: {provider_type.value}") from e

    def _owned(self, queryset):
        if self.user is not None:
            return queryset.filter(user=self.user)
        return queryset

    @staticmethod
    def _get_or_404(queryset, label: str, **lookup):
        try:
            return queryset.get(**lookup)
        except (queryset.model.DoesNotExist, DjangoValidationError, ValueError) as e:
            raise NotFoundError(f"{label} not found: {next(iter(lookup.values()))}") from e

    def get_call(self, call_id: str) -> Call:
        return self._get_or_404(self._owned(Call.objects.all()), 'Call', provider_call_id=call_id)

    def get_conference(self, conference_id) -> Conference:
        return self._get_or_404(self._owned(Conference.objects.all()), 'Conference', pk=conference_id)

    # -------------------------
    # Calls
    # -------------------------
    def make_call(self, options: CallOptions) -> Call:
        adapter = self.get_provider(options.provider)

        try:
            provider_call_id = adapter.make_call(options)
        except Exception as e:
            logger.error(
                f"[CALL-SERVICE] make_call failed - provider={adapter.provider_type.value} to={options.to}: {e}",
                exc_info=True,
            )
            raise

        call = Call.objects.create(
            provider_call_id=provider_call_id,
            user=self.user,
            from_number=options.from_number,
            to_number=options.to,
            direction=CallDirection.OUTBOUND.value,
            provider=adapter.provider_type.value,
            status=CallStatus.QUEUED.value,
        )
        logger.info(
            f"[CALL-SERVICE] Call placed - call_id={provider_call_id} provider={call.provider} to={options.to}"
        )
        return call

    def handle_incoming_call(self, call_id: str, from_number: str, to_number: Optional[str] = None, provider=None) -> Any:
        """Answer an inbound call; returns the adapter's voice script."""
        adapter = self.get_provider(provider)
        response = adapter.handle_incoming_call(call_id, from_number)

        owner = self.user or self._owner_of_number(to_number)
        call, created = Call.objects.get_or_create(
            provider_call_id=call_id,
            defaults={
                'user': owner,
                'from_number': from_number or '',
                'to_number': to_number or '',
                'direction': CallDirection.INBOUND.value,
                'provider': adapter.provider_type.value,
                'status': CallStatus.RINGING.value,
            },
        )
        if created:
            logger.info(f"[CALL-SERVICE] Incoming call recorded - call_id={call_id} from={from_number}")
        else:
            logger.info(f"[CALL-SERVICE] Incoming call redelivered - call_id={call_id}")
        return response

    @staticmethod
    def _owner_of_number(number: Optional[str]):
        """The user who most recently placed a call from ``number``, if any."""
        if not number:
            return None
        call = (
            Call.objects.filter(from_number=number, direction=CallDirection.OUTBOUND.value, user__isnull=False)
            .select_related('user')
            .order_by('-created_at')
            .first()
        )
        return call.user if call else None

    def update_call_status(
        self,
        call_id: str,
        status: str,
        duration: Optional[int] = None,
        notify_provider: bool = True,
    ) -> Call:
        """
        Move a call to ``status``.

        ``notify_provider`` is False when the change was reported by the
        call's own vendor, which already knows about it.
        """
        if status not in _CALL_STATUSES:
            raise ValidationError(f"Unknown call status: {status}")

        call = self.get_call(call_id)
        if call.status in TERMINAL_CALL_STATUSES and status != call.status:
            raise ValidationError(f"Call {call_id} is already {call.status}; cannot move to {status}")
        if _is_backward(call.status, status):
            raise ValidationError(f"Call {call_id} is already {call.status}; cannot move back to {status}")

        update_fields = []
        if call.status != status:
            call.status = status
            update_fields.append('status')
        if duration is not None and duration != call.duration:
            call.duration = duration
            update_fields.append('duration')

        if not update_fields:
            return call

        if notify_provider and 'status' in update_fields:
            self.get_provider(call.provider).update_call_status(call_id, status)

        call.save(update_fields=update_fields + ['updated_at'])
        logger.info(f"[CALL-SERVICE] Call status updated - call_id={call_id} status={call.status}")
        return call

    def handle_recording(self, call_id: str, recording_url: str, notify_provider: bool = True) -> Call:
        call = self.get_call(call_id)
        if call.recording_url == recording_url:
            return call

        if notify_provider:
            self.get_provider(call.provider).handle_recording(call_id, recording_url)

        call.recording_url = recording_url
        call.save(update_fields=['recording_url', 'updated_at'])
        logger.info(f"[CALL-SERVICE] Recording attached - call_id={call_id}")
        return call

    def handle_transcription(self, call_id: str, transcription: str, notify_provider: bool = True) -> Call:
        call = self.get_call(call_id)
        if call.transcription == transcription:
            return call

        if notify_provider:
            self.get_provider(call.provider).handle_transcription(call_id, transcription)

        call.transcription = transcription
        call.save(update_fields=['transcription', 'updated_at'])
        logger.info(f"[CALL-SERVICE] Transcription attached - call_id={call_id} length={len(transcription)}")
        return call

    def get_call_analytics(self, call_id: str) -> Dict[str, Any]:
        call = self.get_call(call_id)
        adapter = self.get_provider(call.provider)
        adapter.require(Capability.ANALYTICS)

        analytics = adapter.get_call_analytics(call_id)
        if analytics != call.analytics:
            call.analytics = analytics
            call.save(update_fields=['analytics', 'updated_at'])
        return analytics

    def update_call_analytics(self, call_id: str, analytics: Dict[str, Any]) -> Call:
        call = self.get_call(call_id)
        if analytics != call.analytics:
            call.analytics = analytics
            call.save(update_fields=['analytics', 'updated_at'])
            logger.info(f"[CALL-SERVICE] Analytics stored - call_id={call_id}")
        return call

    def update_assistant_config(
        self,
        call_id: str,
        voice: Optional[str] = None,
        language: Optional[str] = None,
        message: Optional[str] = None,
    ) -> None:
        call = self.get_call(call_id)
        adapter = self.get_provider(call.provider)
        adapter.require(Capability.ASSISTANT_CONFIG)
        adapter.update_assistant_config(call_id, voice=voice, language=language, message=message)

    def generate_call_response(self, options: CallResponseOptions, provider=None) -> Any:
        return self.get_provider(provider).generate_call_response(options)

    def list_calls(
        self,
        status: Optional[str] = None,
        direction: Optional[str] = None,
        start_date=None,
        end_date=None,
        provider=None,
    ):
        queryset = self._owned(Call.objects.all())
        if status:
            queryset = queryset.filter(status=status)
        if direction:
            queryset = queryset.filter(direction=direction)
        if provider:
            queryset = queryset.filter(provider=_resolve_provider(provider).value)
        if start_date:
            queryset = queryset.filter(created_at__date__gte=start_date)
        if end_date:
            queryset = queryset.filter(created_at__date__lte=end_date)
        return queryset.order_by('-created_at')

    # -------------------------
    # Scheduling
    # -------------------------
    def schedule_call(self, options: ScheduledCallOptions) -> ScheduledCall:
        adapter = self.get_provider(options.provider)
        adapter.require(Capability.SCHEDULING)

        scheduled_at = to_utc(options.scheduled_time, options.timezone)
        recurrence_end = None
        if options.recurrence and options.recurrence.end_date:
            recurrence_end = to_utc(options.recurrence.end_date, options.timezone)
        validate_schedule(scheduled_at, self.clock(), recurrence_end)

        schedule_id = adapter.schedule_call(options, scheduled_at)

        with transaction.atomic():
            scheduled = ScheduledCall.objects.create(
                user=self.user,
                provider=adapter.provider_type.value,
                provider_schedule_id=schedule_id or '',
                from_number=options.from_number,
                to_number=options.to,
                recording_enabled=options.recording_enabled,
                transcription_enabled=options.transcription_enabled,
                callback_url=options.callback_url,
                scheduled_time=scheduled_at,
                timezone=options.timezone,
                recurrence=(
                    options.recurrence.model_dump(mode='json', exclude_none=True)
                    if options.recurrence else None
                ),
            )

            reminder = options.reminder
            if reminder is not None and reminder.enabled:
                Reminder.objects.create(
                    scheduled_call=scheduled,
                    remind_at=reminder_time(scheduled_at, reminder.minutes_before),
                    minutes_before=reminder.minutes_before,
                    method=reminder.method.value,
                    status=ReminderStatus.PENDING.value,
                )

        logger.info(
            f"[CALL-SERVICE] Call scheduled - id={scheduled.id} at={scheduled_at.isoformat()} "
            f"timezone={options.timezone}"
        )
        return scheduled

    def cancel_scheduled_call(self, scheduled_call_id) -> ScheduledCall:
        scheduled = self._get_or_404(
            self._owned(ScheduledCall.objects.all()), 'Scheduled call', pk=scheduled_call_id,
        )
        if scheduled.status == ScheduledCallStatus.CANCELED.value:
            return scheduled
        if scheduled.status == ScheduledCallStatus.DISPATCHED.value:
            raise ValidationError(f"Scheduled call {scheduled.id} was already dispatched")

        scheduled.status = ScheduledCallStatus.CANCELED.value
        scheduled.save(update_fields=['status', 'updated_at'])
        logger.info(f"[CALL-SERVICE] Scheduled call canceled - id={scheduled.id}")
        return scheduled

    def list_scheduled_calls(self, status: Optional[str] = None):
        queryset = self._owned(ScheduledCall.objects.select_related('reminder'))
        if status:
            queryset = queryset.filter(status=status)
        return queryset.order_by('scheduled_time')

    # -------------------------
    # Conferences
    # -------------------------
    def create_conference(self, options: ConferenceOptions) -> Conference:
        """
        Create a conference and invite every participant in order.

        Invitations that fail do not stop the others. When any fail, a
        ``ConferenceFanOutError`` is raised after the loop; it carries the
        persisted conference so callers can inspect the roster.
        """
        adapter = self.get_provider(options.provider)
        adapter.require(Capability.CONFERENCING)

        numbers = list(dict.fromkeys(options.participants))
        if options.max_participants is not None and len(numbers) > options.max_participants:
            raise ValidationError(
                f"{len(numbers)} participants exceed the limit of {options.max_participants}"
            )

        provider_conference_id = adapter.create_conference(options)

        with transaction.atomic():
            conference = Conference.objects.create(
                user=self.user,
                name=options.name,
                provider=adapter.provider_type.value,
                provider_conference_id=provider_conference_id,
                recording_enabled=options.recording_enabled,
                transcription_enabled=options.transcription_enabled,
                max_participants=options.max_participants,
                waiting_room=options.waiting_room,
                mute_on_entry=options.mute_on_entry,
            )
            ConferenceParticipant.objects.bulk_create([
                ConferenceParticipant(conference=conference, phone_number=number)
                for number in numbers
            ])

        failed = []
        for number in numbers:
            try:
                adapter.add_participant_to_conference(provider_conference_id, number)
            except ProviderError as e:
                logger.warning(
                    f"[CONFERENCE] Invitation failed - conference={conference.id} number={number}: {e}"
                )
                failed.append(number)

        logger.info(
            f"[CONFERENCE] Conference created - id={conference.id} invited={len(numbers) - len(failed)} "
            f"failed={len(failed)}"
        )
        if failed:
            raise ConferenceFanOutError(conference, failed, provider=adapter.provider_type.value)
        return conference

    def _get_participant(self, conference: Conference, phone_number: str) -> ConferenceParticipant:
        return self._get_or_404(conference.participants.all(), 'Participant', phone_number=phone_number)

    def add_participant_to_conference(self, conference_id, phone_number: str) -> ConferenceParticipant:
        conference = self.get_conference(conference_id)
        if conference.status == ConferenceStatus.COMPLETED.value:
            raise ValidationError(f"Conference {conference.id} has ended")

        adapter = self.get_provider(conference.provider)
        adapter.require(Capability.CONFERENCING)

        existing = conference.participants.filter(phone_number=phone_number).first()
        if existing is not None and existing.status != ParticipantStatus.DISCONNECTED.value:
            return existing

        if conference.max_participants is not None:
            active = conference.participants.exclude(status=ParticipantStatus.DISCONNECTED.value).count()
            if active >= conference.max_participants:
                raise ValidationError(f"Conference {conference.id} is full")

        adapter.add_participant_to_conference(conference.provider_conference_id, phone_number)

        if existing is None:
            participant = ConferenceParticipant.objects.create(conference=conference, phone_number=phone_number)
        else:
            participant = existing
            participant.status = ParticipantStatus.INVITED.value
            participant.joined_at = None
            participant.left_at = None
            participant.save(update_fields=['status', 'joined_at', 'left_at', 'updated_at'])

        logger.info(f"[CONFERENCE] Participant invited - conference={conference.id} number={phone_number}")
        return participant

    def remove_participant_from_conference(self, conference_id, phone_number: str) -> ConferenceParticipant:
        conference = self.get_conference(conference_id)
        participant = self._get_participant(conference, phone_number)
        if participant.status == ParticipantStatus.DISCONNECTED.value:
            return participant

        adapter = self.get_provider(conference.provider)
        adapter.require(Capability.CONFERENCING)
        adapter.remove_participant_from_conference(conference.provider_conference_id, phone_number)

        participant.status = ParticipantStatus.DISCONNECTED.value
        participant.left_at = self.clock()
        participant.save(update_fields=['status', 'left_at', 'updated_at'])
        logger.info(f"[CONFERENCE] Participant removed - conference={conference.id} number={phone_number}")
        return participant

    def mute_participant(self, conference_id, phone_number: str, muted: bool = True) -> ConferenceParticipant:
        conference = self.get_conference(conference_id)
        participant = self._get_participant(conference, phone_number)
        if participant.muted == muted:
            return participant

        adapter = self.get_provider(conference.provider)
        adapter.require(Capability.CONFERENCING)
        adapter.mute_participant(conference.provider_conference_id, phone_number, muted)

        participant.muted = muted
        participant.save(update_fields=['muted', 'updated_at'])
        return participant

    def end_conference(self, conference_id) -> Conference:
        conference = self.get_conference(conference_id)
        if conference.status == ConferenceStatus.COMPLETED.value:
            return conference

        adapter = self.get_provider(conference.provider)
        adapter.require(Capability.CONFERENCING)
        adapter.end_conference(conference.provider_conference_id)

        conference.status = ConferenceStatus.COMPLETED.value
        conference.ended_at = self.clock()
        conference.save(update_fields=['status', 'ended_at', 'updated_at'])
        logger.info(f"[CONFERENCE] Conference ended - id={conference.id}")
        return conference

    def update_participant_status(
        self,
        provider_conference_id: str,
        phone_number: str,
        status: str,
    ) -> ConferenceParticipant:
        """Apply a participant event reported by the conference's vendor."""
        if status not in _PARTICIPANT_STATUSES:
            raise ValidationError(f"Unknown participant status: {status}")

        conference = self._get_or_404(
            self._owned(Conference.objects.all()), 'Conference',
            provider_conference_id=provider_conference_id,
        )
        now = self.clock()

        participant, _ = ConferenceParticipant.objects.get_or_create(
            conference=conference, phone_number=phone_number,
        )
        participant.status = status
        update_fields = ['status', 'updated_at']
        if status == ParticipantStatus.CONNECTED.value:
            participant.joined_at = participant.joined_at or now
            participant.left_at = None
            update_fields += ['joined_at', 'left_at']
        elif status == ParticipantStatus.DISCONNECTED.value:
            participant.left_at = now
            update_fields.append('left_at')
        participant.save(update_fields=update_fields)

        if status == ParticipantStatus.CONNECTED.value and conference.status == ConferenceStatus.SCHEDULED.value:
            conference.status = ConferenceStatus.IN_PROGRESS.value
            conference.started_at = now
            conference.save(update_fields=['status', 'started_at', 'updated_at'])
            logger.info(f"[CONFERENCE] Conference started - id={conference.id}")

        return participant

    def list_participants(self, conference_id) -> List[ConferenceParticipant]:
        conference = self.get_conference(conference_id)
        return list(conference.participants.order_by('created_at'))
