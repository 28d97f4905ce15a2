"""
Webhook normalization.

Twilio posts form fields, VAPI posts JSON with an ``event`` discriminator.
Both are parsed into ``CallEvent`` values here so vendor payload shapes stop
at this module; ``dispatch_events`` then routes them to ``CallService``.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional

from apps.core.exceptions import ValidationError

from .constants import CallDirection, CallProviderType

logger = logging.getLogger(__name__)


class CallEventType(str, Enum):
    INCOMING = 'call.incoming'
    STATUS = 'call.status'
    RECORDING = 'call.recording'
    TRANSCRIPTION = 'call.transcription'
    ANALYTICS = 'call.analytics'
    PARTICIPANT = 'conference.participant'


@dataclass(frozen=True)
class CallEvent:
    type: CallEventType
    provider: CallProviderType
    call_id: str
    from_number: Optional[str] = None
    to_number: Optional[str] = None
    status: Optional[str] = None
    duration: Optional[int] = None
    recording_url: Optional[str] = None
    transcription: Optional[str] = None
    analytics: Optional[Dict[str, Any]] = None
    # conference.participant only; ``call_id`` then holds the vendor conference id
    phone_number: Optional[str] = None


def _parse_duration(value) -> Optional[int]:
    if value in (None, ''):
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid call duration: {value}") from e


def parse_twilio_webhook(form: Mapping[str, Any], adapter) -> List[CallEvent]:
    """
    Parse one Twilio voice/status callback.

    A ringing call that Twilio did not originate for us is an incoming call.
    Any other callback may carry a status change, a recording and a
    transcription at once; each becomes its own event.
    """
    call_sid = form.get('CallSid')
    if not call_sid:
        raise ValidationError("Missing CallSid")

    provider = CallProviderType.TWILIO
    call_status = form.get('CallStatus')
    direction = (form.get('Direction') or '').lower()

    if call_status == 'ringing' and not direction.startswith(CallDirection.OUTBOUND.value):
        return [CallEvent(
            type=CallEventType.INCOMING,
            provider=provider,
            call_id=call_sid,
            from_number=form.get('From'),
            to_number=form.get('To'),
        )]

    events = []
    if call_status:
        events.append(CallEvent(
            type=CallEventType.STATUS,
            provider=provider,
            call_id=call_sid,
            status=adapter.from_provider_status(call_status),
            duration=_parse_duration(form.get('CallDuration')),
        ))
    if form.get('RecordingUrl'):
        events.append(CallEvent(
            type=CallEventType.RECORDING,
            provider=provider,
            call_id=call_sid,
            recording_url=form.get('RecordingUrl'),
        ))
    if form.get('TranscriptionText'):
        events.append(CallEvent(
            type=CallEventType.TRANSCRIPTION,
            provider=provider,
            call_id=call_sid,
            transcription=form.get('TranscriptionText'),
        ))
    return events


def parse_vapi_webhook(payload: Mapping[str, Any], adapter) -> List[CallEvent]:
    """Parse one VAPI event; unknown events are rejected."""
    try:
        event_type = CallEventType(payload.get('event'))
    except ValueError as e:
        raise ValidationError(f"Unknown VAPI event: {payload.get('event')}") from e

    provider = CallProviderType.VAPI

    if event_type == CallEventType.PARTICIPANT:
        conference_id = payload.get('conferenceId') or payload.get('conference_id')
        phone_number = payload.get('phoneNumber') or payload.get('phone_number')
        status = payload.get('status')
        if not (conference_id and phone_number and status):
            raise ValidationError("conference.participant requires conferenceId, phoneNumber and status")
        return [CallEvent(
            type=event_type,
            provider=provider,
            call_id=conference_id,
            phone_number=phone_number,
            status=status,
        )]

    call_id = payload.get('callId') or payload.get('call_id')
    if not call_id:
        raise ValidationError("Missing callId")

    if event_type == CallEventType.INCOMING:
        event = CallEvent(
            type=event_type,
            provider=provider,
            call_id=call_id,
            from_number=payload.get('from'),
            to_number=payload.get('to'),
        )
    elif event_type == CallEventType.STATUS:
        if not payload.get('status'):
            raise ValidationError("call.status requires status")
        event = CallEvent(
            type=event_type,
            provider=provider,
            call_id=call_id,
            status=adapter.from_provider_status(payload['status']),
            duration=_parse_duration(payload.get('duration')),
        )
    elif event_type == CallEventType.RECORDING:
        recording_url = payload.get('recordingUrl') or payload.get('recording_url')
        if not recording_url:
            raise ValidationError("call.recording requires recordingUrl")
        event = CallEvent(type=event_type, provider=provider, call_id=call_id, recording_url=recording_url)
    elif event_type == CallEventType.TRANSCRIPTION:
        if not payload.get('transcription'):
            raise ValidationError("call.transcription requires transcription")
        event = CallEvent(
            type=event_type, provider=provider, call_id=call_id, transcription=payload['transcription'],
        )
    else:
        event = CallEvent(
            type=event_type, provider=provider, call_id=call_id, analytics=payload.get('analytics') or {},
        )
    return [event]


def dispatch_events(service, events: Iterable[CallEvent]) -> Any:
    """
    Apply parsed events in order.

    Returns the voice script for an incoming call, ``None`` otherwise.
    Updates reported by a vendor are never echoed back to that vendor.
    """
    response = None
    for event in events:
        logger.info(f"[WEBHOOK] Dispatching {event.type.value} - provider={event.provider.value} id={event.call_id}")

        if event.type == CallEventType.INCOMING:
            response = service.handle_incoming_call(
                event.call_id, event.from_number, to_number=event.to_number, provider=event.provider,
            )
        elif event.type == CallEventType.STATUS:
            service.update_call_status(event.call_id, event.status, duration=event.duration, notify_provider=False)
        elif event.type == CallEventType.RECORDING:
            service.handle_recording(event.call_id, event.recording_url, notify_provider=False)
        elif event.type == CallEventType.TRANSCRIPTION:
            service.handle_transcription(event.call_id, event.transcription, notify_provider=False)
        elif event.type == CallEventType.ANALYTICS:
            service.update_call_analytics(event.call_id, event.analytics)
        elif event.type == CallEventType.PARTICIPANT:
            service.update_participant_status(event.call_id, event.phone_number, event.status)
    return response
