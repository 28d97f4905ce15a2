"""
Call API views and vendor webhooks.
"""
import logging

from django.conf import settings
from django.http import HttpResponse
from django.utils.decorators import method_decorator
from django.views.decorators.csrf import csrf_exempt
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView
from twilio.request_validator import RequestValidator
from twilio.twiml.voice_response import VoiceResponse

from apps.core.exceptions import NotFoundError, ValidationError

from . import analytics as call_analytics
from .constants import CallProviderType
from .events import dispatch_events, parse_twilio_webhook, parse_vapi_webhook
from .recordings import RecordingArchiveRequest, RecordingService, RecordingTranscript
from .serializers import (
    CallRecordingSerializer,
    CallSerializer,
    ConferenceParticipantSerializer,
    ConferenceSerializer,
    ScheduledCallSerializer,
)
from .service import CallService
from .types import (
    AssistantConfig,
    CallListFilters,
    CallOptions,
    CallStatusUpdate,
    ConferenceOptions,
    MuteRequest,
    ParticipantRequest,
    ScheduledCallOptions,
)

logger = logging.getLogger(__name__)


def build_call_service(user=None) -> CallService:
    return CallService(user=user)


def build_recording_service() -> RecordingService:
    return RecordingService()


def _int_param(request, name: str, default: int) -> int:
    value = request.query_params.get(name)
    if value in (None, ''):
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ValidationError(f"Invalid {name}: {value}") from e


# -------------------------
# Calls
# -------------------------
class CallListView(APIView):
    """
    GET /api/calls/
    List the user's calls, newest first.

    Query parameters: status, direction, provider, startDate, endDate (YYYY-MM-DD)

    POST /api/calls/
    Place an outbound call: {to, from, recordingEnabled?, transcriptionEnabled?,
    callbackUrl?, provider?}
    """

    def get(self, request):
        filters = CallListFilters.model_validate(request.query_params.dict())
        calls = build_call_service(request.user).list_calls(
            status=filters.status,
            direction=filters.direction,
            start_date=filters.start_date,
            end_date=filters.end_date,
            provider=filters.provider,
        )
        return Response({'calls': CallSerializer(calls, many=True).data}, status=status.HTTP_200_OK)

    def post(self, request):
        options = CallOptions.model_validate(request.data)
        call = build_call_service(request.user).make_call(options)
        return Response(CallSerializer(call).data, status=status.HTTP_201_CREATED)


class CallDetailView(APIView):
    """GET /api/calls/{call_id}/"""

    def get(self, request, call_id):
        call = build_call_service(request.user).get_call(call_id)
        return Response(CallSerializer(call).data, status=status.HTTP_200_OK)


class CallStatusView(APIView):
    """
    POST /api/calls/{call_id}/status/
    Change a call's status, e.g. {"status": "completed"} to hang up.
    """

    def post(self, request, call_id):
        update = CallStatusUpdate.model_validate(request.data)
        call = build_call_service(request.user).update_call_status(call_id, update.status, duration=update.duration)
        return Response(CallSerializer(call).data, status=status.HTTP_200_OK)


class CallProviderAnalyticsView(APIView):
    """GET /api/calls/{call_id}/analytics/ - fetch analytics from the call's provider."""

    def get(self, request, call_id):
        analytics = build_call_service(request.user).get_call_analytics(call_id)
        return Response({'call_id': call_id, 'analytics': analytics}, status=status.HTTP_200_OK)


class AssistantConfigView(APIView):
    """
    PATCH /api/calls/{call_id}/assistant/
    Update the voice assistant on a live call: {voice?, language?, message?}
    """

    def patch(self, request, call_id):
        config = AssistantConfig.model_validate(request.data)
        build_call_service(request.user).update_assistant_config(
            call_id, voice=config.voice, language=config.language, message=config.message,
        )
        return Response({'call_id': call_id, 'updated': True}, status=status.HTTP_200_OK)


class CallAnalyticsView(APIView):
    """
    GET /api/calls/analytics/

    Query parameters:
    - startDate / endDate: ISO dates (default: last 30 days)
    - view: daily | weekly | monthly (default: daily)

    Response format:
    {
        "view": "daily",
        "start_date": "...",
        "end_date": "...",
        "calls": [{"period": "Mar 20", "total_calls": 3, ...}],
        "summary": {"total_calls": 3, "average_duration": 120.0, ...}
    }
    """

    def get(self, request):
        start_param = request.query_params.get('startDate')
        end_param = request.query_params.get('endDate')
        view = request.query_params.get('view', 'daily')

        cache_key = f"call-analytics:{request.user.pk}:{start_param}:{end_param}:{view}"
        cached_data = call_analytics.get_cached_call_analytics(cache_key)
        if cached_data:
            logger.info(f'[CALL-ANALYTICS] Returning cached analytics - view={view}')
            return Response(cached_data, status=status.HTTP_200_OK)

        data = call_analytics.get_call_analytics(
            request.user,
            start=call_analytics.parse_date_param(start_param),
            end=call_analytics.parse_date_param(end_param, end_of_day=True),
            view=view,
        )
        call_analytics.cache_call_analytics(cache_key, data, ttl=settings.APP_SETTINGS.calls.analytics_cache_ttl)
        return Response(data, status=status.HTTP_200_OK)


# -------------------------
# Recordings
# -------------------------
class RecordingListView(APIView):
    """
    GET /api/calls/recordings/
    Query parameters: startDate, endDate, limit (default 50), offset (default 0)
    """

    def get(self, request):
        recordings = build_recording_service().list_recordings(
            user=request.user,
            start_date=call_analytics.parse_date_param(request.query_params.get('startDate')),
            end_date=call_analytics.parse_date_param(request.query_params.get('endDate'), end_of_day=True),
            limit=_int_param(request, 'limit', 50),
            offset=_int_param(request, 'offset', 0),
        )
        return Response(
            {'recordings': CallRecordingSerializer(recordings, many=True).data},
            status=status.HTTP_200_OK,
        )


class RecordingView(APIView):
    """
    GET /api/calls/{call_id}/recording/ - presigned download URL
    POST /api/calls/{call_id}/recording/ - copy the vendor recording into our bucket:
        {recordingUrl?, duration?, format?, size?, bitrate?, channels?, sampleRate?}
    DELETE /api/calls/{call_id}/recording/ - remove the archived recording
    """

    def get(self, request, call_id):
        build_call_service(request.user).get_call(call_id)
        url = build_recording_service().get_recording_url(call_id, _int_param(request, 'expiresIn', 0) or None)
        return Response({'call_id': call_id, 'url': url}, status=status.HTTP_200_OK)

    def post(self, request, call_id):
        call = build_call_service(request.user).get_call(call_id)
        archive = RecordingArchiveRequest.model_validate(request.data)
        recording_url = archive.recording_url or call.recording_url
        if not recording_url:
            raise ValidationError(f"Call {call_id} has no recording to archive")
        recording = build_recording_service().save_recording(call_id, recording_url, archive.metadata())
        return Response(CallRecordingSerializer(recording).data, status=status.HTTP_201_CREATED)

    def delete(self, request, call_id):
        build_call_service(request.user).get_call(call_id)
        build_recording_service().delete_recording(call_id)
        return Response(status=status.HTTP_204_NO_CONTENT)


class RecordingAnalysisView(APIView):
    """POST /api/calls/{call_id}/recording/analyze/ - score recording quality."""

    def post(self, request, call_id):
        build_call_service(request.user).get_call(call_id)
        analysis = build_recording_service().analyze_recording(call_id)
        return Response(analysis, status=status.HTTP_200_OK)


class TranscriptView(APIView):
    """
    GET /api/calls/{call_id}/transcript/
    PUT /api/calls/{call_id}/transcript/ - {text, segments: [{start, end, speaker, text, confidence?}]}
    """

    def get(self, request, call_id):
        build_call_service(request.user).get_call(call_id)
        transcript = build_recording_service().get_transcript(call_id)
        if transcript is None:
            raise NotFoundError(f"Transcript not found: {call_id}")
        return Response({'call_id': call_id, **transcript.model_dump()}, status=status.HTTP_200_OK)

    def put(self, request, call_id):
        build_call_service(request.user).get_call(call_id)
        transcript = RecordingTranscript.model_validate(request.data)
        build_recording_service().save_transcript(call_id, transcript)
        return Response({'call_id': call_id, **transcript.model_dump()}, status=status.HTTP_200_OK)


# -------------------------
# Scheduling
# -------------------------
class ScheduledCallListView(APIView):
    """
    GET /api/calls/scheduled/?status=scheduled
    POST /api/calls/scheduled/ - {to, from, scheduledTime, timezone, recurrence?, reminder?, provider?}
    """

    def get(self, request):
        scheduled = build_call_service(request.user).list_scheduled_calls(request.query_params.get('status'))
        return Response(
            {'scheduled_calls': ScheduledCallSerializer(scheduled, many=True).data},
            status=status.HTTP_200_OK,
        )

    def post(self, request):
        options = ScheduledCallOptions.model_validate(request.data)
        scheduled = build_call_service(request.user).schedule_call(options)
        return Response(ScheduledCallSerializer(scheduled).data, status=status.HTTP_201_CREATED)


class ScheduledCallCancelView(APIView):
    """POST /api/calls/scheduled/{id}/cancel/"""

    def post(self, request, scheduled_call_id):
        scheduled = build_call_service(request.user).cancel_scheduled_call(scheduled_call_id)
        return Response(ScheduledCallSerializer(scheduled).data, status=status.HTTP_200_OK)


# -------------------------
# Conferences
# -------------------------
class ConferenceListView(APIView):
    """
    POST /api/calls/conferences/
    {name, participants: [...], provider?, maxParticipants?, recordingEnabled?, ...}

    When some invitations fail the conference still exists; the 502 error
    body carries ``conference_id`` and ``failed_participants``.
    """

    def post(self, request):
        options = ConferenceOptions.model_validate(request.data)
        conference = build_call_service(request.user).create_conference(options)
        return Response(ConferenceSerializer(conference).data, status=status.HTTP_201_CREATED)


class ConferenceDetailView(APIView):
    def get(self, request, conference_id):
        conference = build_call_service(request.user).get_conference(conference_id)
        return Response(ConferenceSerializer(conference).data, status=status.HTTP_200_OK)


class ConferenceEndView(APIView):
    def post(self, request, conference_id):
        conference = build_call_service(request.user).end_conference(conference_id)
        return Response(ConferenceSerializer(conference).data, status=status.HTTP_200_OK)


class ConferenceParticipantsView(APIView):
    """
    GET /api/calls/conferences/{id}/participants/
    POST /api/calls/conferences/{id}/participants/ - {phoneNumber}
    """

    def get(self, request, conference_id):
        participants = build_call_service(request.user).list_participants(conference_id)
        return Response(
            {'participants': ConferenceParticipantSerializer(participants, many=True).data},
            status=status.HTTP_200_OK,
        )

    def post(self, request, conference_id):
        body = ParticipantRequest.model_validate(request.data)
        participant = build_call_service(request.user).add_participant_to_conference(
            conference_id, body.phone_number,
        )
        return Response(ConferenceParticipantSerializer(participant).data, status=status.HTTP_201_CREATED)


class ConferenceParticipantDetailView(APIView):
    """DELETE /api/calls/conferences/{id}/participants/{phone_number}/"""

    def delete(self, request, conference_id, phone_number):
        participant = build_call_service(request.user).remove_participant_from_conference(
            conference_id, phone_number,
        )
        return Response(ConferenceParticipantSerializer(participant).data, status=status.HTTP_200_OK)


class ConferenceParticipantMuteView(APIView):
    """POST /api/calls/conferences/{id}/participants/{phone_number}/mute/ - {muted}"""

    def post(self, request, conference_id, phone_number):
        body = MuteRequest.model_validate(request.data)
        participant = build_call_service(request.user).mute_participant(
            conference_id, phone_number, muted=body.muted,
        )
        return Response(ConferenceParticipantSerializer(participant).data, status=status.HTTP_200_OK)


# -------------------------
# Webhooks
# -------------------------
@method_decorator(csrf_exempt, name='dispatch')
class TwilioWebhookView(APIView):
    """
    POST /api/calls/webhooks/twilio/
    Voice and status callbacks from Twilio.

    Twilio sends form fields: CallSid, From, To, Direction, CallStatus,
    CallDuration, RecordingUrl, TranscriptionText.

    Answers with TwiML: the greeting script for an incoming call, an empty
    <Response/> otherwise.
    """
    authentication_classes = []
    permission_classes = [AllowAny]

    def post(self, request):
        form = request.POST
        logger.info(
            f"[WEBHOOK] Twilio callback - CallSid={form.get('CallSid')} "
            f"Status={form.get('CallStatus')} trace_id={getattr(request, 'trace_id', None)}"
        )

        if settings.APP_SETTINGS.twilio.validate_webhooks and not self._signature_valid(request):
            logger.warning(f"[WEBHOOK] Rejected Twilio callback with invalid signature - CallSid={form.get('CallSid')}")
            return Response({'error': 'Invalid signature'}, status=status.HTTP_403_FORBIDDEN)

        service = build_call_service()
        events = parse_twilio_webhook(form, service.get_provider(CallProviderType.TWILIO))
        twiml = dispatch_events(service, events)

        return HttpResponse(
            twiml if twiml is not None else str(VoiceResponse()),
            content_type='text/xml; charset=utf-8'
        )

    @staticmethod
    def _signature_valid(request) -> bool:
        validator = RequestValidator(settings.APP_SETTINGS.twilio.auth_token)
        return validator.validate(
            request.build_absolute_uri(),
            request.POST.dict(),
            request.headers.get('X-Twilio-Signature', ''),
        )


@method_decorator(csrf_exempt, name='dispatch')
class VapiWebhookView(APIView):
    """
    POST /api/calls/webhooks/vapi/
    JSON events from VAPI: {"event": "call.status", "callId": "...", "status": "..."}
    """
    authentication_classes = []
    permission_classes = [AllowAny]

    def post(self, request):
        payload = request.data
        if not hasattr(payload, 'get'):
            raise ValidationError("Webhook body must be a JSON object")
        logger.info(
            f"[WEBHOOK] VAPI event - event={payload.get('event')} "
            f"trace_id={getattr(request, 'trace_id', None)}"
        )

        service = build_call_service()
        events = parse_vapi_webhook(payload, service.get_provider(CallProviderType.VAPI))
        result = dispatch_events(service, events)

        if result is not None:
            return Response(result, status=status.HTTP_200_OK)
        return Response({'received': True}, status=status.HTTP_200_OK)
