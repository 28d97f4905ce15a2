"""
AI analysis views.
"""
import logging
from datetime import timedelta, timezone as dt_timezone

from django.core.cache import cache
from django.db.models import Q
from django.utils import timezone
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.calls.models import Call, CallAnalysis
from apps.core.exceptions import NotFoundError, ValidationError

from .insights import AIInsightsService
from .schemas import (
    CustomerProfileRequest,
    TrendsRequest,
    VoiceAnalysisRequest,
    VoiceAnalyticsQuery,
)
from .voice_analysis import VoiceAnalysisService, get_voice_analytics

logger = logging.getLogger(__name__)

VOICE_ANALYTICS_CACHE_TTL = 300
TRENDS_LOOKBACK_DAYS = 30


def build_insights_service() -> AIInsightsService:
    return AIInsightsService()


def build_voice_analysis_service() -> VoiceAnalysisService:
    return VoiceAnalysisService()


def _aware(value):
    if value is not None and timezone.is_naive(value):
        return timezone.make_aware(value, dt_timezone.utc)
    return value


class CallInsightsView(APIView):
    """
    POST /api/ai/calls/{call_id}/insights/

    Generates insights from the call's stored analytics and transcription
    and keeps them as a call analysis.

    Response format:
    {
        "call_id": "...",
        "insights": {"summary": "...", "insights": [...], "key_takeaways": [...], "action_items": [...]}
    }
    """

    def post(self, request, call_id):
        try:
            call = Call.objects.get(provider_call_id=call_id, user=request.user)
        except Call.DoesNotExist as e:
            raise NotFoundError(f"Call not found: {call_id}") from e

        insights = build_insights_service().generate_call_insights(call.analytics, call.transcription or '')
        CallAnalysis.objects.create(
            call=call,
            source='insights',
            analysis=insights.model_dump(),
            insights=insights.summary,
        )
        logger.info(f'[AI-INSIGHTS] Insights stored - call_id={call_id}')
        return Response({'call_id': call_id, 'insights': insights.model_dump()}, status=status.HTTP_200_OK)


class TrendsView(APIView):
    """
    POST /api/ai/trends/
    Body: {startDate?, endDate?} (default: last 30 days)
    """

    def post(self, request):
        body = TrendsRequest.model_validate(request.data or {})
        end = _aware(body.end_date) or timezone.now()
        start = _aware(body.start_date) or end - timedelta(days=TRENDS_LOOKBACK_DAYS)

        analytics = list(
            Call.objects.filter(user=request.user, created_at__gte=start, created_at__lte=end)
            .exclude(analytics__isnull=True)
            .order_by('created_at')
            .values_list('analytics', flat=True)
        )
        trends = build_insights_service().analyze_trends(analytics)
        return Response(
            {'calls': len(analytics), 'trends': [trend.model_dump() for trend in trends]},
            status=status.HTTP_200_OK,
        )


class CustomerProfileView(APIView):
    """
    POST /api/ai/customer-profile/
    Body: {phoneNumber} - profiles the customer from every call with that number.
    """

    def post(self, request):
        body = CustomerProfileRequest.model_validate(request.data)
        calls = (
            Call.objects.filter(user=request.user)
            .filter(Q(from_number=body.phone_number) | Q(to_number=body.phone_number))
            .order_by('created_at')
        )
        history = [{'analytics': call.analytics, 'transcription': call.transcription} for call in calls]
        if not history:
            raise NotFoundError(f"No calls found for {body.phone_number}")

        profile = build_insights_service().generate_customer_profile(history)
        return Response(
            {'phone_number': body.phone_number, 'calls': len(history), 'profile': profile.model_dump()},
            status=status.HTTP_200_OK,
        )


class VoiceAnalysisView(APIView):
    """
    POST /api/ai/voice-analysis/
    Body: {audioUrl, callId?, generateInsights = true}

    GET /api/ai/voice-analysis/?startDate=...&endDate=...&view=daily
    Averages stored voice analyses per period (cached for 5 minutes).
    """

    def post(self, request):
        body = VoiceAnalysisRequest.model_validate(request.data)
        service = build_voice_analysis_service()

        analysis = service.analyze_voice(str(body.audio_url))
        insights = service.generate_insights(analysis) if body.generate_insights else None

        if body.call_id:
            service.store_analysis(body.call_id, analysis, insights, user=request.user)

        return Response({'analysis': analysis.model_dump(), 'insights': insights}, status=status.HTTP_200_OK)

    def get(self, request):
        query = VoiceAnalyticsQuery.model_validate(request.query_params.dict())
        start, end = _aware(query.start_date), _aware(query.end_date)
        if start > end:
            raise ValidationError("startDate must not be after endDate")

        cache_key = f"voice-analytics:{request.user.pk}:{start.isoformat()}:{end.isoformat()}:{query.view}"
        cached_data = cache.get(cache_key)
        if cached_data:
            return Response(cached_data, status=status.HTTP_200_OK)

        data = {'analytics': get_voice_analytics(request.user, start, end, query.view)}
        cache.set(cache_key, data, VOICE_ANALYTICS_CACHE_TTL)
        return Response(data, status=status.HTTP_200_OK)
