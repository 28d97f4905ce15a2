"""
AI insight generation for calls using OpenAI.
"""
import json
import logging
from typing import Any, Dict, Iterable, List, Optional, Union

from django.conf import settings
from openai import OpenAI, OpenAIError

from apps.core.exceptions import ProviderError

from .parsers import FreeTextInsightsParser, InsightsParser
from .prompts import load_prompt, render_prompt
from .schemas import AIInsight, CallAnalytics, CallInsights, CustomerProfile

logger = logging.getLogger(__name__)

AnalyticsInput = Union[CallAnalytics, Dict[str, Any]]


def _as_analytics(analytics: Optional[AnalyticsInput]) -> CallAnalytics:
    if isinstance(analytics, CallAnalytics):
        return analytics
    return CallAnalytics.model_validate(analytics or {})


def _json(value) -> str:
    return json.dumps(value, default=str) if value is not None else 'n/a'


class OpenAIChatMixin:
    """Shared OpenAI client handling for the AI services."""

    def _build_openai_client(self, config) -> OpenAI:
        if not config.openai_api_key:
            raise ValueError("OpenAI API key not configured")
        return OpenAI(
            api_key=config.openai_api_key,
            organization=config.openai_organization or None,
        )

    def _complete(self, system_prompt: str, user_prompt: str, max_tokens: int, tag: str) -> str:
        try:
            response = self.client.chat.completions.create(
                model=self.config.insights_model,
                messages=[
                    {
                        'role': 'system',
                        'content': system_prompt
                    },
                    {
                        'role': 'user',
                        'content': user_prompt
                    }
                ],
                temperature=self.config.insights_temperature,
                max_tokens=max_tokens,
            )
        except OpenAIError as e:
            logger.error(f'[{tag}] OpenAI request failed: {e}', exc_info=True)
            raise ProviderError(f'OpenAI request failed: {e}', provider='openai') from e

        return response.choices[0].message.content or ''


class AIInsightsService(OpenAIChatMixin):
    """Generates call insights, trend analyses and customer profiles."""

    def __init__(self, config=None, client: Optional[OpenAI] = None, parser: Optional[InsightsParser] = None):
        self.config = config or settings.APP_SETTINGS.ai
        self._client = client
        self.parser = parser or FreeTextInsightsParser()

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            self._client = self._build_openai_client(self.config)
        return self._client

    def build_insights_prompt(self, analytics: CallAnalytics, transcript: str) -> str:
        return render_prompt(
            'insights_user.txt',
            duration=analytics.duration if analytics.duration is not None else 'n/a',
            sentiment=_json(analytics.sentiment),
            topics=', '.join(analytics.topics) or 'n/a',
            speaker_ratio=_json(analytics.speaker_ratio),
            interruptions=analytics.interruptions if analytics.interruptions is not None else 'n/a',
            pace=_json(analytics.pace),
            transcript=transcript or '(no transcription available)',
        )

    def generate_call_insights(self, analytics: Optional[AnalyticsInput], transcript: str) -> CallInsights:
        """
        Analyze one call.

        Args:
            analytics: The call's analytics blob (camelCase keys accepted)
            transcript: Full call transcription

        Returns:
            CallInsights parsed from the model reply
        """
        analytics = _as_analytics(analytics)
        logger.info(f'[AI-INSIGHTS] Generating call insights - transcript_chars={len(transcript or "")}')

        reply = self._complete(
            load_prompt('insights_system.txt'),
            self.build_insights_prompt(analytics, transcript),
            self.config.insights_max_tokens,
            'AI-INSIGHTS',
        )
        insights = self.parser.parse_call_insights(reply)

        logger.info(
            f'[AI-INSIGHTS] Call insights parsed - insights={len(insights.insights)} '
            f'takeaways={len(insights.key_takeaways)} action_items={len(insights.action_items)}'
        )
        return insights

    def analyze_trends(self, analytics_list: Iterable[AnalyticsInput]) -> List[AIInsight]:
        records = [_as_analytics(item).model_dump(by_alias=True, exclude_none=True) for item in analytics_list]
        if not records:
            return []

        reply = self._complete(
            load_prompt('trends_system.txt'),
            render_prompt('trends_user.txt', analytics='\n'.join(_json(record) for record in records)),
            self.config.insights_max_tokens,
            'AI-INSIGHTS',
        )
        trends = self.parser.parse_insights(reply)
        logger.info(f'[AI-INSIGHTS] Trends analyzed - calls={len(records)} insights={len(trends)}')
        return trends

    def generate_customer_profile(self, calls: Iterable[Dict[str, Any]]) -> CustomerProfile:
        """
        Build a profile from a customer's call history.

        Each item holds ``analytics`` and ``transcription`` for one call.
        """
        blocks = []
        for call in calls:
            analytics = _as_analytics(call.get('analytics')).model_dump(by_alias=True, exclude_none=True)
            blocks.append(
                f"Analytics: {_json(analytics)}\nTranscription: {call.get('transcription') or ''}"
            )
        if not blocks:
            return CustomerProfile()

        reply = self._complete(
            load_prompt('customer_profile_system.txt'),
            render_prompt('customer_profile_user.txt', calls='\n\n'.join(blocks)),
            self.config.insights_max_tokens,
            'AI-INSIGHTS',
        )
        return self.parser.parse_customer_profile(reply)
