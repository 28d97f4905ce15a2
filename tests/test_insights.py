"""
AI insight generation and reply parsing.
"""
from types import SimpleNamespace
from unittest.mock import MagicMock

import httpx
import openai
import pytest

from apps.ai.insights import AIInsightsService
from apps.ai.parsers import FreeTextInsightsParser, determine_insight_type, split_sections
from apps.core.exceptions import ProviderError
from config.settings.base import AIConfig

CALL_REPLY = """
                  Summary: Test call summary

                  Insight: Improvement Needed
                  Customer service response time was slow
                  Metrics: response_time, customer_satisfaction
                  Recommendations:
                  - Improve initial response time
                  - Use pre-written templates for common issues

                  Insight: Success Pattern
                  Excellent problem resolution approach
                  Metrics: resolution_rate, customer_satisfaction

                  Key Takeaways:
                  - Response time needs improvement
                  - Problem resolution was effective
                  - Customer was satisfied with solution

                  Action Items:
                  - Implement response time monitoring
                  - Share successful resolution approach with team
                  - Update service templates
                """

TRENDS_REPLY = """
Insight: Upward trend in billing questions
Billing came up in most calls this month.
Metrics: topic_frequency
Confidence: 92%

Insight: Unusual spike in call length
Average duration doubled on Mondays.
Confidence: 0.6
"""

PROFILE_REPLY = """
Preferences:
- Email follow-ups: 0.8
- Morning calls: 60%

Topics: billing, support

Sentiment:
positive: 0.7
negative: 0.1

Communication Style: Direct and concise

Recommendations:
- Offer written summaries after each call
"""

ANALYTICS = {
    'duration': 300,
    'sentiment': {'overall': 'positive', 'score': 0.8},
    'topics': ['billing', 'support'],
    'speakerRatio': {'agent': 0.4, 'customer': 0.6},
    'interruptions': 2,
    'pace': {'wordsPerMinute': 150, 'rating': 'normal'},
}


def completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def make_service(reply):
    client = MagicMock()
    client.chat.completions.create.return_value = completion(reply)
    return AIInsightsService(config=AIConfig(), client=client), client


def test_generate_call_insights_parses_reply():
    service, _ = make_service(CALL_REPLY)

    insights = service.generate_call_insights(ANALYTICS, 'Mock call transcription')

    assert insights.summary == 'Test call summary'
    assert [insight.type for insight in insights.insights] == ['improvement', 'success']

    improvement = insights.insights[0]
    assert improvement.title == 'Improvement Needed'
    assert improvement.description == 'Customer service response time was slow'
    assert improvement.metrics == ['response_time', 'customer_satisfaction']
    assert improvement.recommendations == [
        'Improve initial response time',
        'Use pre-written templates for common issues',
    ]
    assert improvement.confidence == 0.85

    assert len(insights.key_takeaways) == 3
    assert insights.action_items[-1] == 'Update service templates'


def test_generate_call_insights_prompt_embeds_analytics_and_transcript():
    service, client = make_service(CALL_REPLY)

    service.generate_call_insights(ANALYTICS, 'Mock call transcription')

    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs['model'] == 'gpt-4-turbo-preview'
    assert kwargs['temperature'] == 0.7
    assert kwargs['max_tokens'] == 1000
    system, user = kwargs['messages']
    assert system == {
        'role': 'system',
        'content': 'You are an expert call analyzer that provides detailed insights and actionable recommendations.',
    }
    assert 'Summary:' in user['content']
    assert 'Mock call transcription' in user['content']
    assert 'billing, support' in user['content']
    assert '300' in user['content']


def test_openai_errors_become_provider_errors():
    client = MagicMock()
    client.chat.completions.create.side_effect = openai.APIConnectionError(
        request=httpx.Request('POST', 'https://api.openai.com/v1/chat/completions'),
    )
    service = AIInsightsService(config=AIConfig(), client=client)

    with pytest.raises(ProviderError) as excinfo:
        service.generate_call_insights(ANALYTICS, 'transcription')

    assert excinfo.value.provider == 'openai'
    assert isinstance(excinfo.value.__cause__, openai.APIConnectionError)


def test_missing_api_key_raises_on_first_use():
    service = AIInsightsService(config=AIConfig())
    with pytest.raises(ValueError, match='OpenAI API key not configured'):
        service.generate_call_insights(ANALYTICS, 'transcription')


def test_analyze_trends():
    service, client = make_service(TRENDS_REPLY)

    trends = service.analyze_trends([ANALYTICS, ANALYTICS])

    assert [trend.type for trend in trends] == ['trend', 'anomaly']
    assert trends[0].confidence == pytest.approx(0.92)
    assert trends[0].metrics == ['topic_frequency']
    assert trends[1].confidence == pytest.approx(0.6)
    assert client.chat.completions.create.call_count == 1


def test_analyze_trends_without_calls_skips_the_model():
    service, client = make_service(TRENDS_REPLY)
    assert service.analyze_trends([]) == []
    client.chat.completions.create.assert_not_called()


def test_generate_customer_profile():
    service, client = make_service(PROFILE_REPLY)

    profile = service.generate_customer_profile([
        {'analytics': ANALYTICS, 'transcription': 'Call 1'},
        {'analytics': ANALYTICS, 'transcription': 'Call 2'},
    ])

    assert profile.preferences == {'Email follow-ups': 0.8, 'Morning calls': 0.6}
    assert profile.topics == ['billing', 'support']
    assert profile.sentiment == {'positive': 0.7, 'negative': 0.1}
    assert profile.communication_style == 'Direct and concise'
    assert profile.recommendations == ['Offer written summaries after each call']
    prompt = client.chat.completions.create.call_args.kwargs['messages'][1]['content']
    assert 'Call 1' in prompt and 'Call 2' in prompt


# -------------------------
# Parser
# -------------------------
def test_split_sections_handles_indented_blank_lines():
    assert split_sections('  A: 1\n   \n  B: 2\n\n\n') == ['A: 1', 'B: 2']


@pytest.mark.parametrize('title, expected', [
    ('Improvement Needed', 'improvement'),
    ('Areas to improve', 'improvement'),
    ('Success Pattern', 'success'),
    ('Weekly Trend', 'trend'),
    ('Something odd', 'anomaly'),
])
def test_determine_insight_type(title, expected):
    assert determine_insight_type(title) == expected


def test_parser_tolerates_missing_sections():
    insights = FreeTextInsightsParser().parse_call_insights('The model ignored the format.')
    assert insights.summary == ''
    assert insights.insights == []
    assert insights.key_takeaways == []
    assert insights.action_items == []


MARKDOWN_REPLY = """
**Summary:** Customer asked about a refund

### Insight: Improvement Needed
Hold times were long
**Metrics:** hold_time
**Recommendations:**
- Add a callback option
1. Staff the queue at lunch

**Key Takeaways:**
* Refund policy was unclear
"""

NUMBERED_REPLY = """
1. Summary: Quick billing question

2. Insight: Success Pattern
Answered on the first try

3. Action Items:
- Send the invoice copy
"""


def test_parser_reads_markdown_headers():
    insights = FreeTextInsightsParser().parse_call_insights(MARKDOWN_REPLY)

    assert insights.summary == 'Customer asked about a refund'
    assert len(insights.insights) == 1
    insight = insights.insights[0]
    assert insight.title == 'Improvement Needed'
    assert insight.type == 'improvement'
    assert insight.metrics == ['hold_time']
    assert insight.recommendations == ['Add a callback option', 'Staff the queue at lunch']
    assert insights.key_takeaways == ['Refund policy was unclear']


def test_parser_reads_numbered_headers():
    insights = FreeTextInsightsParser().parse_call_insights(NUMBERED_REPLY)

    assert insights.summary == 'Quick billing question'
    assert [insight.title for insight in insights.insights] == ['Success Pattern']
    assert insights.insights[0].description == 'Answered on the first try'
    assert insights.action_items == ['Send the invoice copy']
