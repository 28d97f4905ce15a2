"""
Call analytics aggregation.

Buckets a user's calls into daily, weekly or monthly periods and summarizes
duration, sentiment, topics, speaker balance and speaking pace from the
analytics blob stored on each call.
"""
import logging
from collections import Counter
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from django.core.cache import cache

from apps.core.exceptions import ValidationError

from .constants import AnalyticsView
from .models import Call

logger = logging.getLogger(__name__)

PACE_RATINGS = ('slow', 'normal', 'fast')
TOP_TOPICS_LIMIT = 5
DEFAULT_LOOKBACK_DAYS = 30


def parse_date_param(value: Optional[str], end_of_day: bool = False) -> Optional[datetime]:
    """
    Parse a query parameter as an aware UTC datetime.

    Date-only strings (YYYY-MM-DD) expand to the start of that day, or its
    last microsecond when ``end_of_day`` is set.
    """
    if not value:
        return None
    try:
        if len(value) == 10 and value.count('-') == 2:
            day = datetime.strptime(value, "%Y-%m-%d").date()
            return datetime.combine(day, time.max if end_of_day else time.min, tzinfo=timezone.utc)
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as e:
        raise ValidationError(f"Invalid date: {value}") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _day_bounds(day: date) -> Tuple[datetime, datetime]:
    return (
        datetime.combine(day, time.min, tzinfo=timezone.utc),
        datetime.combine(day, time.max, tzinfo=timezone.utc),
    )


def _week_start(day: date) -> date:
    # Weeks start on Sunday
    return day - timedelta(days=(day.weekday() + 1) % 7)


def _next_month(day: date) -> date:
    if day.month == 12:
        return date(day.year + 1, 1, 1)
    return date(day.year, day.month + 1, 1)


def get_time_ranges(start: datetime, end: datetime, view: str) -> List[Dict[str, Any]]:
    """Return the ``{start, end, label}`` periods covering ``start``..``end``."""
    try:
        view = AnalyticsView(view)
    except ValueError as e:
        raise ValidationError(f"Invalid view: {view}") from e

    first, last = start.astimezone(timezone.utc).date(), end.astimezone(timezone.utc).date()
    ranges = []

    if view == AnalyticsView.DAILY:
        day = first
        while day <= last:
            period_start, period_end = _day_bounds(day)
            ranges.append({'start': period_start, 'end': period_end, 'label': f"{day:%b} {day.day}"})
            day += timedelta(days=1)

    elif view == AnalyticsView.WEEKLY:
        week = _week_start(first)
        while week <= last:
            period_start, _ = _day_bounds(week)
            _, period_end = _day_bounds(week + timedelta(days=6))
            ranges.append({'start': period_start, 'end': period_end, 'label': f"Week of {week:%b} {week.day}"})
            week += timedelta(days=7)

    else:
        month = first.replace(day=1)
        while month <= last:
            following = _next_month(month)
            period_start, _ = _day_bounds(month)
            _, period_end = _day_bounds(following - timedelta(days=1))
            ranges.append({'start': period_start, 'end': period_end, 'label': f"{month:%b %Y}"})
            month = following

    return ranges


def _analytics(call) -> Dict[str, Any]:
    return call.analytics if isinstance(call.analytics, dict) else {}


def calculate_average_duration(calls: List[Call]) -> float:
    if not calls:
        return 0
    return sum(call.duration or 0 for call in calls) / len(calls)


def calculate_average_sentiment(calls: List[Call]) -> float:
    scores = []
    for call in calls:
        sentiment = _analytics(call).get('sentiment')
        if isinstance(sentiment, dict) and isinstance(sentiment.get('score'), (int, float)):
            scores.append(sentiment['score'])
    if not scores:
        return 0
    return sum(scores) / len(scores)


def find_top_topics(calls: List[Call]) -> List[Dict[str, Any]]:
    counts = Counter()
    for call in calls:
        counts.update(_analytics(call).get('topics') or [])
    return [{'topic': topic, 'count': count} for topic, count in counts.most_common(TOP_TOPICS_LIMIT)]


def calculate_speaker_ratio(calls: List[Call]) -> Dict[str, int]:
    agent = customer = 0
    for call in calls:
        data = _analytics(call)
        ratio = data.get('speakerRatio') or data.get('speaker_ratio')
        if isinstance(ratio, dict):
            agent += ratio.get('agent', 0)
            customer += ratio.get('customer', 0)

    total = agent + customer
    if total == 0:
        return {'agent': 50, 'customer': 50}
    return {
        'agent': round(agent / total * 100),
        'customer': round(customer / total * 100),
    }


def calculate_pace_distribution(calls: List[Call]) -> Dict[str, int]:
    distribution = {rating: 0 for rating in PACE_RATINGS}
    for call in calls:
        pace = _analytics(call).get('pace')
        if isinstance(pace, dict) and pace.get('rating') in distribution:
            distribution[pace['rating']] += 1

    total = sum(distribution.values())
    if total == 0:
        return distribution
    return {rating: round(count / total * 100) for rating, count in distribution.items()}


def summarize(calls: List[Call]) -> Dict[str, Any]:
    return {
        'total_calls': len(calls),
        'average_duration': calculate_average_duration(calls),
        'average_sentiment': calculate_average_sentiment(calls),
        'top_topics': find_top_topics(calls),
        'speaker_ratio': calculate_speaker_ratio(calls),
        'pace_distribution': calculate_pace_distribution(calls),
    }


def aggregate_call_data(calls: Iterable[Call], time_ranges: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    calls = list(calls)
    periods = []
    for period in time_ranges:
        period_calls = [call for call in calls if period['start'] <= call.created_at <= period['end']]
        periods.append({'period': period['label'], **summarize(period_calls)})
    return periods


def get_call_analytics(user, start: Optional[datetime] = None, end: Optional[datetime] = None,
                       view: str = AnalyticsView.DAILY.value, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Aggregate the user's calls between ``start`` and ``end``.

    Defaults to the last 30 days ending ``now``.
    """
    end = end or now or datetime.now(timezone.utc)
    start = start or end - timedelta(days=DEFAULT_LOOKBACK_DAYS)
    if start > end:
        raise ValidationError("start_date must not be after end_date")

    time_ranges = get_time_ranges(start, end, view)
    calls = list(
        Call.objects.filter(user=user, created_at__gte=start, created_at__lte=end).order_by('created_at')
    )
    logger.info(f"[CALL-ANALYTICS] Aggregating {len(calls)} calls into {len(time_ranges)} {view} periods")

    return {
        'view': view,
        'start_date': start.isoformat(),
        'end_date': end.isoformat(),
        'calls': aggregate_call_data(calls, time_ranges),
        'summary': summarize(calls),
    }


def get_cached_call_analytics(cache_key: str) -> Optional[Dict[str, Any]]:
    return cache.get(cache_key)


def cache_call_analytics(cache_key: str, data: Dict[str, Any], ttl: int = 60) -> None:
    cache.set(cache_key, data, ttl)
