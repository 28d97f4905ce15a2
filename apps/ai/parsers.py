"""
Parsers for language-model replies.

The insight prompts ask for blank-line separated blocks that start with a
header such as ``Summary:`` or ``Insight:``. ``FreeTextInsightsParser`` turns
such a reply into the structured shapes in ``schemas``. Anything the model
leaves out comes back empty rather than raising. Headers may carry markdown
emphasis, heading marks or list numbering.
"""
import re
from typing import List, Optional, Tuple

from .schemas import (
    DEFAULT_INSIGHT_CONFIDENCE,
    AIInsight,
    CallInsights,
    CustomerProfile,
)

SUMMARY = 'Summary:'
INSIGHT = 'Insight:'
KEY_TAKEAWAYS = 'Key Takeaways:'
ACTION_ITEMS = 'Action Items:'
RECOMMENDATIONS = 'Recommendations:'
METRICS = 'Metrics:'
CONFIDENCE = 'Confidence:'
PREFERENCES = 'Preferences:'
TOPICS = 'Topics:'
SENTIMENT = 'Sentiment:'
COMMUNICATION_STYLE = 'Communication Style:'

HEADERS = (
    SUMMARY, INSIGHT, KEY_TAKEAWAYS, ACTION_ITEMS, RECOMMENDATIONS, METRICS,
    CONFIDENCE, PREFERENCES, TOPICS, SENTIMENT, COMMUNICATION_STYLE,
)

# Blank lines may carry indentation
_SECTION_BREAK = re.compile(r'\n\s*\n')
_BULLET = re.compile(r'^(?:[-*•]|\d+[.)])\s*')
_NUMBER = re.compile(r'-?\d+(?:\.\d+)?')
# Markdown or list numbering a model may put in front of a header
_MARKUP_PREFIX = re.compile(r'^(?:[#>*_\s]+|\d+[.)]\s*|[-•]\s+)+')


def _normalize_line(line: str) -> str:
    """Reduce a decorated header line (``**Summary:**``, ``### Insight:``, ``1. Summary:``) to its plain form."""
    line = line.strip()
    plain = _MARKUP_PREFIX.sub('', line).replace('**', '').replace('__', '').strip()
    if plain.startswith(HEADERS):
        return plain
    return line


def split_sections(text: str) -> List[str]:
    sections = []
    for raw in _SECTION_BREAK.split(text.strip()):
        section = '\n'.join(_normalize_line(line) for line in raw.splitlines()).strip()
        if section:
            sections.append(section)
    return sections


def _is_header(line: str) -> bool:
    return line.startswith(HEADERS)


def _block_at(lines: List[str], index: int, header: str) -> Tuple[str, List[str]]:
    body = []
    for line in lines[index + 1:]:
        if _is_header(line):
            break
        body.append(line)
    return lines[index][len(header):].strip(), body


def find_block(sections: List[str], header: str) -> Optional[Tuple[str, List[str]]]:
    """
    Locate the first ``header`` line across ``sections``.

    Returns the text after the header on the same line and the following
    lines up to the next header or the end of the section.
    """
    for section in sections:
        lines = section.split('\n')
        for index, line in enumerate(lines):
            if line.startswith(header):
                return _block_at(lines, index, header)
    return None


def _items(block: Optional[Tuple[str, List[str]]], split_inline: bool = False) -> List[str]:
    if block is None:
        return []
    inline, body = block
    entries = []
    if inline and split_inline:
        entries.extend(part.strip() for part in inline.split(','))
    elif inline:
        entries.append(inline)
    entries.extend(_BULLET.sub('', line).strip() for line in body)
    return [entry for entry in entries if entry]


def _text(block: Optional[Tuple[str, List[str]]]) -> str:
    if block is None:
        return ''
    inline, body = block
    return '\n'.join(part for part in [inline, *body] if part).strip()


def _scores(block: Optional[Tuple[str, List[str]]]) -> dict:
    """Read ``label: number`` lines; percentages become fractions."""
    scores = {}
    for entry in _items(block, split_inline=True):
        label, sep, value = entry.rpartition(':')
        if not sep or not label.strip():
            continue
        match = _NUMBER.search(value)
        if match is None:
            continue
        number = float(match.group())
        if '%' in value:
            number /= 100
        scores[label.strip()] = number
    return scores


def determine_insight_type(title: str) -> str:
    lowered = title.lower()
    if 'improve' in lowered:
        return 'improvement'
    if 'success' in lowered:
        return 'success'
    if 'trend' in lowered:
        return 'trend'
    return 'anomaly'


def _confidence(block: Optional[Tuple[str, List[str]]]) -> float:
    if block is None:
        return DEFAULT_INSIGHT_CONFIDENCE
    inline, _ = block
    match = _NUMBER.search(inline)
    if match is None:
        return DEFAULT_INSIGHT_CONFIDENCE
    value = float(match.group())
    if '%' in inline or value > 1:
        value /= 100
    return min(max(value, 0.0), 1.0)


class InsightsParser:
    """Turns a model reply into structured insight records."""

    def parse_call_insights(self, text: str) -> CallInsights:
        raise NotImplementedError

    def parse_insights(self, text: str) -> List[AIInsight]:
        raise NotImplementedError

    def parse_customer_profile(self, text: str) -> CustomerProfile:
        raise NotImplementedError


class FreeTextInsightsParser(InsightsParser):

    def parse_call_insights(self, text: str) -> CallInsights:
        sections = split_sections(text)
        return CallInsights(
            summary=_text(find_block(sections, SUMMARY)),
            insights=self._extract_insights(sections),
            key_takeaways=_items(find_block(sections, KEY_TAKEAWAYS)),
            action_items=_items(find_block(sections, ACTION_ITEMS)),
        )

    def parse_insights(self, text: str) -> List[AIInsight]:
        return self._extract_insights(split_sections(text))

    def parse_customer_profile(self, text: str) -> CustomerProfile:
        sections = split_sections(text)
        return CustomerProfile(
            preferences=_scores(find_block(sections, PREFERENCES)),
            topics=_items(find_block(sections, TOPICS), split_inline=True),
            sentiment=_scores(find_block(sections, SENTIMENT)),
            communication_style=_text(find_block(sections, COMMUNICATION_STYLE)),
            recommendations=_items(find_block(sections, RECOMMENDATIONS)),
        )

    def _extract_insights(self, sections: List[str]) -> List[AIInsight]:
        insights = []
        for section in sections:
            lines = section.split('\n')
            starts = [index for index, line in enumerate(lines) if line.startswith(INSIGHT)]
            for position, start in enumerate(starts):
                end = starts[position + 1] if position + 1 < len(starts) else len(lines)
                insights.append(self._parse_insight(lines[start:end]))
        return insights

    def _parse_insight(self, lines: List[str]) -> AIInsight:
        title, description = _block_at(lines, 0, INSIGHT)
        block = ['\n'.join(lines)]
        return AIInsight(
            type=determine_insight_type(title),
            title=title,
            description='\n'.join(description).strip(),
            confidence=_confidence(find_block(block, CONFIDENCE)),
            metrics=_items(find_block(block, METRICS), split_inline=True),
            recommendations=_items(find_block(block, RECOMMENDATIONS)),
        )
