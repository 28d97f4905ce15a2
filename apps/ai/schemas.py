"""
Structured shapes for AI analysis input and output.
"""
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import AnyUrl, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

InsightType = Literal['improvement', 'success', 'trend', 'anomaly']

DEFAULT_INSIGHT_CONFIDENCE = 0.85


class CallAnalytics(BaseModel):
    """Per-call metrics as stored on ``Call.analytics``; vendor blobs use camelCase."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra='allow')

    duration: Optional[float] = None
    sentiment: Optional[Dict[str, Any]] = None
    topics: List[str] = Field(default_factory=list)
    speaker_ratio: Optional[Dict[str, float]] = None
    interruptions: Optional[int] = None
    pace: Optional[Dict[str, Any]] = None


class AIInsight(BaseModel):
    type: InsightType
    title: str
    description: str = ''
    confidence: float = DEFAULT_INSIGHT_CONFIDENCE
    metrics: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)


class CallInsights(BaseModel):
    summary: str = ''
    insights: List[AIInsight] = Field(default_factory=list)
    key_takeaways: List[str] = Field(default_factory=list)
    action_items: List[str] = Field(default_factory=list)


class CustomerProfile(BaseModel):
    preferences: Dict[str, float] = Field(default_factory=dict)
    topics: List[str] = Field(default_factory=list)
    sentiment: Dict[str, float] = Field(default_factory=dict)
    communication_style: str = ''
    recommendations: List[str] = Field(default_factory=list)


class AudioQuality(BaseModel):
    snr: float = 0
    clarity: float = 0
    background_noise: float = 0


class Keyword(BaseModel):
    word: str
    frequency: int


class VoiceAnalysis(BaseModel):
    pitch: float = 0
    energy: float = 0
    clarity: float = 0
    tempo: float = 0
    variability: float = 0
    emotion: str = 'neutral'
    emotion_flow: List[str] = Field(default_factory=list)
    keywords: List[Keyword] = Field(default_factory=list)
    confidence: float = 0
    audio_quality: AudioQuality = Field(default_factory=AudioQuality)


class RequestModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class VoiceAnalysisRequest(RequestModel):
    audio_url: AnyUrl
    call_id: Optional[str] = None
    generate_insights: bool = True


class VoiceAnalyticsQuery(RequestModel):
    start_date: datetime
    end_date: datetime
    view: Literal['daily', 'weekly', 'monthly'] = 'daily'


class TrendsRequest(RequestModel):
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class CustomerProfileRequest(RequestModel):
    phone_number: str = Field(min_length=1)
