"""
Voice analysis for recorded calls.

Acoustic features, keywords and audio quality come from Deepgram, emotion
from AssemblyAI sentiment segments, and the coaching summary from OpenAI.
"""
import io
import logging
from collections import Counter
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urlparse

import assemblyai as aai
import boto3
from botocore.exceptions import ClientError
import httpx
from django.conf import settings
from openai import OpenAI

from apps.calls.analytics import get_time_ranges
from apps.calls.models import Call, CallAnalysis
from apps.core.exceptions import NotFoundError, ProviderError
from apps.core.utils import download_artifact, storage_error

from .insights import OpenAIChatMixin
from .prompts import load_prompt, render_prompt
from .schemas import AudioQuality, Keyword, VoiceAnalysis

logger = logging.getLogger(__name__)

STOP_WORDS = frozenset(['the', 'a', 'an', 'and', 'or', 'but', 'in', 'on', 'at', 'to', 'for'])
KEYWORD_LIMIT = 20
VOICE_METRICS = ('pitch', 'energy', 'clarity', 'tempo', 'variability')
VOICE_SOURCE = 'voice'


def extract_keywords(words: Iterable[Dict[str, Any]]) -> List[Keyword]:
    counts = Counter()
    for word in words:
        text = str(word.get('word') or '').lower()
        if text not in STOP_WORDS and len(text) > 2:
            counts[text] += 1
    return [Keyword(word=text, frequency=count) for text, count in counts.most_common(KEYWORD_LIMIT)]


def most_frequent_emotion(emotions: List[str]) -> str:
    if not emotions:
        return 'neutral'
    return Counter(emotions).most_common(1)[0][0]


def simplify_emotion_flow(emotions: List[str]) -> List[str]:
    flow = []
    for emotion in emotions:
        if not flow or flow[-1] != emotion:
            flow.append(emotion)
    return flow


def _first(items: Optional[list]) -> Dict[str, Any]:
    return items[0] if items else {}


class VoiceAnalysisService(OpenAIChatMixin):
    """Analyze call audio and summarize the speaker's delivery."""

    def __init__(self, config=None, storage_config=None, openai_client: Optional[OpenAI] = None,
                 http_client: Optional[httpx.Client] = None, s3_client=None, transcriber=None):
        self.config = config or settings.APP_SETTINGS.ai
        self.storage_config = storage_config or settings.APP_SETTINGS.storage
        self._client = openai_client
        self._http = http_client
        self._s3 = s3_client
        self._transcriber = transcriber

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            self._client = self._build_openai_client(self.config)
        return self._client

    @property
    def http(self) -> httpx.Client:
        if self._http is None:
            self._http = httpx.Client(follow_redirects=True, timeout=None)
        return self._http

    @property
    def s3(self):
        if self._s3 is None:
            self._s3 = boto3.client(
                's3',
                region_name=self.storage_config.region,
                aws_access_key_id=self.storage_config.aws_access_key_id or None,
                aws_secret_access_key=self.storage_config.aws_secret_access_key or None,
            )
        return self._s3

    @property
    def transcriber(self):
        if self._transcriber is None:
            if not self.config.assemblyai_api_key:
                raise ValueError("AssemblyAI API key not configured")
            aai.settings.api_key = self.config.assemblyai_api_key
            self._transcriber = aai.Transcriber()
        return self._transcriber

    def analyze_voice(self, audio_url: str) -> VoiceAnalysis:
        """
        Run the full analysis pipeline over one recording.

        Args:
            audio_url: ``s3://bucket/key`` or an HTTP(S) URL

        Returns:
            VoiceAnalysis combining acoustic, emotion and transcription results
        """
        logger.info(f'[VOICE-ANALYSIS] Analyzing audio - url={audio_url}')
        audio = self.get_audio(audio_url)

        deepgram = self.analyze_with_deepgram(audio)
        emotions = self.analyze_emotions(audio)

        analysis = VoiceAnalysis(
            **deepgram,
            emotion=most_frequent_emotion(emotions),
            emotion_flow=simplify_emotion_flow(emotions),
        )
        logger.info(
            f'[VOICE-ANALYSIS] Analysis complete - emotion={analysis.emotion} '
            f'keywords={len(analysis.keywords)} confidence={analysis.confidence}'
        )
        return analysis

    def get_audio(self, audio_url: str) -> bytes:
        if audio_url.startswith('s3://'):
            parsed = urlparse(audio_url)
            try:
                response = self.s3.get_object(Bucket=parsed.netloc, Key=parsed.path.lstrip('/'))
                return response['Body'].read()
            except ClientError as e:
                raise storage_error(e, audio_url) from e
        return download_artifact(self.http, audio_url)

    def analyze_with_deepgram(self, audio: bytes) -> Dict[str, Any]:
        """Acoustic features, keywords, confidence and audio quality in one request."""
        if not self.config.deepgram_api_key:
            raise ValueError("Deepgram API key not configured")

        try:
            response = self.http.post(
                f'{self.config.deepgram_base_url}/listen',
                params={
                    'model': self.config.deepgram_model,
                    'smart_format': 'true',
                    'punctuate': 'true',
                    'diarize': 'true',
                    'utterances': 'true',
                    'detect_topics': 'true',
                },
                headers={
                    'Authorization': f'Token {self.config.deepgram_api_key}',
                    'Content-Type': 'audio/wav',
                },
                content=audio,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f'[VOICE-ANALYSIS] Deepgram request failed: HTTP {e.response.status_code}', exc_info=True)
            raise ProviderError(
                f'Deepgram request failed: HTTP {e.response.status_code}', provider='deepgram'
            ) from e
        except httpx.HTTPError as e:
            logger.error(f'[VOICE-ANALYSIS] Deepgram request failed: {e}', exc_info=True)
            raise ProviderError(f'Deepgram request failed: {e}', provider='deepgram') from e

        channel = _first(response.json().get('results', {}).get('channels'))
        alternative = _first(channel.get('alternatives'))
        features = alternative.get('audio_features') or {}

        return {
            'pitch': features.get('pitch_mean') or 0,
            'energy': features.get('energy_mean') or 0,
            'clarity': features.get('clarity_mean') or 0,
            'tempo': features.get('tempo_mean') or 0,
            'variability': features.get('pitch_variability') or 0,
            'keywords': extract_keywords(alternative.get('words') or []),
            'confidence': alternative.get('confidence') or 0,
            'audio_quality': AudioQuality(
                snr=channel.get('snr') or 0,
                clarity=channel.get('clarity') or 0,
                background_noise=channel.get('background_noise') or 0,
            ),
        }

    def analyze_emotions(self, audio: bytes) -> List[str]:
        """Sentiment label of each AssemblyAI segment, in order."""
        config = aai.TranscriptionConfig(
            sentiment_analysis=True,
            entity_detection=True,
            auto_chapters=True,
        )
        try:
            transcript = self.transcriber.transcribe(io.BytesIO(audio), config=config)
        except aai.types.TranscriptError as e:
            logger.error(f'[VOICE-ANALYSIS] AssemblyAI transcription failed: {e}', exc_info=True)
            raise ProviderError(f'AssemblyAI transcription failed: {e}', provider='assemblyai') from e

        if transcript.status == aai.TranscriptStatus.error:
            logger.error(f'[VOICE-ANALYSIS] AssemblyAI transcription failed: {transcript.error}')
            raise ProviderError(f'AssemblyAI transcription failed: {transcript.error}', provider='assemblyai')

        emotions = []
        for segment in transcript.sentiment_analysis or []:
            sentiment = getattr(segment.sentiment, 'value', segment.sentiment)
            emotions.append(str(sentiment).lower())
        return emotions

    def generate_insights(self, analysis: VoiceAnalysis) -> str:
        prompt = render_prompt(
            'voice_insights_user.txt',
            pitch=analysis.pitch,
            energy=analysis.energy,
            clarity=analysis.clarity,
            emotion_flow=' → '.join(analysis.emotion_flow) or 'n/a',
            keywords=', '.join(keyword.word for keyword in analysis.keywords[:5]) or 'n/a',
        )
        return self._complete(
            load_prompt('voice_insights_system.txt'),
            prompt,
            self.config.voice_insights_max_tokens,
            'VOICE-ANALYSIS',
        )

    @staticmethod
    def store_analysis(call_id: str, analysis: VoiceAnalysis, insights: Optional[str] = None,
                       user=None) -> CallAnalysis:
        calls = Call.objects.all() if user is None else Call.objects.filter(user=user)
        try:
            call = calls.get(provider_call_id=call_id)
        except Call.DoesNotExist as e:
            raise NotFoundError(f"Call not found: {call_id}") from e

        return CallAnalysis.objects.create(
            call=call,
            source=VOICE_SOURCE,
            analysis=analysis.model_dump(),
            insights=insights or '',
        )


def get_voice_analytics(user, start, end, view: str) -> List[Dict[str, Any]]:
    """Average stored voice metrics per period; periods without analyses are omitted."""
    analyses = list(
        CallAnalysis.objects.filter(
            call__user=user,
            source=VOICE_SOURCE,
            created_at__gte=start,
            created_at__lte=end,
        ).order_by('created_at')
    )

    periods = []
    for period in get_time_ranges(start, end, view):
        items = [item.analysis for item in analyses if period['start'] <= item.created_at <= period['end']]
        if not items:
            continue
        count = len(items)
        periods.append({
            'period': period['label'],
            'metrics': {
                metric: sum(item.get(metric) or 0 for item in items) / count
                for metric in VOICE_METRICS
            },
            'emotions': [item.get('emotion', 'neutral') for item in items],
            'count': count,
        })
    return periods
