"""
Voice analysis pipeline with Deepgram, AssemblyAI and OpenAI stubbed out.
"""
import json
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

import assemblyai as aai
import httpx
import pytest
from botocore.exceptions import ClientError

from apps.ai.schemas import VoiceAnalysis
from apps.ai.voice_analysis import (
    VoiceAnalysisService,
    extract_keywords,
    get_voice_analytics,
    most_frequent_emotion,
    simplify_emotion_flow,
)
from apps.calls.models import Call, CallAnalysis
from apps.core.exceptions import NotFoundError, ProviderError
from config.settings.base import AIConfig, StorageConfig

AUDIO = b'RIFF....WAVEfmt '

DEEPGRAM_RESPONSE = {
    'results': {
        'channels': [{
            'snr': 24.5,
            'clarity': 0.9,
            'background_noise': 0.1,
            'alternatives': [{
                'confidence': 0.93,
                'audio_features': {
                    'pitch_mean': 180.0,
                    'energy_mean': 0.6,
                    'clarity_mean': 0.8,
                    'tempo_mean': 140.0,
                    'pitch_variability': 0.2,
                },
                'words': [
                    {'word': 'The'}, {'word': 'billing'}, {'word': 'Billing'},
                    {'word': 'is'}, {'word': 'and'}, {'word': 'refund'},
                ],
            }],
        }],
    },
}


class DeepgramHandler:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self.payload = DEEPGRAM_RESPONSE if payload is None else payload
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        if request.url.host == 'recordings.test':
            return httpx.Response(200, content=AUDIO)
        return httpx.Response(self.status_code, content=json.dumps(self.payload).encode('utf-8'))


class FakeTranscriber:
    def __init__(self, sentiments=(), status=aai.TranscriptStatus.completed, error=None):
        self.sentiments = sentiments
        self.status = status
        self.error = error
        self.uploads = []

    def transcribe(self, data, config=None):
        self.uploads.append((data.read(), config))
        return SimpleNamespace(
            status=self.status,
            error=self.error,
            sentiment_analysis=[SimpleNamespace(sentiment=label) for label in self.sentiments],
        )


def completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


@pytest.fixture
def deepgram():
    return DeepgramHandler()


@pytest.fixture
def transcriber():
    return FakeTranscriber(['POSITIVE', 'POSITIVE', 'NEUTRAL', 'POSITIVE', 'NEGATIVE'])


def make_service(handler, transcriber=None, openai_client=None, s3_client=None, **config):
    config.setdefault('deepgram_api_key', 'dg-key')
    return VoiceAnalysisService(
        config=AIConfig(**config),
        storage_config=StorageConfig(bucket='recordings'),
        openai_client=openai_client or MagicMock(),
        http_client=httpx.Client(transport=httpx.MockTransport(handler)),
        s3_client=s3_client or MagicMock(),
        transcriber=transcriber or FakeTranscriber(),
    )


# -------------------------
# Helpers
# -------------------------
def test_extract_keywords_drops_stop_words_and_short_words():
    keywords = extract_keywords([{'word': 'The'}, {'word': 'Billing'}, {'word': 'billing'}, {'word': 'ok'}])
    assert [(k.word, k.frequency) for k in keywords] == [('billing', 2)]


def test_extract_keywords_keeps_top_twenty():
    words = [{'word': f'word{i}'} for i in range(30)]
    assert len(extract_keywords(words)) == 20


def test_most_frequent_emotion_defaults_to_neutral():
    assert most_frequent_emotion([]) == 'neutral'
    assert most_frequent_emotion(['negative', 'positive', 'positive']) == 'positive'


def test_simplify_emotion_flow_collapses_repeats():
    assert simplify_emotion_flow(['positive', 'positive', 'neutral', 'neutral', 'positive']) == [
        'positive', 'neutral', 'positive',
    ]


# -------------------------
# Pipeline
# -------------------------
def test_analyze_voice_over_http(deepgram, transcriber):
    service = make_service(deepgram, transcriber=transcriber)

    analysis = service.analyze_voice('https://recordings.test/call.wav')

    assert analysis.pitch == 180.0
    assert analysis.energy == 0.6
    assert analysis.clarity == 0.8
    assert analysis.tempo == 140.0
    assert analysis.variability == 0.2
    assert analysis.confidence == 0.93
    assert analysis.audio_quality.snr == 24.5
    assert analysis.audio_quality.background_noise == 0.1
    assert [(k.word, k.frequency) for k in analysis.keywords] == [('billing', 2), ('refund', 1)]
    assert analysis.emotion == 'positive'
    assert analysis.emotion_flow == ['positive', 'neutral', 'positive', 'negative']

    listen = deepgram.requests[-1]
    assert listen.url.path == '/v1/listen'
    assert listen.url.params['model'] == 'nova-2'
    assert listen.url.params['diarize'] == 'true'
    assert listen.headers['Authorization'] == 'Token dg-key'
    assert listen.headers['Content-Type'] == 'audio/wav'
    assert listen.content == AUDIO

    uploaded, config = transcriber.uploads[0]
    assert uploaded == AUDIO
    assert config.sentiment_analysis is True


def test_s3_audio_is_read_from_the_bucket(deepgram):
    s3 = MagicMock()
    s3.get_object.return_value = {'Body': MagicMock(read=MagicMock(return_value=AUDIO))}
    service = make_service(deepgram, s3_client=s3)

    assert service.get_audio('s3://recordings/calls/abc.wav') == AUDIO
    s3.get_object.assert_called_once_with(Bucket='recordings', Key='calls/abc.wav')


def test_download_retries_transport_errors(monkeypatch):
    monkeypatch.setattr('apps.core.utils.time.sleep', lambda seconds: None)
    attempts = []

    def handler(request):
        attempts.append(request)
        if len(attempts) < 3:
            raise httpx.ConnectError('connection reset', request=request)
        return httpx.Response(200, content=AUDIO)

    service = make_service(handler)

    assert service.get_audio('https://recordings.test/call.wav') == AUDIO
    assert len(attempts) == 3


def test_missing_audio_url_is_not_found():
    service = make_service(lambda request: httpx.Response(404))

    with pytest.raises(NotFoundError, match='Audio not found') as excinfo:
        service.get_audio('https://recordings.test/gone.wav')

    assert isinstance(excinfo.value.__cause__, httpx.HTTPStatusError)


def test_failing_audio_host_becomes_provider_error(monkeypatch):
    monkeypatch.setattr('apps.core.utils.time.sleep', lambda seconds: None)

    service = make_service(lambda request: httpx.Response(503))
    with pytest.raises(ProviderError, match='HTTP 503') as excinfo:
        service.get_audio('https://recordings.test/call.wav')
    assert excinfo.value.provider == 'http'

    def unreachable(request):
        raise httpx.ConnectError('connection refused', request=request)

    service = make_service(unreachable)
    with pytest.raises(ProviderError, match='connection refused'):
        service.get_audio('https://recordings.test/call.wav')


@pytest.mark.parametrize('code, expected', [('NoSuchKey', NotFoundError), ('AccessDenied', ProviderError)])
def test_s3_errors_are_translated(deepgram, code, expected):
    s3 = MagicMock()
    s3.get_object.side_effect = ClientError({'Error': {'Code': code, 'Message': code}}, 'GetObject')
    service = make_service(deepgram, s3_client=s3)

    with pytest.raises(expected) as excinfo:
        service.get_audio('s3://recordings/calls/abc.wav')

    assert type(excinfo.value) is expected
    assert isinstance(excinfo.value.__cause__, ClientError)


def test_missing_channel_data_yields_zeroes():
    service = make_service(DeepgramHandler(payload={'results': {'channels': []}}))

    result = service.analyze_with_deepgram(AUDIO)

    assert result['pitch'] == 0
    assert result['keywords'] == []
    assert result['audio_quality'].snr == 0


def test_deepgram_http_error_becomes_provider_error():
    service = make_service(DeepgramHandler(status_code=401, payload={'err_msg': 'Invalid credentials'}))

    with pytest.raises(ProviderError) as excinfo:
        service.analyze_with_deepgram(AUDIO)

    assert excinfo.value.provider == 'deepgram'
    assert 'HTTP 401' in str(excinfo.value)


def test_deepgram_requires_key(deepgram):
    service = make_service(deepgram, deepgram_api_key='')
    with pytest.raises(ValueError, match='Deepgram API key not configured'):
        service.analyze_with_deepgram(AUDIO)


def test_failed_transcript_becomes_provider_error(deepgram):
    failed = FakeTranscriber(status=aai.TranscriptStatus.error, error='audio too short')
    service = make_service(deepgram, transcriber=failed)

    with pytest.raises(ProviderError, match='audio too short') as excinfo:
        service.analyze_emotions(AUDIO)

    assert excinfo.value.provider == 'assemblyai'


def test_assemblyai_requires_key(deepgram):
    service = VoiceAnalysisService(config=AIConfig(), storage_config=StorageConfig())
    with pytest.raises(ValueError, match='AssemblyAI API key not configured'):
        service.transcriber


def test_generate_insights_prompt(deepgram):
    openai_client = MagicMock()
    openai_client.chat.completions.create.return_value = completion('Speak a little slower.')
    service = make_service(deepgram, openai_client=openai_client)
    analysis = VoiceAnalysis(
        pitch=180, energy=0.6, clarity=0.8,
        emotion_flow=['neutral', 'positive'],
        keywords=[{'word': 'billing', 'frequency': 2}],
    )

    assert service.generate_insights(analysis) == 'Speak a little slower.'

    kwargs = openai_client.chat.completions.create.call_args.kwargs
    assert kwargs['max_tokens'] == 500
    prompt = kwargs['messages'][1]['content']
    assert 'neutral → positive' in prompt
    assert 'billing' in prompt


# -------------------------
# Storage and aggregation
# -------------------------
def make_call(user, call_id):
    return Call.objects.create(
        provider_call_id=call_id, user=user, from_number='+15550001111',
        direction='outbound', provider='vapi', status='completed',
    )


@pytest.mark.django_db
def test_store_analysis_is_scoped_to_owner(user, other_user):
    make_call(user, 'v1')
    analysis = VoiceAnalysis(pitch=120, emotion='positive')

    stored = VoiceAnalysisService.store_analysis('v1', analysis, 'Good pace.', user=user)

    assert stored.source == 'voice'
    assert stored.analysis['pitch'] == 120
    assert stored.insights == 'Good pace.'
    with pytest.raises(NotFoundError):
        VoiceAnalysisService.store_analysis('v1', analysis, user=other_user)


@pytest.mark.django_db
def test_get_voice_analytics_averages_per_period(user):
    make_call(user, 'v1')
    for pitch, emotion, day in [(100, 'positive', 1), (200, 'negative', 1), (150, 'neutral', 3)]:
        stored = VoiceAnalysisService.store_analysis('v1', VoiceAnalysis(pitch=pitch, energy=1, emotion=emotion), user=user)
        CallAnalysis.objects.filter(pk=stored.pk).update(
            created_at=datetime(2024, 3, day, 9, 0, tzinfo=timezone.utc),
        )
    CallAnalysis.objects.create(call=Call.objects.get(), source='insights', analysis={'pitch': 999})

    periods = get_voice_analytics(
        user,
        datetime(2024, 3, 1, tzinfo=timezone.utc),
        datetime(2024, 3, 3, 23, 59, tzinfo=timezone.utc),
        'daily',
    )

    assert [period['period'] for period in periods] == ['Mar 1', 'Mar 3']
    assert periods[0]['metrics']['pitch'] == 150
    assert periods[0]['metrics']['energy'] == 1
    assert periods[0]['emotions'] == ['positive', 'negative']
    assert periods[0]['count'] == 2
    assert periods[1]['metrics']['pitch'] == 150
