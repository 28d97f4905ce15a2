"""
Recording archive tests with S3 and the vendor download stubbed.
"""
from unittest.mock import MagicMock

import httpx
import pytest
from botocore.exceptions import ClientError

from apps.calls.models import Call, CallRecording
from apps.calls.recordings import (
    RecordingMetadata,
    RecordingService,
    RecordingTranscript,
    assess_quality,
)
from apps.core.exceptions import NotFoundError, ProviderError
from config.settings.base import StorageConfig

pytestmark = pytest.mark.django_db

AUDIO = b'\x00\x01' * 512


@pytest.fixture
def s3():
    client = MagicMock()
    client.generate_presigned_url.return_value = 'https://recordings.s3.test/signed'
    return client


@pytest.fixture
def downloads():
    return []


@pytest.fixture
def recordings(s3, downloads):
    def handler(request):
        downloads.append(request)
        return httpx.Response(200, content=AUDIO)

    return RecordingService(
        config=StorageConfig(bucket='recordings', url_expiration=900),
        s3_client=s3,
        http_client=httpx.Client(transport=httpx.MockTransport(handler)),
    )


@pytest.fixture
def call(user):
    return Call.objects.create(
        provider_call_id='CA1', user=user, from_number='+15550001111',
        direction='outbound', provider='twilio', status='completed',
    )


def test_save_recording_uploads_and_stores_metadata(recordings, s3, downloads, call):
    recording = recordings.save_recording(
        'CA1', 'https://api.twilio.test/rec/RE1',
        RecordingMetadata(duration=95, bitrate=128000, channels=2, sampleRate=44100),
    )

    assert str(downloads[0].url) == 'https://api.twilio.test/rec/RE1'
    kwargs = s3.put_object.call_args.kwargs
    assert kwargs['Bucket'] == 'recordings'
    assert kwargs['Key'].startswith('recordings/CA1/')
    assert kwargs['Body'] == AUDIO
    assert kwargs['ContentType'] == 'audio/wav'
    assert kwargs['Metadata']['call_id'] == 'CA1'
    assert kwargs['Metadata']['sample_rate'] == '44100'

    assert recording.storage_key == kwargs['Key']
    assert recording.duration == 95
    assert recording.size == len(AUDIO)
    assert recording.sample_rate == 44100
    s3.delete_object.assert_not_called()


def test_saving_again_replaces_the_stored_object(recordings, s3, call):
    first = recordings.save_recording('CA1', 'https://api.twilio.test/rec/RE1', RecordingMetadata())
    second = recordings.save_recording('CA1', 'https://api.twilio.test/rec/RE2', RecordingMetadata())

    assert CallRecording.objects.count() == 1
    assert second.storage_key != first.storage_key
    s3.delete_object.assert_called_once_with(Bucket='recordings', Key=first.storage_key)


def test_save_recording_for_unknown_call(recordings, s3):
    with pytest.raises(NotFoundError):
        recordings.save_recording('missing', 'https://api.twilio.test/rec/RE1', RecordingMetadata())
    s3.put_object.assert_not_called()


def test_expired_vendor_recording_is_not_found(s3, call):
    recordings = RecordingService(
        config=StorageConfig(bucket='recordings'),
        s3_client=s3,
        http_client=httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(404))),
    )

    with pytest.raises(NotFoundError):
        recordings.save_recording('CA1', 'https://api.twilio.test/rec/RE1', RecordingMetadata())

    s3.put_object.assert_not_called()
    assert not CallRecording.objects.exists()


def test_rejected_upload_becomes_provider_error(recordings, s3, call):
    s3.put_object.side_effect = ClientError({'Error': {'Code': 'AccessDenied', 'Message': 'denied'}}, 'PutObject')

    with pytest.raises(ProviderError) as excinfo:
        recordings.save_recording('CA1', 'https://api.twilio.test/rec/RE1', RecordingMetadata())

    assert excinfo.value.provider == 's3'
    assert 'AccessDenied' in str(excinfo.value)
    assert isinstance(excinfo.value.__cause__, ClientError)
    assert not CallRecording.objects.exists()


def test_object_missing_from_bucket_on_delete(recordings, s3, call):
    recordings.save_recording('CA1', 'https://api.twilio.test/rec/RE1', RecordingMetadata())
    s3.delete_object.side_effect = ClientError({'Error': {'Code': 'NoSuchKey', 'Message': 'gone'}}, 'DeleteObject')

    with pytest.raises(NotFoundError, match='not found in storage'):
        recordings.delete_recording('CA1')


def test_get_recording_url_is_presigned(recordings, s3, call):
    recording = recordings.save_recording('CA1', 'https://api.twilio.test/rec/RE1', RecordingMetadata())

    assert recordings.get_recording_url('CA1') == 'https://recordings.s3.test/signed'
    s3.generate_presigned_url.assert_called_with(
        'get_object',
        Params={'Bucket': 'recordings', 'Key': recording.storage_key},
        ExpiresIn=900,
    )
    recordings.get_recording_url('CA1', expires_in=60)
    assert s3.generate_presigned_url.call_args.kwargs['ExpiresIn'] == 60


def test_delete_recording(recordings, s3, call):
    recording = recordings.save_recording('CA1', 'https://api.twilio.test/rec/RE1', RecordingMetadata())

    recordings.delete_recording('CA1')

    s3.delete_object.assert_called_once_with(Bucket='recordings', Key=recording.storage_key)
    assert not CallRecording.objects.exists()
    with pytest.raises(NotFoundError):
        recordings.get_recording_url('CA1')


def test_transcripts(recordings, call):
    assert recordings.get_transcript('CA1') is None

    recordings.save_transcript('CA1', RecordingTranscript(
        text='Hello there',
        segments=[{'start': 0.0, 'end': 1.2, 'speaker': 'agent', 'text': 'Hello there', 'confidence': 0.9}],
    ))
    recordings.save_transcript('CA1', RecordingTranscript(text='Hello again'))

    transcript = recordings.get_transcript('CA1')
    assert transcript.text == 'Hello again'
    assert transcript.segments == []


def test_list_recordings_is_scoped_to_owner(recordings, call, user, other_user):
    recordings.save_recording('CA1', 'https://api.twilio.test/rec/RE1', RecordingMetadata())

    assert [r.call.provider_call_id for r in recordings.list_recordings(user=user)] == ['CA1']
    assert recordings.list_recordings(user=other_user) == []
    assert recordings.list_recordings(user=user, offset=1) == []


def test_analyze_recording_persists_quality(recordings, call):
    recordings.save_recording(
        'CA1', 'https://api.twilio.test/rec/RE1',
        RecordingMetadata(duration=60, bitrate=32000, channels=1, sample_rate=8000),
    )

    analysis = recordings.analyze_recording('CA1')

    stored = CallRecording.objects.get()
    assert stored.quality_score == analysis['quality']
    assert stored.quality_issues == analysis['issues']
    assert 'Low sample rate (8000 Hz)' in analysis['issues']
    assert 'Low bitrate (32 kbps)' in analysis['issues']
    assert analysis['recommendations']


def test_assess_quality_for_clean_recording():
    recording = CallRecording(duration=120, bitrate=128000, channels=2, sample_rate=44100)
    assert assess_quality(recording) == {'quality': 1.0, 'issues': [], 'recommendations': []}


def test_assess_quality_without_metadata():
    analysis = assess_quality(CallRecording(duration=0))
    assert analysis['quality'] == round((0.5 + 0.5 + 0.0) / 3, 2)
    assert 'Sample rate unknown' in analysis['issues']
    assert 'Recording has no duration' in analysis['issues']


def test_missing_bucket_is_reported():
    service = RecordingService(config=StorageConfig())
    with pytest.raises(ValueError, match='S3 bucket not configured'):
        service.s3
