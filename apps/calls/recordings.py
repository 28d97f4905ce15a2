"""
Recording archive.

Copies vendor recordings into our S3 bucket, hands out presigned URLs, stores
transcripts, and scores recording quality from the stored audio metadata.
"""
import hashlib
import logging
import time
from typing import Any, Dict, List, Optional

import boto3
from botocore.exceptions import ClientError
import httpx
from django.conf import settings
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from apps.core.exceptions import NotFoundError
from apps.core.utils import download_artifact, storage_error

from .models import Call, CallRecording, CallTranscript

logger = logging.getLogger(__name__)


class RecordingMetadata(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    duration: int = Field(default=0, ge=0)
    format: str = 'wav'
    size: int = Field(default=0, ge=0)
    bitrate: Optional[int] = Field(default=None, ge=0, description="Bits per second")
    channels: Optional[int] = Field(default=None, ge=1)
    sample_rate: Optional[int] = Field(default=None, ge=1)


class RecordingArchiveRequest(RecordingMetadata):
    """Body of an archive request; without ``recordingUrl`` the call's own recording is copied."""
    recording_url: Optional[str] = None

    def metadata(self) -> RecordingMetadata:
        return RecordingMetadata.model_validate(self.model_dump(exclude={'recording_url'}))


class TranscriptSegment(BaseModel):
    start: float
    end: float
    speaker: str
    text: str
    confidence: float = 0.0


class RecordingTranscript(BaseModel):
    text: str
    segments: List[TranscriptSegment] = Field(default_factory=list)


class RecordingService:
    """Archive call recordings and transcripts."""

    CONTENT_TYPE = 'audio/wav'

    def __init__(self, config=None, s3_client=None, http_client: Optional[httpx.Client] = None):
        self.config = config or settings.APP_SETTINGS.storage
        self._s3 = s3_client
        self._http = http_client

    @property
    def s3(self):
        if self._s3 is None:
            if not self.config.bucket:
                raise ValueError("S3 bucket not configured")
            self._s3 = boto3.client(
                's3',
                region_name=self.config.region,
                aws_access_key_id=self.config.aws_access_key_id or None,
                aws_secret_access_key=self.config.aws_secret_access_key or None,
            )
        return self._s3

    @property
    def http(self) -> httpx.Client:
        if self._http is None:
            self._http = httpx.Client(follow_redirects=True, timeout=60.0)
        return self._http

    @staticmethod
    def _get_call(call_id: str) -> Call:
        try:
            return Call.objects.get(provider_call_id=call_id)
        except Call.DoesNotExist as e:
            raise NotFoundError(f"Call not found: {call_id}") from e

    @staticmethod
    def _get_recording(call_id: str) -> CallRecording:
        try:
            return CallRecording.objects.select_related('call').get(call__provider_call_id=call_id)
        except CallRecording.DoesNotExist as e:
            raise NotFoundError(f"Recording not found: {call_id}") from e

    def _delete_object(self, key: str) -> None:
        try:
            self.s3.delete_object(Bucket=self.config.bucket, Key=key)
        except ClientError as e:
            raise storage_error(e, key) from e

    @staticmethod
    def generate_recording_key(call_id: str) -> str:
        digest = hashlib.sha256(f"{call_id}{time.time_ns()}".encode('utf-8')).hexdigest()
        return f"recordings/{call_id}/{digest}.wav"

    def save_recording(self, call_id: str, recording_url: str, metadata: RecordingMetadata) -> CallRecording:
        call = self._get_call(call_id)

        audio = download_artifact(self.http, recording_url)
        key = self.generate_recording_key(call_id)

        s3_metadata = {'call_id': call_id}
        s3_metadata.update({
            name: str(value)
            for name, value in metadata.model_dump().items()
            if value is not None
        })
        try:
            self.s3.put_object(
                Bucket=self.config.bucket,
                Key=key,
                Body=audio,
                ContentType=self.CONTENT_TYPE,
                Metadata=s3_metadata,
            )
        except ClientError as e:
            raise storage_error(e, key) from e

        previous_key = CallRecording.objects.filter(call=call).values_list('storage_key', flat=True).first()

        recording, _ = CallRecording.objects.update_or_create(
            call=call,
            defaults={
                'storage_key': key,
                'duration': metadata.duration,
                'format': metadata.format,
                'size': metadata.size or len(audio),
                'bitrate': metadata.bitrate,
                'channels': metadata.channels,
                'sample_rate': metadata.sample_rate,
                'quality_score': None,
                'quality_issues': [],
            },
        )

        if previous_key and previous_key != key:
            self._delete_object(previous_key)

        logger.info(f"[RECORDING] Recording archived - call_id={call_id} key={key} bytes={len(audio)}")
        return recording

    def get_recording_url(self, call_id: str, expires_in: Optional[int] = None) -> str:
        recording = self._get_recording(call_id)
        try:
            return self.s3.generate_presigned_url(
                'get_object',
                Params={'Bucket': self.config.bucket, 'Key': recording.storage_key},
                ExpiresIn=expires_in or self.config.url_expiration,
            )
        except ClientError as e:
            raise storage_error(e, recording.storage_key) from e

    def delete_recording(self, call_id: str) -> None:
        recording = self._get_recording(call_id)
        self._delete_object(recording.storage_key)
        recording.delete()
        logger.info(f"[RECORDING] Recording deleted - call_id={call_id} key={recording.storage_key}")

    def save_transcript(self, call_id: str, transcript: RecordingTranscript) -> CallTranscript:
        call = self._get_call(call_id)
        stored, _ = CallTranscript.objects.update_or_create(
            call=call,
            defaults={
                'text': transcript.text,
                'segments': [segment.model_dump() for segment in transcript.segments],
            },
        )
        return stored

    def get_transcript(self, call_id: str) -> Optional[RecordingTranscript]:
        stored = CallTranscript.objects.filter(call__provider_call_id=call_id).first()
        if stored is None:
            return None
        return RecordingTranscript(text=stored.text, segments=stored.segments)

    def list_recordings(self, user=None, start_date=None, end_date=None, limit: int = 50, offset: int = 0):
        queryset = CallRecording.objects.select_related('call', 'call__transcript')
        if user is not None:
            queryset = queryset.filter(call__user=user)
        if start_date:
            queryset = queryset.filter(call__created_at__gte=start_date)
        if end_date:
            queryset = queryset.filter(call__created_at__lte=end_date)
        return list(queryset.order_by('-created_at')[offset:offset + limit])

    def analyze_recording(self, call_id: str) -> Dict[str, Any]:
        recording = self._get_recording(call_id)

        analysis = assess_quality(recording)
        recording.quality_score = analysis['quality']
        recording.quality_issues = analysis['issues']
        recording.save(update_fields=['quality_score', 'quality_issues', 'updated_at'])

        logger.info(
            f"[RECORDING] Quality analyzed - call_id={call_id} score={analysis['quality']} "
            f"issues={len(analysis['issues'])}"
        )
        return analysis


# Tier thresholds: (minimum, score)
_SAMPLE_RATE_TIERS = [(44100, 1.0), (16000, 0.85), (8000, 0.6)]
_BITRATE_TIERS = [(128000, 1.0), (64000, 0.8), (32000, 0.6)]


def _tier_score(value: Optional[int], tiers) -> float:
    if not value:
        return 0.5
    for minimum, score in tiers:
        if value >= minimum:
            return score
    return 0.3


def assess_quality(recording: CallRecording) -> Dict[str, Any]:
    """Score a recording from its stored technical metadata."""
    scores = [
        _tier_score(recording.sample_rate, _SAMPLE_RATE_TIERS),
        _tier_score(recording.bitrate, _BITRATE_TIERS),
    ]
    issues = []
    recommendations = []

    if not recording.sample_rate:
        issues.append("Sample rate unknown")
    elif recording.sample_rate < 16000:
        issues.append(f"Low sample rate ({recording.sample_rate} Hz)")
        recommendations.append("Record at 16 kHz or higher for reliable transcription")

    if not recording.bitrate:
        issues.append("Bitrate unknown")
    elif recording.bitrate < 64000:
        issues.append(f"Low bitrate ({recording.bitrate // 1000} kbps)")
        recommendations.append("Use a bitrate of at least 64 kbps")

    if recording.channels == 1:
        scores.append(0.9)
        issues.append("Mono recording; speakers cannot be separated by channel")
        recommendations.append("Enable dual-channel recording to separate caller and agent")
    elif recording.channels:
        scores.append(1.0)

    if recording.duration == 0:
        issues.append("Recording has no duration")
        recommendations.append("Check that the call was answered before recording started")
        scores.append(0.0)

    quality = round(sum(scores) / len(scores), 2)
    return {'quality': quality, 'issues': issues, 'recommendations': recommendations}
