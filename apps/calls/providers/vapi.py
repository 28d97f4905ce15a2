"""
VAPI adapter.

VAPI is reached over its REST API with a bearer token. Besides the required
call operations it supports scheduling, conferencing, per-call analytics and
assistant configuration.
"""
import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from apps.core.exceptions import ProviderError

from ..constants import Capability, CallProviderType
from ..types import CallOptions, CallResponseOptions, ConferenceOptions, ScheduledCallOptions
from .base import CallProvider

logger = logging.getLogger(__name__)


class VAPICallProvider(CallProvider):
    provider_type = CallProviderType.VAPI
    capabilities = frozenset({
        Capability.SCHEDULING,
        Capability.CONFERENCING,
        Capability.ANALYTICS,
        Capability.ASSISTANT_CONFIG,
    })

    STATUS_MAP = {
        'initiated': 'starting',
        'ringing': 'ringing',
        'in-progress': 'in_progress',
        'completed': 'completed',
        'failed': 'failed',
        'busy': 'busy',
        'no-answer': 'no_answer',
    }

    LISTEN_TIMEOUT_MS = 3000

    def __init__(self, config, client: Optional[httpx.Client] = None):
        """
        Args:
            config: ``VapiConfig`` section of the app settings
            client: Pre-built HTTP client (tests pass one with a mock transport)
        """
        self.config = config
        self._client = client

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            # Vendor calls block until VAPI answers
            self._client = httpx.Client(base_url=self.config.base_url, timeout=None)
        return self._client

    def _headers(self) -> Dict[str, str]:
        # Sent per request so an injected client cannot drop the credentials
        if not self.config.api_key:
            raise ValueError("VAPI API key not configured")
        return {
            'Authorization': f'Bearer {self.config.api_key}',
            'Content-Type': 'application/json',
        }

    def _request(self, method: str, path: str, action: str, **kwargs) -> Dict[str, Any]:
        headers = self._headers()
        try:
            response = self.client.request(method, path, headers=headers, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                f"[VAPI] Failed to {action} - Path={path}, Status={e.response.status_code}, "
                f"Body={e.response.text[:500]}",
                exc_info=True,
            )
            raise ProviderError(
                f"VAPI failed to {action}: HTTP {e.response.status_code}",
                provider=self.provider_type.value,
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"[VAPI] Failed to {action} - Path={path}, Error={e}", exc_info=True)
            raise ProviderError(f"VAPI failed to {action}: {e}", provider=self.provider_type.value) from e

        if not response.content:
            return {}
        return response.json()

    def _assistant_config(self) -> Dict[str, str]:
        return {
            'voice': self.config.voice,
            'language': self.config.language,
            'initial_message': self.config.initial_message,
        }

    def _call_payload(self, options: CallOptions) -> Dict[str, Any]:
        return {
            'to': options.to,
            'from': options.from_number,
            'recording': options.recording_enabled,
            'transcription': options.transcription_enabled,
            'webhook_url': options.callback_url or self.config.default_callback_url,
            'assistant_config': self._assistant_config(),
        }

    @staticmethod
    def _participant_path(conference_id: str, phone_number: str) -> str:
        return f'/conferences/{conference_id}/participants/{quote(phone_number, safe="")}'

    # -------------------------
    # Required operations
    # -------------------------
    def make_call(self, options: CallOptions) -> str:
        data = self._request('POST', '/calls', 'create call', json=self._call_payload(options))
        call_id = data.get('call_id') or data.get('id')
        if not call_id:
            raise ProviderError("VAPI response did not include a call id", provider=self.provider_type.value)
        logger.info(f"[VAPI] Call created - CallId={call_id}, To={options.to}")
        return call_id

    def handle_incoming_call(self, call_id: str, from_number: str) -> Dict[str, Any]:
        self._request(
            'POST', f'/calls/{call_id}/answer', 'answer call',
            json={'assistant_config': self._assistant_config()},
        )
        logger.info(f"[VAPI] Incoming call answered - CallId={call_id}, From={from_number}")
        return self.generate_call_response(CallResponseOptions(
            message=self.config.initial_message,
            gather_input=True,
        ))

    def update_call_status(self, call_id: str, status: str) -> None:
        self._request(
            'PATCH', f'/calls/{call_id}', 'update call status',
            json={'status': self.to_provider_status(status)},
        )

    def handle_recording(self, call_id: str, recording_url: str) -> None:
        self._request(
            'POST', f'/calls/{call_id}/recordings', 'attach recording',
            json={'recording_url': recording_url},
        )

    def handle_transcription(self, call_id: str, transcription: str) -> None:
        self._request(
            'POST', f'/calls/{call_id}/transcriptions', 'attach transcription',
            json={'transcription': transcription},
        )

    def generate_call_response(self, options: CallResponseOptions) -> Dict[str, Any]:
        actions = []

        if options.message:
            actions.append({'type': 'speak', 'text': options.message, 'voice': self.config.voice})

        if options.gather_input:
            actions.append({'type': 'listen', 'timeout': self.LISTEN_TIMEOUT_MS, 'endOnSilence': True})

        if options.recording_enabled:
            actions.append({
                'type': 'record',
                'maxDuration': 3600,
                'transcribe': options.transcription_enabled,
            })

        return {'version': '1.0', 'actions': actions}

    # -------------------------
    # Scheduling
    # -------------------------
    def schedule_call(self, options: ScheduledCallOptions, scheduled_at) -> str:
        payload = self._call_payload(options)
        payload['scheduled_time'] = scheduled_at.isoformat()
        if options.recurrence:
            payload['recurrence'] = options.recurrence.model_dump(mode='json', exclude_none=True)

        data = self._request('POST', '/calls/schedule', 'schedule call', json=payload)
        schedule_id = data.get('schedule_id') or data.get('id') or ''
        logger.info(f"[VAPI] Call scheduled - ScheduleId={schedule_id}, At={scheduled_at.isoformat()}")
        return schedule_id

    # -------------------------
    # Conferencing
    # -------------------------
    def create_conference(self, options: ConferenceOptions) -> str:
        payload = {
            'name': options.name,
            'recording': options.recording_enabled,
            'transcription': options.transcription_enabled,
            'max_participants': options.max_participants,
            'waiting_room': options.waiting_room,
            'mute_on_entry': options.mute_on_entry,
            'webhook_url': self.config.default_callback_url,
            'assistant_config': self._assistant_config(),
        }
        data = self._request('POST', '/conferences', 'create conference', json=payload)
        conference_id = data.get('conference_id') or data.get('id')
        if not conference_id:
            raise ProviderError("VAPI response did not include a conference id", provider=self.provider_type.value)
        logger.info(f"[VAPI] Conference created - ConferenceId={conference_id}, Name={options.name}")
        return conference_id

    def add_participant_to_conference(self, conference_id: str, phone_number: str) -> None:
        self._request(
            'POST', f'/conferences/{conference_id}/participants', 'add participant',
            json={'phone_number': phone_number},
        )

    def remove_participant_from_conference(self, conference_id: str, phone_number: str) -> None:
        self._request('DELETE', self._participant_path(conference_id, phone_number), 'remove participant')

    def mute_participant(self, conference_id: str, phone_number: str, muted: bool = True) -> None:
        self._request(
            'PATCH', self._participant_path(conference_id, phone_number), 'mute participant',
            json={'muted': muted},
        )

    def end_conference(self, conference_id: str) -> None:
        self._request('POST', f'/conferences/{conference_id}/end', 'end conference')

    # -------------------------
    # Analytics & assistant
    # -------------------------
    def get_call_analytics(self, call_id: str) -> Dict[str, Any]:
        return self._request('GET', f'/calls/{call_id}/analytics', 'fetch call analytics')

    def update_assistant_config(
        self,
        call_id: str,
        voice: Optional[str] = None,
        language: Optional[str] = None,
        message: Optional[str] = None,
    ) -> None:
        config = {key: value for key, value in (
            ('voice', voice), ('language', language), ('message', message),
        ) if value is not None}
        self._request('PATCH', f'/calls/{call_id}/assistant', 'update assistant config', json=config)
