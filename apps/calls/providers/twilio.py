"""
Twilio adapter.

Places and updates calls through the Twilio REST API and answers with TwiML.
Twilio delivers recordings and transcriptions on its own, so those
notifications are only logged.
"""
import logging
from typing import Optional

from twilio.base.exceptions import TwilioException, TwilioRestException
from twilio.rest import Client
from twilio.twiml.voice_response import VoiceResponse

from apps.core.exceptions import ProviderError

from ..constants import CallProviderType
from ..types import CallOptions, CallResponseOptions
from .base import CallProvider

logger = logging.getLogger(__name__)


class TwilioCallProvider(CallProvider):
    provider_type = CallProviderType.TWILIO
    capabilities = frozenset()

    STATUS_MAP = {
        'initiated': 'queued',
        'ringing': 'ringing',
        'in-progress': 'in-progress',
        'completed': 'completed',
        'failed': 'failed',
        'busy': 'busy',
        'no-answer': 'no-answer',
    }

    def __init__(self, config, client: Optional[Client] = None):
        """
        Args:
            config: ``TwilioConfig`` section of the app settings
            client: Pre-built Twilio client; built from ``config`` on first use otherwise
        """
        self.config = config
        self._client = client

    @property
    def client(self) -> Client:
        if self._client is None:
            if not self.config.account_sid or not self.config.auth_token:
                raise ValueError("Twilio credentials not configured")
            self._client = Client(self.config.account_sid, self.config.auth_token)
        return self._client

    def _provider_error(self, action: str, call_id: str, error: TwilioException) -> ProviderError:
        if isinstance(error, TwilioRestException):
            detail = f"{error.msg} (code {error.code})"
        else:
            detail = str(error)
        logger.error(f"[TWILIO] Failed to {action} - CallSid={call_id}, Error={detail}", exc_info=True)
        return ProviderError(f"Twilio failed to {action}: {detail}", provider=self.provider_type.value)

    def make_call(self, options: CallOptions) -> str:
        params = {
            'to': options.to,
            'from_': options.from_number,
            'record': options.recording_enabled,
        }

        voice_url = options.callback_url or self.config.default_callback_url
        if voice_url:
            params['url'] = voice_url
        else:
            # No voice webhook configured: hand Twilio the script inline
            params['twiml'] = str(self.generate_call_response(CallResponseOptions(
                message=self.config.greeting_message,
                recording_enabled=options.recording_enabled,
                transcription_enabled=options.transcription_enabled,
            )))

        if self.config.webhook_url:
            params['status_callback'] = self.config.webhook_url
            params['status_callback_event'] = ['initiated', 'ringing', 'answered', 'completed']
            params['status_callback_method'] = 'POST'
            if options.recording_enabled:
                params['recording_status_callback'] = self.config.webhook_url
                params['recording_status_callback_method'] = 'POST'

        try:
            call = self.client.calls.create(**params)
        except TwilioException as e:
            raise self._provider_error('create call', options.to, e) from e

        logger.info(f"[TWILIO] Call created - CallSid={call.sid}, To={options.to}")
        return call.sid

    def handle_incoming_call(self, call_id: str, from_number: str) -> str:
        logger.info(f"[TWILIO] Answering incoming call - CallSid={call_id}, From={from_number}")
        return self.generate_call_response(CallResponseOptions(
            message=self.config.greeting_message,
            gather_input=True,
        ))

    def update_call_status(self, call_id: str, status: str) -> None:
        provider_status = self.to_provider_status(status)
        try:
            self.client.calls(call_id).update(status=provider_status)
        except TwilioException as e:
            raise self._provider_error('update call status', call_id, e) from e
        logger.info(f"[TWILIO] Call status updated - CallSid={call_id}, Status={provider_status}")

    def handle_recording(self, call_id: str, recording_url: str) -> None:
        logger.info(f"[TWILIO] Recording available - CallSid={call_id}, Url={recording_url}")

    def handle_transcription(self, call_id: str, transcription: str) -> None:
        logger.info(f"[TWILIO] Transcription available - CallSid={call_id}, Length={len(transcription)}")

    def generate_call_response(self, options: CallResponseOptions) -> str:
        response = VoiceResponse()

        if options.message:
            response.say(options.message, voice=self.config.voice, language=self.config.language)

        if options.gather_input:
            response.gather(input='speech dtmf', timeout=3, num_digits=1)

        if options.recording_enabled:
            record_params = {
                'transcribe': options.transcription_enabled,
                'max_length': self.config.max_recording_length,
            }
            if options.transcription_enabled and self.config.transcription_callback_url:
                record_params['transcribe_callback'] = self.config.transcription_callback_url
            response.record(**record_params)

        return str(response)
