"""
Provider adapter tests: status translation, voice scripts and vendor error translation.
"""
import json
from unittest.mock import MagicMock

import httpx
import pytest
from twilio.base.exceptions import TwilioRestException

from apps.calls.constants import Capability, CallProviderType
from apps.calls.providers import TwilioCallProvider, VAPICallProvider, build_providers
from apps.calls.types import CallOptions, CallResponseOptions, ConferenceOptions
from apps.core.exceptions import ProviderError, UnsupportedOperationError
from config.settings.base import TwilioConfig, VapiConfig


def make_twilio(client=None, **config):
    return TwilioCallProvider(TwilioConfig(**config), client=client)


def make_vapi(handler):
    client = httpx.Client(transport=httpx.MockTransport(handler), base_url='https://api.vapi.test/v1')
    return VAPICallProvider(VapiConfig(api_key='key'), client=client)


class RecordingHandler:
    """MockTransport handler that records requests and replays one response."""

    def __init__(self, status_code=200, body=None):
        self.status_code = status_code
        self.body = body
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        if self.body is None:
            return httpx.Response(self.status_code)
        return httpx.Response(self.status_code, json=self.body)

    @property
    def last_json(self):
        return json.loads(self.requests[-1].content)


# -------------------------
# Status translation
# -------------------------
@pytest.mark.parametrize('provider_class', [TwilioCallProvider, VAPICallProvider])
def test_status_translation_round_trips(provider_class):
    adapter = provider_class(TwilioConfig() if provider_class is TwilioCallProvider else VapiConfig())
    for normalized, vendor in adapter.STATUS_MAP.items():
        assert adapter.to_provider_status(normalized) == vendor
        assert adapter.from_provider_status(vendor) == normalized


def test_unknown_statuses_pass_through():
    adapter = VAPICallProvider(VapiConfig())
    assert adapter.to_provider_status('on-hold') == 'on-hold'
    assert adapter.from_provider_status('on_hold') == 'on_hold'


def test_vapi_vendor_vocabulary():
    adapter = VAPICallProvider(VapiConfig())
    assert adapter.to_provider_status('initiated') == 'starting'
    assert adapter.to_provider_status('in-progress') == 'in_progress'
    assert adapter.from_provider_status('no_answer') == 'no-answer'


def test_twilio_initiated_maps_to_queued():
    adapter = make_twilio()
    assert adapter.to_provider_status('initiated') == 'queued'
    assert adapter.from_provider_status('queued') == 'initiated'


# -------------------------
# Capabilities
# -------------------------
def test_twilio_rejects_optional_operations():
    adapter = make_twilio()
    assert not adapter.supports(Capability.CONFERENCING)
    with pytest.raises(UnsupportedOperationError) as excinfo:
        adapter.create_conference(ConferenceOptions(name='standup'))
    assert excinfo.value.status_code == 501
    assert 'conferencing' in str(excinfo.value)


def test_vapi_declares_all_capabilities():
    adapter = VAPICallProvider(VapiConfig())
    assert all(adapter.supports(capability) for capability in Capability)


def test_build_providers_uses_settings_sections(settings):
    providers = build_providers()
    assert set(providers) == {CallProviderType.TWILIO, CallProviderType.VAPI}
    assert providers[CallProviderType.TWILIO].config is settings.APP_SETTINGS.twilio


# -------------------------
# Twilio
# -------------------------
def test_twilio_generate_call_response_builds_twiml():
    adapter = make_twilio(transcription_callback_url='https://hooks.test/transcripts')
    xml = adapter.generate_call_response(CallResponseOptions(
        message='Hello there',
        gather_input=True,
        recording_enabled=True,
        transcription_enabled=True,
    ))

    assert xml.startswith('<?xml version="1.0" encoding="UTF-8"?>')
    assert '<Say' in xml and 'voice="alice"' in xml and 'language="en-US"' in xml
    assert 'Hello there' in xml
    assert '<Gather' in xml and 'input="speech dtmf"' in xml and 'numDigits="1"' in xml
    assert '<Record' in xml and 'maxLength="3600"' in xml
    assert 'transcribeCallback="https://hooks.test/transcripts"' in xml


def test_twilio_generate_call_response_with_nothing_requested():
    xml = make_twilio().generate_call_response(CallResponseOptions())
    assert '<Say' not in xml
    assert '<Gather' not in xml
    assert '<Record' not in xml


def test_twilio_missing_credentials_raise_on_first_use():
    adapter = make_twilio()
    with pytest.raises(ValueError, match='Twilio credentials not configured'):
        adapter.make_call(CallOptions(to='+15550001111', **{'from': '+15552223333'}))


def test_twilio_make_call_uses_voice_url_and_status_callback():
    client = MagicMock()
    client.calls.create.return_value.sid = 'CA123'
    adapter = make_twilio(
        client=client,
        webhook_base_url='https://api.example.com/',
        default_callback_url='https://api.example.com/voice',
    )

    call_id = adapter.make_call(CallOptions(
        to='+15550001111', recording_enabled=True, **{'from': '+15552223333'}
    ))

    assert call_id == 'CA123'
    params = client.calls.create.call_args.kwargs
    assert params['to'] == '+15550001111'
    assert params['from_'] == '+15552223333'
    assert params['url'] == 'https://api.example.com/voice'
    assert 'twiml' not in params
    assert params['status_callback'] == 'https://api.example.com/api/calls/webhooks/twilio/'
    assert params['recording_status_callback'] == 'https://api.example.com/api/calls/webhooks/twilio/'


def test_twilio_make_call_without_voice_url_sends_inline_twiml():
    client = MagicMock()
    client.calls.create.return_value.sid = 'CA124'
    adapter = make_twilio(client=client, greeting_message='Hi from Dottie')

    adapter.make_call(CallOptions(to='+15550001111', **{'from': '+15552223333'}))

    params = client.calls.create.call_args.kwargs
    assert 'url' not in params
    assert 'Hi from Dottie' in params['twiml']
    assert 'status_callback' not in params


def test_twilio_rest_errors_become_provider_errors():
    client = MagicMock()
    client.calls.create.side_effect = TwilioRestException(400, '/Calls', msg='Invalid To number', code=21211)
    adapter = make_twilio(client=client)

    with pytest.raises(ProviderError) as excinfo:
        adapter.make_call(CallOptions(to='bogus', **{'from': '+15552223333'}))

    assert excinfo.value.provider == 'twilio'
    assert excinfo.value.status_code == 502
    assert 'Invalid To number' in str(excinfo.value)
    assert isinstance(excinfo.value.__cause__, TwilioRestException)


def test_twilio_update_call_status_translates_status():
    client = MagicMock()
    adapter = make_twilio(client=client)

    adapter.update_call_status('CA1', 'completed')

    client.calls.assert_called_once_with('CA1')
    client.calls.return_value.update.assert_called_once_with(status='completed')


def test_twilio_incoming_call_answers_with_greeting():
    adapter = make_twilio(greeting_message='Welcome')
    xml = adapter.handle_incoming_call('CA9', '+15550001111')
    assert 'Welcome' in xml
    assert '<Gather' in xml


# -------------------------
# VAPI
# -------------------------
def test_vapi_make_call_posts_payload_and_returns_id():
    handler = RecordingHandler(body={'call_id': 'vapi-1'})
    adapter = make_vapi(handler)

    call_id = adapter.make_call(CallOptions(
        to='+15550001111', recording_enabled=True, **{'from': '+15552223333'}
    ))

    assert call_id == 'vapi-1'
    request = handler.requests[0]
    assert request.method == 'POST'
    assert request.url.path == '/v1/calls'
    assert request.headers['Authorization'] == 'Bearer key'
    payload = handler.last_json
    assert payload['to'] == '+15550001111'
    assert payload['from'] == '+15552223333'
    assert payload['recording'] is True
    assert payload['assistant_config']['voice'] == 'jennifer'


def test_vapi_injected_client_still_sends_credentials():
    handler = RecordingHandler(body={'duration': 10})
    adapter = make_vapi(handler)

    adapter.get_call_analytics('vapi-1')
    adapter.update_call_status('vapi-1', 'completed')
    adapter.end_conference('conf-1')

    assert [request.headers['Authorization'] for request in handler.requests] == ['Bearer key'] * 3


def test_vapi_injected_client_without_key_sends_nothing():
    handler = RecordingHandler()
    client = httpx.Client(transport=httpx.MockTransport(handler), base_url='https://api.vapi.test/v1')
    adapter = VAPICallProvider(VapiConfig(), client=client)

    with pytest.raises(ValueError, match='VAPI API key not configured'):
        adapter.update_call_status('vapi-1', 'completed')
    assert handler.requests == []


def test_vapi_make_call_accepts_id_field():
    adapter = make_vapi(RecordingHandler(body={'id': 'vapi-2'}))
    assert adapter.make_call(CallOptions(to='+1', **{'from': '+2'})) == 'vapi-2'


def test_vapi_http_errors_become_provider_errors():
    adapter = make_vapi(RecordingHandler(status_code=422, body={'error': 'bad number'}))

    with pytest.raises(ProviderError) as excinfo:
        adapter.make_call(CallOptions(to='+1', **{'from': '+2'}))

    assert excinfo.value.provider == 'vapi'
    assert 'HTTP 422' in str(excinfo.value)
    assert isinstance(excinfo.value.__cause__, httpx.HTTPStatusError)


def test_vapi_transport_errors_become_provider_errors():
    def handler(request):
        raise httpx.ConnectError('connection refused', request=request)

    adapter = make_vapi(handler)
    with pytest.raises(ProviderError, match='connection refused'):
        adapter.update_call_status('vapi-1', 'completed')


def test_vapi_update_status_sends_vendor_vocabulary():
    handler = RecordingHandler()
    adapter = make_vapi(handler)

    adapter.update_call_status('vapi-1', 'in-progress')

    assert handler.requests[0].method == 'PATCH'
    assert handler.requests[0].url.path == '/v1/calls/vapi-1'
    assert handler.last_json == {'status': 'in_progress'}


def test_vapi_participant_paths_quote_phone_numbers():
    handler = RecordingHandler()
    adapter = make_vapi(handler)

    adapter.mute_participant('conf-1', '+15550001111', muted=True)

    request = handler.requests[0]
    assert request.method == 'PATCH'
    assert request.url.raw_path == b'/v1/conferences/conf-1/participants/%2B15550001111'
    assert handler.last_json == {'muted': True}


def test_vapi_update_assistant_config_sends_only_given_fields():
    handler = RecordingHandler()
    adapter = make_vapi(handler)

    adapter.update_assistant_config('vapi-1', voice='emma')

    assert handler.requests[0].url.path == '/v1/calls/vapi-1/assistant'
    assert handler.last_json == {'voice': 'emma'}


def test_vapi_generate_call_response_lists_actions():
    adapter = VAPICallProvider(VapiConfig())
    response = adapter.generate_call_response(CallResponseOptions(
        message='Hi', gather_input=True, recording_enabled=True, transcription_enabled=True,
    ))

    assert response['version'] == '1.0'
    assert [action['type'] for action in response['actions']] == ['speak', 'listen', 'record']
    assert response['actions'][0] == {'type': 'speak', 'text': 'Hi', 'voice': 'jennifer'}
    assert response['actions'][1]['timeout'] == 3000
    assert response['actions'][2] == {'type': 'record', 'maxDuration': 3600, 'transcribe': True}


def test_vapi_missing_api_key_raises_on_first_use():
    adapter = VAPICallProvider(VapiConfig())
    with pytest.raises(ValueError, match='VAPI API key not configured'):
        adapter.get_call_analytics('vapi-1')
