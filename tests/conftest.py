"""
Shared fixtures: an in-memory provider adapter, a fixed clock and users.
"""
from datetime import datetime, timezone

import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from apps.calls.constants import Capability, CallProviderType
from apps.calls.providers.base import CallProvider
from apps.calls.service import CallService
from apps.core.exceptions import ProviderError

FIXED_NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeProvider(CallProvider):
    """
    Records every vendor operation in ``calls`` and fails the ones listed in
    ``fail_on`` (operation name -> set of arguments that should fail, or
    ``True`` to fail every invocation).
    """

    STATUS_MAP = {
        'initiated': 'starting',
        'in-progress': 'in_progress',
        'no-answer': 'no_answer',
    }

    def __init__(self, provider_type=CallProviderType.VAPI, capabilities=None):
        self.provider_type = provider_type
        self.capabilities = frozenset(Capability) if capabilities is None else frozenset(capabilities)
        self.calls = []
        self.fail_on = {}
        self._counter = 0

    def _record(self, operation, *args):
        self.calls.append((operation, *args))
        failing = self.fail_on.get(operation)
        if failing is True or (failing and args and args[-1] in failing):
            raise ProviderError(f"{operation} failed", provider=self.provider_type.value)

    def _next_id(self, prefix):
        self._counter += 1
        return f"{self.provider_type.value}-{prefix}-{self._counter}"

    def make_call(self, options):
        self._record('make_call', options.to)
        return self._next_id('call')

    def handle_incoming_call(self, call_id, from_number):
        self._record('handle_incoming_call', call_id)
        return {'answer': call_id}

    def update_call_status(self, call_id, status):
        self._record('update_call_status', call_id, status)

    def handle_recording(self, call_id, recording_url):
        self._record('handle_recording', call_id, recording_url)

    def handle_transcription(self, call_id, transcription):
        self._record('handle_transcription', call_id, transcription)

    def generate_call_response(self, options):
        return {'message': options.message}

    def schedule_call(self, options, scheduled_at):
        self.require(Capability.SCHEDULING)
        self._record('schedule_call', scheduled_at)
        return self._next_id('schedule')

    def create_conference(self, options):
        self.require(Capability.CONFERENCING)
        self._record('create_conference', options.name)
        return self._next_id('conf')

    def add_participant_to_conference(self, conference_id, phone_number):
        self._record('add_participant_to_conference', conference_id, phone_number)

    def remove_participant_from_conference(self, conference_id, phone_number):
        self._record('remove_participant_from_conference', conference_id, phone_number)

    def mute_participant(self, conference_id, phone_number, muted=True):
        self._record('mute_participant', conference_id, phone_number, muted)

    def end_conference(self, conference_id):
        self._record('end_conference', conference_id)

    def get_call_analytics(self, call_id):
        self.require(Capability.ANALYTICS)
        self._record('get_call_analytics', call_id)
        return {'duration': 120, 'topics': ['billing']}

    def update_assistant_config(self, call_id, voice=None, language=None, message=None):
        self.require(Capability.ASSISTANT_CONFIG)
        self._record('update_assistant_config', call_id, voice, language, message)

    def operations(self, name):
        return [call[1:] for call in self.calls if call[0] == name]


@pytest.fixture
def vapi_fake():
    return FakeProvider(CallProviderType.VAPI)


@pytest.fixture
def twilio_fake():
    return FakeProvider(CallProviderType.TWILIO, capabilities=())


@pytest.fixture
def providers(vapi_fake, twilio_fake):
    return {CallProviderType.VAPI: vapi_fake, CallProviderType.TWILIO: twilio_fake}


@pytest.fixture
def user(db):
    return get_user_model().objects.create_user(username='alice', password='secret')


@pytest.fixture
def other_user(db):
    return get_user_model().objects.create_user(username='bob', password='secret')


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def service(db, user, providers, clock):
    return CallService(user=user, default_provider='vapi', providers=providers, clock=clock)


@pytest.fixture
def webhook_service(db, providers, clock):
    return CallService(default_provider='twilio', providers=providers, clock=clock)


@pytest.fixture
def api_client(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client
