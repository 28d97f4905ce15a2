from typing import Dict

from django.conf import settings

from ..constants import CallProviderType
from .base import CallProvider
from .twilio import TwilioCallProvider
from .vapi import VAPICallProvider


def build_providers(app_settings=None) -> Dict[CallProviderType, CallProvider]:
    """Build one adapter per provider from the app settings sections."""
    app_settings = app_settings or settings.APP_SETTINGS
    return {
        CallProviderType.TWILIO: TwilioCallProvider(app_settings.twilio),
        CallProviderType.VAPI: VAPICallProvider(app_settings.vapi),
    }


__all__ = [
    'CallProvider',
    'TwilioCallProvider',
    'VAPICallProvider',
    'build_providers',
]
