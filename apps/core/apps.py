from django.apps import AppConfig
import logging

logger = logging.getLogger(__name__)


class CoreConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.core'

    def ready(self):
        """
        Report vendor credentials that are not configured.

        Clients are built lazily, so a missing key only fails the first
        request that needs it; logging here makes that visible at boot.
        """
        # Only run once (Django calls ready() multiple times in some scenarios)
        if hasattr(self, '_credentials_checked'):
            return
        self._credentials_checked = True

        from django.conf import settings

        app_settings = getattr(settings, 'APP_SETTINGS', None)
        if app_settings is None:
            return

        missing = []
        if not (app_settings.twilio.account_sid and app_settings.twilio.auth_token):
            missing.append('twilio')
        if not app_settings.vapi.api_key:
            missing.append('vapi')
        if not app_settings.ai.openai_api_key:
            missing.append('openai')
        if not app_settings.ai.deepgram_api_key:
            missing.append('deepgram')
        if not app_settings.ai.assemblyai_api_key:
            missing.append('assemblyai')
        if not app_settings.storage.bucket:
            missing.append('s3')

        if missing:
            logger.warning(f"[CORE] Vendor credentials not configured: {', '.join(missing)}")
        else:
            logger.info("[CORE] All vendor credentials configured")
