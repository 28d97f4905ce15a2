"""
Test settings.
"""
from .base import *

DEBUG = True

# Use in-memory database for tests
DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

# Disable migrations for tests (use in-memory DB)
class DisableMigrations:
    def __contains__(self, item):
        return True

    def __getitem__(self, item):
        return None

MIGRATION_MODULES = DisableMigrations()

# Faster password hashing for tests
PASSWORD_HASHERS = [
    'django.contrib.auth.hashers.MD5PasswordHasher',
]

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'dottie-test',
    }
}

# Disable logging during tests
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'handlers': {
        'null': {
            'class': 'logging.NullHandler',
        },
    },
    'root': {
        'handlers': ['null'],
    },
}

# Disable external API calls in tests
APP_SETTINGS.twilio.account_sid = ''
APP_SETTINGS.twilio.auth_token = ''
APP_SETTINGS.twilio.validate_webhooks = False
APP_SETTINGS.vapi.api_key = ''
APP_SETTINGS.ai.openai_api_key = ''
APP_SETTINGS.ai.deepgram_api_key = ''
APP_SETTINGS.ai.assemblyai_api_key = ''
