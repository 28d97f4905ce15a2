"""
Staging settings.
"""
from .base import *

DEBUG = False

# Webhook URLs must not be redirected
APPEND_SLASH = False

# TLS is terminated at the ingress
SECURE_SSL_REDIRECT = False
SESSION_COOKIE_SECURE = True
CSRF_COOKIE_SECURE = True
SECURE_CONTENT_TYPE_NOSNIFF = True
X_FRAME_OPTIONS = 'DENY'

# Logging
LOGGING['root']['level'] = 'INFO'

# Per-instance cache for the call analytics endpoint
CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'dottie-staging',
    }
}
