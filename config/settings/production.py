"""
Production settings.
"""
from .base import *

DEBUG = False

APPEND_SLASH = False

# -------------------------
# Security settings
# -------------------------
SECURE_SSL_REDIRECT = False  # TLS is terminated at the ingress
SESSION_COOKIE_SECURE = True
CSRF_COOKIE_SECURE = True
SECURE_CONTENT_TYPE_NOSNIFF = True
X_FRAME_OPTIONS = 'DENY'
SECURE_HSTS_SECONDS = 31536000  # 1 year
SECURE_HSTS_INCLUDE_SUBDOMAINS = True
SECURE_HSTS_PRELOAD = True

# Vendors must prove webhook origin in production
APP_SETTINGS.twilio.validate_webhooks = env.bool('TWILIO_VALIDATE_WEBHOOKS', default=True)

# -------------------------
# Logging
# -------------------------
LOGGING["root"]["level"] = "INFO"
LOGGING["handlers"]["console"]["formatter"] = "json"

# -------------------------
# Caching
# -------------------------
CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "dottie-production",
    }
}
