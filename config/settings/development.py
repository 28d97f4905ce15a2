"""
Development settings.
"""
from .base import *

DEBUG = True

ALLOWED_HOSTS = ['localhost', '127.0.0.1', '0.0.0.0']

# CORS for development
CORS_ALLOW_ALL_ORIGINS = True

# Logging - more verbose in development
LOGGING['handlers']['console']['formatter'] = 'verbose'
LOGGING['root']['level'] = 'DEBUG'
LOGGING['loggers']['apps']['level'] = 'DEBUG'
