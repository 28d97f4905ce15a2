"""
Base Django settings for the Dottie call service.
Production-ready configuration; environment modules override pieces of it.
"""
import os
from pathlib import Path

import environ
from pydantic import BaseModel, Field

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent.parent

# Initialize environment variables
env = environ.Env(
    DEBUG=(bool, False),
    SECRET_KEY=(str, ''),
    ALLOWED_HOSTS=(list, []),
)

# Read .env file if it exists
environ.Env.read_env(os.path.join(BASE_DIR, '.env'))


class DatabaseConfig(BaseModel):
    """Database configuration."""
    url: str = Field(default="", description="Database URL")
    engine: str = Field(default="django.db.backends.postgresql")
    name: str = ""
    user: str = ""
    password: str = ""
    host: str = ""
    port: str = "5432"
    conn_max_age: int = Field(default=600, description="Connection pool max age")
    options: dict = Field(default_factory=dict)


class TwilioConfig(BaseModel):
    """Twilio configuration."""
    account_sid: str = ""
    auth_token: str = ""
    phone_number: str = ""
    webhook_base_url: str = ""
    default_callback_url: str = ""
    transcription_callback_url: str = ""
    voice: str = "alice"
    language: str = "en-US"
    greeting_message: str = "Hello, this is Dottie, your AI assistant."
    max_recording_length: int = Field(default=3600, description="Max <Record> length in seconds")
    validate_webhooks: bool = False

    @property
    def webhook_url(self) -> str:
        if not self.webhook_base_url:
            return ""
        return f"{self.webhook_base_url.rstrip('/')}/api/calls/webhooks/twilio/"


class VapiConfig(BaseModel):
    """VAPI configuration."""
    api_key: str = ""
    base_url: str = "https://api.vapi.ai/v1"
    default_callback_url: str = ""
    voice: str = "jennifer"
    language: str = "en-US"
    initial_message: str = "Hello, this is Dottie, your AI assistant."


class AIConfig(BaseModel):
    """AI provider configuration."""
    # OpenAI
    openai_api_key: str = ""
    openai_organization: str = ""
    insights_model: str = "gpt-4-turbo-preview"
    insights_temperature: float = 0.7
    insights_max_tokens: int = 1000
    voice_insights_max_tokens: int = 500

    # Deepgram
    deepgram_api_key: str = ""
    deepgram_base_url: str = "https://api.deepgram.com/v1"
    deepgram_model: str = "nova-2"

    # AssemblyAI
    assemblyai_api_key: str = ""


class StorageConfig(BaseModel):
    """S3 recording storage configuration."""
    aws_access_key_id: str = ""
    aws_secret_access_key: str = ""
    region: str = "us-east-1"
    bucket: str = ""
    url_expiration: int = Field(default=3600, description="Presigned URL lifetime in seconds")


class CallsConfig(BaseModel):
    """Call orchestration defaults."""
    default_provider: str = "twilio"
    analytics_cache_ttl: int = 60


class AppSettings:
    """Application settings loaded from environment."""
    def __init__(self):
        # Django core
        self.secret_key = env('SECRET_KEY', default='django-insecure-change-me-in-production')
        self.debug = env.bool('DEBUG', default=False)
        self.allowed_hosts = env.list('ALLOWED_HOSTS', default=[])

        # Server
        self.api_port = int(os.getenv('PORT', os.getenv('API_PORT', '8080')))

        # Database
        self.database = DatabaseConfig(
            url=env('DATABASE_URL', default=''),
            name=env('DB_NAME', default=''),
            user=env('DB_USER', default=''),
            password=env('DB_PASSWORD', default=''),
            host=env('DB_HOST', default=''),
            port=env('DB_PORT', default='5432'),
        )

        # Twilio
        self.twilio = TwilioConfig(
            account_sid=env('TWILIO_ACCOUNT_SID', default=''),
            auth_token=env('TWILIO_AUTH_TOKEN', default=''),
            phone_number=env('TWILIO_PHONE_NUMBER', default=''),
            webhook_base_url=env('TWILIO_WEBHOOK_BASE_URL', default=''),
            default_callback_url=env('TWILIO_DEFAULT_CALLBACK_URL', default=''),
            transcription_callback_url=env('TWILIO_TRANSCRIPTION_CALLBACK_URL', default=''),
            voice=env('TWILIO_VOICE', default='alice'),
            language=env('TWILIO_LANGUAGE', default='en-US'),
            greeting_message=env('TWILIO_GREETING_MESSAGE', default='Hello, this is Dottie, your AI assistant.'),
            max_recording_length=int(env('TWILIO_MAX_RECORDING_LENGTH', default='3600')),
            validate_webhooks=env.bool('TWILIO_VALIDATE_WEBHOOKS', default=False),
        )

        # VAPI
        self.vapi = VapiConfig(
            api_key=env('VAPI_API_KEY', default=''),
            base_url=env('VAPI_BASE_URL', default='https://api.vapi.ai/v1'),
            default_callback_url=env('VAPI_DEFAULT_CALLBACK_URL', default=''),
            voice=env('VAPI_VOICE', default='jennifer'),
            language=env('VAPI_LANGUAGE', default='en-US'),
            initial_message=env('VAPI_INITIAL_MESSAGE', default='Hello, this is Dottie, your AI assistant.'),
        )

        # AI
        self.ai = AIConfig(
            openai_api_key=env('OPENAI_API_KEY', default=''),
            openai_organization=env('OPENAI_ORGANIZATION', default=''),
            insights_model=env('OPENAI_INSIGHTS_MODEL', default='gpt-4-turbo-preview'),
            insights_temperature=float(env('OPENAI_INSIGHTS_TEMPERATURE', default='0.7')),
            insights_max_tokens=int(env('OPENAI_INSIGHTS_MAX_TOKENS', default='1000')),
            deepgram_api_key=env('DEEPGRAM_API_KEY', default=''),
            deepgram_base_url=env('DEEPGRAM_BASE_URL', default='https://api.deepgram.com/v1'),
            deepgram_model=env('DEEPGRAM_MODEL', default='nova-2'),
            assemblyai_api_key=env('ASSEMBLYAI_API_KEY', default=''),
        )

        # Recording storage
        self.storage = StorageConfig(
            aws_access_key_id=env('AWS_ACCESS_KEY_ID', default=''),
            aws_secret_access_key=env('AWS_SECRET_ACCESS_KEY', default=''),
            region=env('AWS_REGION', default='us-east-1'),
            bucket=env('AWS_S3_BUCKET', default=''),
            url_expiration=int(env('AWS_S3_URL_EXPIRATION', default='3600')),
        )

        # Calls
        self.calls = CallsConfig(
            default_provider=env('CALLS_DEFAULT_PROVIDER', default='twilio'),
            analytics_cache_ttl=int(env('CALLS_ANALYTICS_CACHE_TTL', default='60')),
        )

        # Logging
        self.log_level = env('LOG_LEVEL', default='INFO')


# Load settings from environment
_settings = AppSettings()

# Django settings
SECRET_KEY = _settings.secret_key
DEBUG = _settings.debug
ALLOWED_HOSTS = _settings.allowed_hosts or ['*']

# Behind a TLS-terminating proxy
SECURE_PROXY_SSL_HEADER = ('HTTP_X_FORWARDED_PROTO', 'https')
USE_X_FORWARDED_HOST = True
USE_X_FORWARDED_PORT = True

# Application definition
INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',

    # Third-party
    'rest_framework',
    'corsheaders',

    # Local apps
    'apps.core',
    'apps.calls',
    'apps.ai',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    # corsheaders MUST be early to handle OPTIONS before URL routing
    'corsheaders.middleware.CorsMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',

    # Custom middleware
    'apps.core.middleware.trace.TraceMiddleware',
]

ROOT_URLCONF = 'config.urls'

# Webhook URLs are registered with vendors verbatim; never redirect them
APPEND_SLASH = False

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION = 'config.wsgi.application'

# Database
if _settings.database.url:
    import dj_database_url
    DATABASES = {
        'default': dj_database_url.parse(_settings.database.url, conn_max_age=_settings.database.conn_max_age)
    }
else:
    DATABASES = {
        'default': {
            'ENGINE': _settings.database.engine,
            'NAME': _settings.database.name,
            'USER': _settings.database.user,
            'PASSWORD': _settings.database.password,
            'HOST': _settings.database.host,
            'PORT': _settings.database.port,
            'OPTIONS': _settings.database.options,
            'CONN_MAX_AGE': _settings.database.conn_max_age,
        }
    }

# Password validation
AUTH_PASSWORD_VALIDATORS = [
    {
        'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator',
    },
]

# Internationalization
LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

# Static files
STATIC_URL = '/static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'

# Default primary key field type
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# REST Framework
REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': [
        'rest_framework.authentication.SessionAuthentication',
    ],
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.IsAuthenticated',
    ],
    'EXCEPTION_HANDLER': 'apps.core.exceptions.api_exception_handler',
    'DEFAULT_RENDERER_CLASSES': [
        'rest_framework.renderers.JSONRenderer',
    ],
    'DEFAULT_PARSER_CLASSES': [
        'rest_framework.parsers.JSONParser',
        'rest_framework.parsers.FormParser',
        'rest_framework.parsers.MultiPartParser',
    ],
}

# CORS
CORS_ALLOWED_ORIGINS = env.list('CORS_ALLOWED_ORIGINS', default=[
    'http://localhost:3000',
    'http://127.0.0.1:3000',
])
CORS_ALLOW_CREDENTIALS = True

# Logging
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'json': {
            '()': 'pythonjsonlogger.jsonlogger.JsonFormatter',
            'format': '%(asctime)s %(name)s %(levelname)s %(message)s %(pathname)s %(lineno)d',
        },
        'verbose': {
            'format': '{levelname} {asctime} {module} {process:d} {thread:d} {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'json' if not DEBUG else 'verbose',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': _settings.log_level,
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
        'apps': {
            'handlers': ['console'],
            'level': _settings.log_level,
            'propagate': False,
        },
    },
}

# Export settings for use in other modules
APP_SETTINGS = _settings
