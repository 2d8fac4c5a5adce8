"""Django settings for the shuttle booking API."""

from shuttle.config import BASE_DIR, get_settings
from shuttle.logging_config import configure_logging

booking_settings = get_settings()

SECRET_KEY = booking_settings.SECRET_KEY.get_secret_value()
DEBUG = booking_settings.DEBUG
ALLOWED_HOSTS = booking_settings.ALLOWED_HOSTS

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "rest_framework",
    "bookings",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
]

ROOT_URLCONF = "shuttle.urls"
WSGI_APPLICATION = "shuttle.wsgi.application"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": booking_settings.DATABASE_PATH,
        # Writers take the lock at BEGIN and wait out the busy timeout.
        "OPTIONS": {
            "transaction_mode": "IMMEDIATE",
            "timeout": booking_settings.DATABASE_TIMEOUT_SECONDS,
        },
        "TEST": {"NAME": str(BASE_DIR / "test_db.sqlite3")},
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

LANGUAGE_CODE = "en-us"
TIME_ZONE = "Africa/Nairobi"
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"

# Identity arrives in X-Actor-* headers; authentication happens upstream.
REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [],
    "DEFAULT_PERMISSION_CLASSES": ["rest_framework.permissions.AllowAny"],
    "UNAUTHENTICATED_USER": None,
}

configure_logging(booking_settings.LOG_LEVEL)

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "handlers": {
        "loguru": {"class": "shuttle.logging_config.InterceptHandler"},
    },
    "root": {"handlers": ["loguru"], "level": booking_settings.LOG_LEVEL.upper()},
}
