"""
Base settings shared by every environment.
Environment-specific modules (local, production, test) import from here.
"""

from pathlib import Path

import environ

BASE_DIR = Path(__file__).resolve().parent.parent.parent

env = environ.Env()

SECRET_KEY = env("SECRET_KEY", default="django-insecure-dev-key")

DEBUG = env.bool("DEBUG", default=False)

ALLOWED_HOSTS = env.list("ALLOWED_HOSTS", default=[])

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    # Third party
    "rest_framework",
    "rest_framework_simplejwt",
    # Local
    "core",
    "users",
    "loyalty",
    "webhooks",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "core.middleware.TenantContextMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "config.urls"

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

WSGI_APPLICATION = "config.wsgi.application"

AUTH_USER_MODEL = "users.User"

AUTH_PASSWORD_VALIDATORS = [
    {"NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator"},
    {"NAME": "django.contrib.auth.password_validation.MinimumLengthValidator"},
    {"NAME": "django.contrib.auth.password_validation.CommonPasswordValidator"},
    {"NAME": "django.contrib.auth.password_validation.NumericPasswordValidator"},
]

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

STATIC_URL = "/static/"

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "users.authentication.ApiKeyAuthentication",
        "rest_framework_simplejwt.authentication.JWTAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "core.permissions.HasShopAccess",
    ],
    "EXCEPTION_HANDLER": "core.exceptions.loyalty_exception_handler",
}

# PostgreSQL session options, e.g. "-c lock_timeout=5000 -c statement_timeout=15000".
# Lock waits longer than this surface as a retryable error instead of blocking a worker.
DATABASE_SESSION_OPTIONS = env("DATABASE_SESSION_OPTIONS", default="")

# Persistent connections: one pooled connection per worker process, reused across requests.
DATABASE_CONN_MAX_AGE = env.int("DATABASE_CONN_MAX_AGE", default=60)


def database_from_env():
    """
    Builds the default database entry from DATABASE_URL plus the pooling/timeout options above.
    """
    database = env.db()
    database["CONN_MAX_AGE"] = DATABASE_CONN_MAX_AGE
    if DATABASE_SESSION_OPTIONS:
        database.setdefault("OPTIONS", {})["options"] = DATABASE_SESSION_OPTIONS
    return database

# --- LOYALTY LEDGER ---
LOYALTY_STATUS_CACHE_TTL = env.int("LOYALTY_STATUS_CACHE_TTL", default=300)
LOYALTY_TIERS_CACHE_TTL = env.int("LOYALTY_TIERS_CACHE_TTL", default=3600)
LOYALTY_REDEMPTION_EXPIRY_DAYS = env.int("LOYALTY_REDEMPTION_EXPIRY_DAYS", default=30)

# --- EVENT INBOX ---
LOYALTY_INBOX_BATCH_SIZE = env.int("LOYALTY_INBOX_BATCH_SIZE", default=50)
LOYALTY_INBOX_MAX_RETRIES = env.int("LOYALTY_INBOX_MAX_RETRIES", default=3)
LOYALTY_INBOX_RETRY_WINDOW_HOURS = env.int("LOYALTY_INBOX_RETRY_WINDOW_HOURS", default=24)
LOYALTY_INBOX_RETRY_BATCH_SIZE = env.int("LOYALTY_INBOX_RETRY_BATCH_SIZE", default=20)
# Base delay of the exponential retry backoff. 0 retries failed events on the next sweep.
LOYALTY_INBOX_RETRY_BACKOFF_SECONDS = env.int("LOYALTY_INBOX_RETRY_BACKOFF_SECONDS", default=60)
LOYALTY_INBOX_LEASE_SECONDS = env.int("LOYALTY_INBOX_LEASE_SECONDS", default=300)
LOYALTY_INBOX_BATCH_DEADLINE_SECONDS = env.int("LOYALTY_INBOX_BATCH_DEADLINE_SECONDS", default=240)

# Fixed-window limits: (max requests, window in seconds)
LOYALTY_RATE_LIMITS = {
    "redemption": (env.int("LOYALTY_REDEMPTION_RATE_LIMIT", default=10), 60),
    "ingestion": (env.int("LOYALTY_INGESTION_RATE_LIMIT", default=100), 1),
}

# --- CELERY SETTINGS ---
CELERY_ACCEPT_CONTENT = ["application/json"]
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_TIMEZONE = TIME_ZONE

CELERY_BEAT_SCHEDULE = {
    "drain_inbox_events": {
        "task": "webhooks.tasks.process_inbox_events",
        "schedule": 30.0,
    },
    "retry_failed_inbox_events": {
        "task": "webhooks.tasks.retry_failed_inbox_events",
        "schedule": 300.0,
    },
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{levelname} {asctime} {module} {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": "INFO",
    },
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": "INFO",
            "propagate": False,
        },
        "loyalty": {
            "handlers": ["console"],
            "level": env("LOYALTY_LOG_LEVEL", default="INFO"),
            "propagate": False,
        },
        "webhooks": {
            "handlers": ["console"],
            "level": env("LOYALTY_LOG_LEVEL", default="INFO"),
            "propagate": False,
        },
    },
}
