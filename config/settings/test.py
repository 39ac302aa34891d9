from .base import *

SECRET_KEY = "django-insecure-test-key"

DEBUG = False

ALLOWED_HOSTS = ["*"]

# SQLite by default; set DATABASE_URL to a PostgreSQL URL to run the row-lock concurrency tests.
DATABASES = {
    "default": env.db("DATABASE_URL", default=f"sqlite:///{BASE_DIR / 'test.sqlite3'}"),
}

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "loyalty-tests",
    }
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

CELERY_BROKER_URL = "memory://"
CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True

# Tests exercise the retry sweep without waiting on backoff unless they opt in.
LOYALTY_INBOX_RETRY_BACKOFF_SECONDS = 0

LOGGING["root"]["level"] = "WARNING"
LOGGING["loggers"]["loyalty"]["level"] = "WARNING"
LOGGING["loggers"]["webhooks"]["level"] = "WARNING"
