from .base import *  # Import defaults from base.py

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = True

ALLOWED_HOSTS = ["*"]

# Database
# 'env.db()' automatically parses the 'DATABASE_URL' from docker-compose.yml
# e.g., postgres://postgres:postgres@db:5432/loyalty_db
DATABASES = {
    "default": database_from_env(),
}

# Redis Cache
CACHES = {
    "default": {
        "BACKEND": "django_redis.cache.RedisCache",
        "LOCATION": env("REDIS_URL", default="redis://redis:6379/0"),
        "OPTIONS": {
            "CLIENT_CLASS": "django_redis.client.DefaultClient",
            # Cache is best-effort: a Redis outage must never fail a ledger operation.
            "IGNORE_EXCEPTIONS": True,
        },
    }
}

# --- CELERY SETTINGS ---
CELERY_BROKER_URL = env("REDIS_URL", default="redis://redis:6379/0")
CELERY_RESULT_BACKEND = env("REDIS_URL", default="redis://redis:6379/0")

LOGGING["loggers"]["loyalty"]["level"] = "DEBUG"
LOGGING["loggers"]["webhooks"]["level"] = "DEBUG"
