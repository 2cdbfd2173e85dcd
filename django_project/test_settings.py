"""
Test settings for the co-parenting backend.

Overrides production settings for test environment:
- Uses in-memory cache and SQLite unless a service is configured
- Enables eager task execution for Celery
- Sends push notifications to the in-memory outbox
- Renders notification texts in English, dates in UTC
"""

import os

from django_project.settings import *  # noqa: F401, F403

# Execute Celery tasks synchronously in tests
CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True

PUSH_NOTIFICATIONS = {
    "BACKEND": "notifications.backends.LocmemBackend",
    "OPTIONS": {},
}
NOTIFICATION_LANGUAGE = "en"
NOTIFICATION_TIME_ZONE = "UTC"
NOTIFICATIONS_DISABLE_SIGNALS = False

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

if os.environ.get("REDIS_HOST"):
    # GitHub Actions or production-like test environment with Redis
    redis_host = os.environ.get("REDIS_HOST", "localhost")
    redis_port = os.environ.get("REDIS_PORT", "6379")

    CACHES = {
        "default": {
            "BACKEND": "django_redis.cache.RedisCache",
            "LOCATION": f"redis://{redis_host}:{redis_port}/0",
            "OPTIONS": {
                "CLIENT_CLASS": "django_redis.client.DefaultClient",
                "SOCKET_CONNECT_TIMEOUT": 5,
                "SOCKET_TIMEOUT": 5,
                "IGNORE_EXCEPTIONS": True,  # Fall back gracefully if Redis unavailable
            },
        }
    }
else:
    # Local testing without Redis
    CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
            "LOCATION": "unique-snowflake",
        }
    }

# Configure database for tests:
# - If DATABASE_HOST is set (GitHub Actions/Docker), use PostgreSQL
# - Otherwise, use SQLite in-memory for local testing
if os.environ.get("DATABASE_HOST"):
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": os.environ.get("DATABASE_NAME", "postgres"),
            "USER": os.environ.get("DATABASE_USER", "postgres"),
            "PASSWORD": os.environ.get("DATABASE_PASSWORD", ""),
            "HOST": os.environ.get("DATABASE_HOST"),
            "PORT": os.environ.get("DATABASE_PORT", "5432"),
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": ":memory:",
        }
    }
