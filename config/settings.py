"""
Django settings for the pipeline health project.

Values come from the process environment after config.env.load_env() has
read .env (and .env.dev when DJANGO_ENV=dev).
"""

from pathlib import Path

from config.env import (
    env_bool,
    env_float,
    env_int,
    env_json,
    env_list,
    env_str,
    load_env,
)

BASE_DIR = Path(__file__).resolve().parent.parent

load_env(BASE_DIR)

SECRET_KEY = env_str("DJANGO_SECRET_KEY", "django-insecure-dev-only-change-me")
DEBUG = env_bool("DJANGO_DEBUG", False)
ALLOWED_HOSTS = env_list("DJANGO_ALLOWED_HOSTS", ["localhost", "127.0.0.1", "testserver"])

INSTALLED_APPS = [
    "config.apps.PipelineHealthAdminConfig",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "django_object_actions",
    "django_json_widget",
    "apps.pipelines",
    "apps.alerts",
    "apps.notify",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
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

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": env_str("DJANGO_DB_PATH", str(BASE_DIR / "db.sqlite3")),
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

# Logging
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{asctime} {levelname} {name} {message}",
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
        "level": "WARNING",
    },
    "loggers": {
        "apps": {
            "handlers": ["console"],
            "level": env_str("DJANGO_LOG_LEVEL", "INFO"),
            "propagate": False,
        },
    },
}

# Celery
CELERY_BROKER_URL = env_str("CELERY_BROKER_URL", "redis://localhost:6379/0")
CELERY_RESULT_BACKEND = env_str("CELERY_RESULT_BACKEND", CELERY_BROKER_URL)
CELERY_TASK_ALWAYS_EAGER = env_bool("CELERY_TASK_ALWAYS_EAGER", False)
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_TIMEZONE = TIME_ZONE

# Pipelines
PIPELINES_ASYNC_INGESTION = env_bool("PIPELINES_ASYNC_INGESTION", False)
PIPELINES_SUCCESS_RATE_WINDOW = env_int("PIPELINES_SUCCESS_RATE_WINDOW", 20)
PIPELINES_FAILURE_COUNT_WINDOW_HOURS = env_int("PIPELINES_FAILURE_COUNT_WINDOW_HOURS", 24)
PIPELINES_METRICS_DEFAULT_DAYS = env_int("PIPELINES_METRICS_DEFAULT_DAYS", 30)

# Alerts
ALERTS_ASYNC_EVALUATION = env_bool("ALERTS_ASYNC_EVALUATION", False)

# Notify
NOTIFY_CHANNEL_TIMEOUT = env_float("NOTIFY_CHANNEL_TIMEOUT", 5.0)
NOTIFY_CHANNELS = env_json("NOTIFY_CHANNELS", {})
NOTIFY_SKIP = env_list("NOTIFY_SKIP")
NOTIFY_SKIP_ALL = env_bool("NOTIFY_SKIP_ALL", False)
NOTIFY_FEED_MAX_ITEMS = env_int("NOTIFY_FEED_MAX_ITEMS", 200)
NOTIFY_FEED_MAX_AGE_HOURS = env_int("NOTIFY_FEED_MAX_AGE_HOURS", 24)

DASHBOARD_URL = env_str("DASHBOARD_URL", "http://localhost:8000")
