"""
Settings for the school billing project.

Values come from the environment (or a .env file next to manage.py)
through django-environ; every key below has a development default.
"""
from __future__ import annotations

from pathlib import Path

import environ
from celery.schedules import crontab

BASE_DIR = Path(__file__).resolve().parent.parent

env = environ.Env(
    DEBUG=(bool, True),
    SECRET_KEY=(str, ""),
    TIME_ZONE=(str, "Asia/Kolkata"),
    ALLOWED_HOSTS=(list, ["localhost", "127.0.0.1"]),
    DATABASE_URL=(str, f"sqlite:///{BASE_DIR / 'db.sqlite3'}"),
    LOG_LEVEL=(str, "INFO"),
    # Celery
    CELERY_BROKER_URL=(str, "redis://localhost:6379/0"),
    CELERY_RESULT_BACKEND=(str, ""),
    CELERY_TASK_ALWAYS_EAGER=(bool, False),
    # Billing
    BILLING_WORKING_DAYS_MODE=(str, "fixed"),
    BILLING_WORKING_DAYS_PER_MONTH=(int, 26),
    INVOICE_DUE_DAYS=(int, 30),
    INVOICE_DEFAULT_STATUS=(str, "generated"),
    INVOICE_DELIVERY_BACKEND=(
        str, "billing_core.services.delivery.LoggingDeliveryBackend"),
    POSTING_CASCADE_MAX_RETRIES=(int, 3),
)

env_file = BASE_DIR / ".env"
if env_file.exists():
    env.read_env(str(env_file))

# -----------------------------------------
# CORE
# -----------------------------------------
SECRET_KEY = (env("SECRET_KEY") or "dev-insecure-change-me").strip()
DEBUG = env.bool("DEBUG")
ALLOWED_HOSTS = env.list("ALLOWED_HOSTS")

LANGUAGE_CODE = "en-us"
TIME_ZONE = (env("TIME_ZONE") or "UTC").strip()
USE_I18N = True
USE_TZ = True

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "billing_core.apps.BillingCoreConfig",
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

ROOT_URLCONF = "sb_project.urls"
WSGI_APPLICATION = "sb_project.wsgi.application"

# required for Django admin
TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    }
]

DATABASES = {
    "default": env.db("DATABASE_URL"),
}

STATIC_URL = "static/"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# -----------------------------------------
# LOGGING
# -----------------------------------------
LOG_LEVEL = (env("LOG_LEVEL") or "INFO").upper()

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "root": {"handlers": ["console"], "level": "WARNING"},
    "loggers": {
        "billing_core": {
            "handlers": ["console"],
            "level": LOG_LEVEL,
            "propagate": False,
        },
    },
}

# -----------------------------------------
# CELERY
# -----------------------------------------
CELERY_BROKER_URL = env("CELERY_BROKER_URL")
CELERY_RESULT_BACKEND = env("CELERY_RESULT_BACKEND") or None
CELERY_TASK_ALWAYS_EAGER = env.bool("CELERY_TASK_ALWAYS_EAGER")
CELERY_TIMEZONE = TIME_ZONE

CELERY_BEAT_SCHEDULE = {
    # 02:00 on the 1st: bill the month that just ended
    "generate-monthly-invoices": {
        "task": "billing_core.tasks.generate_monthly_invoices",
        "schedule": crontab(minute=0, hour=2, day_of_month=1),
    },
    "mark-overdue-invoices": {
        "task": "billing_core.tasks.mark_overdue_invoices",
        "schedule": crontab(minute=0, hour=1),
    },
}

# -----------------------------------------
# BILLING
# -----------------------------------------
BILLING_WORKING_DAYS_MODE = env("BILLING_WORKING_DAYS_MODE")
BILLING_WORKING_DAYS_PER_MONTH = env.int("BILLING_WORKING_DAYS_PER_MONTH")
INVOICE_DUE_DAYS = env.int("INVOICE_DUE_DAYS")
INVOICE_DEFAULT_STATUS = env("INVOICE_DEFAULT_STATUS")
INVOICE_DELIVERY_BACKEND = env("INVOICE_DELIVERY_BACKEND")
POSTING_CASCADE_MAX_RETRIES = env.int("POSTING_CASCADE_MAX_RETRIES")
