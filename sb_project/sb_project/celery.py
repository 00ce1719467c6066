""" Run workers with "celery -A sb_project worker -l info"
    and the scheduler with "celery -A sb_project beat -l info". """
from __future__ import annotations
import os
from celery import Celery

# ensure Django settings are set for Celery
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "sb_project.settings")

celery_app = Celery("sb_project")

# read config from Django settings, using CELERY_ prefix
celery_app.config_from_object("django.conf:settings", namespace="CELERY")

# autoload tasks from installed apps
celery_app.autodiscover_tasks()
