# Celery instance is defined in sb_project/celery.py
# It points the celery_app object at the Django settings
from .celery import celery_app

# 'from sb_project import *', only exports celery_app
__all__ = ("celery_app",)
