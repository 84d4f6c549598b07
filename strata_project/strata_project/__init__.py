# Celery instance is defined in strata_project/celery.py
# Importing it here makes sure the app is loaded when Django starts,
# so @shared_task in trust_accounting binds to it
from .celery import celery_app

__all__ = ("celery_app",)
