"""Celery app factory."""

from celery import Celery

celery_app = Celery("dental_staffing")
celery_app.config_from_object("workers.celery_config")
celery_app.autodiscover_tasks(["workers.tasks"])

# Importing here registers the tasks when the API enqueues without a worker
import workers.tasks.notifications  # noqa: E402,F401
