import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "backend.settings.dev")

app = Celery("stackflow")

# Read CELERY_* keys from Django settings (broker, eager mode, serializers).
app.config_from_object("django.conf:settings", namespace="CELERY")

# Picks up tickets/tasks.py and any other app's tasks module.
app.autodiscover_tasks()
