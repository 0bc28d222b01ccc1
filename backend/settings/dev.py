from .base import *

DEBUG = True

ALLOWED_HOSTS = ["*", "localhost", "127.0.0.1"]

# Run Celery tasks in-process so a broker is optional while developing.
CELERY_TASK_ALWAYS_EAGER = True
