# shopcore/celery_worker.py
from celery import Celery

from shopcore.utils.settings import (
    CELERY_BROKER_URL,
    CELERY_RESULT_BACKEND,
    CELERY_TASK_ALWAYS_EAGER,
)

celery_app = Celery(
    "shopcore",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
)

#tasks live outside this module, list them so the worker registers them
celery_app.conf.imports = (
    "shopcore.tasks.abandon",
    "shopcore.services.notification_service",
)

celery_app.conf.beat_schedule = {
    "abandon-idle-carts-every-5-minutes": {
        "task": "shopcore.tasks.abandon.abandon_idle_carts_task",
        "schedule": 300.0,
    },
}

celery_app.conf.timezone = "UTC"
celery_app.conf.task_always_eager = CELERY_TASK_ALWAYS_EAGER
celery_app.conf.task_store_eager_result = False
