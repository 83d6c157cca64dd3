# storefront/celery_worker.py
from celery import Celery

from storefront.utils.settings import (
    CART_TTL_SECONDS,
    CELERY_BROKER_URL,
    CELERY_RESULT_BACKEND,
    CELERY_TASK_ALWAYS_EAGER,
)

celery_app = Celery(
    "storefront",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
)

# import task modules explicitly so the worker registers them
celery_app.conf.imports = (
    "storefront.tasks.expire",
    "storefront.services.notification_service",
)

celery_app.conf.task_always_eager = CELERY_TASK_ALWAYS_EAGER

celery_app.conf.beat_schedule = {
    "purge-guest-carts-hourly": {
        "task": "storefront.tasks.expire.purge_guest_carts_task",
        "schedule": 3600.0,
        "kwargs": {"max_age_seconds": CART_TTL_SECONDS},
    },
}

celery_app.conf.timezone = "UTC"
