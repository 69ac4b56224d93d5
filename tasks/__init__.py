"""
Celery tasks for background processing.

Tasks are defined here and imported by both the API (to enqueue) and
the worker (to execute). Each worker process also runs the bounded work
queue that executes plan generation jobs.
"""
from celery import Celery
from celery.signals import worker_process_init, worker_process_shutdown
from core.config import settings
from celerybeat_schedule import beat_schedule

# Create Celery app instance
celery_app = Celery(
    "fitfast",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=30 * 60,  # 30 minutes max per task
    task_soft_time_limit=25 * 60,  # 25 minutes soft limit
    task_acks_late=True,  # a crashed workflow driver is redelivered
    beat_schedule=beat_schedule,
)


@worker_process_init.connect
def start_work_queue(**kwargs):
    from services import plan_jobs  # noqa: F401  (registers job handlers)
    from services.work_queue import work_queue

    work_queue.start()


@worker_process_shutdown.connect
def stop_work_queue(**kwargs):
    from services.work_queue import work_queue

    work_queue.shutdown()


# Import tasks to register them
from . import workflow_tasks  # noqa: E402

__all__ = ["celery_app"]
