from sqlalchemy.exc import OperationalError
from app.tasks.celery_app import celery
from app.tasks import worker_jobs
from app.db import base  # noqa: F401


@celery.task(name="app.tasks.jobs.send_booking_confirmation", autoretry_for=(OperationalError,), retry_backoff=True, max_retries=3)
def send_booking_confirmation(booking_id: str):
    return worker_jobs.send_booking_confirmation(booking_id)


@celery.task(name="app.tasks.jobs.process_email_queue")
def process_email_queue(limit: int = 50):
    return worker_jobs.process_email_queue(limit=limit)
