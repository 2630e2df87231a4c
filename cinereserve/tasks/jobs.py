from cinereserve.tasks.celery_app import celery
from cinereserve.tasks import worker_jobs

@celery.task(name="cinereserve.tasks.jobs.expire_stale_bookings")
def expire_stale_bookings(timeout_minutes: int | None = None):
    return worker_jobs.expire_stale_bookings(timeout_minutes=timeout_minutes)

@celery.task(name="cinereserve.tasks.jobs.complete_past_bookings")
def complete_past_bookings():
    return worker_jobs.complete_past_bookings()

@celery.task(name="cinereserve.tasks.jobs.send_upcoming_reminders")
def send_upcoming_reminders():
    return worker_jobs.send_upcoming_reminders()


@celery.task(name="cinereserve.tasks.jobs.process_email_queue")
def process_email_queue(limit: int = 50):
    return worker_jobs.process_email_queue(limit=limit)
