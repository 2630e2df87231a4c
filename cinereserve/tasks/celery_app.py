from urllib.parse import urlparse, urlunparse, parse_qs, urlencode

from celery import Celery
from cinereserve.core.config import settings


def _redis_url_for_celery(url: str) -> str:
    """Celery requires ssl_cert_reqs for rediss:// (e.g. Upstash TLS)."""
    if not url or not url.strip().lower().startswith("rediss://"):
        return url
    parsed = urlparse(url)
    qs = parse_qs(parsed.query)
    if "ssl_cert_reqs" not in qs:
        qs["ssl_cert_reqs"] = ["CERT_NONE"]
        new_query = urlencode(qs, doseq=True)
        return urlunparse(parsed._replace(query=new_query))
    return url


_redis_url = _redis_url_for_celery(settings.REDIS_URL)

celery = Celery(
    "cinereserve",
    broker=_redis_url,
    backend=_redis_url,
    include=["cinereserve.tasks.jobs"],
)

celery.conf.timezone = settings.THEATER_TIMEZONE

celery.conf.beat_schedule = {
    "expire-stale-bookings": {
        "task": "cinereserve.tasks.jobs.expire_stale_bookings",
        "schedule": settings.EXPIRY_SWEEP_INTERVAL_MINUTES * 60.0,
        "kwargs": {"timeout_minutes": settings.BOOKING_HOLD_MINUTES},
    },
    "complete-past-bookings-hourly": {
        "task": "cinereserve.tasks.jobs.complete_past_bookings",
        "schedule": 3600.0,
    },
    "send-reminders-every-30-minutes": {
        "task": "cinereserve.tasks.jobs.send_upcoming_reminders",
        "schedule": 1800.0,
    },
    "process-email-queue-every-2-minutes": {
        "task": "cinereserve.tasks.jobs.process_email_queue",
        "schedule": 120.0,
        "kwargs": {"limit": 50},
    },
}
