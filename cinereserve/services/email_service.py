from datetime import datetime, timezone
import smtplib
from email.message import EmailMessage
from sqlalchemy import select
from sqlalchemy.orm import Session
import uuid
import requests
from loguru import logger

from cinereserve.core.config import settings
from cinereserve.models.email_log import EmailLog

MAX_ATTEMPTS = 5


def queue_email(db: Session, to_email: str, subject: str, body: str, event_kind: str = "",
                related_booking_number: str = "") -> str:
    """Queue and attempt immediate send. Body is stored so the worker can retry on failure."""
    eid = str(uuid.uuid4())
    db.add(
        EmailLog(
            id=eid,
            to_email=to_email,
            subject=subject,
            body=body,
            event_kind=event_kind,
            status="queued",
            attempts=0,
            related_booking_number=related_booking_number,
        )
    )
    db.commit()

    log = db.get(EmailLog, eid)
    try:
        send_email(to_email, subject, body)
        log.status = "sent"
        log.sent_at = datetime.now(timezone.utc)
    except Exception as e:
        log.status = "failed"
        # Worker will retry via process_pending_emails
        logger.warning("Email to {} ({}) failed, queued for retry: {}", to_email, event_kind, e)
    log.attempts = (log.attempts or 0) + 1
    db.commit()
    return eid


def send_email(to_email: str, subject: str, body: str):
    """Send email via SendGrid if configured, otherwise SMTP (MailHog recommended for local)."""

    if settings.SENDGRID_API_KEY:
        _send_via_sendgrid(to_email, subject, body)
        return

    msg = EmailMessage()
    msg["From"] = settings.SMTP_FROM
    msg["To"] = to_email
    msg["Subject"] = subject
    msg.set_content(body)

    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=10) as smtp:
        if settings.SMTP_USERNAME:
            smtp.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
        smtp.send_message(msg)


def _send_via_sendgrid(to_email: str, subject: str, body: str):
    from_email = settings.SENDGRID_FROM_EMAIL or settings.SMTP_FROM
    payload = {
        "personalizations": [{"to": [{"email": to_email}]}],
        "from": {"email": from_email},
        "subject": subject,
        "content": [{"type": "text/plain", "value": body}],
    }
    r = requests.post(
        "https://api.sendgrid.com/v3/mail/send",
        json=payload,
        headers={"Authorization": f"Bearer {settings.SENDGRID_API_KEY}"},
        timeout=20,
    )
    if r.status_code >= 400:
        raise RuntimeError(f"SendGrid error {r.status_code}: {r.text}")


def process_pending_emails(db: Session, limit: int = 50) -> dict:
    """Retry up to `limit` queued or failed emails that still have attempts left. Returns counts."""
    pending = db.execute(
        select(EmailLog)
        .where(
            EmailLog.status.in_(["queued", "failed"]),
            EmailLog.attempts < MAX_ATTEMPTS,
            EmailLog.body.isnot(None),
            EmailLog.body != "",
        )
        .order_by(EmailLog.created_at.asc())
        .limit(limit)
    ).scalars().all()
    sent, failed = 0, 0
    for log in pending:
        log.attempts = (log.attempts or 0) + 1
        try:
            send_email(log.to_email, log.subject, log.body)
            log.status = "sent"
            log.sent_at = datetime.now(timezone.utc)
            sent += 1
        except Exception as e:
            failed += 1
            if log.attempts >= MAX_ATTEMPTS:
                log.status = "abandoned"
                logger.error("Giving up on email {} to {} after {} attempts: {}", log.id, log.to_email, log.attempts, e)
            else:
                log.status = "failed"
                logger.warning("Retry {} for email {} failed: {}", log.attempts, log.id, e)
    if pending:
        db.commit()
    return {"processed": len(pending), "sent": sent, "failed": failed}
