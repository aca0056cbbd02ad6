"""Inbound email trigger: parse an email, store the notification, acknowledge.

Emails whose notification could not be stored are queued as JSON files and
can be replayed later with replay_failed_emails().
"""
import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path

from noticeboard.email_parser import DEFAULT_DEADLINE_DAYS, parse_email_to_notification
from noticeboard.models import parse_timestamp
from noticeboard.retry import PermanentError, TransientError, with_retry
from noticeboard.store import NotificationStore, StoreError
from noticeboard.utils import log_action

logger = logging.getLogger("noticeboard.ingest")

SUCCESS_MESSAGE = "Notification created successfully from email"
FAILURE_MESSAGE = "Failed to process email"


def _persist(store: NotificationStore, notification, max_attempts: int, base_delay: float,
             logs_dir: Path | None = None):
    def record_failure(func_name, error, attempt):
        if logs_dir is not None:
            log_action(
                logs_dir=logs_dir,
                actor="email_webhook",
                action="store_write_failed",
                source=func_name,
                result=f"attempt {attempt}: {error}",
            )

    @with_retry(max_attempts=max_attempts, base_delay=base_delay, on_failure=record_failure)
    def insert():
        try:
            return store.insert(notification)
        except OSError as e:
            raise TransientError(f"Store write failed: {e}") from e
        except StoreError as e:
            raise PermanentError(f"Store rejected notification: {e}") from e

    return insert()


def _create_from_email(store, sender, subject, body, received_at, now, logs_dir,
                       default_days, day_first, max_attempts, base_delay):
    notification = parse_email_to_notification(
        sender, subject, body, received_at, now=now,
        default_days=default_days, day_first=day_first,
    )
    stored = _persist(store, notification, max_attempts, base_delay, logs_dir)
    if logs_dir is not None:
        log_action(
            logs_dir=logs_dir,
            actor="email_webhook",
            action="notification_created",
            source=sender or "unknown",
            result=f"notification:{stored.id}",
        )
    return stored


def ingest_email(
    store: NotificationStore,
    sender: str,
    subject: str,
    body: str,
    received_at=None,
    *,
    now: datetime | None = None,
    failed_dir: Path | None = None,
    logs_dir: Path | None = None,
    default_days: int = DEFAULT_DEADLINE_DAYS,
    day_first: bool = True,
    max_attempts: int = 3,
    base_delay: float = 0.5,
) -> dict:
    """Create a notification from an email and return an acknowledgement.

    Returns {"success": True, "notification": ..., "message": ...} once stored,
    or {"success": False, "error": FAILURE_MESSAGE} if anything in the call
    failed. The underlying error only goes to the log and the failed-email
    queue. A date-less email's default deadline counts from `now`.
    """
    email = {"from": sender, "subject": subject, "body": body, "receivedAt": received_at}
    if isinstance(received_at, datetime):
        email["receivedAt"] = received_at.isoformat()
    try:
        stored = _create_from_email(
            store, sender, subject, body, received_at, now, logs_dir,
            default_days, day_first, max_attempts, base_delay,
        )
    except Exception as e:
        logger.error(f"Error processing email from {sender!r}: {e}")
        if failed_dir is not None:
            queue_failed_email(failed_dir, email, str(e) or type(e).__name__)
        return {"success": False, "error": FAILURE_MESSAGE}

    return {
        "success": True,
        "notification": stored.to_dict(),
        "message": SUCCESS_MESSAGE,
    }


def queue_failed_email(failed_dir: Path, email: dict, error_msg: str) -> Path:
    """Write an email that could not be ingested to the failed-email queue."""
    failed_dir = Path(failed_dir)
    failed_dir.mkdir(parents=True, exist_ok=True)
    now = datetime.now(timezone.utc)
    path = failed_dir / f"email-{now:%Y%m%dT%H%M%S}-{uuid.uuid4().hex[:8]}.json"
    path.write_text(json.dumps({
        "email": email,
        "error": error_msg,
        "queued_at": now.isoformat(),
    }, indent=2), encoding="utf-8")
    logger.info(f"Queued failed email {path.name}: {error_msg}")
    return path


def _received_time(email: dict, queued_at: str | None) -> datetime | None:
    """When a queued email first arrived: its receivedAt, else when it was queued."""
    for value in (email.get("receivedAt"), queued_at):
        if not value:
            continue
        try:
            return parse_timestamp(value)
        except ValueError:
            logger.debug(f"Ignoring unreadable timestamp {value!r}")
    return None


def replay_failed_emails(
    failed_dir: Path,
    store: NotificationStore,
    min_age_seconds: int = 300,
    logs_dir: Path | None = None,
    default_days: int = DEFAULT_DEADLINE_DAYS,
    day_first: bool = True,
    max_attempts: int = 3,
    base_delay: float = 0.5,
) -> list[str]:
    """Re-ingest queued emails older than min_age_seconds.

    Emails are parsed with the same date settings as live ingestion, and a
    date-less email's default deadline counts from when it was received.
    Replayed files are deleted on success and kept, with the new error, on
    failure. Unreadable queue files are logged and left in place. Returns the
    ids of the notifications created.
    """
    failed_dir = Path(failed_dir)
    if not failed_dir.exists():
        return []

    created = []
    now = datetime.now(timezone.utc)
    for item in sorted(failed_dir.glob("*.json")):
        try:
            entry = json.loads(item.read_text(encoding="utf-8"))
            email = entry.get("email") or {}
            sender, subject, body = email.get("from", ""), email.get("subject", ""), email.get("body", "")
            queued_at = entry.get("queued_at")
            age = (now - datetime.fromisoformat(queued_at)).total_seconds() if queued_at else None
        except (OSError, AttributeError, TypeError, ValueError) as e:
            logger.warning(f"Skipping unreadable queued email {item.name}: {e}")
            continue
        if age is not None and age < min_age_seconds:
            logger.debug("Skipping %s (age=%.0fs < %ds)", item.name, age, min_age_seconds)
            continue

        try:
            stored = _create_from_email(
                store, sender, subject, body, email.get("receivedAt"),
                _received_time(email, queued_at), logs_dir,
                default_days, day_first, max_attempts, base_delay,
            )
        except Exception as e:
            logger.error(f"Replay of {item.name} failed: {e}")
            entry["error"] = str(e) or type(e).__name__
            item.write_text(json.dumps(entry, indent=2), encoding="utf-8")
            continue

        item.unlink()
        created.append(stored.id)
        logger.info(f"Replayed {item.name} as notification {stored.id}")
    return created
