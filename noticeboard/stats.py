"""Dashboard counters over a list of notifications."""
from datetime import date

from noticeboard.models import Category, Notification, Priority
from noticeboard.priority import days_until_deadline

URGENT_WITHIN_DAYS = 3
WEEK_DAYS = 7


def notification_stats(notifications: list[Notification], today: date | None = None) -> dict:
    """Summarize notifications for the statistics panel.

    Returns dict with:
    - total, critical, high, medium, low: int
    - urgent: Critical/High notifications due within 3 days (expired included)
    - expired: deadline already passed
    - due_this_week: due in 1 to 7 days
    - by_category: count per category
    """
    stats = {
        "total": len(notifications),
        "critical": 0,
        "high": 0,
        "medium": 0,
        "low": 0,
        "urgent": 0,
        "expired": 0,
        "due_this_week": 0,
        "by_category": {c.value: 0 for c in Category},
    }

    for notification in notifications:
        stats[notification.priority.value.lower()] += 1
        stats["by_category"][notification.category.value] += 1

        days = days_until_deadline(notification.deadline, today)
        if notification.priority in (Priority.CRITICAL, Priority.HIGH) and days <= URGENT_WITHIN_DAYS:
            stats["urgent"] += 1
        if days < 0:
            stats["expired"] += 1
        elif 0 < days <= WEEK_DAYS:
            stats["due_this_week"] += 1

    return stats
