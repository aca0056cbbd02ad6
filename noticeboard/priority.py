"""Deadline- and category-driven priority scoring, plus the ranking helpers built on it."""
import logging
import math
from datetime import date, datetime, timedelta

from noticeboard.models import Category, Notification, Priority, TargetGroup, parse_timestamp

logger = logging.getLogger("noticeboard.priority")

CATEGORY_WEIGHTS = {
    Category.PLACEMENT: 4,
    Category.EXAM: 3,
    Category.ASSIGNMENT: 2,
    Category.EVENT: 1,
}
DEFAULT_CATEGORY_WEIGHT = 1

PRIORITY_ORDER = {
    Priority.CRITICAL: 0,
    Priority.HIGH: 1,
    Priority.MEDIUM: 2,
    Priority.LOW: 3,
}

SORT_KEYS = ("priority", "deadline", "recent")


def _calendar_date(value) -> date:
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    return parse_timestamp(value).date()


def days_until_deadline(deadline, today: date | None = None) -> int:
    """Whole calendar days from today until the deadline's date.

    Time of day is discarded on both sides: 0 means due today, negative
    means the deadline has passed.
    """
    today = today or date.today()
    delta = _calendar_date(deadline) - today
    return math.ceil(delta / timedelta(days=1))


def is_expired(deadline, today: date | None = None) -> bool:
    return days_until_deadline(deadline, today) < 0


def category_weight(category) -> int:
    """Urgency weight of a category; unknown categories weigh 1."""
    try:
        return CATEGORY_WEIGHTS.get(Category(category), DEFAULT_CATEGORY_WEIGHT)
    except ValueError:
        return DEFAULT_CATEGORY_WEIGHT


def _as_override(value) -> Priority | None:
    if value is None or value == "":
        return None
    try:
        return Priority(value)
    except ValueError:
        logger.debug(f"Ignoring unknown priority override: {value!r}")
        return None


def calculate_smart_priority(
    deadline,
    category,
    manual_override=None,
    today: date | None = None,
) -> Priority:
    """Compute a priority from deadline proximity and category weight.

    Rules (evaluated in order):
    - An override other than Low is returned unchanged
    - Expired or due within a day: Critical
    - Within 2 days: Critical for Exam/Placement, otherwise High
    - Within 5 days: High for Exam/Placement, otherwise Medium
    - Within 10 days: High for Placement, otherwise Medium
    - Later: Medium for Exam/Placement, otherwise Low

    A Low override cannot be told apart from no override and falls through
    to the computed value.
    """
    override = _as_override(manual_override)
    if override is not None and override is not Priority.LOW:
        return override

    days_remaining = days_until_deadline(deadline, today)
    weight = category_weight(category)

    if days_remaining < 0:
        return Priority.CRITICAL
    if days_remaining <= 1:
        return Priority.CRITICAL
    if days_remaining <= 2:
        return Priority.CRITICAL if weight >= 3 else Priority.HIGH
    if days_remaining <= 5:
        return Priority.HIGH if weight >= 3 else Priority.MEDIUM
    if days_remaining <= 10:
        return Priority.HIGH if weight >= 4 else Priority.MEDIUM
    return Priority.MEDIUM if weight >= 3 else Priority.LOW


def status_badge(deadline, today: date | None = None) -> str:
    """Short human label for how close a deadline is."""
    days_remaining = days_until_deadline(deadline, today)
    if days_remaining < 0:
        return f"Expired {abs(days_remaining)} days ago"
    if days_remaining == 0:
        return "Due Today"
    if days_remaining == 1:
        return "Due Tomorrow"
    return f"{days_remaining} Days Left"


def format_deadline(deadline) -> str:
    """Format a deadline for display, e.g. 'Mar 5, 2025, 05:30 PM'."""
    value = parse_timestamp(deadline)
    return f"{value:%b} {value.day}, {value:%Y, %I:%M %p}"


def sort_notifications(
    notifications: list[Notification],
    sort_by: str = "priority",
) -> list[Notification]:
    """Return a new list ordered by priority, deadline or recency.

    Unknown sort keys return an unordered copy. The input is never mutated.
    """
    if sort_by == "priority":
        return sorted(
            notifications,
            key=lambda n: (PRIORITY_ORDER[n.priority], n.deadline),
        )
    if sort_by == "deadline":
        return sorted(notifications, key=lambda n: n.deadline)
    if sort_by == "recent":
        # Records not yet persisted have no created_at and go last.
        return sorted(
            notifications,
            key=lambda n: (n.created_at is not None, n.created_at or datetime.min),
            reverse=True,
        )
    return list(notifications)


def filter_notifications(
    notifications: list[Notification],
    category=None,
    priority=None,
    target_group: str | None = None,
    show_expired: bool = False,
    search: str | None = None,
    expired_only: bool = False,
    today: date | None = None,
) -> list[Notification]:
    """Keep notifications matching every given criterion.

    Notifications addressed to All pass any target group filter. `search` is a
    case-insensitive substring of the title or description. Expired
    notifications are dropped unless show_expired is set; expired_only keeps
    nothing else.
    """
    needle = search.strip().lower() if search else ""
    result = []
    for notification in notifications:
        if category and notification.category != category:
            continue
        if priority and notification.priority != priority:
            continue
        if (
            target_group
            and notification.target_group != TargetGroup.ALL
            and notification.target_group != target_group
        ):
            continue
        if (
            needle
            and needle not in notification.title.lower()
            and needle not in notification.description.lower()
        ):
            continue
        expired = is_expired(notification.deadline, today)
        if expired_only and not expired:
            continue
        if expired and not (show_expired or expired_only):
            continue
        result.append(notification)
    return result
