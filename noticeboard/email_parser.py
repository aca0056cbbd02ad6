"""Turn a forwarded email into a notification using keyword and date heuristics.

Every classification has a default branch, so any combination of strings
yields a notification:
- category: Event
- keyword priority: Medium
- target group: All
- deadline: now + 7 days
"""
import logging
import re
from datetime import date, datetime, timedelta

from noticeboard.models import (
    DESCRIPTION_MAX_CHARS,
    TITLE_MAX_CHARS,
    Category,
    Notification,
    Priority,
    Source,
    TargetGroup,
)
from noticeboard.priority import calculate_smart_priority
from noticeboard.utils import truncate

logger = logging.getLogger("noticeboard.email_parser")

DEFAULT_DEADLINE_DAYS = 7
ORIGINAL_BODY_CHARS = 500
KEY_POINT_LINES = 10
KEY_POINT_MIN_CHARS = 10
KEY_POINT_MAX_CHARS = 200

# Checked in order; the first group with a keyword in the scan text wins.
CATEGORY_KEYWORDS = [
    (Category.ASSIGNMENT, ["assignment", "homework", "submit"]),
    (Category.EXAM, ["exam", "test", "quiz"]),
    (Category.PLACEMENT, ["placement", "interview", "recruitment", "job"]),
]

PRIORITY_KEYWORDS = [
    (Priority.CRITICAL, ["urgent", "critical", "important"]),
    (Priority.HIGH, ["high priority", "asap"]),
    (Priority.LOW, ["low priority", "fyi", "optional"]),
]

# " it " stops "it" inside words such as "submit" from matching; a bare "it"
# at the very start or end of the text is missed.
TARGET_GROUP_KEYWORDS = [
    (TargetGroup.CSE, ["cse", "computer science"]),
    (TargetGroup.IT, [" it ", "information technology"]),
    (TargetGroup.FINAL_YEAR, ["final year", "4th year", "senior"]),
]

_MONTH_DAY_YEAR = r"([a-z]+)\s+(\d{1,2})(?:st|nd|rd|th)?,?\s+(\d{4})"

# (kind, pattern) in the order they are tried.
DATE_PATTERNS = [
    ("month_day_year", re.compile(r"deadline[:\s]+" + _MONTH_DAY_YEAR, re.IGNORECASE)),
    ("month_day_year", re.compile(r"due[:\s]+" + _MONTH_DAY_YEAR, re.IGNORECASE)),
    ("month_day_year", re.compile(r"submit by[:\s]+" + _MONTH_DAY_YEAR, re.IGNORECASE)),
    ("month_day_year", re.compile(r"on[:\s]+" + _MONTH_DAY_YEAR, re.IGNORECASE)),
    ("numeric", re.compile(r"(\d{1,2})[-/](\d{1,2})[-/](\d{4})")),
    ("iso", re.compile(r"(\d{4})[-/](\d{1,2})[-/](\d{1,2})")),
]

MONTH_MAP = {
    'january': 1, 'jan': 1, 'february': 2, 'feb': 2, 'march': 3, 'mar': 3,
    'april': 4, 'apr': 4, 'may': 5, 'june': 6, 'jun': 6, 'july': 7, 'jul': 7,
    'august': 8, 'aug': 8, 'september': 9, 'sep': 9, 'sept': 9, 'october': 10,
    'oct': 10, 'november': 11, 'nov': 11, 'december': 12, 'dec': 12
}


def scan_text(subject: str, body: str) -> str:
    """Lower-cased subject and body joined by a space."""
    return f"{subject or ''} {body or ''}".lower()


def _first_match(text: str, table: list, default):
    for value, keywords in table:
        if any(keyword in text for keyword in keywords):
            return value
    return default


def classify_category(text: str) -> Category:
    return _first_match(text, CATEGORY_KEYWORDS, Category.EVENT)


def classify_priority(text: str) -> Priority:
    return _first_match(text, PRIORITY_KEYWORDS, Priority.MEDIUM)


def classify_target_group(text: str) -> str:
    return _first_match(text, TARGET_GROUP_KEYWORDS, TargetGroup.ALL)


def _parse_match(kind: str, groups: tuple, day_first: bool) -> date | None:
    """Build a calendar date from regex groups, or None if it is not one."""
    try:
        if kind == "month_day_year":
            month = MONTH_MAP.get(groups[0].lower())
            if month is None:
                return None
            return date(int(groups[2]), month, int(groups[1]))
        if kind == "iso":
            return date(int(groups[0]), int(groups[1]), int(groups[2]))
        first, second, year = int(groups[0]), int(groups[1]), int(groups[2])
        orders = [(first, second), (second, first)]
        if not day_first:
            orders.reverse()
        for day, month in orders:
            try:
                return date(year, month, day)
            except ValueError:
                continue
        return None
    except ValueError:
        return None


def extract_deadline(
    text: str,
    now: datetime | None = None,
    default_days: int = DEFAULT_DEADLINE_DAYS,
    day_first: bool = True,
) -> datetime:
    """Find the first parseable deadline in text.

    Each pattern is tried once, in order; the first one whose match is a real
    calendar date wins and is returned at midnight. Falls back to
    now + default_days, which callers cannot tell apart from an explicit date.
    """
    for kind, pattern in DATE_PATTERNS:
        match = pattern.search(text or "")
        if not match:
            continue
        found = _parse_match(kind, match.groups(), day_first)
        if found is not None:
            return datetime(found.year, found.month, found.day)
        logger.debug(f"Ignoring unparseable date: {match.group(0)!r}")

    now = now or datetime.now()
    return now + timedelta(days=default_days)


def make_title(subject: str) -> str:
    return truncate(subject or "", TITLE_MAX_CHARS)


def extract_key_points(body: str) -> str:
    """Build a description from the first meaningful lines of the body.

    Looks at the first 10 non-blank lines and keeps those between 10 and 200
    characters long. Falls back to the start of the raw body when none qualify.
    """
    body = body or ""
    lines = [line for line in body.split("\n") if line.strip()]

    key_points = []
    for line in lines[:KEY_POINT_LINES]:
        line = line.strip()
        if KEY_POINT_MIN_CHARS < len(line) < KEY_POINT_MAX_CHARS:
            key_points.append(line)

    description = truncate("\n\n".join(key_points), DESCRIPTION_MAX_CHARS)
    return description or body[:DESCRIPTION_MAX_CHARS]


def parse_email_to_notification(
    sender: str,
    subject: str,
    body: str,
    received_at=None,
    now: datetime | None = None,
    default_days: int = DEFAULT_DEADLINE_DAYS,
    day_first: bool = True,
) -> Notification:
    """Build an email-sourced notification from a raw email.

    The keyword priority is applied as a manual override on the smart
    priority, so a Low keyword result is replaced by the deadline-based one.
    """
    sender = sender or ""
    subject = subject or ""
    body = body or ""
    now = now or datetime.now()
    text = scan_text(subject, body)

    category = classify_category(text)
    keyword_priority = classify_priority(text)
    target_group = classify_target_group(text)
    deadline = extract_deadline(text, now=now, default_days=default_days, day_first=day_first)
    priority = calculate_smart_priority(deadline, category, keyword_priority, today=now.date())

    if isinstance(received_at, datetime):
        received_at = received_at.isoformat()
    logger.debug(
        f"Parsed email from {sender!r}: category={category.value} "
        f"priority={priority.value} target={target_group}"
    )

    return Notification(
        title=make_title(subject),
        description=extract_key_points(body),
        category=category,
        priority=priority,
        deadline=deadline,
        target_group=target_group,
        source=Source.EMAIL,
        email_metadata={
            "from": sender,
            "subject": subject,
            "receivedAt": received_at or now.isoformat(),
            "originalBody": body[:ORIGINAL_BODY_CHARS],
        },
    )
