"""Notification record and the value sets its fields are drawn from."""
from dataclasses import dataclass, field, fields, replace
from datetime import date, datetime
from enum import Enum

from noticeboard.utils import truncate

TITLE_MAX_CHARS = 100
DESCRIPTION_MAX_CHARS = 500


class Category(str, Enum):
    ASSIGNMENT = "Assignment"
    EXAM = "Exam"
    PLACEMENT = "Placement"
    EVENT = "Event"


class Priority(str, Enum):
    """Priority levels, declared from most to least urgent."""
    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class Source(str, Enum):
    MANUAL = "manual"
    EMAIL = "email"


class Status(str, Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"
    EXPIRED = "expired"


class TargetGroup:
    """Well-known audiences. Any department or year string is also accepted."""
    ALL = "All"
    CSE = "CSE"
    IT = "IT"
    FINAL_YEAR = "Final Year"


# Fields an explicit edit may change; everything else is fixed at creation.
MUTABLE_FIELDS = frozenset({
    "title", "description", "category", "deadline",
    "priority", "target_group", "status", "updated_at",
})


def parse_timestamp(value) -> datetime:
    """Coerce a datetime, date or ISO-8601 string into a naive datetime.

    Aware datetimes are converted to local time before the tzinfo is dropped.
    """
    if isinstance(value, str):
        value = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    elif isinstance(value, date) and not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)
    if not isinstance(value, datetime):
        raise ValueError(f"Not a timestamp: {value!r}")
    if value.tzinfo is not None:
        value = value.astimezone().replace(tzinfo=None)
    return value


def _optional_timestamp(value) -> datetime | None:
    if value is None or value == "":
        return None
    return parse_timestamp(value)


@dataclass
class Notification:
    title: str
    description: str
    category: Category
    priority: Priority
    deadline: datetime
    target_group: str = TargetGroup.ALL
    source: Source = Source.MANUAL
    status: Status = Status.ACTIVE
    email_metadata: dict = field(default_factory=dict)
    created_by: str | None = None
    id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self):
        if self.category is None:
            raise ValueError("category is required")
        if self.deadline is None:
            raise ValueError("deadline is required")
        if self.priority is None:
            raise ValueError("priority is required")
        self.category = Category(self.category)
        self.priority = Priority(self.priority)
        self.source = Source(self.source)
        self.status = Status(self.status)
        self.deadline = parse_timestamp(self.deadline)
        self.created_at = _optional_timestamp(self.created_at)
        self.updated_at = _optional_timestamp(self.updated_at)
        self.title = truncate(self.title or "", TITLE_MAX_CHARS)
        self.description = truncate(self.description or "", DESCRIPTION_MAX_CHARS)
        self.target_group = (self.target_group or "").strip() or TargetGroup.ALL
        self.email_metadata = dict(self.email_metadata or {})
        if self.source is Source.MANUAL and self.email_metadata:
            raise ValueError("email_metadata is only kept for email notifications")

    def with_changes(self, **changes) -> "Notification":
        """Return an edited copy; fails if a fixed field is named."""
        fixed = set(changes) - MUTABLE_FIELDS
        if fixed:
            raise ValueError(f"Cannot change fixed fields: {', '.join(sorted(fixed))}")
        return replace(self, **changes)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "category": self.category.value,
            "priority": self.priority.value,
            "deadline": self.deadline.isoformat(),
            "target_group": self.target_group,
            "source": self.source.value,
            "status": self.status.value,
            "email_metadata": dict(self.email_metadata),
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Notification":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})
