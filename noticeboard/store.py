"""Notification persistence behind a small insert/get/update/delete/list interface."""
import copy
import json
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path

from noticeboard.models import Notification

logger = logging.getLogger("noticeboard.store")


class StoreError(Exception):
    """The store could not read or write its records."""
    pass


class NotificationNotFound(StoreError):
    """No notification has the requested id."""
    pass


class NotificationStore(ABC):
    @abstractmethod
    def _load(self) -> dict[str, Notification]:
        ...

    @abstractmethod
    def _save(self, records: dict[str, Notification]) -> None:
        ...

    def insert(self, notification: Notification) -> Notification:
        """Store a copy of the notification, assigning an id and created_at."""
        records = self._load()
        stored = Notification.from_dict(notification.to_dict())
        stored.id = stored.id or uuid.uuid4().hex
        stored.created_at = stored.created_at or datetime.now()
        if stored.id in records:
            raise StoreError(f"Duplicate notification id: {stored.id}")
        records[stored.id] = stored
        self._save(records)
        logger.info(f"Stored notification {stored.id} ({stored.source.value}): {stored.title}")
        return stored

    def get(self, notification_id: str) -> Notification | None:
        return self._load().get(notification_id)

    def update(self, notification_id: str, **changes) -> Notification:
        """Apply an edit to the mutable fields of a stored notification."""
        records = self._load()
        current = records.get(notification_id)
        if current is None:
            raise NotificationNotFound(notification_id)
        changes["updated_at"] = datetime.now()
        updated = current.with_changes(**changes)
        records[notification_id] = updated
        self._save(records)
        logger.info(f"Updated notification {notification_id}: {', '.join(sorted(changes))}")
        return updated

    def delete(self, notification_id: str) -> bool:
        records = self._load()
        if records.pop(notification_id, None) is None:
            return False
        self._save(records)
        logger.info(f"Deleted notification {notification_id}")
        return True

    def list_by_deadline(self) -> list[Notification]:
        return sorted(self._load().values(), key=lambda n: n.deadline)


class InMemoryStore(NotificationStore):
    """Keeps notifications in a dict; callers only ever see copies."""

    def __init__(self):
        self._records: dict[str, Notification] = {}

    def _load(self) -> dict[str, Notification]:
        return copy.deepcopy(self._records)

    def _save(self, records: dict[str, Notification]) -> None:
        self._records = copy.deepcopy(records)


class JsonFileStore(NotificationStore):
    """Keeps all notifications as one JSON array in a file."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def _load(self) -> dict[str, Notification]:
        if not self.path.exists():
            return {}
        try:
            entries = json.loads(self.path.read_text(encoding="utf-8") or "[]")
            records = [Notification.from_dict(entry) for entry in entries]
        except (json.JSONDecodeError, TypeError, ValueError) as e:
            raise StoreError(f"Unreadable notification store {self.path}: {e}") from e
        return {n.id: n for n in records}

    def _save(self, records: dict[str, Notification]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        entries = [n.to_dict() for n in records.values()]
        self.path.write_text(json.dumps(entries, indent=2), encoding="utf-8")
