import itertools
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass
class Notification:
    id: int
    title: str
    description: str
    variant: str = "default"
    created_at: datetime = field(default_factory=datetime.utcnow)


class NotificationCenter:
    """Dismissible user-facing messages (the toast channel)."""

    def __init__(self, limit: int = 20) -> None:
        self.limit = limit
        self._items: list[Notification] = []
        self._ids = itertools.count(1)

    def notify(
        self, title: str, description: str = "", variant: str = "default"
    ) -> Notification:
        item = Notification(
            id=next(self._ids), title=title, description=description, variant=variant
        )
        self._items.append(item)
        if len(self._items) > self.limit:
            self._items = self._items[-self.limit :]
        return item

    def warning(self, title: str, description: str = "") -> Notification:
        return self.notify(title, description, variant="warning")

    def error(self, title: str, description: str = "") -> Notification:
        return self.notify(title, description, variant="destructive")

    def dismiss(self, notification_id: int) -> bool:
        before = len(self._items)
        self._items = [n for n in self._items if n.id != notification_id]
        return len(self._items) != before

    def pending(self) -> list[Notification]:
        return list(self._items)

    def latest(self) -> Optional[Notification]:
        return self._items[-1] if self._items else None
