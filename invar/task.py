from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
import uuid


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


PRIORITY_ORDER: tuple[Priority, ...] = (Priority.HIGH, Priority.MEDIUM, Priority.LOW)

_NEXT_PRIORITY = {
    Priority.HIGH: Priority.MEDIUM,
    Priority.MEDIUM: Priority.LOW,
    Priority.LOW: Priority.HIGH,
}


def _now() -> datetime:
    return datetime.now().astimezone()


def _first_line(text: str) -> str:
    for line in text.splitlines():
        return line
    return ""


@dataclass
class Task:
    id: str
    content: str
    priority: Priority = Priority.MEDIUM
    deadline: datetime | None = None
    tags: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime | None = None
    completed_at: datetime | None = None
    archived: bool = False

    def __post_init__(self) -> None:
        if self.updated_at is None or self.updated_at < self.created_at:
            self.updated_at = self.created_at

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None

    @property
    def title(self) -> str:
        return _first_line(self.content)

    def _touch(self) -> datetime:
        # Wall-clock steps backwards must not break updated_at >= created_at.
        now = max(_now(), self.created_at)
        self.updated_at = now
        return now

    def complete(self) -> None:
        self.completed_at = self._touch()

    def uncomplete(self) -> None:
        self._touch()
        self.completed_at = None

    def archive(self) -> None:
        self._touch()
        self.archived = True

    def unarchive(self) -> None:
        self._touch()
        self.archived = False

    def set_priority(self, priority: Priority) -> None:
        self._touch()
        self.priority = Priority(priority)

    def cycle_priority(self) -> None:
        self._touch()
        self.priority = _NEXT_PRIORITY[self.priority]

    def set_deadline(self, deadline: datetime | None) -> None:
        self._touch()
        self.deadline = deadline

    def set_content(self, content: str) -> None:
        self._touch()
        self.content = content

    def is_overdue(self, now: datetime | None = None) -> bool:
        if self.deadline is None or self.completed_at is not None:
            return False
        return self.deadline < (now or _now())

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "content": self.content,
            "priority": self.priority.value,
        }
        if self.deadline is not None:
            data["deadline"] = self.deadline.isoformat()
        data["tags"] = list(self.tags)
        data["created_at"] = self.created_at.isoformat()
        data["updated_at"] = (self.updated_at or self.created_at).isoformat()
        if self.completed_at is not None:
            data["completed_at"] = self.completed_at.isoformat()
        data["archived"] = self.archived
        return data

    @classmethod
    def from_dict(cls, data: Any) -> Task:
        """Build a task from its persisted mapping.

        Raises ValueError (or KeyError/TypeError) for anything that is not a
        well-formed record; callers map those to a decode failure.
        """

        if not isinstance(data, dict):
            raise ValueError("task record is not an object")

        task_id = data["id"]
        if not isinstance(task_id, str) or not task_id.strip():
            raise ValueError("task id is missing")
        content = data.get("content", "")
        if not isinstance(content, str):
            raise ValueError("content is not a string")

        raw_tags = data.get("tags") or []
        if not isinstance(raw_tags, list) or not all(isinstance(tag, str) for tag in raw_tags):
            raise ValueError("tags must be a list of strings")

        archived = data.get("archived", False)
        if not isinstance(archived, bool):
            raise ValueError("archived must be a boolean")

        return cls(
            id=task_id,
            content=content,
            priority=Priority(str(data.get("priority") or Priority.MEDIUM.value).lower()),
            deadline=_parse_timestamp(data.get("deadline")),
            tags=list(raw_tags),
            created_at=_require_timestamp(data, "created_at"),
            updated_at=_parse_timestamp(data.get("updated_at")),
            completed_at=_parse_timestamp(data.get("completed_at")),
            archived=archived,
        )


def _parse_timestamp(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValueError(f"timestamp is not a string: {value!r}")
    parsed = datetime.fromisoformat(value.strip())
    if parsed.tzinfo is None:
        # Hand-edited records without an offset are read as local time.
        parsed = parsed.astimezone()
    return parsed


def _require_timestamp(data: dict[str, Any], key: str) -> datetime:
    parsed = _parse_timestamp(data.get(key))
    if parsed is None:
        raise ValueError(f"{key} is missing")
    return parsed


def generate_task_id() -> str:
    return str(uuid.uuid4())


def new_task(content: str, *, priority: Priority = Priority.MEDIUM, now: datetime | None = None) -> Task:
    stamp = now or _now()
    return Task(
        id=generate_task_id(),
        content=content,
        priority=Priority(priority),
        created_at=stamp,
        updated_at=stamp,
    )
