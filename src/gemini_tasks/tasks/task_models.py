# src/gemini_tasks/tasks/task_models.py

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import IntEnum
from typing import Any


class Priority(IntEnum):
    """
    Task priority as stored in the `priority` column (1..3).

    Notes:
    - the column is nullable; NULL and unknown values read as LOW
    """

    LOW = 1
    MEDIUM = 2
    HIGH = 3

    @classmethod
    def from_db(cls, raw: Any) -> Priority:
        if raw is None:
            return cls.LOW
        try:
            return cls(int(raw))
        except (TypeError, ValueError):
            return cls.LOW

    @classmethod
    def parse(cls, raw: str) -> Priority:
        """Parse user input: 1|2|3, low|medium|high or l|m|h."""
        s = (raw or "").strip().lower()
        aliases = {
            "1": cls.LOW,
            "l": cls.LOW,
            "low": cls.LOW,
            "2": cls.MEDIUM,
            "m": cls.MEDIUM,
            "med": cls.MEDIUM,
            "medium": cls.MEDIUM,
            "3": cls.HIGH,
            "h": cls.HIGH,
            "high": cls.HIGH,
        }
        if s not in aliases:
            raise ValueError(f"Unknown priority: {raw!r} (use low, medium or high)")
        return aliases[s]

    @property
    def label(self) -> str:
        return self.name.capitalize()

    @property
    def icon(self) -> str:
        return _PRIORITY_ICONS[self]


_PRIORITY_ICONS = {
    Priority.LOW: "\N{SEEDLING}",
    Priority.MEDIUM: "\N{HIGH VOLTAGE SIGN}",
    Priority.HIGH: "\N{FIRE}",
}


@dataclass(slots=True)
class Task:
    id: int
    title: str
    is_completed: bool
    priority: Priority
    created_at: datetime

    @property
    def is_provisional(self) -> bool:
        # Server ids come from a positive sequence; local ones are negative.
        return self.id < 0


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(raw: Any) -> datetime:
    """Parse a PostgREST timestamp; naive values are taken as UTC."""
    if isinstance(raw, datetime):
        ts = raw
    elif isinstance(raw, str) and raw.strip():
        ts = datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
    else:
        return utcnow()
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def task_from_row(row: dict[str, Any]) -> Task:
    return Task(
        id=int(row["id"]),
        title=str(row.get("title") or ""),
        is_completed=bool(row.get("is_completed") or False),
        priority=Priority.from_db(row.get("priority")),
        created_at=parse_timestamp(row.get("created_at")),
    )


def sort_key(task: Task) -> tuple[int, float]:
    return (-int(task.priority), -task.created_at.timestamp())


def sort_tasks(tasks: Iterable[Task]) -> list[Task]:
    """Priority descending, then newest first. Ties keep their relative order."""
    return sorted(tasks, key=sort_key)
