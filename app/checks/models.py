"""
SiteCheck Checks - Records

Schedules, check templates and tasks as typed records. Rows from the store
and JSON payloads from the API are turned into these before the engine sees
them, so the engine never deals with loosely shaped dicts.
"""
import datetime
import json
from dataclasses import dataclass, field, asdict, replace
from enum import Enum
from typing import Optional, List, Dict, Any

from .dates import to_day, to_instant, format_day


# ============================================================================
# Enumerations
# ============================================================================

class Frequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUAL = "annual"

    @classmethod
    def parse(cls, value) -> Optional["Frequency"]:
        """Return the member for ``value`` or None when it is not a known frequency."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


class AssignmentStrategy(str, Enum):
    ROTATE = "rotate"   # one pool asset per occurrence, round-robin
    ALL = "all"         # every pool asset at once

    @classmethod
    def parse(cls, value) -> Optional["AssignmentStrategy"]:
        if value is None or value == "":
            return None
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    SKIPPED = "skipped"


def _json_list(value) -> List[str]:
    if value is None or value == "":
        return []
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return [value]
    return [str(v) for v in value]


def _optional_day(value) -> Optional[datetime.date]:
    if value is None or value == "":
        return None
    return to_day(value)


def _optional_instant(value) -> Optional[datetime.datetime]:
    if value is None or value == "":
        return None
    return to_instant(value)


# ============================================================================
# Data Classes
# ============================================================================

@dataclass
class Schedule:
    id: Optional[str] = None
    org_id: Optional[str] = None
    site_id: Optional[str] = None
    name: str = ""
    asset_ids: List[str] = field(default_factory=list)
    asset_id: Optional[str] = None
    template_id: Optional[str] = None
    frequency: str = Frequency.MONTHLY.value
    start_date: Optional[datetime.date] = None
    active: bool = True
    rotation_cursor: int = 0

    @property
    def pool_size(self) -> int:
        return len(self.asset_ids)

    @property
    def parsed_frequency(self) -> Optional[Frequency]:
        return Frequency.parse(self.frequency)

    def with_cursor(self, rotation_cursor: int) -> "Schedule":
        return replace(self, rotation_cursor=rotation_cursor)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["start_date"] = format_day(self.start_date)
        return d

    @classmethod
    def from_row(cls, row) -> "Schedule":
        d = dict(row)
        if "asset_ids_json" in d:
            d["asset_ids"] = d.pop("asset_ids_json")
        d["asset_ids"] = _json_list(d.get("asset_ids"))
        d["start_date"] = _optional_day(d.get("start_date"))
        d["active"] = bool(d.get("active", 1))
        cursor = int(d.get("rotation_cursor") or 0)
        # A cursor written against a larger pool is brought back into range.
        d["rotation_cursor"] = cursor % len(d["asset_ids"]) if d["asset_ids"] else 0
        return cls(**{k: v for k, v in d.items() if k in cls.__dataclass_fields__})


@dataclass
class CheckTemplate:
    id: Optional[str] = None
    name: str = ""
    strategy: Optional[AssignmentStrategy] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "strategy": self.strategy.value if self.strategy else None,
        }

    @classmethod
    def from_row(cls, row) -> "CheckTemplate":
        d = dict(row)
        return cls(
            id=d.get("id"),
            name=d.get("name") or "",
            strategy=AssignmentStrategy.parse(d.get("strategy")),
        )


@dataclass
class Task:
    org_id: Optional[str] = None
    site_id: Optional[str] = None
    asset_id: Optional[str] = None
    schedule_id: Optional[str] = None
    template_id: Optional[str] = None
    due_date: Optional[datetime.date] = None
    status: TaskStatus = TaskStatus.PENDING
    assignee_id: Optional[str] = None
    priority: Priority = Priority.LOW
    id: Optional[str] = None
    claimed_by: Optional[str] = None
    claimed_by_name: Optional[str] = None
    claimed_at: Optional[datetime.datetime] = None
    created_at: Optional[str] = None

    @property
    def applies_to_all_assets(self) -> bool:
        return self.asset_id is None

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["due_date"] = format_day(self.due_date)
        d["status"] = self.status.value
        d["priority"] = self.priority.value
        d["claimed_at"] = self.claimed_at.isoformat(sep=" ") if self.claimed_at else None
        return d

    @classmethod
    def from_row(cls, row) -> "Task":
        d = dict(row)
        d["due_date"] = _optional_day(d.get("due_date"))
        d["claimed_at"] = _optional_instant(d.get("claimed_at"))
        d["status"] = TaskStatus(d.get("status") or TaskStatus.PENDING.value)
        d["priority"] = Priority(d.get("priority") or Priority.LOW.value)
        return cls(**{k: v for k, v in d.items() if k in cls.__dataclass_fields__})
