"""
SiteCheck Checks - Exceptions

Every scheduling failure inherits from CheckSchedulingError so a batch caller
can isolate one schedule and carry on with the rest.
"""
from typing import Optional, Dict


class CheckSchedulingError(Exception):
    """Base exception for check scheduling errors."""

    def __init__(
        self,
        message: str,
        *,
        schedule_id: Optional[str] = None,
        field: Optional[str] = None,
        details: Optional[Dict] = None,
    ):
        self.schedule_id = schedule_id
        self.field = field
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict:
        return {
            "schedule_id": self.schedule_id,
            "field": self.field,
            "error": str(self),
        }


class ScheduleConfigError(CheckSchedulingError):
    """A schedule cannot generate tasks: bad frequency or start date."""
    pass


class ScheduleNotFoundError(CheckSchedulingError):
    """No schedule with the requested id."""
    pass


class TaskClaimError(CheckSchedulingError):
    """A task cannot be claimed or released in its current state."""

    def __init__(self, message: str, *, task_id: Optional[str] = None, **kwargs):
        self.task_id = task_id
        super().__init__(message, **kwargs)
