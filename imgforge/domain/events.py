import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Union

from .value_objects import JobId, ProcessingStatus


@dataclass(frozen=True)
class JobStatusChanged:
    """Raised by ImageJob whenever its status actually changes."""

    job_id: JobId
    previous_status: ProcessingStatus
    new_status: ProcessingStatus
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    event_type = "JobStatusChanged"

    @property
    def is_terminal_event(self) -> bool:
        return self.new_status.is_terminal

    @property
    def is_successful_completion(self) -> bool:
        return self.new_status == ProcessingStatus.COMPLETED

    @property
    def is_failure(self) -> bool:
        return self.new_status == ProcessingStatus.FAILED

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "event_type": self.event_type,
            "job_id": str(self.job_id),
            "previous_status": self.previous_status.value,
            "new_status": self.new_status.value,
            "occurred_at": self.occurred_at.isoformat(),
        }


# Closed set of events the bus accepts.
DomainEvent = Union[JobStatusChanged]
EVENT_TYPES: tuple[type, ...] = (JobStatusChanged,)
