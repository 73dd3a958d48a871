"""Domain models for inspections and their step ledger."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from site_survey.domain.vision import Verdict


class InspectionStatus(str, Enum):
    """Inspection lifecycle, in order."""

    IN_PROGRESS = "IN_PROGRESS"
    UNDER_REVIEW = "UNDER_REVIEW"
    COMPLETED = "COMPLETED"


STATUS_ORDER = (
    InspectionStatus.IN_PROGRESS,
    InspectionStatus.UNDER_REVIEW,
    InspectionStatus.COMPLETED,
)


class RecordOutcome(str, Enum):
    """How a step ledger entry came about."""

    CAPTURED = "captured"
    SKIPPED = "skipped"
    MANUALLY_ENTERED = "manually-entered"


@dataclass(frozen=True)
class StepRecord:
    """Latest recorded outcome for one step."""

    step_id: float
    outcome: RecordOutcome
    verdict: Verdict
    artifact_key: str | None = None
    recorded_at: datetime | None = None


@dataclass(frozen=True)
class Inspection:
    """Per-session inspection aggregate."""

    id: str
    status: InspectionStatus
    current_step_id: float
    created_at: datetime
    updated_at: datetime
    completed_at: datetime | None = None
    step_ledger: dict[float, StepRecord] = field(default_factory=dict)

    @property
    def is_completed(self) -> bool:
        """Return true once the inspection is closed for writes."""
        return self.status == InspectionStatus.COMPLETED
