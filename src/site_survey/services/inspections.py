"""Inspection aggregate and step ledger rules."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol

from site_survey.domain.errors import InspectionNotFoundError, InvalidTransitionError
from site_survey.domain.inspections import (
    STATUS_ORDER,
    Inspection,
    InspectionStatus,
    StepRecord,
)
from site_survey.domain.steps import format_step_id

logger = logging.getLogger(__name__)

INITIAL_STEP_ID = 0.0


class InspectionRepository(Protocol):
    """Persistence interface for inspections and their ledgers."""

    def get_inspection(self, inspection_id: str) -> Inspection | None:
        """Return an inspection with its ledger, if present."""

    def create_inspection(
        self, inspection_id: str, status: InspectionStatus, current_step_id: float
    ) -> Inspection:
        """Create a new inspection and return it."""

    def upsert_step_record(self, inspection_id: str, record: StepRecord) -> None:
        """Insert or replace the ledger entry for record.step_id."""

    def update_current_step(self, inspection_id: str, step_id: float) -> None:
        """Update the acknowledged step position."""

    def update_status(
        self,
        inspection_id: str,
        status: InspectionStatus,
        completed_at: datetime | None,
    ) -> None:
        """Update the lifecycle status."""

    def list_inspections(
        self, status: InspectionStatus | None, limit: int
    ) -> list[Inspection]:
        """Return the most recent inspections, optionally filtered by status."""


@dataclass
class InspectionService:
    """Owns the inspection lifecycle and merge-on-write ledger semantics."""

    repository: InspectionRepository

    def get(self, inspection_id: str) -> Inspection | None:
        """Return the inspection, if it exists."""
        return self.repository.get_inspection(inspection_id)

    def find_or_create(self, inspection_id: str) -> Inspection:
        """Return the inspection, creating a fresh one on first access."""
        existing = self.repository.get_inspection(inspection_id)
        if existing:
            return existing
        logger.info("Creating inspection", extra={"inspection_id": inspection_id})
        return self.repository.create_inspection(
            inspection_id,
            status=InspectionStatus.IN_PROGRESS,
            current_step_id=INITIAL_STEP_ID,
        )

    def upsert_step(self, inspection_id: str, record: StepRecord) -> bool:
        """Replace the ledger entry for a step.

        Returns False without writing when the inspection is already
        completed; completion is final and repeated submissions stay quiet.
        """
        inspection = self._require(inspection_id)
        if inspection.is_completed:
            logger.info(
                "Ignoring step write on completed inspection",
                extra={
                    "inspection_id": inspection_id,
                    "step_id": format_step_id(record.step_id),
                },
            )
            return False
        stamped = StepRecord(
            step_id=record.step_id,
            outcome=record.outcome,
            verdict=record.verdict,
            artifact_key=record.artifact_key,
            recorded_at=record.recorded_at or datetime.now(tz=UTC),
        )
        self.repository.upsert_step_record(inspection_id, stamped)
        return True

    def advance_step(self, inspection_id: str, step_id: float) -> None:
        """Record the step position the client has reached."""
        self._require(inspection_id)
        self.repository.update_current_step(inspection_id, step_id)

    def transition_status(
        self, inspection_id: str, target: InspectionStatus
    ) -> Inspection:
        """Move the inspection forward along its lifecycle."""
        inspection = self._require(inspection_id)
        if inspection.status == target:
            return inspection
        if STATUS_ORDER.index(target) < STATUS_ORDER.index(inspection.status):
            raise InvalidTransitionError(
                f"Cannot move inspection from {inspection.status.value} "
                f"to {target.value}"
            )
        completed_at = (
            datetime.now(tz=UTC) if target == InspectionStatus.COMPLETED else None
        )
        self.repository.update_status(inspection_id, target, completed_at)
        logger.info(
            "Inspection status changed",
            extra={"inspection_id": inspection_id, "status": target.value},
        )
        return self._require(inspection_id)

    def complete(self, inspection_id: str) -> Inspection:
        """Close the inspection; repeated calls return the completed state."""
        return self.transition_status(inspection_id, InspectionStatus.COMPLETED)

    def related_artifact_key(
        self, inspection_id: str, related_step_id: float
    ) -> str | None:
        """Return the stored photo key of an earlier step, if any."""
        inspection = self.repository.get_inspection(inspection_id)
        if inspection is None:
            return None
        record = inspection.step_ledger.get(related_step_id)
        if record is None:
            return None
        return record.artifact_key

    def list_inspections(
        self, status: InspectionStatus | None = None, limit: int = 50
    ) -> list[Inspection]:
        """Return recent inspections for reviewers."""
        return self.repository.list_inspections(status, limit)

    def _require(self, inspection_id: str) -> Inspection:
        inspection = self.repository.get_inspection(inspection_id)
        if inspection is None:
            raise InspectionNotFoundError(f"Inspection {inspection_id} not found")
        return inspection
