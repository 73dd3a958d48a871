"""Read-side assembly of inspection reviews."""

import logging
from dataclasses import dataclass
from datetime import datetime

from site_survey.domain.inspections import (
    Inspection,
    InspectionStatus,
    RecordOutcome,
)
from site_survey.domain.steps import (
    GuideStep,
    StepCatalog,
    StepDefinition,
    format_step_id,
)
from site_survey.services.artifacts import ArtifactStore
from site_survey.services.inspections import InspectionService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReviewEntry:
    """One step of an inspection as a reviewer sees it."""

    step_id: float
    title: str
    kind: str
    completed: bool
    skipped: bool
    outcome: RecordOutcome | None = None
    is_valid: bool | None = None
    confidence: float | None = None
    message: str | None = None
    extracted_value: str | None = None
    structured_fields: dict[str, str] | None = None
    artifact_key: str | None = None
    artifact_url: str | None = None
    url_expires_in: int | None = None


@dataclass(frozen=True)
class InspectionReview:
    """Review projection of a whole inspection."""

    inspection_id: str
    status: InspectionStatus
    created_at: datetime
    updated_at: datetime
    completed_at: datetime | None
    entries: list[ReviewEntry]

    @property
    def completed_count(self) -> int:
        """Number of steps that have a ledger entry."""
        return sum(1 for entry in self.entries if entry.completed)


@dataclass
class ReviewService:
    """Joins the step catalog with an inspection ledger for review."""

    catalog: StepCatalog
    inspection_service: InspectionService
    artifact_store: ArtifactStore
    url_ttl_seconds: int = 3600

    def open_review(self, inspection_id: str) -> InspectionReview:
        """Enter review, moving an in-progress inspection to UNDER_REVIEW."""
        inspection = self.inspection_service.find_or_create(inspection_id)
        if inspection.status == InspectionStatus.IN_PROGRESS:
            inspection = self.inspection_service.transition_status(
                inspection_id, InspectionStatus.UNDER_REVIEW
            )
        return self.build_review(inspection)

    def build_review(self, inspection: Inspection) -> InspectionReview:
        """Build the review without writing anything."""
        entries = [
            self._entry(inspection, step)
            for step in self.catalog
            if not isinstance(step, GuideStep)
        ]
        return InspectionReview(
            inspection_id=inspection.id,
            status=inspection.status,
            created_at=inspection.created_at,
            updated_at=inspection.updated_at,
            completed_at=inspection.completed_at,
            entries=entries,
        )

    def list_reviews(
        self, status: InspectionStatus | None = None, limit: int = 50
    ) -> list[InspectionReview]:
        """Return reviews of recent inspections for reviewers."""
        inspections = self.inspection_service.list_inspections(status, limit)
        return [self.build_review(inspection) for inspection in inspections]

    def _entry(self, inspection: Inspection, step: StepDefinition) -> ReviewEntry:
        record = inspection.step_ledger.get(step.id)
        if record is None:
            return ReviewEntry(
                step_id=step.id,
                title=step.title,
                kind=step.kind.value,
                completed=False,
                skipped=False,
            )
        verdict = record.verdict
        fields = {
            name: value
            for name, value in verdict.structured_fields.items()
            if value and value.strip()
        }
        url = self._retrieval_url(inspection.id, record.artifact_key)
        extracted = verdict.extracted_value
        return ReviewEntry(
            step_id=step.id,
            title=step.title,
            kind=step.kind.value,
            completed=True,
            skipped=record.outcome == RecordOutcome.SKIPPED,
            outcome=record.outcome,
            is_valid=verdict.is_valid,
            confidence=verdict.confidence,
            message=verdict.message,
            extracted_value=extracted if extracted and extracted.strip() else None,
            structured_fields=fields or None,
            artifact_key=record.artifact_key,
            artifact_url=url,
            url_expires_in=self.url_ttl_seconds if url else None,
        )

    def _retrieval_url(self, inspection_id: str, key: str | None) -> str | None:
        if not key:
            return None
        try:
            return self.artifact_store.get_retrieval_ref(key, self.url_ttl_seconds)
        except Exception:
            logger.exception(
                "Failed to create photo URL",
                extra={"inspection_id": inspection_id, "key": key},
            )
            return None


def serialize_review(review: InspectionReview) -> dict[str, object]:
    """Convert a review to a JSON-ready payload."""
    return {
        "inspection_id": review.inspection_id,
        "status": review.status.value,
        "created_at": review.created_at.isoformat(),
        "updated_at": review.updated_at.isoformat(),
        "completed_at": (
            review.completed_at.isoformat() if review.completed_at else None
        ),
        "completed_steps": review.completed_count,
        "steps": [_serialize_entry(entry) for entry in review.entries],
    }


def _serialize_entry(entry: ReviewEntry) -> dict[str, object]:
    return {
        "step_id": format_step_id(entry.step_id),
        "title": entry.title,
        "kind": entry.kind,
        "completed": entry.completed,
        "skipped": entry.skipped,
        "outcome": entry.outcome.value if entry.outcome else None,
        "is_valid": entry.is_valid,
        "confidence": entry.confidence,
        "message": entry.message,
        "extracted_value": entry.extracted_value,
        "structured_fields": entry.structured_fields,
        "artifact_key": entry.artifact_key,
        "artifact_url": entry.artifact_url,
        "url_expires_in": entry.url_expires_in,
    }
