"""Supabase-backed inspection repository."""

from dataclasses import dataclass
from datetime import UTC, datetime

from supabase import Client

from site_survey.domain.errors import PersistenceWriteError
from site_survey.domain.inspections import (
    Inspection,
    InspectionStatus,
    RecordOutcome,
    StepRecord,
)
from site_survey.domain.vision import Verdict
from site_survey.services.inspections import InspectionRepository

_INSPECTION_COLUMNS = (
    "id, status, current_step_id, created_at, updated_at, completed_at, "
    "inspection_steps(step_id, outcome, artifact_key, verdict, recorded_at)"
)


@dataclass
class SupabaseInspectionRepository(InspectionRepository):
    """Supabase implementation over inspections and inspection_steps."""

    client: Client

    def get_inspection(self, inspection_id: str) -> Inspection | None:
        """Return an inspection with its ledger, if present."""
        response = (
            self.client.table("inspections")
            .select(_INSPECTION_COLUMNS)
            .eq("id", inspection_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _inspection_from_row(response.data[0])

    def create_inspection(
        self, inspection_id: str, status: InspectionStatus, current_step_id: float
    ) -> Inspection:
        """Create an inspection row and return it."""
        response = (
            self.client.table("inspections")
            .insert(
                {
                    "id": inspection_id,
                    "status": status.value,
                    "current_step_id": current_step_id,
                }
            )
            .execute()
        )
        if not response.data:
            raise PersistenceWriteError("Failed to create inspection")
        return _inspection_from_row(response.data[0])

    def upsert_step_record(self, inspection_id: str, record: StepRecord) -> None:
        """Insert or replace the ledger row for a step."""
        recorded_at = record.recorded_at or datetime.now(tz=UTC)
        response = (
            self.client.table("inspection_steps")
            .upsert(
                {
                    "inspection_id": inspection_id,
                    "step_id": record.step_id,
                    "outcome": record.outcome.value,
                    "artifact_key": record.artifact_key,
                    "verdict": record.verdict.model_dump(),
                    "recorded_at": recorded_at.isoformat(),
                },
                on_conflict="inspection_id,step_id",
            )
            .execute()
        )
        if not response.data:
            raise PersistenceWriteError("Failed to save step record")
        self._touch(inspection_id)

    def update_current_step(self, inspection_id: str, step_id: float) -> None:
        """Update the acknowledged step position."""
        response = (
            self.client.table("inspections")
            .update(
                {
                    "current_step_id": step_id,
                    "updated_at": datetime.now(tz=UTC).isoformat(),
                }
            )
            .eq("id", inspection_id)
            .execute()
        )
        if not response.data:
            raise PersistenceWriteError("Failed to update current step")

    def update_status(
        self,
        inspection_id: str,
        status: InspectionStatus,
        completed_at: datetime | None,
    ) -> None:
        """Update the lifecycle status."""
        payload: dict[str, object] = {
            "status": status.value,
            "updated_at": datetime.now(tz=UTC).isoformat(),
        }
        if completed_at:
            payload["completed_at"] = completed_at.isoformat()
        response = (
            self.client.table("inspections")
            .update(payload)
            .eq("id", inspection_id)
            .execute()
        )
        if not response.data:
            raise PersistenceWriteError("Failed to update inspection status")

    def list_inspections(
        self, status: InspectionStatus | None, limit: int
    ) -> list[Inspection]:
        """Return recent inspections, newest first."""
        query = self.client.table("inspections").select(_INSPECTION_COLUMNS)
        if status:
            query = query.eq("status", status.value)
        response = query.order("created_at", desc=True).limit(limit).execute()
        return [_inspection_from_row(row) for row in response.data or []]

    def _touch(self, inspection_id: str) -> None:
        self.client.table("inspections").update(
            {"updated_at": datetime.now(tz=UTC).isoformat()}
        ).eq("id", inspection_id).execute()


def _inspection_from_row(row: dict[str, object]) -> Inspection:
    ledger: dict[float, StepRecord] = {}
    for step_row in row.get("inspection_steps") or []:
        record = _record_from_row(step_row)
        ledger[record.step_id] = record
    completed_at = row.get("completed_at")
    return Inspection(
        id=str(row["id"]),
        status=InspectionStatus(row["status"]),
        current_step_id=float(row["current_step_id"]),
        created_at=_parse_timestamp(row["created_at"]),
        updated_at=_parse_timestamp(row.get("updated_at") or row["created_at"]),
        completed_at=_parse_timestamp(completed_at) if completed_at else None,
        step_ledger=ledger,
    )


def _record_from_row(row: dict[str, object]) -> StepRecord:
    recorded_at = row.get("recorded_at")
    return StepRecord(
        step_id=float(row["step_id"]),
        outcome=RecordOutcome(row["outcome"]),
        verdict=Verdict.model_validate(row["verdict"]),
        artifact_key=row.get("artifact_key"),
        recorded_at=_parse_timestamp(recorded_at) if recorded_at else None,
    )


def _parse_timestamp(value: object) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
