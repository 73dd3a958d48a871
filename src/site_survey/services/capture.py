"""Capture, validate and persist a single step submission."""

import asyncio
import logging
from dataclasses import dataclass

from site_survey.domain.errors import InvalidSubmissionError, ValidationServiceError
from site_survey.domain.inspections import RecordOutcome, StepRecord
from site_survey.domain.steps import (
    CaptureStep,
    GuideStep,
    ManualEntryStep,
    StepCatalog,
    format_step_id,
)
from site_survey.domain.vision import Verdict
from site_survey.services.artifacts import (
    ArtifactStore,
    artifact_key,
    detect_content_type,
)
from site_survey.services.inspections import InspectionService
from site_survey.services.vision import VisionService

logger = logging.getLogger(__name__)

SKIPPED_MESSAGE = "skipped by user"
MANUAL_ENTRY_MESSAGE = "Data entry confirmed by user"


@dataclass(frozen=True)
class CompletedOutcome:
    """The step produced a verdict and a ledger record."""

    step_id: float
    verdict: Verdict
    record: StepRecord
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class SkippedOutcome:
    """The user skipped the step."""

    step_id: float
    record: StepRecord
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class FailedOutcome:
    """The validation call failed; nothing was stored."""

    step_id: float
    reason: str


@dataclass(frozen=True)
class UnchangedOutcome:
    """The inspection is completed; its ledger entry was left as it was."""

    step_id: float
    record: StepRecord | None = None


StepOutcome = CompletedOutcome | SkippedOutcome | FailedOutcome | UnchangedOutcome


@dataclass
class CapturePipeline:
    """Turns one step submission into a stored artifact and ledger entry."""

    catalog: StepCatalog
    vision_service: VisionService
    artifact_store: ArtifactStore
    inspection_service: InspectionService
    validation_timeout_seconds: float = 60.0

    async def submit_capture(  # noqa: PLR0913
        self,
        inspection_id: str,
        step_id: float,
        image_bytes: bytes | None = None,
        *,
        skip: bool = False,
        entered_value: str | None = None,
    ) -> StepOutcome:
        """Process a capture, skip or manual entry for one step.

        Collaborator failures never escape: a failed validation call becomes
        a FailedOutcome and failed writes become warnings on the outcome.
        Submissions that do not fit the step raise InvalidSubmissionError.
        A completed inspection is left untouched and yields UnchangedOutcome.
        """
        step = self.catalog.require(step_id)
        if isinstance(step, GuideStep):
            raise InvalidSubmissionError("Guide steps do not accept submissions")

        try:
            inspection = self.inspection_service.get(inspection_id)
        except Exception:
            logger.exception(
                "Failed to load inspection", extra={"inspection_id": inspection_id}
            )
            inspection = None
        previous = inspection.step_ledger.get(step.id) if inspection else None
        if inspection is not None and inspection.is_completed:
            logger.info(
                "Ignoring submission on completed inspection",
                extra={
                    "inspection_id": inspection_id,
                    "step_id": format_step_id(step.id),
                },
            )
            return UnchangedOutcome(step_id=step.id, record=previous)

        if skip:
            return self._skip(inspection_id, step.id)
        if isinstance(step, ManualEntryStep):
            return self._manual_entry(inspection_id, step, entered_value)
        previous_key = previous.artifact_key if previous else None
        return await self._capture(inspection_id, step, image_bytes, previous_key)

    async def suggest_entry(self, inspection_id: str, step_id: float) -> Verdict | None:
        """Re-read the related photo of a manual-entry step.

        Returns None when there is nothing to read or the read fails, in which
        case the caller asks the user for the value directly.
        """
        step = self.catalog.require(step_id)
        if not isinstance(step, ManualEntryStep):
            raise InvalidSubmissionError("Only manual-entry steps have suggestions")

        log_extra = {
            "inspection_id": inspection_id,
            "step_id": format_step_id(step.id),
        }
        key = self.inspection_service.related_artifact_key(
            inspection_id, step.related_step_id
        )
        if key is None:
            logger.info("No related photo for manual entry", extra=log_extra)
            return None
        try:
            image_bytes = self.artifact_store.get(key)
            verdict = await asyncio.wait_for(
                self.vision_service.validate(
                    image_bytes,
                    step.prompt_config.prompt,
                    step.prompt_config.structured_fields,
                    extraction=True,
                ),
                timeout=self.validation_timeout_seconds,
            )
        except Exception:
            logger.exception("Failed to read related photo", extra=log_extra)
            return None
        if verdict.extracted_value:
            value = step.normalize_value(verdict.extracted_value)
            return verdict.model_copy(update={"extracted_value": value})
        return verdict

    def _skip(self, inspection_id: str, step_id: float) -> SkippedOutcome:
        record = StepRecord(
            step_id=step_id,
            outcome=RecordOutcome.SKIPPED,
            verdict=Verdict(is_valid=False, confidence=0.0, message=SKIPPED_MESSAGE),
        )
        warnings = self._write_record(inspection_id, record)
        return SkippedOutcome(step_id=step_id, record=record, warnings=warnings)

    def _manual_entry(
        self, inspection_id: str, step: ManualEntryStep, entered_value: str | None
    ) -> CompletedOutcome:
        if entered_value is None:
            raise InvalidSubmissionError("A value is required for this step")
        value = step.normalize_value(entered_value)
        if not value:
            raise InvalidSubmissionError("A value is required for this step")
        if step.rule:
            problem = step.rule.check(value)
            if problem:
                raise InvalidSubmissionError(problem)

        verdict = Verdict(
            is_valid=True,
            confidence=1.0,
            message=MANUAL_ENTRY_MESSAGE,
            extracted_value=value,
        )
        record = StepRecord(
            step_id=step.id,
            outcome=RecordOutcome.MANUALLY_ENTERED,
            verdict=verdict,
        )
        warnings = self._write_record(inspection_id, record)
        return CompletedOutcome(
            step_id=step.id, verdict=verdict, record=record, warnings=warnings
        )

    async def _capture(
        self,
        inspection_id: str,
        step: CaptureStep,
        image_bytes: bytes | None,
        previous_key: str | None,
    ) -> StepOutcome:
        if not image_bytes:
            raise InvalidSubmissionError("An image is required for this step")
        log_extra = {
            "inspection_id": inspection_id,
            "step_id": format_step_id(step.id),
        }

        try:
            verdict = await asyncio.wait_for(
                self.vision_service.validate(
                    image_bytes,
                    step.prompt_config.prompt,
                    step.prompt_config.structured_fields,
                ),
                timeout=self.validation_timeout_seconds,
            )
        except TimeoutError:
            logger.warning("Vision validation timed out", extra=log_extra)
            return FailedOutcome(
                step_id=step.id, reason="Photo analysis timed out. Please try again."
            )
        except ValidationServiceError as exc:
            logger.warning(
                "Vision validation failed", extra={**log_extra, "error": str(exc)}
            )
            return FailedOutcome(
                step_id=step.id, reason="AI analysis failed. Please try again."
            )

        # Stored regardless of the verdict.
        content_type = detect_content_type(image_bytes)
        key = artifact_key(inspection_id, step.id, content_type)
        warnings: list[str] = []
        stored = True
        try:
            self.artifact_store.put(key, image_bytes, content_type)
        except Exception:
            logger.exception("Failed to store photo", extra={**log_extra, "key": key})
            warnings.append("The photo could not be saved; it will be retried.")
            stored = False

        record = StepRecord(
            step_id=step.id,
            outcome=RecordOutcome.CAPTURED,
            verdict=verdict,
            artifact_key=key,
        )
        record_warnings = self._write_record(inspection_id, record)
        warnings.extend(record_warnings)
        # A retake in another format lands under a new key.
        if stored and not record_warnings and previous_key not in (None, key):
            self._discard_artifact(previous_key, log_extra)
        logger.info(
            "Step validated",
            extra={
                **log_extra,
                "is_valid": verdict.is_valid,
                "confidence": verdict.confidence,
            },
        )
        return CompletedOutcome(
            step_id=step.id, verdict=verdict, record=record, warnings=tuple(warnings)
        )

    def _discard_artifact(self, key: str, log_extra: dict[str, str]) -> None:
        try:
            self.artifact_store.delete(key)
        except Exception:
            logger.exception(
                "Failed to remove replaced photo", extra={**log_extra, "key": key}
            )

    def _write_record(self, inspection_id: str, record: StepRecord) -> tuple[str, ...]:
        try:
            self.inspection_service.upsert_step(inspection_id, record)
        except Exception:
            logger.exception(
                "Failed to update step ledger",
                extra={
                    "inspection_id": inspection_id,
                    "step_id": format_step_id(record.step_id),
                },
            )
            return ("The step result could not be saved; it will be retried.",)
        return ()
