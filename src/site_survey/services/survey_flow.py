"""Per-session driver that applies the retry and override policy."""

import logging
from dataclasses import dataclass, field

from site_survey.domain.errors import InvalidSubmissionError
from site_survey.domain.inspections import Inspection
from site_survey.domain.steps import StepDefinition, format_step_id
from site_survey.domain.vision import Verdict
from site_survey.services.capture import (
    CapturePipeline,
    CompletedOutcome,
    FailedOutcome,
    StepOutcome,
)
from site_survey.services.inspections import InspectionService
from site_survey.services.sequencer import INACTIVE, RetakeContext, StepSequencer

logger = logging.getLogger(__name__)

RETAKE_OVERRIDE_THRESHOLD = 2


@dataclass
class SurveyFlow:
    """Client-side state for one inspection walk-through.

    The flow decides when to move on: valid captures advance, invalid ones
    stay on the step and count towards the "use anyway" override, and failed
    calls stay without counting.
    """

    inspection_id: str
    sequencer: StepSequencer
    pipeline: CapturePipeline
    inspection_service: InspectionService
    current_step_id: float = 0.0
    retake: RetakeContext = INACTIVE
    retry_counts: dict[float, int] = field(default_factory=dict)

    def resume(self) -> Inspection:
        """Load or create the inspection and restore its position."""
        inspection = self.inspection_service.find_or_create(self.inspection_id)
        self.current_step_id = inspection.current_step_id
        return inspection

    @property
    def current_step(self) -> StepDefinition | None:
        """Catalog step at the current position, if it is not synthetic."""
        return self.sequencer.catalog.get(self.current_step_id)

    @property
    def at_review(self) -> bool:
        """Whether the session sits on the review position."""
        return self.current_step_id == self.sequencer.review_step_id

    def advance(self) -> float:
        """Move to the next position, honouring an active retake."""
        target = self.sequencer.next(self.current_step_id, self.retake)
        self.retake = INACTIVE
        return self._move_to(target)

    def back(self) -> float:
        """Move to the previous position."""
        return self._move_to(self.sequencer.previous(self.current_step_id))

    def edit_step(self, step_id: float) -> float:
        """Jump to a step from the review screen and come back after it."""
        self.sequencer.catalog.require(step_id)
        self.retake = RetakeContext.returning_to(self.sequencer.review_step_id)
        return self._move_to(step_id)

    async def submit_photo(self, image_bytes: bytes) -> StepOutcome:
        """Submit a photo for the current step."""
        step_id = self.current_step_id
        outcome = await self.pipeline.submit_capture(
            self.inspection_id, step_id, image_bytes
        )
        if isinstance(outcome, FailedOutcome):
            return outcome
        if isinstance(outcome, CompletedOutcome) and not outcome.verdict.is_valid:
            self.retry_counts[step_id] = self.retry_counts.get(step_id, 0) + 1
            return outcome
        self.retry_counts.pop(step_id, None)
        self.advance()
        return outcome

    @property
    def can_use_anyway(self) -> bool:
        """True once the current step has been rejected often enough."""
        count = self.retry_counts.get(self.current_step_id, 0)
        return count >= RETAKE_OVERRIDE_THRESHOLD

    def use_anyway(self) -> float:
        """Accept the last rejected photo and move on.

        The ledger already holds the rejected verdict, so nothing is written.
        """
        if not self.can_use_anyway:
            raise InvalidSubmissionError("Photo must be retaken before moving on")
        self.retry_counts.pop(self.current_step_id, None)
        return self.advance()

    async def skip(self) -> StepOutcome:
        """Skip the current step when the catalog allows it."""
        step = self.sequencer.catalog.require(self.current_step_id)
        if not step.skippable:
            raise InvalidSubmissionError(
                f"Step {format_step_id(step.id)} cannot be skipped"
            )
        outcome = await self.pipeline.submit_capture(
            self.inspection_id, step.id, skip=True
        )
        self.retry_counts.pop(step.id, None)
        self.advance()
        return outcome

    async def confirm_value(self, value: str) -> StepOutcome:
        """Record a manually confirmed value and move on."""
        outcome = await self.pipeline.submit_capture(
            self.inspection_id, self.current_step_id, entered_value=value
        )
        self.advance()
        return outcome

    async def suggest_value(self) -> Verdict | None:
        """Ask the pipeline to read the value off the related photo."""
        return await self.pipeline.suggest_entry(
            self.inspection_id, self.current_step_id
        )

    def _move_to(self, step_id: float) -> float:
        self.current_step_id = step_id
        try:
            self.inspection_service.advance_step(self.inspection_id, step_id)
        except Exception:
            logger.exception(
                "Failed to save step position",
                extra={
                    "inspection_id": self.inspection_id,
                    "step_id": format_step_id(step_id),
                },
            )
        return step_id
