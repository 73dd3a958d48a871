"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from site_survey.api.reviews import router as reviews_router
from site_survey.app_logging import configure_logging
from site_survey.containers import AppContainer
from site_survey.domain.errors import (
    InspectionNotFoundError,
    InvalidSubmissionError,
    InvalidTransitionError,
    PersistenceWriteError,
    UnknownStepError,
)
from site_survey.domain.inspections import Inspection, StepRecord
from site_survey.domain.steps import (
    CaptureStep,
    GuideStep,
    ManualEntryStep,
    StepDefinition,
    format_step_id,
)
from site_survey.services.capture import (
    CompletedOutcome,
    FailedOutcome,
    StepOutcome,
    UnchangedOutcome,
)
from site_survey.services.review import serialize_review
from site_survey.services.sequencer import StepSequencer


class CurrentStepUpdate(BaseModel):
    """Payload acknowledging the step the client is showing."""

    step_id: float


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(reviews_router)

    @app.exception_handler(InspectionNotFoundError)
    @app.exception_handler(UnknownStepError)
    async def not_found(_: Request, exc: LookupError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(InvalidSubmissionError)
    async def invalid_submission(
        _: Request, exc: InvalidSubmissionError
    ) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(InvalidTransitionError)
    async def invalid_transition(
        _: Request, exc: InvalidTransitionError
    ) -> JSONResponse:
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    @app.exception_handler(PersistenceWriteError)
    async def persistence_failed(
        request: Request, exc: PersistenceWriteError
    ) -> JSONResponse:
        logger.error("Storage write failed", extra={"path": request.url.path})
        state_container: AppContainer = request.app.state.container
        detail = _format_error(
            state_container, exc, "Storage is unavailable. Please try again."
        )
        return JSONResponse(status_code=503, content={"detail": detail})

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/steps")
    async def list_steps(request: Request) -> dict[str, object]:
        """Return the step catalog with its synthetic positions."""
        state_container: AppContainer = request.app.state.container
        sequencer = state_container.sequencer
        return {
            "welcome_step_id": sequencer.welcome_step_id,
            "review_step_id": sequencer.review_step_id,
            "steps": [_serialize_step(step) for step in state_container.catalog],
        }

    @app.get("/inspections/{inspection_id}")
    async def get_inspection(inspection_id: str, request: Request) -> dict[str, object]:
        """Return the inspection, creating it on first access."""
        state_container: AppContainer = request.app.state.container
        inspection = state_container.inspection_service.find_or_create(inspection_id)
        return _serialize_inspection(inspection, state_container.sequencer)

    @app.put("/inspections/{inspection_id}/current-step")
    async def update_current_step(
        inspection_id: str, payload: CurrentStepUpdate, request: Request
    ) -> dict[str, object]:
        """Record the step position the client has reached."""
        state_container: AppContainer = request.app.state.container
        state_container.inspection_service.advance_step(inspection_id, payload.step_id)
        return {"status": "ok", "current_step_id": payload.step_id}

    @app.post("/inspections/{inspection_id}/steps/{step_id}")
    async def submit_step(  # noqa: PLR0913
        inspection_id: str,
        step_id: float,
        request: Request,
        image: UploadFile | None = File(default=None),
        skip: bool = Form(default=False),
        entered_value: str | None = Form(default=None),
    ) -> dict[str, object]:
        """Validate and store one step submission."""
        state_container: AppContainer = request.app.state.container
        image_bytes = None
        if image is not None:
            if image.content_type and not image.content_type.startswith("image/"):
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="File must be an image",
                )
            image_bytes = await image.read()
            if len(image_bytes) > state_container.settings.max_image_bytes:
                raise HTTPException(
                    status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                    detail="Image is too large",
                )
        state_container.inspection_service.find_or_create(inspection_id)
        outcome = await state_container.capture_pipeline.submit_capture(
            inspection_id,
            step_id,
            image_bytes,
            skip=skip,
            entered_value=entered_value,
        )
        if isinstance(outcome, FailedOutcome):
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY, detail=outcome.reason
            )
        return _serialize_outcome(outcome)

    @app.get("/inspections/{inspection_id}/steps/{step_id}/suggestion")
    async def suggest_value(
        inspection_id: str, step_id: float, request: Request
    ) -> dict[str, object]:
        """Read the value for a manual-entry step off its related photo."""
        state_container: AppContainer = request.app.state.container
        verdict = await state_container.capture_pipeline.suggest_entry(
            inspection_id, step_id
        )
        return {"suggestion": verdict.model_dump() if verdict else None}

    @app.post("/inspections/{inspection_id}/review")
    async def open_review(inspection_id: str, request: Request) -> dict[str, object]:
        """Enter the review screen for an inspection."""
        state_container: AppContainer = request.app.state.container
        review = state_container.review_service.open_review(inspection_id)
        return serialize_review(review)

    @app.post("/inspections/{inspection_id}/complete")
    async def complete_inspection(
        inspection_id: str, request: Request
    ) -> dict[str, object]:
        """Close the inspection; repeated calls succeed."""
        state_container: AppContainer = request.app.state.container
        inspection = state_container.inspection_service.complete(inspection_id)
        return _serialize_inspection(inspection, state_container.sequencer)

    return app


def _format_error(state_container: AppContainer, exc: Exception, fallback: str) -> str:
    """Return a user-facing error message with local debug info."""
    if state_container.settings.environment == "local":
        detail = f"{type(exc).__name__}: {exc}".strip()
        if detail:
            return f"{fallback} (debug: {detail})"
    return fallback


def _serialize_step(step: StepDefinition) -> dict[str, object]:
    payload: dict[str, object] = {
        "id": step.id,
        "kind": step.kind.value,
        "title": step.title,
        "description": step.description,
        "instructions": step.instructions,
        "tips": list(step.tips),
        "skippable": step.skippable,
    }
    if isinstance(step, GuideStep):
        payload["button_text"] = step.button_text
        payload["tip"] = step.tip
    elif isinstance(step, CaptureStep):
        payload["structured_fields"] = list(step.prompt_config.structured_fields)
    elif isinstance(step, ManualEntryStep):
        payload["related_step_id"] = step.related_step_id
        payload["data_type"] = step.data_type.value
        payload["placeholder"] = step.placeholder
        if step.rule:
            payload["rule"] = {
                "min": step.rule.min,
                "max": step.rule.max,
                "pattern": step.rule.pattern,
            }
    return payload


def _serialize_record(record: StepRecord) -> dict[str, object]:
    return {
        "step_id": record.step_id,
        "outcome": record.outcome.value,
        "artifact_key": record.artifact_key,
        "verdict": record.verdict.model_dump(),
        "recorded_at": record.recorded_at.isoformat() if record.recorded_at else None,
    }


def _serialize_inspection(
    inspection: Inspection, sequencer: StepSequencer
) -> dict[str, object]:
    progress = sequencer.progress(inspection.current_step_id)
    return {
        "id": inspection.id,
        "status": inspection.status.value,
        "current_step_id": inspection.current_step_id,
        "created_at": inspection.created_at.isoformat(),
        "updated_at": inspection.updated_at.isoformat(),
        "completed_at": (
            inspection.completed_at.isoformat() if inspection.completed_at else None
        ),
        "progress": {
            "current": progress.current,
            "total": progress.total,
            "percentage": progress.percentage,
        },
        "steps": {
            format_step_id(step_id): _serialize_record(record)
            for step_id, record in sorted(inspection.step_ledger.items())
        },
    }


def _serialize_outcome(outcome: StepOutcome) -> dict[str, object]:
    if isinstance(outcome, CompletedOutcome):
        return {
            "status": "completed",
            "step_id": outcome.step_id,
            "verdict": outcome.verdict.model_dump(),
            "artifact_key": outcome.record.artifact_key,
            "warnings": list(outcome.warnings),
        }
    if isinstance(outcome, UnchangedOutcome):
        record = outcome.record
        return {
            "status": "unchanged",
            "step_id": outcome.step_id,
            "verdict": record.verdict.model_dump() if record else None,
            "artifact_key": record.artifact_key if record else None,
            "warnings": [],
        }
    return {
        "status": "skipped",
        "step_id": outcome.step_id,
        "verdict": outcome.record.verdict.model_dump(),
        "artifact_key": None,
        "warnings": list(outcome.warnings),
    }
