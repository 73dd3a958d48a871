"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from site_survey.adapters.openai_vision_client import OpenAIValidationClient
from site_survey.adapters.supabase_artifact_store import SupabaseArtifactStore
from site_survey.adapters.supabase_inspection_repository import (
    SupabaseInspectionRepository,
)
from site_survey.config import Settings
from site_survey.domain.steps import StepCatalog
from site_survey.services.artifacts import ArtifactStore
from site_survey.services.capture import CapturePipeline
from site_survey.services.inspections import InspectionService
from site_survey.services.review import ReviewService
from site_survey.services.sequencer import StepSequencer
from site_survey.services.vision import VisionService
from site_survey.survey_steps import default_catalog


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    catalog: StepCatalog
    sequencer: StepSequencer
    artifact_store: ArtifactStore
    inspection_service: InspectionService
    vision_service: VisionService
    capture_pipeline: CapturePipeline
    review_service: ReviewService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    catalog = default_catalog()
    artifact_store = SupabaseArtifactStore(
        client=supabase_client, bucket=resolved_settings.supabase_storage_bucket
    )
    inspection_service = InspectionService(
        SupabaseInspectionRepository(supabase_client)
    )
    openai_client = OpenAIValidationClient.create(resolved_settings.openai_api_key)
    vision_service = VisionService(
        client=openai_client,
        model=resolved_settings.openai_model,
        reasoning_effort=resolved_settings.openai_reasoning_effort,
        store=resolved_settings.openai_store,
    )
    capture_pipeline = CapturePipeline(
        catalog=catalog,
        vision_service=vision_service,
        artifact_store=artifact_store,
        inspection_service=inspection_service,
        validation_timeout_seconds=resolved_settings.validation_timeout_seconds,
    )
    review_service = ReviewService(
        catalog=catalog,
        inspection_service=inspection_service,
        artifact_store=artifact_store,
        url_ttl_seconds=resolved_settings.artifact_url_ttl_seconds,
    )

    async def close_resources() -> None:
        await openai_client.close()

    return AppContainer(
        settings=resolved_settings,
        catalog=catalog,
        sequencer=StepSequencer(catalog),
        artifact_store=artifact_store,
        inspection_service=inspection_service,
        vision_service=vision_service,
        capture_pipeline=capture_pipeline,
        review_service=review_service,
        close_resources=close_resources,
    )
