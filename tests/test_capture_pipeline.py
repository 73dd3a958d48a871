"""Tests for the capture, validate and persist pipeline."""

import asyncio

import pytest

from site_survey.domain.errors import InvalidSubmissionError, UnknownStepError
from site_survey.domain.inspections import RecordOutcome
from site_survey.services.capture import (
    CompletedOutcome,
    FailedOutcome,
    SkippedOutcome,
    UnchangedOutcome,
)
from tests.conftest import JPEG_BYTES, SurveyHarness


class _SlowClient:
    async def analyze(self, **_kwargs) -> str:  # type: ignore[no-untyped-def]
        await asyncio.sleep(1)
        return "{}"


def test_valid_capture_stores_photo_and_record(harness: SurveyHarness) -> None:
    harness.inspection_service.find_or_create("abc")

    outcome = asyncio.run(harness.pipeline.submit_capture("abc", 1, JPEG_BYTES))

    assert isinstance(outcome, CompletedOutcome)
    assert outcome.verdict.is_valid is True
    assert outcome.verdict.confidence == 0.9
    assert outcome.warnings == ()
    assert harness.artifact_store.objects["abc/step_1.jpg"] == JPEG_BYTES
    record = harness.inspection_service.get("abc").step_ledger[1]
    assert record.outcome == RecordOutcome.CAPTURED
    assert record.artifact_key == "abc/step_1.jpg"


def test_invalid_verdict_still_stores_photo(harness: SurveyHarness) -> None:
    harness.inspection_service.find_or_create("abc")
    harness.validation_client.payload = {
        "is_valid": False,
        "description": "Too blurry",
        "extracted_value": None,
    }

    outcome = asyncio.run(harness.pipeline.submit_capture("abc", 1, JPEG_BYTES))

    assert isinstance(outcome, CompletedOutcome)
    assert outcome.verdict.is_valid is False
    assert outcome.verdict.confidence == 0.1
    assert harness.artifact_store.puts == ["abc/step_1.jpg"]


def test_skip_writes_record_without_photo(harness: SurveyHarness) -> None:
    harness.inspection_service.find_or_create("abc")

    outcome = asyncio.run(harness.pipeline.submit_capture("abc", 2, skip=True))

    assert isinstance(outcome, SkippedOutcome)
    assert harness.artifact_store.puts == []
    assert harness.validation_client.calls == []
    record = harness.inspection_service.get("abc").step_ledger[2]
    assert record.outcome == RecordOutcome.SKIPPED
    assert record.verdict.message == "skipped by user"
    assert record.verdict.confidence == 0


def test_failed_validation_stores_nothing(harness: SurveyHarness) -> None:
    harness.inspection_service.find_or_create("abc")
    harness.validation_client.queue.append(RuntimeError("service down"))

    outcome = asyncio.run(harness.pipeline.submit_capture("abc", 1, JPEG_BYTES))

    assert isinstance(outcome, FailedOutcome)
    assert outcome.reason == "AI analysis failed. Please try again."
    assert harness.artifact_store.puts == []
    assert harness.inspection_service.get("abc").step_ledger == {}


def test_resubmission_after_failure_writes_single_artifact(
    harness: SurveyHarness,
) -> None:
    harness.inspection_service.find_or_create("abc")
    harness.validation_client.queue.append(RuntimeError("service down"))

    first = asyncio.run(harness.pipeline.submit_capture("abc", 1, JPEG_BYTES))
    second = asyncio.run(harness.pipeline.submit_capture("abc", 1, JPEG_BYTES))
    third = asyncio.run(harness.pipeline.submit_capture("abc", 1, JPEG_BYTES))

    assert isinstance(first, FailedOutcome)
    assert isinstance(second, CompletedOutcome)
    assert isinstance(third, CompletedOutcome)
    assert list(harness.artifact_store.objects) == ["abc/step_1.jpg"]


def test_retake_in_new_format_replaces_old_photo(harness: SurveyHarness) -> None:
    harness.inspection_service.find_or_create("abc")
    png_bytes = b"\x89PNG\r\n\x1a\n" + b"photo-bytes"

    asyncio.run(harness.pipeline.submit_capture("abc", 1, JPEG_BYTES))
    outcome = asyncio.run(harness.pipeline.submit_capture("abc", 1, png_bytes))

    assert isinstance(outcome, CompletedOutcome)
    assert list(harness.artifact_store.objects) == ["abc/step_1.png"]
    assert harness.artifact_store.deletes == ["abc/step_1.jpg"]
    record = harness.inspection_service.get("abc").step_ledger[1]
    assert record.artifact_key == "abc/step_1.png"


def test_old_photo_kept_when_retake_is_not_stored(harness: SurveyHarness) -> None:
    harness.inspection_service.find_or_create("abc")
    png_bytes = b"\x89PNG\r\n\x1a\n" + b"photo-bytes"
    asyncio.run(harness.pipeline.submit_capture("abc", 1, JPEG_BYTES))
    harness.artifact_store.fail_puts = True

    asyncio.run(harness.pipeline.submit_capture("abc", 1, png_bytes))

    assert list(harness.artifact_store.objects) == ["abc/step_1.jpg"]
    assert harness.artifact_store.deletes == []


def test_completed_inspection_ignores_submissions(harness: SurveyHarness) -> None:
    harness.inspection_service.find_or_create("abc")
    asyncio.run(harness.pipeline.submit_capture("abc", 1, JPEG_BYTES))
    harness.inspection_service.complete("abc")
    harness.validation_client.payload = {
        "is_valid": False,
        "description": "Meter is not visible",
        "extracted_value": None,
    }
    calls_before = len(harness.validation_client.calls)

    recapture = asyncio.run(
        harness.pipeline.submit_capture("abc", 1, b"\xff\xd8\xff\xe0NEW")
    )
    skipped = asyncio.run(harness.pipeline.submit_capture("abc", 2, skip=True))
    entered = asyncio.run(
        harness.pipeline.submit_capture("abc", 3, entered_value="200")
    )

    assert isinstance(recapture, UnchangedOutcome)
    assert recapture.record is not None
    assert recapture.record.verdict.is_valid is True
    assert isinstance(skipped, UnchangedOutcome)
    assert skipped.record is None
    assert isinstance(entered, UnchangedOutcome)
    assert len(harness.validation_client.calls) == calls_before
    assert harness.artifact_store.objects == {"abc/step_1.jpg": JPEG_BYTES}
    assert set(harness.inspection_service.get("abc").step_ledger) == {1}


def test_validation_timeout_is_a_failure(harness: SurveyHarness) -> None:
    harness.inspection_service.find_or_create("abc")
    harness.pipeline.vision_service.client = _SlowClient()
    harness.pipeline.validation_timeout_seconds = 0.01

    outcome = asyncio.run(harness.pipeline.submit_capture("abc", 1, JPEG_BYTES))

    assert isinstance(outcome, FailedOutcome)
    assert "timed out" in outcome.reason
    assert harness.artifact_store.puts == []


def test_malformed_response_degrades_to_negative_verdict(
    harness: SurveyHarness,
) -> None:
    harness.inspection_service.find_or_create("abc")
    harness.validation_client.payload = "I think this is a meter"

    outcome = asyncio.run(harness.pipeline.submit_capture("abc", 1, JPEG_BYTES))

    assert isinstance(outcome, CompletedOutcome)
    assert outcome.verdict.is_valid is False
    assert outcome.verdict.confidence == 0
    assert outcome.verdict.message == "I think this is a meter"


def test_write_failures_become_warnings(harness: SurveyHarness) -> None:
    harness.inspection_service.find_or_create("abc")
    harness.artifact_store.fail_puts = True
    harness.repository.fail_writes = True

    outcome = asyncio.run(harness.pipeline.submit_capture("abc", 1, JPEG_BYTES))

    assert isinstance(outcome, CompletedOutcome)
    assert outcome.verdict.is_valid is True
    assert len(outcome.warnings) == 2


def test_manual_entry_records_normalized_value(harness: SurveyHarness) -> None:
    harness.inspection_service.find_or_create("abc")

    outcome = asyncio.run(
        harness.pipeline.submit_capture("abc", 3, entered_value="200 A")
    )

    assert isinstance(outcome, CompletedOutcome)
    assert outcome.verdict.extracted_value == "200"
    assert outcome.verdict.confidence == 1
    record = harness.inspection_service.get("abc").step_ledger[3]
    assert record.outcome == RecordOutcome.MANUALLY_ENTERED
    assert record.artifact_key is None


def test_manual_entry_outside_rule_is_rejected(harness: SurveyHarness) -> None:
    harness.inspection_service.find_or_create("abc")

    with pytest.raises(InvalidSubmissionError):
        asyncio.run(harness.pipeline.submit_capture("abc", 3, entered_value="20"))
    with pytest.raises(InvalidSubmissionError):
        asyncio.run(harness.pipeline.submit_capture("abc", 3, entered_value=""))


def test_guide_and_unknown_steps_are_rejected(harness: SurveyHarness) -> None:
    harness.inspection_service.find_or_create("abc")

    with pytest.raises(InvalidSubmissionError):
        asyncio.run(harness.pipeline.submit_capture("abc", 0.5, JPEG_BYTES))
    with pytest.raises(UnknownStepError):
        asyncio.run(harness.pipeline.submit_capture("abc", 42, JPEG_BYTES))
    with pytest.raises(InvalidSubmissionError):
        asyncio.run(harness.pipeline.submit_capture("abc", 1))


def test_suggest_entry_reads_related_photo(harness: SurveyHarness) -> None:
    harness.inspection_service.find_or_create("abc")
    asyncio.run(harness.pipeline.submit_capture("abc", 2, JPEG_BYTES))
    harness.validation_client.payload = {
        "is_valid": True,
        "description": "Main breaker shows 200A",
        "extracted_value": None,
    }

    suggestion = asyncio.run(harness.pipeline.suggest_entry("abc", 3))

    assert suggestion is not None
    assert suggestion.extracted_value == "200"
    assert suggestion.confidence == 0.9
    assert harness.validation_client.calls[-1]["prompt"] == "Read the amperage"


def test_suggest_entry_without_related_record(harness: SurveyHarness) -> None:
    harness.inspection_service.find_or_create("abc")

    suggestion = asyncio.run(harness.pipeline.suggest_entry("abc", 3))

    assert suggestion is None
    assert harness.validation_client.calls == []


def test_suggest_entry_swallows_service_failure(harness: SurveyHarness) -> None:
    harness.inspection_service.find_or_create("abc")
    asyncio.run(harness.pipeline.submit_capture("abc", 2, JPEG_BYTES))
    harness.validation_client.queue.append(RuntimeError("service down"))

    assert asyncio.run(harness.pipeline.suggest_entry("abc", 3)) is None
