"""Vision validation service using LLMs."""

import base64
import json
import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Protocol

from pydantic import ValidationError

from site_survey.domain.errors import ValidationServiceError
from site_survey.domain.vision import Verdict, VisionAnalysis
from site_survey.services.artifacts import detect_content_type

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an expert electrical system analyst reviewing photos taken during "
    "a home site survey for a battery system installation.\n"
    "- Set is_valid to true if the image clearly shows what was requested and "
    "is suitable for the survey, false otherwise.\n"
    "- In description, explain what you see and why it is or isn't valid.\n"
    "- If asked to extract a specific value (like amperage), put it in "
    "extracted_value, otherwise use null."
)


class ValidationClient(Protocol):
    """Interface for LLM vision calls."""

    async def analyze(  # noqa: PLR0913
        self,
        *,
        model: str,
        reasoning_effort: str | None,
        store: bool,
        image_data_url: str,
        system_prompt: str,
        prompt: str,
        schema: dict[str, object],
    ) -> str:
        """Return the raw text produced by the model."""


@dataclass
class VisionService:
    """Service that prepares validation prompts and interprets verdicts."""

    client: ValidationClient
    model: str
    reasoning_effort: str | None
    store: bool

    async def validate(
        self,
        image_bytes: bytes,
        prompt: str,
        structured_fields: Mapping[str, str] | None = None,
        *,
        extraction: bool = False,
    ) -> Verdict:
        """Ask the model whether the image satisfies the step prompt.

        Transport failures raise ValidationServiceError. A response that is
        not the expected JSON is not an error: it degrades to a negative
        verdict carrying the raw text.
        """
        fields = dict(structured_fields or {})
        try:
            raw = await self.client.analyze(
                model=self.model,
                reasoning_effort=self.reasoning_effort,
                store=self.store,
                image_data_url=_to_data_url(image_bytes),
                system_prompt=_system_prompt(fields),
                prompt=prompt,
                schema=build_verdict_schema(fields),
            )
        except Exception as exc:
            raise ValidationServiceError(str(exc) or type(exc).__name__) from exc

        analysis = _parse_analysis(raw)
        if analysis is None:
            logger.warning("Vision response was not valid JSON")
            return Verdict(is_valid=False, confidence=0.0, message=raw)
        if extraction:
            return _extraction_verdict(analysis)
        return _validation_verdict(analysis)


def build_verdict_schema(structured_fields: Mapping[str, str]) -> dict[str, object]:
    """Build the strict JSON schema for a step's response."""
    properties: dict[str, object] = {
        "is_valid": {"type": "boolean"},
        "description": {"type": "string"},
        "extracted_value": {"anyOf": [{"type": "string"}, {"type": "null"}]},
    }
    if structured_fields:
        properties["structured_data"] = {
            "type": "object",
            "properties": {name: {"type": "string"} for name in structured_fields},
            "required": list(structured_fields),
            "additionalProperties": False,
        }
    return {
        "type": "object",
        "properties": properties,
        "required": list(properties),
        "additionalProperties": False,
    }


def _system_prompt(structured_fields: Mapping[str, str]) -> str:
    if not structured_fields:
        return SYSTEM_PROMPT
    lines = [
        SYSTEM_PROMPT,
        "- In structured_data, extract the following specifications from labels:",
    ]
    lines.extend(
        f"  * {name}: {description}" for name, description in structured_fields.items()
    )
    lines.append(
        "- Always include every key; use an empty string for values you cannot "
        "clearly read."
    )
    return "\n".join(lines)


def _parse_analysis(raw: str) -> VisionAnalysis | None:
    try:
        payload = json.loads(raw)
    except ValueError:
        return None
    if not isinstance(payload, dict):
        return None
    try:
        return VisionAnalysis.model_validate(payload)
    except ValidationError:
        return None


def _validation_verdict(analysis: VisionAnalysis) -> Verdict:
    return Verdict(
        is_valid=analysis.is_valid,
        confidence=0.9 if analysis.is_valid else 0.1,
        message=analysis.description or "No description provided",
        extracted_value=analysis.extracted_value or None,
        structured_fields=analysis.structured_data or {},
    )


def _extraction_verdict(analysis: VisionAnalysis) -> Verdict:
    """Interpret a value-reading response, recovering values from prose."""
    description = analysis.description
    fields = analysis.structured_data or {}
    if analysis.extracted_value:
        return Verdict(
            is_valid=True,
            confidence=0.95,
            message=description
            or f"Successfully extracted value: {analysis.extracted_value}",
            extracted_value=analysis.extracted_value,
            structured_fields=fields,
        )

    amperage = re.search(r"(\d+)\s*A", description, flags=re.IGNORECASE)
    if amperage:
        value = f"{amperage.group(1)}A"
        return Verdict(
            is_valid=True,
            confidence=0.9,
            message=description,
            extracted_value=value,
            structured_fields=fields,
        )

    lowered = description.lower()
    if "unable to read" in lowered or "cannot read" in lowered:
        return Verdict(
            is_valid=False,
            confidence=0.0,
            message=description,
        )

    number = re.search(r"\b(\d{2,3})\b", description)
    if number:
        return Verdict(
            is_valid=True,
            confidence=0.7,
            message=description,
            extracted_value=f"{number.group(1)}A",
            structured_fields=fields,
        )

    return Verdict(
        is_valid=False,
        confidence=0.0,
        message=description or "Could not extract a value",
    )


def _to_data_url(image_bytes: bytes) -> str:
    """Convert bytes to a base64 data URL for image input."""
    mime_type = detect_content_type(image_bytes)
    encoded = base64.b64encode(image_bytes).decode("utf-8")
    return f"data:{mime_type};base64,{encoded}"
