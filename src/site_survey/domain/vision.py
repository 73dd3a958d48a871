"""Models for vision validation results."""

from pydantic import BaseModel, Field


class VisionAnalysis(BaseModel):
    """Structured output returned by the vision model."""

    is_valid: bool = False
    description: str = ""
    extracted_value: str | None = None
    structured_data: dict[str, str] | None = None


class Verdict(BaseModel):
    """Validation verdict recorded for a step."""

    is_valid: bool
    confidence: float = Field(ge=0.0, le=1.0)
    message: str
    extracted_value: str | None = None
    structured_fields: dict[str, str] = Field(default_factory=dict)
