"""Step definitions and the step catalog."""

import math
import re
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar

from site_survey.domain.errors import UnknownStepError


class StepKind(str, Enum):
    """Kinds of survey steps."""

    GUIDE = "guide"
    CAPTURE = "capture"
    MANUAL_ENTRY = "manual-entry"


class EntryDataType(str, Enum):
    """Value types accepted by manual-entry steps."""

    AMPERAGE = "amperage"
    NUMBER = "number"
    TEXT = "text"


@dataclass(frozen=True)
class PromptConfig:
    """Instructions handed to the vision service for a step."""

    prompt: str
    structured_fields: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ValueRule:
    """Constraints for a user-entered value."""

    min: float | None = None
    max: float | None = None
    pattern: str | None = None

    def check(self, value: str) -> str | None:
        """Return an error message when the value breaks the rule."""
        if self.pattern and not re.fullmatch(self.pattern, value):
            return "Value has an unexpected format."
        if self.min is None and self.max is None:
            return None
        try:
            number = float(value)
        except ValueError:
            return "Value must be a number."
        if self.min is not None and number < self.min:
            return f"Value must be at least {self.min:g}."
        if self.max is not None and number > self.max:
            return f"Value must be at most {self.max:g}."
        return None


@dataclass(frozen=True, kw_only=True)
class _BaseStep:
    id: float
    title: str
    description: str = ""
    instructions: str = ""
    tips: tuple[str, ...] = ()
    skippable: bool = False


@dataclass(frozen=True, kw_only=True)
class GuideStep(_BaseStep):
    """Informational step that only asks the user to move on."""

    kind: ClassVar[StepKind] = StepKind.GUIDE

    button_text: str = "Continue"
    tip: str | None = None


@dataclass(frozen=True, kw_only=True)
class CaptureStep(_BaseStep):
    """Photo step validated by the vision service."""

    kind: ClassVar[StepKind] = StepKind.CAPTURE

    prompt_config: PromptConfig


@dataclass(frozen=True, kw_only=True)
class ManualEntryStep(_BaseStep):
    """Step where the user confirms a value read from an earlier photo."""

    kind: ClassVar[StepKind] = StepKind.MANUAL_ENTRY

    related_step_id: float
    prompt_config: PromptConfig
    data_type: EntryDataType = EntryDataType.TEXT
    placeholder: str | None = None
    rule: ValueRule | None = None

    def normalize_value(self, raw: str) -> str:
        """Clean up a user-entered value for storage."""
        value = raw.strip()
        if self.data_type in {EntryDataType.AMPERAGE, EntryDataType.NUMBER}:
            value = re.sub(r"[^0-9.]", "", value)
        return value


StepDefinition = GuideStep | CaptureStep | ManualEntryStep


def format_step_id(step_id: float) -> str:
    """Render a step id the way it appears in keys (1.0 -> "1", 0.5 -> "0.5")."""
    return f"{step_id:g}"


class StepCatalog:
    """Immutable, id-ordered collection of step definitions."""

    def __init__(self, steps: Iterable[StepDefinition]) -> None:
        ordered = sorted(steps, key=lambda step: step.id)
        by_id: dict[float, StepDefinition] = {}
        for step in ordered:
            if step.id in by_id:
                raise ValueError(f"Duplicate step id {format_step_id(step.id)}")
            by_id[step.id] = step
        for step in ordered:
            if isinstance(step, ManualEntryStep):
                related = by_id.get(step.related_step_id)
                if not isinstance(related, CaptureStep):
                    raise ValueError(
                        f"Step {format_step_id(step.id)} must relate to a capture step"
                    )
        self._steps = tuple(ordered)
        self._by_id = by_id

    @property
    def steps(self) -> tuple[StepDefinition, ...]:
        """Steps in ascending id order."""
        return self._steps

    @property
    def ids(self) -> tuple[float, ...]:
        """Step ids in ascending order."""
        return tuple(step.id for step in self._steps)

    def get(self, step_id: float) -> StepDefinition | None:
        """Return the step with this id, if present."""
        return self._by_id.get(step_id)

    def require(self, step_id: float) -> StepDefinition:
        """Return the step with this id or raise UnknownStepError."""
        step = self._by_id.get(step_id)
        if step is None:
            raise UnknownStepError(f"Unknown step {format_step_id(step_id)}")
        return step

    def __iter__(self) -> Iterator[StepDefinition]:
        return iter(self._steps)

    def __len__(self) -> int:
        return len(self._steps)

    def __contains__(self, step_id: object) -> bool:
        return step_id in self._by_id


def welcome_position(first_id: float) -> float:
    """Synthetic position shown before the first catalog step."""
    if first_id > 0:
        return 0.0
    return float(math.floor(first_id) - 1)
