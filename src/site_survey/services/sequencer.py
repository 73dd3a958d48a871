"""Pure navigation over the step catalog."""

from bisect import bisect_left, bisect_right
from dataclasses import dataclass

from site_survey.domain.steps import GuideStep, StepCatalog, welcome_position


@dataclass(frozen=True)
class RetakeContext:
    """Client-held override used when editing a step from the review screen."""

    active: bool = False
    return_target: float | None = None

    def __post_init__(self) -> None:
        if self.active and self.return_target is None:
            raise ValueError("An active retake needs a return target")

    @classmethod
    def returning_to(cls, target: float) -> "RetakeContext":
        """Build an active context that navigates back to target."""
        return cls(active=True, return_target=target)


INACTIVE = RetakeContext()


@dataclass(frozen=True)
class StepProgress:
    """Position of a step among the counted (non-guide) steps."""

    current: int
    total: int
    percentage: int
    counted: bool


@dataclass(frozen=True)
class StepSequencer:
    """Decides next/previous positions for a fixed catalog.

    Besides the catalog ids there are two synthetic positions: the welcome
    position sits below the first id and the review position is one past the
    largest id. Unknown ids never raise; they resolve to the nearest catalog
    neighbour in the direction of travel.
    """

    catalog: StepCatalog

    def __post_init__(self) -> None:
        if not len(self.catalog):
            raise ValueError("Step catalog is empty")

    def sequence_ids(self) -> tuple[float, ...]:
        """Catalog ids in ascending order, without synthetic positions."""
        return self.catalog.ids

    @property
    def review_step_id(self) -> float:
        """Synthetic position of the review screen."""
        return self.catalog.ids[-1] + 1

    @property
    def welcome_step_id(self) -> float:
        """Synthetic position shown before the first step."""
        return welcome_position(self.catalog.ids[0])

    def next(self, current: float, mode: RetakeContext = INACTIVE) -> float:
        """Return the position after current."""
        if mode.active:
            return mode.return_target
        ids = self.catalog.ids
        index = bisect_right(ids, current)
        if index < len(ids):
            return ids[index]
        return self.review_step_id

    def previous(self, current: float) -> float:
        """Return the position before current."""
        ids = self.catalog.ids
        index = bisect_left(ids, current)
        if index == 0:
            return self.welcome_step_id
        return ids[index - 1]

    def progress(self, current: float) -> StepProgress:
        """Report how far along the counted steps current is."""
        counted_ids = [
            step.id for step in self.catalog if not isinstance(step, GuideStep)
        ]
        total = len(counted_ids)
        if current not in counted_ids:
            return StepProgress(current=0, total=total, percentage=0, counted=False)
        number = counted_ids.index(current) + 1
        return StepProgress(
            current=number,
            total=total,
            percentage=round(number / total * 100),
            counted=True,
        )
