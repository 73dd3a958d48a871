"""Error types raised across the survey engine."""


class ValidationServiceError(RuntimeError):
    """The vision validation call failed or returned nothing usable."""


class PersistenceWriteError(RuntimeError):
    """An artifact or ledger write was not acknowledged by the backend."""


class InvalidTransitionError(ValueError):
    """An inspection status change would move the lifecycle backwards."""


class InspectionNotFoundError(LookupError):
    """No inspection exists for the given session id."""


class UnknownStepError(LookupError):
    """The step id is not part of the catalog."""


class InvalidSubmissionError(ValueError):
    """A submission does not fit the step it targets."""
