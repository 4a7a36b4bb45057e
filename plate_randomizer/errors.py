"""Fatal randomization errors."""
from typing import Optional


class RandomizationError(ValueError):
    """Base class for failures that stop a randomization run."""


class InfeasibleCapacityError(RandomizationError):
    """Total samples exceed the total capacity of the containers."""


class ExpectedMinimumError(InfeasibleCapacityError):
    """A container's expected minimums add up to more than its capacity."""


class GroupValidationError(RandomizationError):
    """Repeated-measures groups failed validation."""

    def __init__(self, message: str, validation=None):
        super().__init__(message)
        self.validation = validation


class GroupPlacementError(RandomizationError):
    """A repeated-measures group does not fit on any plate."""

    def __init__(self, message: str, subject_id: Optional[str] = None, size: int = 0):
        super().__init__(message)
        self.subject_id = subject_id
        self.size = size


class ConstraintCheckError(RandomizationError):
    """A structural invariant did not hold after the run."""
