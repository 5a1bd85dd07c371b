"""Error taxonomy for rule configuration and allocation."""

from typing import Optional


class AllocationError(Exception):
    """Base class for allocation errors."""


class ValidationError(AllocationError):
    """A wizard step failed validation. Handled inside the wizard."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field
        self.message = message


class NetworkError(AllocationError):
    """The backend could not be reached or answered unusably."""


class ApiError(NetworkError):
    """The backend answered with an error status or a failure envelope."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code


class PersistenceError(AllocationError):
    """A create, update, delete, simulate or apply call was rejected."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code


class WizardStateError(AllocationError):
    """An operation was invoked from a step or state that doesn't allow it."""


class ComputationInvariantViolation(AssertionError):
    """A distribution did not conserve the requested number of units."""
