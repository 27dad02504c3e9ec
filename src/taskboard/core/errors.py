"""Error types raised by taskboard operations."""


class TaskboardError(Exception):
    """Base class for failures reported to the invoking layer."""


class ValidationError(TaskboardError, ValueError):
    """Raised when input is rejected before any oracle call or write."""


class NotFoundError(TaskboardError, LookupError):
    """Raised when a referenced user, team or task does not exist."""


class PersistenceError(TaskboardError):
    """Raised when a store write fails. The whole operation was rolled back."""
