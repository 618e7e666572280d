"""
Journal error taxonomy.

Validation errors map to HTTP 400, not-found errors to 404. Anything else
escaping a transaction is a persistence failure and maps to 500.
"""


class JournalError(Exception):
    """Base class for errors raised by the journal core."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(JournalError):
    """Input rejected before anything is persisted."""


class InsufficientQuantityError(ValidationError):
    """Exit quantity exceeds the quantity still open."""


class PositionClosedError(ValidationError):
    """Mutation attempted on a closed position."""


class NotFoundError(JournalError):
    """Position or operation missing, or not owned by the caller."""


class AuthenticationError(JournalError):
    """Missing, invalid or expired bearer token."""
