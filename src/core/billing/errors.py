"""
Exceptions raised by the billing core.

The API layer maps each family to an HTTP status; the core itself knows
nothing about HTTP.
"""


class BillingError(Exception):
    """Base class for every error the billing core raises on purpose."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(BillingError):
    """Input is missing or malformed."""
    pass


class DateRangeInvalidError(ValidationError):
    """end_date falls before start_date."""
    pass


class InvalidArgumentError(ValidationError):
    """An argument has a value outside its allowed set."""
    pass


class NotFoundError(BillingError):
    """A referenced entity doesn't exist."""

    def __init__(self, resource: str, identifier: object = None) -> None:
        message = f"{resource} not found"
        super().__init__(message)
        self.resource = resource
        self.identifier = identifier


class ConflictError(BillingError):
    """The operation would break a uniqueness or referential rule."""
    pass


class OverlapConflictError(ConflictError):
    """The coach already holds a subscription covering part of the requested period."""

    def __init__(self, coach_id: int, conflicting_ids: list[int]) -> None:
        super().__init__("Coach already has a subscription for this period")
        self.coach_id = coach_id
        self.conflicting_ids = conflicting_ids


class DuplicateEmailError(ConflictError):
    pass


class DeletionBlockedError(ConflictError):
    """Deletion refused while active subscriptions still reference the entity."""
    pass


class AuthenticationError(BillingError):
    """Missing, invalid or expired credentials."""
    pass


class PermissionDeniedError(BillingError):
    """The caller's role doesn't allow the operation."""
    pass
