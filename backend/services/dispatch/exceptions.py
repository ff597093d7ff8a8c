"""Custom exceptions for donation matching and delivery dispatch."""


class DispatchError(Exception):
    """Base class for errors surfaced to the caller as a 4xx response."""
    pass


class InvalidLocationError(DispatchError):
    """Raised when coordinates are missing or not valid numbers."""
    pass


class PreconditionFailed(DispatchError):
    """Raised when the stored state no longer allows the requested transition."""
    pass


class TaskNotFoundError(PreconditionFailed):
    """Raised when a delivery task cannot be found."""
    pass


class DonationNotFoundError(PreconditionFailed):
    """Raised when a donation cannot be found."""
    pass


class NotAssignedError(PreconditionFailed):
    """Raised when the caller is not the volunteer currently holding the task."""
    pass


class TaskNotOpenError(PreconditionFailed):
    """Raised when the task is no longer offered (taken, exhausted or completed)."""
    pass


class OfferExpiredError(PreconditionFailed):
    """Raised when a volunteer offer window has already passed."""
    pass


class NotYourOfferError(PreconditionFailed):
    """Raised when a beneficiary answers an offer addressed to someone else."""
    pass


class LocationRequiredError(PreconditionFailed):
    """Raised when a beneficiary accepts without a valid location on file."""
    pass


class VolunteerNotAvailableError(PreconditionFailed):
    """Raised when the volunteer already has an active delivery."""
    pass
