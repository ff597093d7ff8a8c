"""
Delivery dispatch service.

This module handles:
    - Creating delivery tasks and offering them to the closest volunteer
    - Accepting/rejecting offers and completing deliveries
    - Advancing the candidate queue on rejection or timeout
    - Sweeping expired offers on a fixed period
"""

from .dispatch_engine import (
    Location,
    DispatchResult,
    create_and_offer,
    advance,
    expire_offer_and_advance,
    accept_task,
    reject_task,
    complete_delivery,
)
from .expiry_sweep import SweepResult, sweep_expired_offers
from .exceptions import (
    DispatchError,
    InvalidLocationError,
    PreconditionFailed,
    TaskNotFoundError,
    DonationNotFoundError,
    NotAssignedError,
    TaskNotOpenError,
    OfferExpiredError,
    NotYourOfferError,
    LocationRequiredError,
    VolunteerNotAvailableError,
)

__all__ = [
    # Engine
    "Location",
    "DispatchResult",
    "create_and_offer",
    "advance",
    "expire_offer_and_advance",
    "accept_task",
    "reject_task",
    "complete_delivery",
    # Sweep
    "SweepResult",
    "sweep_expired_offers",
    # Exceptions
    "DispatchError",
    "InvalidLocationError",
    "PreconditionFailed",
    "TaskNotFoundError",
    "DonationNotFoundError",
    "NotAssignedError",
    "TaskNotOpenError",
    "OfferExpiredError",
    "NotYourOfferError",
    "LocationRequiredError",
    "VolunteerNotAvailableError",
]
