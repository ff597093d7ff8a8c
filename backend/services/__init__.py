"""
Services package - Business logic layer.

This package contains all business logic services that operate on Django models
but are decoupled from the HTTP/WebSocket layer.

Modules:
    - matching: Beneficiary matching and volunteer candidate queues
    - dispatch: Delivery task engine and expiry sweep
    - donation_management: Donation lifecycle before dispatch
"""

# Expose commonly used functions at package level
from .matching import (
    find_nearest_beneficiary,
    on_donation_created,
    build_candidate_queue,
)
from .dispatch import (
    create_and_offer,
    accept_task,
    reject_task,
    complete_delivery,
    expire_offer_and_advance,
    sweep_expired_offers,
    DispatchError,
    PreconditionFailed,
)
from .donation_management import (
    create_donation,
    respond_to_offer,
    expire_beneficiary_offer,
    resubmit_donation,
)

__all__ = [
    # Matching
    "find_nearest_beneficiary",
    "on_donation_created",
    "build_candidate_queue",
    # Dispatch
    "create_and_offer",
    "accept_task",
    "reject_task",
    "complete_delivery",
    "expire_offer_and_advance",
    "sweep_expired_offers",
    # Donation management
    "create_donation",
    "respond_to_offer",
    "expire_beneficiary_offer",
    "resubmit_donation",
    # Exceptions
    "DispatchError",
    "PreconditionFailed",
]
