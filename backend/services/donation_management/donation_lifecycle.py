"""
Core donation lifecycle operations.

This module contains the business logic for donations up to the point a
delivery task exists: creation, the beneficiary's answer to an offer, and
donor resubmission. Everything after that belongs to services.dispatch.
"""

import logging
from typing import Optional

from django.db import transaction
from django.utils import timezone

from accounts.services import location_of
from common.utils import is_valid_coordinate
from donations.models import Donation
from notifications.sink import NotificationSink, get_notification_sink, notify_user
from services.dispatch.dispatch_engine import Location, notify_new_task, open_delivery_task
from services.dispatch.exceptions import (
    DonationNotFoundError,
    InvalidLocationError,
    LocationRequiredError,
    NotYourOfferError,
    PreconditionFailed,
)
from services.matching.candidate_queue import build_candidate_queue

logger = logging.getLogger(__name__)

DECISION_ACCEPT = "accept"
DECISION_DECLINE = "decline"
DECISION_EXPIRE = "expire"
DECISIONS = (DECISION_ACCEPT, DECISION_DECLINE, DECISION_EXPIRE)


# ===================== Donor Operations =====================

def create_donation(
    donor,
    latitude,
    longitude,
    food_item: str,
    quantity: str = "",
    food_type: str = "",
    pickup_address: str = "",
) -> Donation:
    """
    Create a pending donation and queue beneficiary matching for after commit.

    Raises:
        InvalidLocationError: If the coordinates are missing or invalid
    """
    if not is_valid_coordinate(latitude, longitude):
        raise InvalidLocationError("Missing or invalid location")

    with transaction.atomic():
        donation = Donation.objects.create(
            donor=donor,
            latitude=latitude,
            longitude=longitude,
            pickup_address=pickup_address or donor.address,
            food_item=food_item,
            quantity=quantity,
            food_type=food_type,
            status=Donation.Status.PENDING,
        )

        from donations.tasks import match_donation_task
        donation_id = donation.pk
        transaction.on_commit(lambda: match_donation_task.delay(donation_id))

    logger.info("Donation %s created by donor %s", donation.pk, donor.id)
    return donation


def resubmit_donation(donation_id: int, donor, sink: Optional[NotificationSink] = None) -> Donation:
    """
    Run beneficiary matching again for a pending donation (after a decline
    or an expired offer). Matching never re-runs on its own.
    """
    from services.matching import on_donation_created

    donation = Donation.objects.filter(pk=donation_id, donor=donor).first()
    if donation is None:
        raise DonationNotFoundError("Donation not found")
    if donation.status != Donation.Status.PENDING:
        raise PreconditionFailed(f"Cannot resubmit - donation is {donation.status}")

    return on_donation_created(donation, sink=sink)


# ===================== Beneficiary Operations =====================

def respond_to_offer(
    donation_id: int,
    beneficiary,
    decision: str,
    sink: Optional[NotificationSink] = None,
) -> Donation:
    """
    Process a beneficiary's accept/decline/expire answer to an offer.

    Args:
        donation_id: Donation being answered
        beneficiary: User model instance (beneficiary)
        decision: accept, decline or expire

    Returns:
        The updated donation
    """
    if decision not in DECISIONS:
        raise PreconditionFailed(f"Unknown decision '{decision}'")

    if decision == DECISION_ACCEPT:
        return accept_offer(donation_id, beneficiary, sink=sink)
    return release_offer(donation_id, beneficiary)


def release_offer(donation_id: int, beneficiary) -> Donation:
    """
    Decline (or client-side expire) an offer: back to `pending` with no
    open offer. Repeated calls are no-ops.
    """
    with transaction.atomic():
        donation = _lock_donation(donation_id)

        if donation.status != Donation.Status.OFFERED:
            logger.debug("Donation %s is %s, nothing to release", donation.pk, donation.status)
            return donation
        if donation.offered_to_id != beneficiary.id:
            raise NotYourOfferError("This donation was not offered to you")

        donation.status = Donation.Status.PENDING
        donation.clear_offer()
        donation.save(update_fields=["status", "offered_to", "offer_expiry", "updated_at"])

    logger.info("Beneficiary %s released offer for donation %s", beneficiary.id, donation.pk)
    return donation


def expire_beneficiary_offer(donation_id: int) -> bool:
    """
    Server-side end of the 5-minute offer window, driven by the expiry sweep.
    Returns True if an offer was released.
    """
    with transaction.atomic():
        donation = _lock_donation(donation_id)
        now = timezone.now()

        if donation.status != Donation.Status.OFFERED:
            return False
        if donation.offer_expiry is None or donation.offer_expiry > now:
            return False

        expired_for = donation.offered_to_id
        donation.status = Donation.Status.PENDING
        donation.clear_offer()
        donation.save(update_fields=["status", "offered_to", "offer_expiry", "updated_at"])

    logger.info("Beneficiary offer for donation %s expired (was %s)", donation.pk, expired_for)
    return True


def accept_offer(donation_id: int, beneficiary, sink: Optional[NotificationSink] = None) -> Donation:
    """
    Accept a donation offer and create its delivery task in the same
    transaction; the first volunteer offer goes out after commit.

    The offer window is not re-checked here; an accept that lands just after
    the deadline but before the sweep is honoured.
    """
    sink = sink or get_notification_sink()

    with transaction.atomic():
        donation = _lock_donation(donation_id)

        if donation.offered_to_id != beneficiary.id:
            raise NotYourOfferError("This donation was not offered to you")

        dropoff_point = location_of(beneficiary)
        if dropoff_point is None:
            raise LocationRequiredError("Location required to accept a donation")

        donation.status = Donation.Status.ACCEPTED_BY_BENEFICIARY
        donation.beneficiary = beneficiary
        donation.accepted_at = timezone.now()
        donation.clear_offer()
        donation.save(update_fields=[
            "status", "beneficiary", "accepted_at", "offered_to", "offer_expiry", "updated_at",
        ])

        pickup = Location(
            latitude=float(donation.latitude),
            longitude=float(donation.longitude),
            address=donation.pickup_address or donation.donor.address,
        )
        dropoff = Location(
            latitude=dropoff_point[0],
            longitude=dropoff_point[1],
            address=beneficiary.address,
        )
        queue = build_candidate_queue(pickup.latitude, pickup.longitude)
        task, created = open_delivery_task(donation, pickup, dropoff, queue, donation.summary())

    logger.info("Donation %s accepted by beneficiary %s", donation.pk, beneficiary.id)

    if created:
        notify_new_task(sink, task)
    notify_user(
        sink,
        donation.donor_id,
        "donation_accepted",
        "Donation accepted",
        f"Your donation of {donation.food_item} was accepted by a beneficiary.",
        {"donation_id": donation.pk, "summary": donation.summary()},
    )

    donation.refresh_from_db()
    return donation


# ===================== Helper Functions =====================

def _lock_donation(donation_id: int) -> Donation:
    try:
        return Donation.objects.select_for_update().get(pk=donation_id)
    except Donation.DoesNotExist:
        raise DonationNotFoundError("Donation not found")
