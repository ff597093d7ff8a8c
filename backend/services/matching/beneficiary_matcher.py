"""
Match a newly created donation to the single nearest beneficiary.

Runs once per donation, right after it is created. Declines and timeouts do
not re-run it; a donor resubmits the donation instead.
"""

import logging
from datetime import timedelta
from typing import Optional

from django.db import transaction
from django.utils import timezone

from accounts.models import User
from accounts.services import get_beneficiaries_with_location
from common.utils import distance_km
from donations.models import Donation
from notifications.sink import NotificationSink, get_notification_sink, notify_user

logger = logging.getLogger(__name__)

# Beneficiary offer window (fixed)
BENEFICIARY_OFFER_TTL_SECONDS = 300


def find_nearest_beneficiary(lat, lon) -> Optional[User]:
    """
    Nearest beneficiary with a valid location.
    Ties go to the first one in scan order.
    """
    nearest = None
    min_dist = float("inf")
    for user in get_beneficiaries_with_location():
        dist = distance_km(lat, lon, user.latitude, user.longitude)
        logger.debug("Beneficiary %s is a candidate: distance=%.3fkm", user.id, dist)
        if dist < min_dist:
            min_dist = dist
            nearest = user
    return nearest


def on_donation_created(donation: Donation, sink: Optional[NotificationSink] = None) -> Donation:
    """
    Open a time-boxed offer to the nearest beneficiary.

    Args:
        donation: Freshly created (or resubmitted) pending donation
        sink: Notification sink (defaults to settings.NOTIFICATION_SINK)

    Returns:
        The donation, now `offered` or `expired`
    """
    sink = sink or get_notification_sink()

    with transaction.atomic():
        donation = Donation.objects.select_for_update().get(pk=donation.pk)

        if donation.status != Donation.Status.PENDING:
            logger.info("Donation %s is %s, skipping matching", donation.pk, donation.status)
            return donation

        if not donation.has_valid_location:
            donation.status = Donation.Status.EXPIRED
            donation.error = "Invalid location"
            donation.save(update_fields=["status", "error", "updated_at"])
            logger.warning("Donation %s has no valid location, marked expired", donation.pk)
            return donation

        nearest = find_nearest_beneficiary(donation.latitude, donation.longitude)
        if nearest is None:
            donation.status = Donation.Status.EXPIRED
            donation.error = "No eligible beneficiary found"
            donation.save(update_fields=["status", "error", "updated_at"])
            logger.info("No eligible beneficiary found for donation %s", donation.pk)
            return donation

        donation.status = Donation.Status.OFFERED
        donation.offered_to = nearest
        donation.offer_expiry = timezone.now() + timedelta(seconds=BENEFICIARY_OFFER_TTL_SECONDS)
        donation.error = ""
        donation.save(update_fields=["status", "offered_to", "offer_expiry", "error", "updated_at"])

    logger.info("Donation %s offered to beneficiary %s", donation.pk, nearest.id)

    notify_user(
        sink,
        nearest.id,
        "donation_offered",
        "New donation available",
        f"{donation.food_item} is available near you. Respond within 5 minutes.",
        {
            "donation_id": donation.pk,
            "offer_expiry": donation.offer_expiry.isoformat(),
            "summary": donation.summary(),
        },
    )
    return donation
