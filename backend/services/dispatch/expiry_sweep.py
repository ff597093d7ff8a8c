"""
Periodic reclamation of expired offers.

A volunteer who never answers leaves the task `offered` in storage until the
next sweep looks at it, so staleness is bounded by the sweep period. Each
run is capped so one tick never does unbounded work.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from django.conf import settings
from django.utils import timezone

from donations.models import Donation, DeliveryTask
from notifications.sink import NotificationSink, get_notification_sink
from .dispatch_engine import expire_offer_and_advance

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    expired_tasks: int = 0
    reassigned: int = 0
    unassigned: int = 0
    expired_beneficiary_offers: int = 0


def sweep_expired_offers(
    batch_size: Optional[int] = None,
    sink: Optional[NotificationSink] = None,
) -> SweepResult:
    """
    Advance delivery tasks whose volunteer offer expired and release
    beneficiary offers whose window passed.

    Args:
        batch_size: Max tasks (and max donations) handled this run;
            defaults to settings.EXPIRY_SWEEP_BATCH_SIZE
        sink: Notification sink shared by every advance in this run

    Returns:
        SweepResult with per-outcome counts
    """
    from services.donation_management import expire_beneficiary_offer

    if batch_size is None:
        batch_size = getattr(settings, "EXPIRY_SWEEP_BATCH_SIZE", 20)
    sink = sink or get_notification_sink()
    result = SweepResult()
    now = timezone.now()

    stale_tasks = list(
        DeliveryTask.objects.filter(
            status=DeliveryTask.Status.OFFERED,
            offer_expiry__lte=now,
        )
        .order_by("offer_expiry")
        .values_list("pk", "current_volunteer_id")[:batch_size]
    )

    for task_id, volunteer_id in stale_tasks:
        try:
            outcome = expire_offer_and_advance(task_id, expected_volunteer_id=volunteer_id, sink=sink)
        except Exception:
            logger.exception("Failed to advance expired task %s", task_id)
            continue

        # Lost the race to an accept/reject; nothing to do
        if not outcome.success:
            continue

        result.expired_tasks += 1
        if outcome.next_volunteer_id:
            result.reassigned += 1
        else:
            result.unassigned += 1

    stale_donations = list(
        Donation.objects.filter(
            status=Donation.Status.OFFERED,
            offer_expiry__lte=now,
        )
        .order_by("offer_expiry")
        .values_list("pk", flat=True)[:batch_size]
    )

    for donation_id in stale_donations:
        try:
            if expire_beneficiary_offer(donation_id):
                result.expired_beneficiary_offers += 1
        except Exception:
            logger.exception("Failed to expire beneficiary offer for donation %s", donation_id)

    if result.expired_tasks or result.expired_beneficiary_offers:
        logger.info(
            "Expiry sweep: %d task offers expired (%d reassigned, %d unassigned), "
            "%d beneficiary offers released",
            result.expired_tasks, result.reassigned, result.unassigned,
            result.expired_beneficiary_offers,
        )
    return result
