"""Celery tasks for donation-related background processing."""

import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task
def match_donation_task(donation_id: int):
    """
    Run beneficiary matching for a freshly created donation.

    Queued from create_donation once the creating transaction commits.
    """
    from donations.models import Donation
    from services.matching import on_donation_created

    try:
        donation = Donation.objects.get(pk=donation_id)
    except Donation.DoesNotExist:
        logger.warning("Donation %s not found for matching task", donation_id)
        return None

    donation = on_donation_created(donation)
    return donation.status


@shared_task
def sweep_expired_offers_task(batch_size=None):
    """
    Celery beat entry point for the expiry sweep.

    Scheduled every EXPIRY_SWEEP_INTERVAL_SECONDS (see CELERY_BEAT_SCHEDULE).
    """
    from services.dispatch import sweep_expired_offers

    result = sweep_expired_offers(batch_size=batch_size)
    return {
        "expired_tasks": result.expired_tasks,
        "reassigned": result.reassigned,
        "unassigned": result.unassigned,
        "expired_beneficiary_offers": result.expired_beneficiary_offers,
    }
