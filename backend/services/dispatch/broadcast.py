"""
DEPRECATED: broadcast fan-out of a delivery task to every candidate.

Older volunteer clients poll per-volunteer transport requests instead of the
delivery task. When settings.DISPATCH_BROADCAST_FANOUT is on, one pending
TransportRequest is written per candidate so those clients keep working.
Sequential dispatch remains the source of truth: only the volunteer holding
the task can accept it, and the losing siblings are deleted afterwards.
"""

import logging

from donations.models import DeliveryTask, TransportRequest

logger = logging.getLogger(__name__)


def broadcast_to_candidates(task: DeliveryTask) -> int:
    """
    Create one pending TransportRequest per candidate in the task queue.

    Returns the number of requests written.
    """
    requests = [
        TransportRequest(
            donation_id=task.pk,
            volunteer_id=entry["volunteer_id"],
            distance_km=entry["distance_km"],
            status="pending",
        )
        for entry in task.candidate_queue
    ]
    TransportRequest.objects.bulk_create(requests, ignore_conflicts=True)
    logger.info("Broadcast task %s to %d volunteers (legacy fan-out)", task.pk, len(requests))
    return len(requests)
