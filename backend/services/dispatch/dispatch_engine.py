"""
Delivery task dispatch and offer handling.

Handles the daisy-chain pattern for delivery tasks:
1. Task offered to the closest candidate volunteer
2. Wait for a response or for the offer window to pass
3. If rejected/expired, offer to the next volunteer in the queue
4. Repeat until accepted or no candidates left (administrators alerted)

Every transition runs inside one database transaction holding row locks on
the task, then the donation, then the volunteer profile. The volunteer about
to be offered a task is locked while the queue is scanned. Notifications are
sent only after the transaction has committed and never affect its outcome.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, List, Optional, Tuple

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from donations.models import Donation, DeliveryTask, TransportRequest
from notifications.sink import (
    NotificationSink,
    get_notification_sink,
    notify_admins,
    notify_user,
)
from services.matching.candidate_queue import build_candidate_queue, next_candidate_index
from volunteers.models import VolunteerProfile
from .exceptions import (
    TaskNotFoundError,
    NotAssignedError,
    TaskNotOpenError,
    OfferExpiredError,
    VolunteerNotAvailableError,
)

logger = logging.getLogger(__name__)

ACTION_REASSIGN = "reassign"
ACTION_REJECTED = "rejected"
REASON_TIMEOUT = "timeout"

OPEN_TASK_STATUSES = (DeliveryTask.Status.OFFERED, DeliveryTask.Status.ACCEPTED)


@dataclass
class Location:
    """A pickup or dropoff point."""
    latitude: float
    longitude: float
    address: str = ""


@dataclass
class DispatchResult:
    """Result object for dispatch operations."""
    success: bool
    task: Optional[DeliveryTask] = None
    message: str = ""
    next_volunteer_id: Optional[int] = None
    extra: Optional[Dict[str, Any]] = None


def volunteer_offer_ttl() -> timedelta:
    return timedelta(seconds=getattr(settings, "VOLUNTEER_OFFER_TTL_SECONDS", 60))


# ===================== Task Creation =====================

def create_and_offer(
    donation: Donation,
    pickup: Location,
    dropoff: Location,
    summary: Optional[Dict[str, Any]] = None,
    sink: Optional[NotificationSink] = None,
) -> DeliveryTask:
    """
    Create the delivery task for an accepted donation and offer it to the
    closest available volunteer.

    Args:
        donation: Donation accepted by its beneficiary
        pickup: Donor-side location
        dropoff: Beneficiary-side location
        summary: Items / quantity / category shown to volunteers
        sink: Notification sink (defaults to settings.NOTIFICATION_SINK)

    Returns:
        The DeliveryTask, `offered` or `unassigned`. A donation that already
        has a task gets that task back unchanged.
    """
    sink = sink or get_notification_sink()

    # Snapshot of candidates; never rebuilt for this task
    queue = build_candidate_queue(pickup.latitude, pickup.longitude)

    with transaction.atomic():
        donation = Donation.objects.select_for_update().get(pk=donation.pk)
        task, created = open_delivery_task(donation, pickup, dropoff, queue, summary)

    if created:
        notify_new_task(sink, task)
    return task


def open_delivery_task(
    donation: Donation,
    pickup: Location,
    dropoff: Location,
    queue: List[Dict[str, Any]],
    summary: Optional[Dict[str, Any]] = None,
) -> Tuple[DeliveryTask, bool]:
    """
    Store the task and its first offer. Must be called inside
    transaction.atomic() with the donation row locked; the caller sends
    notify_new_task() once the transaction has committed.

    Returns:
        (task, created) - created is False when the donation already had one
    """
    existing = DeliveryTask.objects.filter(pk=donation.pk).first()
    if existing is not None:
        logger.info("Delivery task %s already exists, not recreating", existing.pk)
        return existing, False

    now = timezone.now()
    task = DeliveryTask(
        donation=donation,
        donor_id=donation.donor_id,
        beneficiary_id=donation.beneficiary_id,
        pickup_latitude=pickup.latitude,
        pickup_longitude=pickup.longitude,
        pickup_address=pickup.address,
        dropoff_latitude=dropoff.latitude,
        dropoff_longitude=dropoff.longitude,
        dropoff_address=dropoff.address,
        donation_summary=summary if summary is not None else donation.summary(),
        candidate_queue=queue,
        rejected_volunteers=[],
        assignment_log=[],
    )

    first_index = next_candidate_index(
        queue, -1, [], is_offerable=lambda vid: _is_offerable(vid, donation.pk)
    )
    if first_index is None:
        task.status = DeliveryTask.Status.UNASSIGNED
        donation.delivery_status = Donation.DeliveryStatus.WAITING_FOR_VOLUNTEER
    else:
        task.status = DeliveryTask.Status.OFFERED
        task.current_candidate_index = first_index
        task.current_volunteer_id = queue[first_index]["volunteer_id"]
        task.offer_expiry = now + volunteer_offer_ttl()
        donation.delivery_status = Donation.DeliveryStatus.PENDING_VOLUNTEER_RESPONSE

    task.save()
    donation.save(update_fields=["delivery_status", "updated_at"])

    if getattr(settings, "DISPATCH_BROADCAST_FANOUT", False):
        from .broadcast import broadcast_to_candidates
        broadcast_to_candidates(task)

    logger.info(
        "Created delivery task %s (%s) with %d candidates",
        task.pk, task.status, len(queue),
    )

    return task, True


def notify_new_task(sink: NotificationSink, task: DeliveryTask) -> None:
    if task.status == DeliveryTask.Status.OFFERED:
        _notify_offer(sink, task)
    else:
        _notify_exhausted(sink, task, "No volunteers available")


# ===================== Queue Advancement =====================

def advance(
    task: DeliveryTask,
    *,
    action: str,
    actor: Optional[int],
    reason: str,
    now=None,
) -> Optional[int]:
    """
    Move a task to its next candidate, or to `unassigned` when none is left.

    Must be called inside transaction.atomic() with the task row locked.
    Rejecting callers add the volunteer to task.rejected_volunteers first;
    timed-out volunteers are simply stepped over.

    Returns:
        The newly offered volunteer id, or None if the queue is exhausted
    """
    now = now or timezone.now()

    next_index = next_candidate_index(
        task.candidate_queue,
        task.current_candidate_index,
        task.rejected_volunteers,
        is_offerable=lambda vid: _is_offerable(vid, task.pk),
    )

    task.assignment_log = [
        *task.assignment_log,
        {
            "time": now.isoformat(),
            "action": action,
            "actor": actor,
            "reason": reason,
        },
    ]

    if next_index is None:
        task.status = DeliveryTask.Status.UNASSIGNED
        task.current_volunteer = None
        task.offer_expiry = None
        delivery_status = Donation.DeliveryStatus.WAITING_FOR_VOLUNTEER
    else:
        task.status = DeliveryTask.Status.OFFERED
        task.current_candidate_index = next_index
        task.current_volunteer_id = task.candidate_queue[next_index]["volunteer_id"]
        task.offer_expiry = now + volunteer_offer_ttl()
        delivery_status = Donation.DeliveryStatus.PENDING_VOLUNTEER_RESPONSE

    task.save(update_fields=[
        "status",
        "current_candidate_index",
        "current_volunteer",
        "offer_expiry",
        "rejected_volunteers",
        "assignment_log",
        "accepted_at",
    ])
    Donation.objects.filter(pk=task.pk).update(delivery_status=delivery_status, updated_at=now)

    logger.info(
        "Task %s %s by %s (%s): now %s -> %s",
        task.pk, action, actor, reason, task.status, task.current_volunteer_id,
    )
    return task.current_volunteer_id


def expire_offer_and_advance(
    task_id: int,
    expected_volunteer_id: Optional[int] = None,
    sink: Optional[NotificationSink] = None,
) -> DispatchResult:
    """
    Expire the current volunteer offer and dispatch the next candidate.

    A no-op when the task was accepted, rejected or advanced in the meantime
    (or now belongs to a different volunteer than the caller observed).
    """
    sink = sink or get_notification_sink()

    with transaction.atomic():
        task = _lock_task(task_id)
        now = timezone.now()

        if task.status != DeliveryTask.Status.OFFERED or task.offer_expiry is None or task.offer_expiry > now:
            return DispatchResult(success=False, task=task, message="Offer is no longer pending expiry")
        if expected_volunteer_id is not None and task.current_volunteer_id != expected_volunteer_id:
            return DispatchResult(success=False, task=task, message="Offer moved on to another volunteer")

        timed_out = task.current_volunteer_id
        next_volunteer_id = advance(
            task, action=ACTION_REASSIGN, actor=timed_out, reason=REASON_TIMEOUT, now=now
        )

    notify_user(
        sink, timed_out, "offer_expired", "Delivery offer expired",
        "Your delivery offer has timed out.", _task_payload(task),
    )
    _notify_transition(sink, task, REASON_TIMEOUT)

    return DispatchResult(
        success=True,
        task=task,
        message="Offer expired",
        next_volunteer_id=next_volunteer_id,
    )


# ===================== Volunteer Operations =====================

def accept_task(task_id: int, volunteer, sink: Optional[NotificationSink] = None) -> DispatchResult:
    """
    Accept a delivery task that was offered to this volunteer.

    First acceptance wins: a concurrent caller blocks on the task row lock and
    then sees the task already taken, so it aborts without changing anything.
    """
    sink = sink or get_notification_sink()

    with transaction.atomic():
        task = _lock_task(task_id)

        if task.current_volunteer_id != volunteer.id:
            raise NotAssignedError("This task is not assigned to you")
        if task.status != DeliveryTask.Status.OFFERED:
            raise TaskNotOpenError("This task is not open")

        now = timezone.now()
        if task.offer_expiry is None or task.offer_expiry <= now:
            raise OfferExpiredError("This offer has expired")

        donation = Donation.objects.select_for_update().get(pk=task.pk)
        profile = VolunteerProfile.objects.select_for_update().filter(user_id=volunteer.id).first()
        if profile is None or profile.availability == VolunteerProfile.Availability.BUSY:
            raise VolunteerNotAvailableError("You already have an active delivery")

        task.status = DeliveryTask.Status.ACCEPTED
        task.accepted_at = now
        task.offer_expiry = None
        task.save(update_fields=["status", "accepted_at", "offer_expiry"])

        donation.status = Donation.Status.ASSIGNED
        donation.assigned_volunteer_id = volunteer.id
        donation.delivery_status = Donation.DeliveryStatus.ACCEPTED_BY_VOLUNTEER
        donation.save(update_fields=["status", "assigned_volunteer", "delivery_status", "updated_at"])

        profile.availability = VolunteerProfile.Availability.BUSY
        profile.save(update_fields=["availability"])

        TransportRequest.objects.filter(
            donation_id=task.pk, volunteer_id=volunteer.id
        ).update(status="accepted")

    logger.info("Task %s accepted by volunteer %s", task.pk, volunteer.id)

    # Best effort, after commit
    _cleanup_sibling_requests(task.pk, volunteer.id)

    payload = _task_payload(task)
    name = volunteer.get_full_name() or volunteer.username
    for recipient_id in (task.donor_id, task.beneficiary_id):
        notify_user(
            sink, recipient_id, "delivery_accepted", "Volunteer assigned!",
            f"{name} is on the way to deliver {task.donation_summary.get('food_item', 'the donation')}.",
            payload,
        )

    return DispatchResult(success=True, task=task, message="Task accepted. Head to the pickup location.")


def reject_task(
    task_id: int,
    volunteer,
    reason: str = "",
    sink: Optional[NotificationSink] = None,
) -> DispatchResult:
    """
    Reject the task and hand it to the next candidate in the queue.

    Also used by a volunteer dropping out after accepting: the donation then
    falls back to `accepted_by_beneficiary` until someone else accepts.
    """
    sink = sink or get_notification_sink()

    with transaction.atomic():
        task = _lock_task(task_id)

        if task.current_volunteer_id != volunteer.id:
            raise NotAssignedError("This task is not assigned to you")

        now = timezone.now()
        was_accepted = task.status == DeliveryTask.Status.ACCEPTED

        if volunteer.id not in task.rejected_volunteers:
            task.rejected_volunteers = [*task.rejected_volunteers, volunteer.id]

        if was_accepted:
            task.accepted_at = None
            Donation.objects.filter(pk=task.pk).update(
                status=Donation.Status.ACCEPTED_BY_BENEFICIARY,
                assigned_volunteer=None,
                updated_at=now,
            )

        next_volunteer_id = advance(
            task,
            action=ACTION_REJECTED,
            actor=volunteer.id,
            reason=reason or "rejected",
            now=now,
        )
        if next_volunteer_id is None:
            Donation.objects.filter(pk=task.pk).update(
                delivery_status=Donation.DeliveryStatus.REJECTED_BY_VOLUNTEER,
                updated_at=now,
            )

        profile = VolunteerProfile.objects.select_for_update().filter(user_id=volunteer.id).first()
        if profile is not None:
            profile.availability = profile.toggle_availability()
            profile.save(update_fields=["availability"])

        TransportRequest.objects.filter(donation_id=task.pk, volunteer_id=volunteer.id).delete()

    _notify_transition(sink, task, reason or "rejected")
    if was_accepted:
        payload = _task_payload(task)
        for recipient_id in (task.donor_id, task.beneficiary_id):
            notify_user(
                sink, recipient_id, "delivery_rejected", "Volunteer dropped out",
                "Your volunteer can no longer make this delivery.",
                payload,
            )

    message = "Task declined."
    if next_volunteer_id:
        message += " It has been offered to the next volunteer."
    return DispatchResult(
        success=True,
        task=task,
        message=message,
        next_volunteer_id=next_volunteer_id,
    )


def complete_delivery(task_id: int, volunteer, sink: Optional[NotificationSink] = None) -> DispatchResult:
    """
    Mark the delivery done - called by the volunteer on hand-over.
    Re-invoking it on a completed task changes nothing.
    """
    sink = sink or get_notification_sink()

    with transaction.atomic():
        task = _lock_task(task_id)
        donation = Donation.objects.select_for_update().get(pk=task.pk)

        if task.status == DeliveryTask.Status.COMPLETED:
            if donation.assigned_volunteer_id != volunteer.id:
                raise NotAssignedError("This task is not assigned to you")
            return DispatchResult(
                success=True,
                task=task,
                message="Delivery already completed",
                extra={"already_completed": True},
            )

        if task.current_volunteer_id != volunteer.id:
            raise NotAssignedError("This task is not assigned to you")
        if task.status != DeliveryTask.Status.ACCEPTED:
            raise TaskNotOpenError("This task has not been accepted")

        now = timezone.now()
        task.status = DeliveryTask.Status.COMPLETED
        task.completed_at = now
        task.current_volunteer = None
        task.save(update_fields=["status", "completed_at", "current_volunteer"])

        donation.status = Donation.Status.DELIVERED
        donation.delivery_status = Donation.DeliveryStatus.COMPLETED
        donation.delivered_at = now
        donation.save(update_fields=["status", "delivery_status", "delivered_at", "updated_at"])

        profile = VolunteerProfile.objects.select_for_update().filter(user_id=volunteer.id).first()
        if profile is not None:
            profile.availability = profile.toggle_availability()
            profile.save(update_fields=["availability"])

        TransportRequest.objects.filter(
            donation_id=task.pk, volunteer_id=volunteer.id, status="accepted"
        ).update(status="completed")

    logger.info("Task %s completed by volunteer %s", task.pk, volunteer.id)

    payload = _task_payload(task)
    for recipient_id in (task.donor_id, task.beneficiary_id):
        notify_user(
            sink, recipient_id, "delivery_completed", "Delivery completed",
            "The donation has been delivered. Thank you!", payload,
        )

    return DispatchResult(
        success=True,
        task=task,
        message="Delivery completed successfully",
        extra={"already_completed": False},
    )


# ===================== Helper Functions =====================

def _lock_task(task_id: int) -> DeliveryTask:
    try:
        return DeliveryTask.objects.select_for_update().get(pk=task_id)
    except DeliveryTask.DoesNotExist:
        raise TaskNotFoundError("Task not found")


def _is_offerable(volunteer_id: int, task_pk: Optional[int] = None) -> bool:
    """
    Available and not already holding another offered/accepted task.

    Only a volunteer who passes the unlocked check is locked, then checked
    again; a concurrent dispatch for the same volunteer waits on that lock
    and then sees the earlier offer.
    """
    available = VolunteerProfile.objects.filter(
        user_id=volunteer_id,
        availability=VolunteerProfile.Availability.AVAILABLE,
    ).exists()
    if not available:
        return False

    profile = VolunteerProfile.objects.select_for_update().filter(user_id=volunteer_id).first()
    if profile is None or profile.availability != VolunteerProfile.Availability.AVAILABLE:
        return False

    holding = DeliveryTask.objects.filter(
        current_volunteer_id=volunteer_id,
        status__in=OPEN_TASK_STATUSES,
    )
    if task_pk is not None:
        holding = holding.exclude(pk=task_pk)
    return not holding.exists()


def _task_payload(task: DeliveryTask) -> Dict[str, Any]:
    return {
        "donation_id": task.pk,
        "task_id": task.pk,
        "status": task.status,
        "offer_expiry": task.offer_expiry.isoformat() if task.offer_expiry else None,
        "pickup_address": task.pickup_address,
        "dropoff_address": task.dropoff_address,
        "summary": task.donation_summary,
    }


def _notify_offer(sink: NotificationSink, task: DeliveryTask) -> None:
    notify_user(
        sink,
        task.current_volunteer_id,
        "task_offered",
        "New delivery request",
        f"Pickup at {task.pickup_address or 'the donor location'}. "
        f"Respond within {int(volunteer_offer_ttl().total_seconds())} seconds.",
        _task_payload(task),
    )


def _notify_exhausted(sink: NotificationSink, task: DeliveryTask, reason: str) -> None:
    notify_admins(
        sink,
        "no_volunteers",
        "No volunteers available",
        f"Delivery task {task.pk} could not be assigned: {reason}",
        _task_payload(task),
    )


def _notify_transition(sink: NotificationSink, task: DeliveryTask, reason: str) -> None:
    if task.status == DeliveryTask.Status.OFFERED:
        _notify_offer(sink, task)
    else:
        _notify_exhausted(sink, task, reason)


def _cleanup_sibling_requests(donation_id: int, winner_id: int) -> int:
    """
    Delete the other still-pending broadcast requests for a donation.
    Runs after the acceptance committed; failures are logged, not retried.
    """
    deleted = 0
    try:
        siblings = list(
            TransportRequest.objects.filter(donation_id=donation_id, status="pending")
            .exclude(volunteer_id=winner_id)
        )
    except Exception:
        logger.exception("Could not load sibling transport requests for donation %s", donation_id)
        return deleted

    for request in siblings:
        try:
            request.delete()
            deleted += 1
        except Exception:
            logger.warning("Could not delete transport request %s", request.pk, exc_info=True)

    if deleted:
        logger.info("Deleted %d pending sibling requests for donation %s", deleted, donation_id)
    return deleted
