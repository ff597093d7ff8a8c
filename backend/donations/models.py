from django.db import models
from django.conf import settings

from common.utils import is_valid_coordinate


class Donation(models.Model):
    """One surplus-food offering, from creation to delivery."""

    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        OFFERED = 'offered', 'Offered to Beneficiary'
        ACCEPTED_BY_BENEFICIARY = 'accepted_by_beneficiary', 'Accepted by Beneficiary'
        ASSIGNED = 'assigned', 'Assigned to Volunteer'
        DELIVERED = 'delivered', 'Delivered'
        EXPIRED = 'expired', 'Expired'

    class DeliveryStatus(models.TextChoices):
        NOT_STARTED = 'not_started', 'Not Started'
        PENDING_VOLUNTEER_RESPONSE = 'pending_volunteer_response', 'Pending Volunteer Response'
        WAITING_FOR_VOLUNTEER = 'waiting_for_volunteer', 'Waiting for Volunteer'
        ACCEPTED_BY_VOLUNTEER = 'accepted_by_volunteer', 'Accepted by Volunteer'
        REJECTED_BY_VOLUNTEER = 'rejected_by_volunteer', 'Rejected by Volunteer'
        COMPLETED = 'completed', 'Completed'

    donor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='donations'
    )

    # Pickup location (nullable so a bad record can be marked expired)
    latitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    longitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    pickup_address = models.TextField(blank=True, default='')

    # Food metadata
    food_item = models.CharField(max_length=200)
    quantity = models.CharField(max_length=100, blank=True, default='')
    food_type = models.CharField(max_length=100, blank=True, default='')

    status = models.CharField(max_length=30, choices=Status.choices, default=Status.PENDING)
    delivery_status = models.CharField(
        max_length=30, choices=DeliveryStatus.choices, default=DeliveryStatus.NOT_STARTED
    )
    error = models.TextField(blank=True, default='')

    # Open beneficiary offer: both set or both null
    offered_to = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='donation_offers'
    )
    offer_expiry = models.DateTimeField(null=True, blank=True)

    beneficiary = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='received_donations'
    )
    assigned_volunteer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='assigned_donations'
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    accepted_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'donations'
        ordering = ['-created_at']
        constraints = [
            models.CheckConstraint(
                condition=(
                    models.Q(offered_to__isnull=True, offer_expiry__isnull=True)
                    | models.Q(offered_to__isnull=False, offer_expiry__isnull=False)
                ),
                name='donation_offer_fields_paired',
            ),
        ]

    def __str__(self):
        return f"Donation #{self.id} - {self.food_item} - {self.status}"

    @property
    def has_valid_location(self) -> bool:
        return is_valid_coordinate(self.latitude, self.longitude)

    def clear_offer(self):
        self.offered_to = None
        self.offer_expiry = None

    def summary(self) -> dict:
        return {
            "food_item": self.food_item,
            "quantity": self.quantity,
            "food_type": self.food_type,
        }


class DeliveryTask(models.Model):
    """
    Dispatch record for moving an accepted donation from donor to beneficiary.

    The candidate queue is written once at creation and never reordered;
    the queue is walked forward one volunteer at a time.
    """

    class Status(models.TextChoices):
        OFFERED = 'offered', 'Offered'
        ACCEPTED = 'accepted', 'Accepted'
        UNASSIGNED = 'unassigned', 'Unassigned'
        COMPLETED = 'completed', 'Completed'

    # Keyed by donation: task pk == donation pk
    donation = models.OneToOneField(
        Donation,
        on_delete=models.CASCADE,
        primary_key=True,
        related_name='delivery_task'
    )
    donor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='donor_tasks'
    )
    beneficiary = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='beneficiary_tasks'
    )

    pickup_latitude = models.DecimalField(max_digits=9, decimal_places=6)
    pickup_longitude = models.DecimalField(max_digits=9, decimal_places=6)
    pickup_address = models.TextField(blank=True, default='')
    dropoff_latitude = models.DecimalField(max_digits=9, decimal_places=6)
    dropoff_longitude = models.DecimalField(max_digits=9, decimal_places=6)
    dropoff_address = models.TextField(blank=True, default='')
    donation_summary = models.JSONField(default=dict, blank=True)

    # [{"volunteer_id": int, "distance_km": float}, ...] closest first
    candidate_queue = models.JSONField(default=list, blank=True)
    rejected_volunteers = models.JSONField(default=list, blank=True)
    current_candidate_index = models.IntegerField(default=-1)
    current_volunteer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='current_tasks'
    )

    status = models.CharField(max_length=20, choices=Status.choices)
    offer_expiry = models.DateTimeField(null=True, blank=True, db_index=True)

    # Append-only: [{"time", "action", "actor", "reason"}, ...]
    assignment_log = models.JSONField(default=list, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    accepted_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'delivery_tasks'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'offer_expiry'], name='task_status_expiry_idx'),
        ]

    def __str__(self):
        return f"Task #{self.pk} - {self.status} -> {self.current_volunteer_id}"

    @property
    def queue_ids(self):
        return [entry["volunteer_id"] for entry in self.candidate_queue]


class TransportRequest(models.Model):
    """
    DEPRECATED: per-volunteer sibling record from the broadcast fan-out.

    Only written when settings.DISPATCH_BROADCAST_FANOUT is on. Sequential
    dispatch through DeliveryTask is the source of truth; losing siblings
    are deleted after an acceptance commits.
    """

    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('accepted', 'Accepted'),
        ('completed', 'Completed'),
    ]

    donation = models.ForeignKey(
        Donation,
        on_delete=models.CASCADE,
        related_name='transport_requests'
    )
    volunteer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='transport_requests'
    )
    distance_km = models.FloatField()
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'transport_requests'
        constraints = [
            models.UniqueConstraint(
                fields=['donation', 'volunteer'],
                name='unique_donation_volunteer'
            )
        ]

    def __str__(self):
        return f"TransportRequest #{self.id} - Donation {self.donation_id} -> {self.volunteer_id}"
