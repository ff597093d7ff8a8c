from django.db import models
from django.utils import timezone
from django.conf import settings

from common.utils import is_valid_coordinate

User = settings.AUTH_USER_MODEL


class VolunteerProfile(models.Model):
    """Volunteer availability and live location"""

    class Availability(models.TextChoices):
        AVAILABLE = 'available', 'Available'
        BUSY = 'busy', 'Busy'
        INACTIVE = 'inactive', 'Inactive'

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='volunteer_profile')

    # `busy` is transient (active delivery); transport_active is the user's own toggle
    availability = models.CharField(
        max_length=20, choices=Availability.choices, default=Availability.INACTIVE
    )
    transport_active = models.BooleanField(default=False)

    current_latitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    current_longitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    last_location_update = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'volunteer_profiles'

    def __str__(self):
        return f"{self.user.username} - {self.availability}"

    @property
    def has_valid_location(self) -> bool:
        return is_valid_coordinate(self.current_latitude, self.current_longitude)

    def toggle_availability(self) -> str:
        """Availability the service toggle prescribes once a delivery ends."""
        if self.transport_active:
            return self.Availability.AVAILABLE
        return self.Availability.INACTIVE
