import logging
from typing import List

from django.utils import timezone

from volunteers.models import VolunteerProfile

logger = logging.getLogger(__name__)


def get_available_volunteers() -> List[VolunteerProfile]:
    """
    Volunteers who can be offered a delivery right now.
    Full scan plus in-memory location filter, in primary-key (scan) order.
    """
    profiles = (
        VolunteerProfile.objects.select_related("user")
        .filter(
            user__role="volunteer",
            availability=VolunteerProfile.Availability.AVAILABLE,
        )
        .order_by("user_id")
    )
    return [profile for profile in profiles if profile.has_valid_location]


# VOLUNTEER SERVICE TOGGLE
def update_service_toggle(profile: VolunteerProfile, active: bool) -> VolunteerProfile:
    """
    Flip the user-facing service toggle.
    A volunteer in the middle of a delivery stays busy; the toggle takes
    effect when the delivery ends.
    """
    profile.transport_active = active
    update_fields = ["transport_active"]

    if profile.availability != VolunteerProfile.Availability.BUSY:
        profile.availability = profile.toggle_availability()
        update_fields.append("availability")

    profile.save(update_fields=update_fields)
    logger.info(
        "Volunteer %s toggle=%s availability=%s",
        profile.user_id, active, profile.availability,
    )
    return profile


def update_volunteer_location(profile: VolunteerProfile, lat, lon) -> VolunteerProfile:
    profile.current_latitude = lat
    profile.current_longitude = lon
    profile.last_location_update = timezone.now()
    profile.save(update_fields=["current_latitude", "current_longitude", "last_location_update"])
    return profile
