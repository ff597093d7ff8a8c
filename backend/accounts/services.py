"""
Read access to actor records (donors, beneficiaries, volunteers).

Queries are full scans filtered in memory; ordering by primary key keeps
"first encountered" tie-breaks stable between runs.
"""

from typing import Any, Dict, List

from accounts.models import User
from common.utils import distance_km, is_valid_coordinate


def get_beneficiaries_with_location() -> List[User]:
    """Beneficiaries that have a usable location, in scan order."""
    beneficiaries = User.objects.filter(role=User.ROLE_BENEFICIARY).order_by("pk")
    return [user for user in beneficiaries if user.has_valid_location]


def find_nearest_beneficiaries(lat, lon) -> List[Dict[str, Any]]:
    """
    Beneficiaries sorted ascending by distance from (lat, lon).
    Used by the admin/diagnostic endpoint.
    """
    nearby = []
    for user in get_beneficiaries_with_location():
        dist = distance_km(lat, lon, user.latitude, user.longitude)
        nearby.append({
            "id": user.id,
            "name": user.get_full_name() or user.username,
            "address": user.address,
            "latitude": float(user.latitude),
            "longitude": float(user.longitude),
            "distance_km": round(dist, 3),
        })

    # sort is stable, so equal distances keep scan order
    nearby.sort(key=lambda item: item["distance_km"])
    return nearby


def location_of(user: User):
    """(lat, lon) for a user, or None when nothing valid is on file."""
    if not is_valid_coordinate(user.latitude, user.longitude):
        return None
    return float(user.latitude), float(user.longitude)
