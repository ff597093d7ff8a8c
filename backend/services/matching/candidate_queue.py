"""
Build ordered volunteer candidate queues for delivery tasks.

Uses volunteer locations and distances to create a prioritized list of
volunteers to offer the task to (closest first), and walks that list forward.
"""

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

from common.utils import distance_km
from volunteers.services import get_available_volunteers

logger = logging.getLogger(__name__)


def build_candidate_queue(pickup_lat, pickup_lon) -> List[Dict[str, Any]]:
    """
    Build the ordered candidate queue for one pickup point.

    Args:
        pickup_lat: Pickup latitude
        pickup_lon: Pickup longitude

    Returns:
        List of {"volunteer_id", "distance_km"} sorted closest first;
        equal distances keep scan order
    """
    candidates: List[Dict[str, Any]] = []
    for profile in get_available_volunteers():
        distance = distance_km(
            float(pickup_lat),
            float(pickup_lon),
            float(profile.current_latitude),
            float(profile.current_longitude),
        )
        candidates.append({
            "volunteer_id": profile.user_id,
            "distance_km": distance,
        })

    # Sort closest → farthest (stable)
    candidates.sort(key=lambda item: item["distance_km"])

    logger.info(
        "Built candidate queue of %d volunteers for pickup (%s, %s)",
        len(candidates), pickup_lat, pickup_lon,
    )
    return candidates


def next_candidate_index(
    queue: List[Dict[str, Any]],
    current_index: int,
    rejected: Iterable[int],
    is_offerable: Optional[Callable[[int], bool]] = None,
) -> Optional[int]:
    """
    Smallest index after `current_index` whose volunteer has not rejected
    the task and is still offerable. None when the queue is exhausted.
    """
    rejected = set(rejected)
    for index in range(max(current_index + 1, 0), len(queue)):
        volunteer_id = queue[index]["volunteer_id"]
        if volunteer_id in rejected:
            continue
        if is_offerable is not None and not is_offerable(volunteer_id):
            logger.debug("Skipping volunteer %s at index %d: not offerable", volunteer_id, index)
            continue
        return index
    return None
