"""
Beneficiary and volunteer matching.

This module handles:
    - Finding the nearest beneficiary for a new donation and opening an offer
    - Building ordered volunteer candidate queues (closest first)
    - Walking a candidate queue forward
"""

from .beneficiary_matcher import (
    BENEFICIARY_OFFER_TTL_SECONDS,
    find_nearest_beneficiary,
    on_donation_created,
)
from .candidate_queue import build_candidate_queue, next_candidate_index

__all__ = [
    "BENEFICIARY_OFFER_TTL_SECONDS",
    "find_nearest_beneficiary",
    "on_donation_created",
    "build_candidate_queue",
    "next_candidate_index",
]
