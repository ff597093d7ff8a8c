"""
Donation management service - Donation lifecycle before dispatch.

This module handles:
    - Creating donations
    - Beneficiary accept/decline/expire of an offer
    - Server-side expiry of beneficiary offers
    - Donor resubmission
"""

from .donation_lifecycle import (
    DECISIONS,
    create_donation,
    respond_to_offer,
    accept_offer,
    release_offer,
    expire_beneficiary_offer,
    resubmit_donation,
)

__all__ = [
    "DECISIONS",
    "create_donation",
    "respond_to_offer",
    "accept_offer",
    "release_offer",
    "expire_beneficiary_offer",
    "resubmit_donation",
]
