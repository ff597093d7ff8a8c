from django.db import models
from django.contrib.auth.models import AbstractUser

from common.utils import is_valid_coordinate


class User(AbstractUser):
    """Extended user model with role selection"""
    ROLE_DONOR = 'donor'
    ROLE_BENEFICIARY = 'beneficiary'
    ROLE_VOLUNTEER = 'volunteer'
    ROLE_ADMIN = 'admin'

    ROLE_CHOICES = [
        (ROLE_DONOR, 'Donor'),
        (ROLE_BENEFICIARY, 'Beneficiary'),
        (ROLE_VOLUNTEER, 'Volunteer'),
        (ROLE_ADMIN, 'Administrator'),
    ]
    
    # Role & basic info
    role = models.CharField(max_length=20, choices=ROLE_CHOICES)
    phone_number = models.CharField(max_length=15, blank=True)
    address = models.TextField(blank=True, default='')

    # Home / organisation location (donors and beneficiaries)
    latitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    longitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)

    # Reachability token for push delivery
    push_token = models.CharField(max_length=255, blank=True, default='')
    
    class Meta:
        db_table = 'users'
        
    def __str__(self):
        return f"{self.username} ({self.get_role_display()})"

    @property
    def has_valid_location(self) -> bool:
        return is_valid_coordinate(self.latitude, self.longitude)
