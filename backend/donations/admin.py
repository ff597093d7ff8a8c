"""Tells what to show in the Django admin interface for donations app"""

from django.contrib import admin
from .models import Donation, DeliveryTask, TransportRequest

@admin.register(Donation)
class DonationAdmin(admin.ModelAdmin):
    """Donation admin"""
    list_display = ['id', 'donor', 'food_item', 'status', 'delivery_status', 'offered_to',
                    'beneficiary', 'assigned_volunteer', 'created_at']
    list_filter = ['status', 'delivery_status', 'created_at']
    search_fields = ['donor__username', 'beneficiary__username', 'food_item', 'pickup_address']
    readonly_fields = ['created_at', 'updated_at', 'accepted_at', 'delivered_at']
    date_hierarchy = 'created_at'


@admin.register(DeliveryTask)
class DeliveryTaskAdmin(admin.ModelAdmin):
    list_display = ("donation", "status", "current_volunteer", "current_candidate_index",
                    "offer_expiry", "created_at")
    list_filter = ("status",)
    search_fields = ("donation__id", "current_volunteer__username")
    readonly_fields = ("candidate_queue", "rejected_volunteers", "assignment_log")


@admin.register(TransportRequest)
class TransportRequestAdmin(admin.ModelAdmin):
    list_display = ("donation", "volunteer", "distance_km", "status", "created_at")
    list_filter = ("status",)
    search_fields = ("donation__id", "volunteer__username")
