from django.contrib import admin
from .models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ("id", "event_type", "audience", "recipient", "donation_id", "read", "created_at")
    list_filter = ("audience", "event_type", "read")
    search_fields = ("recipient__username", "title", "message")
