from django.contrib import admin
from .models import VolunteerProfile


@admin.register(VolunteerProfile)
class VolunteerProfileAdmin(admin.ModelAdmin):
    list_display = ("user", "availability", "transport_active", "current_latitude",
                    "current_longitude", "last_location_update")
    list_filter = ("availability", "transport_active")
    search_fields = ("user__username",)
