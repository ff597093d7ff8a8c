from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from accounts.models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Admin panel for custom User model"""

    list_display = [
        "username",
        "email",
        "role",
        "phone_number",
        "latitude",
        "longitude",
        "is_active",
    ]

    list_filter = [
        "role",
        "is_active",
        "is_staff",
    ]

    search_fields = [
        "username",
        "email",
        "phone_number",
        "address",
    ]

    ordering = ("username",)

    fieldsets = BaseUserAdmin.fieldsets + (
        (
            "Donation Network",
            {
                "fields": (
                    "role",
                    "phone_number",
                    "address",
                    "latitude",
                    "longitude",
                    "push_token",
                )
            },
        ),
    )

    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        (
            "Donation Network",
            {
                "fields": (
                    "role",
                    "phone_number",
                    "address",
                )
            },
        ),
    )
