from django.contrib import admin
from django.urls import path, include

from .views import health_check

urlpatterns = [
    path('admin/', admin.site.urls),
    path("health/", health_check), # Health check endpoint

    # Authentication endpoints (at /api/auth/)
    path('api/auth/', include('accounts.urls')),  # login and token refresh

    # Volunteer APIs (service toggle, live location)
    path('api/volunteer/', include('volunteers.urls')),

    # Notification inbox (list, unread count, mark read)
    path('api/notifications/', include('notifications.urls')),

    # Donation, beneficiary and delivery task endpoints (at /api/)
    path('api/', include('donations.urls')),
]
