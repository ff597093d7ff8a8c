from django.urls import path
from .views import VolunteerStatusView, VolunteerLocationUpdateView

urlpatterns = [
    path("status/", VolunteerStatusView.as_view(), name="volunteer-status"),
    path("location/", VolunteerLocationUpdateView.as_view(), name="volunteer-location"),
]
