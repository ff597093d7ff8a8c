from rest_framework import serializers
from volunteers.models import VolunteerProfile


class VolunteerProfileSerializer(serializers.ModelSerializer):
    username = serializers.CharField(source="user.username", read_only=True)

    class Meta:
        model = VolunteerProfile
        fields = [
            "id",
            "username",
            "availability",
            "transport_active",
            "current_latitude",
            "current_longitude",
            "last_location_update",
        ]
        read_only_fields = fields


class ServiceToggleSerializer(serializers.Serializer):
    """
    Serializer for the volunteer's on/off service toggle.
    """
    transport_active = serializers.BooleanField()
