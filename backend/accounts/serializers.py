from rest_framework import serializers
from .models import User


class UserBasicSerializer(serializers.ModelSerializer):
    """
    Basic actor representation used inside donation and task responses.
    """
    class Meta:
        model = User
        fields = ["id", "username", "role", "phone_number", "address"]


class RequestLocationSerializer(serializers.Serializer):
    """
    Validates latitude/longitude sent as body or query parameters.

    Expected:
    {
        "latitude": <float>,
        "longitude": <float>
    }
    """

    latitude = serializers.FloatField(
        required=True,
        min_value=-90,
        max_value=90,
        help_text="Latitude between -90 and 90 degrees."
    )

    longitude = serializers.FloatField(
        required=True,
        min_value=-180,
        max_value=180,
        help_text="Longitude between -180 and 180 degrees."
    )


class LoginSerializer(serializers.Serializer):
    """Serializer for login (username/password)"""
    username = serializers.CharField()
    password = serializers.CharField(write_only=True)
