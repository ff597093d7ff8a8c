from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from accounts.permissions import IsVolunteer
from accounts.serializers import RequestLocationSerializer
from volunteers.models import VolunteerProfile
from volunteers.serializers import VolunteerProfileSerializer, ServiceToggleSerializer
from volunteers import services


def get_volunteer_profile(user):
    profile, _ = VolunteerProfile.objects.get_or_create(user=user)
    return profile


class VolunteerStatusView(APIView):
    permission_classes = [IsAuthenticated, IsVolunteer]

    def get(self, request):
        profile = get_volunteer_profile(request.user)
        return Response(VolunteerProfileSerializer(profile).data)

    def put(self, request):
        profile = get_volunteer_profile(request.user)

        serializer = ServiceToggleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        services.update_service_toggle(profile, serializer.validated_data["transport_active"])

        return Response({
            "message": f"Availability is now {profile.availability}",
            "availability": profile.availability,
            "transport_active": profile.transport_active,
        })


class VolunteerLocationUpdateView(APIView):
    permission_classes = [IsAuthenticated, IsVolunteer]

    def post(self, request):
        profile = get_volunteer_profile(request.user)

        serializer = RequestLocationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        lat = serializer.validated_data["latitude"]
        lon = serializer.validated_data["longitude"]

        services.update_volunteer_location(profile, lat, lon)

        return Response({
            "message": "Location updated",
            "latitude": float(lat),
            "longitude": float(lon),
            "availability": profile.availability,
        })
