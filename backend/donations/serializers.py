from rest_framework import serializers

from accounts.serializers import UserBasicSerializer
from services.donation_management import DECISIONS
from .models import Donation, DeliveryTask


class DonationSerializer(serializers.ModelSerializer):
    """Serializer for Donations"""
    donor = UserBasicSerializer(read_only=True)
    beneficiary = UserBasicSerializer(read_only=True)
    assigned_volunteer = UserBasicSerializer(read_only=True)

    class Meta:
        model = Donation
        fields = ['id', 'donor', 'latitude', 'longitude', 'pickup_address',
                  'food_item', 'quantity', 'food_type', 'status', 'delivery_status',
                  'error', 'offered_to', 'offer_expiry', 'beneficiary',
                  'assigned_volunteer', 'created_at', 'accepted_at', 'delivered_at']
        read_only_fields = fields


class DonationCreateSerializer(serializers.Serializer):
    """
    Serializer for creating donations.

    Coordinates are required here; the view turns a failure into a
    400 before anything is stored.
    """
    latitude = serializers.FloatField(min_value=-90, max_value=90)
    longitude = serializers.FloatField(min_value=-180, max_value=180)
    pickup_address = serializers.CharField(required=False, allow_blank=True, default='')
    food_item = serializers.CharField(max_length=200)
    quantity = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    food_type = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')


class BeneficiaryDecisionSerializer(serializers.Serializer):
    """Serializer for a beneficiary's answer to an offer"""
    decision = serializers.ChoiceField(choices=DECISIONS)


class DeliveryTaskSerializer(serializers.ModelSerializer):
    """Serializer for Delivery Tasks"""
    task_id = serializers.IntegerField(source='pk', read_only=True)
    donation_status = serializers.CharField(source='donation.status', read_only=True)

    class Meta:
        model = DeliveryTask
        fields = ['task_id', 'donor', 'beneficiary', 'pickup_latitude', 'pickup_longitude',
                  'pickup_address', 'dropoff_latitude', 'dropoff_longitude', 'dropoff_address',
                  'donation_summary', 'status', 'donation_status', 'current_volunteer',
                  'current_candidate_index', 'offer_expiry', 'assignment_log',
                  'created_at', 'accepted_at', 'completed_at']
        read_only_fields = fields


class RejectTaskSerializer(serializers.Serializer):
    """Serializer for task rejection"""
    reason = serializers.CharField(required=False, allow_blank=True, default='')
