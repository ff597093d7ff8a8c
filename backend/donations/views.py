from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from accounts.permissions import IsBeneficiary, IsDonor, IsVolunteer
from accounts.serializers import RequestLocationSerializer
from accounts.services import find_nearest_beneficiaries
from services.dispatch import (
    DispatchError,
    DonationNotFoundError,
    TaskNotFoundError,
    accept_task,
    complete_delivery,
    reject_task,
)
from services.donation_management import (
    create_donation as create_donation_record,
    respond_to_offer as respond_to_donation_offer,
    resubmit_donation as resubmit_donation_record,
)
from .models import Donation, DeliveryTask
from .serializers import (
    BeneficiaryDecisionSerializer,
    DeliveryTaskSerializer,
    DonationCreateSerializer,
    DonationSerializer,
    RejectTaskSerializer,
)


def _error_response(exc):
    """Map a dispatch error to {error} with 404 for unknown records, 400 otherwise."""
    if isinstance(exc, (TaskNotFoundError, DonationNotFoundError)):
        return Response({'error': str(exc)}, status=status.HTTP_404_NOT_FOUND)
    return Response({'error': str(exc)}, status=status.HTTP_400_BAD_REQUEST)


# ==================== Donor APIs ====================

@api_view(['POST'])
@permission_classes([IsAuthenticated, IsDonor])
def create_donation(request):
    """Create a new donation; beneficiary matching runs once it is stored."""
    serializer = DonationCreateSerializer(data=request.data)
    if not serializer.is_valid():
        if 'latitude' in serializer.errors or 'longitude' in serializer.errors:
            return Response(
                {'error': 'Missing or invalid location', 'details': serializer.errors},
                status=status.HTTP_400_BAD_REQUEST
            )
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    try:
        donation = create_donation_record(donor=request.user, **serializer.validated_data)
    except DispatchError as exc:
        return _error_response(exc)

    return Response({
        'donation_id': donation.id,
        'status': donation.status,
    }, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsDonor])
def resubmit_donation(request, donation_id):
    """Run beneficiary matching again for a donation that went back to pending."""
    try:
        donation = resubmit_donation_record(donation_id, request.user)
    except DispatchError as exc:
        return _error_response(exc)

    return Response({
        'donation_id': donation.id,
        'status': donation.status,
        'error': donation.error or None,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def donation_detail(request, donation_id):
    """Donation detail, visible to its donor, beneficiary (or offeree) and volunteer."""
    donation = Donation.objects.select_related(
        'donor', 'beneficiary', 'assigned_volunteer'
    ).filter(pk=donation_id).first()

    user_id = request.user.id
    if donation is None or user_id not in (
        donation.donor_id,
        donation.offered_to_id,
        donation.beneficiary_id,
        donation.assigned_volunteer_id,
    ):
        return Response({'error': 'Donation not found'}, status=status.HTTP_404_NOT_FOUND)

    return Response(DonationSerializer(donation).data)


# ==================== Beneficiary APIs ====================

@api_view(['POST'])
@permission_classes([IsAuthenticated, IsBeneficiary])
def respond_to_offer(request, donation_id):
    """
    Accept, decline or expire a donation offer.

    Accepting creates the delivery task and offers it to the closest volunteer.
    """
    serializer = BeneficiaryDecisionSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    try:
        donation = respond_to_donation_offer(
            donation_id, request.user, serializer.validated_data['decision']
        )
    except DispatchError as exc:
        return _error_response(exc)

    return Response({
        'ok': True,
        'donation_id': donation.id,
        'status': donation.status,
        'delivery_status': donation.delivery_status,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def nearest_beneficiaries(request):
    """Beneficiaries sorted by distance from ?latitude=&longitude="""
    serializer = RequestLocationSerializer(data=request.query_params)
    if not serializer.is_valid():
        return Response(
            {'error': 'Missing or invalid location', 'details': serializer.errors},
            status=status.HTTP_400_BAD_REQUEST
        )

    beneficiaries = find_nearest_beneficiaries(
        serializer.validated_data['latitude'],
        serializer.validated_data['longitude'],
    )
    return Response({'count': len(beneficiaries), 'beneficiaries': beneficiaries})


# ==================== Volunteer Task APIs ====================

@api_view(['POST'])
@permission_classes([IsAuthenticated, IsVolunteer])
def accept_delivery_task(request, task_id):
    """Accept a delivery task that was offered to this volunteer."""
    try:
        result = accept_task(task_id, request.user)
    except DispatchError as exc:
        return _error_response(exc)

    return Response({'ok': True, 'message': result.message})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsVolunteer])
def reject_delivery_task(request, task_id):
    """Reject a delivery task; it moves on to the next volunteer in the queue."""
    serializer = RejectTaskSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    try:
        result = reject_task(task_id, request.user, serializer.validated_data['reason'])
    except DispatchError as exc:
        return _error_response(exc)

    return Response({
        'ok': True,
        'reassignedTo': result.next_volunteer_id,
        'message': result.message,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsVolunteer])
def complete_delivery_task(request, task_id):
    """Mark an accepted delivery as handed over."""
    try:
        result = complete_delivery(task_id, request.user)
    except DispatchError as exc:
        return _error_response(exc)

    return Response({
        'ok': True,
        'message': result.message,
        'already_completed': bool(result.extra and result.extra.get('already_completed')),
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def task_detail(request, task_id):
    task = DeliveryTask.objects.select_related('donation').filter(pk=task_id).first()
    if task is None:
        return Response({'error': 'Task not found'}, status=status.HTTP_404_NOT_FOUND)

    user_id = request.user.id
    participants = (task.donor_id, task.beneficiary_id, task.current_volunteer_id, task.donation.assigned_volunteer_id)
    if user_id not in participants and not request.user.is_staff:
        return Response({'error': 'Task not found'}, status=status.HTTP_404_NOT_FOUND)

    return Response(DeliveryTaskSerializer(task).data)
