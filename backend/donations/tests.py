from datetime import timedelta
from io import StringIO
from unittest.mock import patch

from django.core.management import call_command
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework.test import APIClient, APIRequestFactory, force_authenticate
from rest_framework_simplejwt.tokens import RefreshToken

from accounts.models import User
from notifications.models import Notification
from notifications.sink import NotificationSink
from services.dispatch import (
	Location,
	NotAssignedError,
	OfferExpiredError,
	PreconditionFailed,
	TaskNotOpenError,
	VolunteerNotAvailableError,
	accept_task,
	complete_delivery,
	create_and_offer,
	expire_offer_and_advance,
	reject_task,
	sweep_expired_offers,
)
from services.dispatch.exceptions import (
	DonationNotFoundError,
	InvalidLocationError,
	LocationRequiredError,
	NotYourOfferError,
)
from services.donation_management import (
	create_donation,
	expire_beneficiary_offer,
	respond_to_offer,
	resubmit_donation,
)
from services.matching import find_nearest_beneficiary, on_donation_created
from volunteers.models import VolunteerProfile
from volunteers.services import update_service_toggle
from .expiry_monitor import ExpiryMonitor, start_expiry_monitor
from .models import DeliveryTask, Donation, TransportRequest
from .tasks import match_donation_task, sweep_expired_offers_task
from .views import accept_delivery_task, reject_delivery_task

PICKUP = (12.9716, 77.5946)
DROPOFF = (12.9750, 77.6000)


class RecordingSink(NotificationSink):
	def __init__(self):
		self.sent = []
		self.admin_alerts = []

	def send(self, recipient_id, event_type, title, message='', data=None):
		self.sent.append((recipient_id, event_type, data))

	def alert_admins(self, event_type, title, message='', data=None):
		self.admin_alerts.append((event_type, data))

	def events_for(self, recipient_id):
		return [event for rid, event, _ in self.sent if rid == recipient_id]


class FailingSink(NotificationSink):
	def send(self, recipient_id, event_type, title, message='', data=None):
		raise ConnectionError('push service down')

	def alert_admins(self, event_type, title, message='', data=None):
		raise ConnectionError('push service down')


def make_user(username, role, lat=None, lon=None, address=''):
	return User.objects.create_user(
		username=username,
		password='pass1234',
		role=role,
		latitude=lat,
		longitude=lon,
		address=address
	)


def make_volunteer(username, lat, lon, availability='available', transport_active=True):
	user = make_user(username, 'volunteer')
	VolunteerProfile.objects.create(
		user=user,
		availability=availability,
		transport_active=transport_active,
		current_latitude=lat,
		current_longitude=lon
	)
	return user


class DispatchTestMixin:
	def setUp(self):
		self.sink = RecordingSink()
		self.donor = make_user('donor', 'donor', *PICKUP, address='MG Road')
		self.beneficiary = make_user('shelter', 'beneficiary', *DROPOFF, address='Indiranagar')

		# V1 ~0.06km from pickup, V2 ~5.7km
		self.v1 = make_volunteer('v1', 12.9720, 77.5950)
		self.v2 = make_volunteer('v2', 12.9304, 77.6254)

		self.donation = self.make_accepted_donation()

	def make_accepted_donation(self):
		return Donation.objects.create(
			donor=self.donor,
			latitude=PICKUP[0],
			longitude=PICKUP[1],
			pickup_address='MG Road',
			food_item='Rice',
			quantity='10 kg',
			food_type='cooked',
			status='accepted_by_beneficiary',
			beneficiary=self.beneficiary,
			accepted_at=timezone.now()
		)

	def create_task(self, donation=None, sink=None):
		return create_and_offer(
			donation or self.donation,
			Location(*PICKUP, address='MG Road'),
			Location(*DROPOFF, address='Indiranagar'),
			sink=sink or self.sink
		)

	def expire_current_offer(self, task, seconds=1):
		DeliveryTask.objects.filter(pk=task.pk).update(
			offer_expiry=timezone.now() - timedelta(seconds=seconds)
		)


class DispatchEngineTests(DispatchTestMixin, TestCase):
	def test_reject_then_accept_moves_task_to_second_volunteer(self):
		task = self.create_task()

		self.assertEqual(task.queue_ids, [self.v1.id, self.v2.id])
		self.assertEqual(task.status, 'offered')
		self.assertEqual(task.current_volunteer_id, self.v1.id)
		self.assertEqual(task.current_candidate_index, 0)

		result = reject_task(task.pk, self.v1, sink=self.sink)
		task.refresh_from_db()

		self.assertEqual(result.next_volunteer_id, self.v2.id)
		self.assertEqual(task.status, 'offered')
		self.assertEqual(task.current_volunteer_id, self.v2.id)
		self.assertEqual(task.current_candidate_index, 1)
		self.assertEqual(task.rejected_volunteers, [self.v1.id])

		accept_task(task.pk, self.v2, sink=self.sink)
		task.refresh_from_db()
		self.donation.refresh_from_db()
		profile = VolunteerProfile.objects.get(user=self.v2)

		self.assertEqual(task.status, 'accepted')
		self.assertEqual(self.donation.status, 'assigned')
		self.assertEqual(self.donation.assigned_volunteer_id, self.v2.id)
		self.assertEqual(self.donation.delivery_status, 'accepted_by_volunteer')
		self.assertEqual(profile.availability, 'busy')

		self.assertEqual(self.sink.events_for(self.v1.id), ['task_offered'])
		self.assertEqual(self.sink.events_for(self.v2.id), ['task_offered'])
		self.assertIn('delivery_accepted', self.sink.events_for(self.donor.id))
		self.assertIn('delivery_accepted', self.sink.events_for(self.beneficiary.id))

	def test_empty_volunteer_pool_leaves_task_unassigned(self):
		VolunteerProfile.objects.update(availability='inactive')

		task = self.create_task()
		self.donation.refresh_from_db()

		self.assertEqual(task.status, 'unassigned')
		self.assertIsNone(task.current_volunteer_id)
		self.assertEqual(task.candidate_queue, [])
		self.assertEqual(len(self.sink.admin_alerts), 1)
		self.assertEqual(self.sink.admin_alerts[0][0], 'no_volunteers')
		self.assertEqual(self.donation.delivery_status, 'waiting_for_volunteer')

	def test_every_candidate_rejecting_exhausts_the_queue(self):
		v3 = make_volunteer('v3', 12.9500, 77.7000)
		task = self.create_task()
		self.assertEqual(task.queue_ids, [self.v1.id, self.v2.id, v3.id])

		indices = [task.current_candidate_index]
		for volunteer in (self.v1, self.v2, v3):
			reject_task(task.pk, volunteer, reason='too far', sink=self.sink)
			task.refresh_from_db()
			indices.append(task.current_candidate_index)

		self.assertEqual(task.status, 'unassigned')
		self.assertIsNone(task.current_volunteer_id)
		self.assertIsNone(task.offer_expiry)
		self.assertEqual(len(task.assignment_log), 3)
		self.assertEqual([entry['action'] for entry in task.assignment_log], ['rejected'] * 3)
		self.assertEqual(len(self.sink.admin_alerts), 1)
		self.assertEqual(indices, sorted(indices))
		self.donation.refresh_from_db()
		self.assertEqual(self.donation.delivery_status, 'rejected_by_volunteer')

	def test_accept_by_volunteer_without_the_offer_is_refused(self):
		task = self.create_task()

		with self.assertRaises(NotAssignedError):
			accept_task(task.pk, self.v2, sink=self.sink)

		task.refresh_from_db()
		self.assertEqual(task.status, 'offered')
		self.assertEqual(task.current_volunteer_id, self.v1.id)

	def test_only_the_first_acceptance_wins(self):
		task = self.create_task()
		accept_task(task.pk, self.v1, sink=self.sink)

		with self.assertRaises(TaskNotOpenError):
			accept_task(task.pk, self.v1, sink=self.sink)
		with self.assertRaises(NotAssignedError):
			accept_task(task.pk, self.v2, sink=self.sink)

		self.donation.refresh_from_db()
		self.assertEqual(self.donation.assigned_volunteer_id, self.v1.id)

	def test_accept_after_offer_window_fails(self):
		task = self.create_task()
		self.expire_current_offer(task)

		with self.assertRaises(OfferExpiredError):
			accept_task(task.pk, self.v1, sink=self.sink)

	def test_busy_volunteer_cannot_accept(self):
		task = self.create_task()
		VolunteerProfile.objects.filter(user=self.v1).update(availability='busy')

		with self.assertRaises(VolunteerNotAvailableError):
			accept_task(task.pk, self.v1, sink=self.sink)

		task.refresh_from_db()
		self.assertEqual(task.status, 'offered')

	def test_timeout_hands_offer_to_next_volunteer(self):
		task = self.create_task()
		self.expire_current_offer(task)

		result = expire_offer_and_advance(task.pk, sink=self.sink)
		task.refresh_from_db()

		self.assertTrue(result.success)
		self.assertEqual(task.current_volunteer_id, self.v2.id)
		self.assertEqual(task.rejected_volunteers, [])
		self.assertEqual(task.assignment_log[-1]['action'], 'reassign')
		self.assertEqual(task.assignment_log[-1]['reason'], 'timeout')
		self.assertEqual(task.assignment_log[-1]['actor'], self.v1.id)
		self.assertIn('offer_expired', self.sink.events_for(self.v1.id))

	def test_timeout_is_noop_while_offer_is_live(self):
		task = self.create_task()

		result = expire_offer_and_advance(task.pk, sink=self.sink)
		task.refresh_from_db()

		self.assertFalse(result.success)
		self.assertEqual(task.current_volunteer_id, self.v1.id)
		self.assertEqual(task.assignment_log, [])

	def test_create_and_offer_returns_existing_task(self):
		first = self.create_task()
		second = self.create_task()

		self.assertEqual(first.pk, second.pk)
		self.assertEqual(DeliveryTask.objects.count(), 1)
		self.assertEqual(self.sink.events_for(self.v1.id), ['task_offered'])

	def test_volunteer_holding_an_offer_is_skipped(self):
		self.create_task()
		other_task = self.create_task(donation=self.make_accepted_donation())

		self.assertEqual(other_task.current_volunteer_id, self.v2.id)
		self.assertEqual(other_task.current_candidate_index, 1)

	def test_offered_volunteer_is_locked_while_scanning(self):
		VolunteerProfile.objects.filter(user=self.v2).update(availability='inactive')
		profiles = VolunteerProfile.objects

		with patch.object(profiles, 'select_for_update', wraps=profiles.select_for_update) as mock_lock:
			task = self.create_task()

		self.assertEqual(task.current_volunteer_id, self.v1.id)
		mock_lock.assert_called_once_with()

	def test_complete_delivery_is_idempotent(self):
		task = self.create_task()
		accept_task(task.pk, self.v1, sink=self.sink)

		complete_delivery(task.pk, self.v1, sink=self.sink)
		task.refresh_from_db()
		self.donation.refresh_from_db()
		delivered_at = self.donation.delivered_at

		self.assertEqual(task.status, 'completed')
		self.assertIsNone(task.current_volunteer_id)
		self.assertEqual(self.donation.status, 'delivered')
		self.assertEqual(self.donation.delivery_status, 'completed')
		self.assertEqual(VolunteerProfile.objects.get(user=self.v1).availability, 'available')

		result = complete_delivery(task.pk, self.v1, sink=self.sink)
		self.donation.refresh_from_db()

		self.assertTrue(result.extra['already_completed'])
		self.assertEqual(self.donation.delivered_at, delivered_at)
		self.assertEqual(self.sink.events_for(self.donor.id).count('delivery_completed'), 1)

	def test_complete_requires_acceptance(self):
		task = self.create_task()

		with self.assertRaises(TaskNotOpenError):
			complete_delivery(task.pk, self.v1, sink=self.sink)

	def test_completion_restores_availability_from_toggle(self):
		task = self.create_task()
		accept_task(task.pk, self.v1, sink=self.sink)

		# Toggled off mid-delivery: stays busy until the delivery ends
		profile = VolunteerProfile.objects.get(user=self.v1)
		update_service_toggle(profile, False)
		profile.refresh_from_db()
		self.assertEqual(profile.availability, 'busy')

		complete_delivery(task.pk, self.v1, sink=self.sink)
		profile.refresh_from_db()
		self.assertEqual(profile.availability, 'inactive')

	def test_dropping_out_after_accept_reoffers_the_task(self):
		task = self.create_task()
		accept_task(task.pk, self.v1, sink=self.sink)

		result = reject_task(task.pk, self.v1, reason='vehicle broke down', sink=self.sink)
		task.refresh_from_db()
		self.donation.refresh_from_db()

		self.assertEqual(result.next_volunteer_id, self.v2.id)
		self.assertEqual(task.status, 'offered')
		self.assertIsNone(task.accepted_at)
		self.assertEqual(self.donation.status, 'accepted_by_beneficiary')
		self.assertIsNone(self.donation.assigned_volunteer_id)
		self.assertEqual(VolunteerProfile.objects.get(user=self.v1).availability, 'available')
		self.assertIn('delivery_rejected', self.sink.events_for(self.beneficiary.id))

	def test_notification_failures_do_not_affect_dispatch(self):
		task = self.create_task(sink=FailingSink())

		self.assertEqual(task.status, 'offered')
		result = reject_task(task.pk, self.v1, sink=FailingSink())
		self.assertTrue(result.success)

	@override_settings(DISPATCH_BROADCAST_FANOUT=True)
	def test_acceptance_deletes_pending_sibling_requests(self):
		task = self.create_task()
		self.assertEqual(TransportRequest.objects.filter(donation=self.donation).count(), 2)

		accept_task(task.pk, self.v1, sink=self.sink)

		remaining = list(
			TransportRequest.objects.filter(donation=self.donation).values_list('volunteer_id', 'status')
		)
		self.assertEqual(remaining, [(self.v1.id, 'accepted')])


class ExpirySweepTests(DispatchTestMixin, TestCase):
	def test_sweep_advances_expired_offer_once(self):
		task = self.create_task()
		self.expire_current_offer(task)

		first = sweep_expired_offers(sink=self.sink)
		second = sweep_expired_offers(sink=self.sink)
		task.refresh_from_db()

		self.assertEqual(first.expired_tasks, 1)
		self.assertEqual(first.reassigned, 1)
		self.assertEqual(second.expired_tasks, 0)
		self.assertEqual(task.current_volunteer_id, self.v2.id)
		self.assertEqual(len(task.assignment_log), 1)

	def test_expiry_after_acceptance_is_a_noop(self):
		task = self.create_task()
		accept_task(task.pk, self.v1, sink=self.sink)

		# Sweep picked the task up before the acceptance committed
		result = expire_offer_and_advance(task.pk, expected_volunteer_id=self.v1.id, sink=self.sink)
		swept = sweep_expired_offers(sink=self.sink)
		task.refresh_from_db()

		self.assertFalse(result.success)
		self.assertEqual(swept.expired_tasks, 0)
		self.assertEqual(task.status, 'accepted')
		self.assertEqual(task.current_volunteer_id, self.v1.id)
		self.assertEqual(task.assignment_log, [])
		self.assertEqual(self.sink.events_for(self.v1.id), ['task_offered'])

	def test_expiry_for_a_volunteer_who_already_rejected_is_a_noop(self):
		task = self.create_task()
		reject_task(task.pk, self.v1, sink=self.sink)
		self.expire_current_offer(task)

		result = expire_offer_and_advance(task.pk, expected_volunteer_id=self.v1.id, sink=self.sink)
		task.refresh_from_db()

		self.assertFalse(result.success)
		self.assertEqual(result.message, 'Offer moved on to another volunteer')
		self.assertEqual(task.status, 'offered')
		self.assertEqual(task.current_volunteer_id, self.v2.id)
		self.assertEqual(len(task.assignment_log), 1)

	def test_mixed_timeouts_and_rejections_never_reoffer(self):
		v3 = make_volunteer('v3', 12.9500, 77.7000)
		task = self.create_task()
		offered = [task.current_volunteer_id]

		self.expire_current_offer(task)
		sweep_expired_offers(sink=self.sink)
		task.refresh_from_db()
		offered.append(task.current_volunteer_id)

		reject_task(task.pk, self.v2, reason='vehicle issue', sink=self.sink)
		task.refresh_from_db()
		offered.append(task.current_volunteer_id)

		self.expire_current_offer(task)
		sweep_expired_offers(sink=self.sink)
		task.refresh_from_db()

		self.assertEqual(offered, [self.v1.id, self.v2.id, v3.id])
		self.assertEqual(task.status, 'unassigned')
		self.assertIsNone(task.current_volunteer_id)
		self.assertEqual(
			[entry['action'] for entry in task.assignment_log],
			['reassign', 'rejected', 'reassign']
		)
		self.assertEqual(self.sink.events_for(self.v1.id), ['task_offered', 'offer_expired'])

	def test_sweep_honours_batch_size(self):
		older = self.create_task()
		newer = self.create_task(donation=self.make_accepted_donation())
		self.expire_current_offer(older, seconds=120)
		self.expire_current_offer(newer, seconds=60)

		result = sweep_expired_offers(batch_size=1, sink=self.sink)
		older.refresh_from_db()
		newer.refresh_from_db()

		self.assertEqual(result.expired_tasks, 1)
		# V2 still holds the newer offer, so the older task has nobody left
		self.assertEqual(older.status, 'unassigned')
		self.assertEqual(newer.status, 'offered')
		self.assertEqual(newer.current_volunteer_id, self.v2.id)

	def test_sweep_releases_expired_beneficiary_offer(self):
		donation = Donation.objects.create(
			donor=self.donor,
			latitude=PICKUP[0],
			longitude=PICKUP[1],
			food_item='Bread',
			status='offered',
			offered_to=self.beneficiary,
			offer_expiry=timezone.now() - timedelta(seconds=1)
		)

		result = sweep_expired_offers(sink=self.sink)
		donation.refresh_from_db()

		self.assertEqual(result.expired_beneficiary_offers, 1)
		self.assertEqual(donation.status, 'pending')
		self.assertIsNone(donation.offered_to_id)
		self.assertIsNone(donation.offer_expiry)

	def test_management_command_runs_sweep(self):
		task = self.create_task()
		self.expire_current_offer(task)
		out = StringIO()

		call_command('sweep_expired_offers', batch_size=5, stdout=out)
		task.refresh_from_db()

		self.assertEqual(task.current_volunteer_id, self.v2.id)
		self.assertIn('Expired 1 task offer(s)', out.getvalue())

	def test_celery_task_reports_counts(self):
		task = self.create_task()
		self.expire_current_offer(task)

		counts = sweep_expired_offers_task()

		self.assertEqual(counts['expired_tasks'], 1)
		self.assertEqual(counts['reassigned'], 1)

	@patch('donations.expiry_monitor.close_old_connections')
	def test_monitor_tick_runs_one_sweep(self, mock_close):
		task = self.create_task()
		self.expire_current_offer(task)

		result = ExpiryMonitor(interval_seconds=60, batch_size=5).run_once()
		task.refresh_from_db()

		self.assertEqual(result.expired_tasks, 1)
		self.assertEqual(task.current_volunteer_id, self.v2.id)
		self.assertEqual(mock_close.call_count, 2)

	@patch('donations.expiry_monitor.close_old_connections')
	@patch('donations.expiry_monitor.sweep_expired_offers', side_effect=RuntimeError('lock timeout'))
	def test_monitor_tick_survives_a_failed_sweep(self, mock_sweep, mock_close):
		self.assertIsNone(ExpiryMonitor(interval_seconds=60, batch_size=5).run_once())
		mock_sweep.assert_called_once_with(batch_size=5)

	@override_settings(ENABLE_EXPIRY_MONITOR=False)
	def test_monitor_stays_off_unless_enabled(self):
		self.assertIsNone(start_expiry_monitor())


class BeneficiaryMatcherTests(TestCase):
	def setUp(self):
		self.sink = RecordingSink()
		self.donor = make_user('donor', 'donor', *PICKUP)

	def make_donation(self, lat=PICKUP[0], lon=PICKUP[1]):
		return Donation.objects.create(
			donor=self.donor,
			latitude=lat,
			longitude=lon,
			food_item='Dal',
			status='pending'
		)

	def test_offers_to_nearest_beneficiary(self):
		far = make_user('far', 'beneficiary', 13.0500, 77.6500)
		near = make_user('near', 'beneficiary', *DROPOFF)
		make_user('no_location', 'beneficiary')

		donation = on_donation_created(self.make_donation(), sink=self.sink)

		self.assertEqual(donation.status, 'offered')
		self.assertEqual(donation.offered_to_id, near.id)
		self.assertNotEqual(donation.offered_to_id, far.id)
		remaining = donation.offer_expiry - timezone.now()
		self.assertTrue(timedelta(seconds=290) < remaining <= timedelta(seconds=300))
		self.assertEqual(self.sink.events_for(near.id), ['donation_offered'])

	def test_equal_distances_go_to_first_beneficiary(self):
		first = make_user('first', 'beneficiary', *DROPOFF)
		make_user('second', 'beneficiary', *DROPOFF)

		self.assertEqual(find_nearest_beneficiary(*PICKUP), first)

	def test_invalid_location_expires_donation(self):
		make_user('shelter', 'beneficiary', *DROPOFF)

		donation = on_donation_created(self.make_donation(lat=None, lon=None), sink=self.sink)

		self.assertEqual(donation.status, 'expired')
		self.assertEqual(donation.error, 'Invalid location')
		self.assertEqual(self.sink.sent, [])

	def test_no_beneficiary_expires_donation(self):
		donation = on_donation_created(self.make_donation(), sink=self.sink)

		self.assertEqual(donation.status, 'expired')
		self.assertEqual(donation.error, 'No eligible beneficiary found')

	def test_skips_donation_that_is_no_longer_pending(self):
		make_user('shelter', 'beneficiary', *DROPOFF)
		donation = self.make_donation()
		Donation.objects.filter(pk=donation.pk).update(status='expired')

		donation = on_donation_created(donation, sink=self.sink)

		self.assertEqual(donation.status, 'expired')
		self.assertEqual(self.sink.sent, [])


class DonationLifecycleTests(TestCase):
	def setUp(self):
		self.sink = RecordingSink()
		self.donor = make_user('donor', 'donor', *PICKUP, address='MG Road')
		self.beneficiary = make_user('shelter', 'beneficiary', *DROPOFF, address='Indiranagar')
		self.volunteer = make_volunteer('v1', 12.9720, 77.5950)

	def offered_donation(self):
		donation = create_donation(self.donor, PICKUP[0], PICKUP[1], food_item='Chapati', quantity='40')
		return on_donation_created(donation, sink=self.sink)

	def test_create_rejects_invalid_location(self):
		with self.assertRaises(InvalidLocationError):
			create_donation(self.donor, 95.0, PICKUP[1], food_item='Rice')
		with self.assertRaises(InvalidLocationError):
			create_donation(self.donor, None, None, food_item='Rice')

		self.assertEqual(Donation.objects.count(), 0)

	def test_create_queues_matching_after_commit(self):
		with patch.object(match_donation_task, 'delay') as mock_delay:
			with self.captureOnCommitCallbacks(execute=True):
				donation = create_donation(self.donor, PICKUP[0], PICKUP[1], food_item='Rice')

		self.assertEqual(donation.status, 'pending')
		self.assertEqual(donation.pickup_address, 'MG Road')
		mock_delay.assert_called_once_with(donation.id)

	def test_matching_task_offers_donation(self):
		donation = create_donation(self.donor, PICKUP[0], PICKUP[1], food_item='Rice')

		self.assertEqual(match_donation_task(donation.id), 'offered')
		self.assertIsNone(match_donation_task(donation.id + 1000))

	def test_accept_creates_delivery_task(self):
		donation = self.offered_donation()

		donation = respond_to_offer(donation.id, self.beneficiary, 'accept', sink=self.sink)
		task = DeliveryTask.objects.get(pk=donation.pk)

		self.assertEqual(donation.status, 'accepted_by_beneficiary')
		self.assertEqual(donation.beneficiary_id, self.beneficiary.id)
		self.assertIsNone(donation.offered_to_id)
		self.assertEqual(donation.delivery_status, 'pending_volunteer_response')
		self.assertEqual(task.current_volunteer_id, self.volunteer.id)
		self.assertEqual(task.pickup_address, 'MG Road')
		self.assertEqual(task.dropoff_address, 'Indiranagar')
		self.assertEqual(task.donation_summary['food_item'], 'Chapati')
		self.assertIn('donation_accepted', self.sink.events_for(self.donor.id))

	def test_accept_by_other_beneficiary_is_refused(self):
		donation = self.offered_donation()
		other = make_user('other', 'beneficiary', 13.0, 77.7)

		with self.assertRaises(NotYourOfferError):
			respond_to_offer(donation.id, other, 'accept', sink=self.sink)

	def test_accept_requires_beneficiary_location(self):
		homeless = make_user('mobile_kitchen', 'beneficiary')
		donation = Donation.objects.create(
			donor=self.donor,
			latitude=PICKUP[0],
			longitude=PICKUP[1],
			food_item='Rice',
			status='offered',
			offered_to=homeless,
			offer_expiry=timezone.now() + timedelta(minutes=5)
		)

		with self.assertRaises(LocationRequiredError):
			respond_to_offer(donation.id, homeless, 'accept', sink=self.sink)

		donation.refresh_from_db()
		self.assertEqual(donation.status, 'offered')
		self.assertFalse(DeliveryTask.objects.exists())

	def test_failed_task_creation_keeps_the_offer_open(self):
		donation = self.offered_donation()

		with patch(
			'services.donation_management.donation_lifecycle.build_candidate_queue',
			side_effect=RuntimeError('database hiccup')
		):
			with self.assertRaises(RuntimeError):
				respond_to_offer(donation.id, self.beneficiary, 'accept', sink=self.sink)

		donation.refresh_from_db()
		self.assertEqual(donation.status, 'offered')
		self.assertEqual(donation.offered_to_id, self.beneficiary.id)
		self.assertIsNone(donation.beneficiary_id)
		self.assertFalse(DeliveryTask.objects.exists())
		self.assertNotIn('donation_accepted', self.sink.events_for(self.donor.id))

		# The beneficiary can simply accept again
		donation = respond_to_offer(donation.id, self.beneficiary, 'accept', sink=self.sink)

		self.assertEqual(donation.status, 'accepted_by_beneficiary')
		self.assertEqual(DeliveryTask.objects.get(pk=donation.pk).current_volunteer_id, self.volunteer.id)
		self.assertEqual(self.sink.events_for(self.volunteer.id), ['task_offered'])

	def test_decline_is_idempotent_and_does_not_rematch(self):
		donation = self.offered_donation()

		respond_to_offer(donation.id, self.beneficiary, 'decline')
		donation = respond_to_offer(donation.id, self.beneficiary, 'decline')

		self.assertEqual(donation.status, 'pending')
		self.assertIsNone(donation.offered_to_id)
		self.assertIsNone(donation.offer_expiry)
		self.assertEqual(self.sink.events_for(self.beneficiary.id), ['donation_offered'])

	def test_expire_beneficiary_offer_waits_for_deadline(self):
		donation = self.offered_donation()

		self.assertFalse(expire_beneficiary_offer(donation.id))

		Donation.objects.filter(pk=donation.pk).update(offer_expiry=timezone.now() - timedelta(seconds=1))
		self.assertTrue(expire_beneficiary_offer(donation.id))
		self.assertFalse(expire_beneficiary_offer(donation.id))

	def test_resubmit_reruns_matching(self):
		donation = self.offered_donation()
		respond_to_offer(donation.id, self.beneficiary, 'decline')

		donation = resubmit_donation(donation.id, self.donor, sink=self.sink)

		self.assertEqual(donation.status, 'offered')
		self.assertEqual(donation.offered_to_id, self.beneficiary.id)

	def test_resubmit_requires_pending_donation_of_caller(self):
		donation = self.offered_donation()

		with self.assertRaises(PreconditionFailed):
			resubmit_donation(donation.id, self.donor, sink=self.sink)
		with self.assertRaises(DonationNotFoundError):
			resubmit_donation(donation.id, self.beneficiary, sink=self.sink)


class DonationApiTests(DispatchTestMixin, TestCase):
	def setUp(self):
		super().setUp()
		self.client = APIClient()
		self.factory = APIRequestFactory()

	def authenticate(self, user):
		token = RefreshToken.for_user(user).access_token
		self.client.credentials(HTTP_AUTHORIZATION='Bearer %s' % token)

	def test_task_actions_require_bearer_token(self):
		task = self.create_task()

		response = self.client.post('/api/tasks/%d/accept/' % task.pk)

		self.assertEqual(response.status_code, 401)

	def test_accept_with_bearer_token(self):
		task = self.create_task()
		self.authenticate(self.v1)

		response = self.client.post('/api/tasks/%d/accept/' % task.pk)

		self.assertEqual(response.status_code, 200)
		self.assertTrue(response.data['ok'])
		self.assertTrue(
			Notification.objects.filter(recipient=self.donor, event_type='delivery_accepted').exists()
		)

	def test_non_volunteer_cannot_accept(self):
		task = self.create_task()
		self.authenticate(self.donor)

		response = self.client.post('/api/tasks/%d/accept/' % task.pk)

		self.assertEqual(response.status_code, 403)

	def test_unknown_task_returns_404(self):
		request = self.factory.post('/api/tasks/999/accept/')
		force_authenticate(request, user=self.v1)
		response = accept_delivery_task(request, task_id=999)

		self.assertEqual(response.status_code, 404)
		self.assertEqual(response.data['error'], 'Task not found')

	def test_accept_by_wrong_volunteer_returns_400(self):
		task = self.create_task()
		request = self.factory.post('/api/tasks/%d/accept/' % task.pk)
		force_authenticate(request, user=self.v2)
		response = accept_delivery_task(request, task_id=task.pk)

		self.assertEqual(response.status_code, 400)
		self.assertIn('error', response.data)

	def test_reject_reports_next_volunteer(self):
		task = self.create_task()
		request = self.factory.post('/api/tasks/%d/reject/' % task.pk, {'reason': 'busy'}, format='json')
		force_authenticate(request, user=self.v1)
		response = reject_delivery_task(request, task_id=task.pk)

		self.assertEqual(response.status_code, 200)
		self.assertTrue(response.data['ok'])
		self.assertEqual(response.data['reassignedTo'], self.v2.id)

	def test_complete_via_api(self):
		task = self.create_task()
		accept_task(task.pk, self.v1, sink=self.sink)
		self.authenticate(self.v1)

		response = self.client.post('/api/tasks/%d/complete/' % task.pk)

		self.assertEqual(response.status_code, 200)
		self.assertFalse(response.data['already_completed'])

	def test_task_detail_visible_to_participants_only(self):
		task = self.create_task()
		self.authenticate(self.donor)
		response = self.client.get('/api/tasks/%d/' % task.pk)
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['task_id'], task.pk)

		self.authenticate(self.v2)
		response = self.client.get('/api/tasks/%d/' % task.pk)
		self.assertEqual(response.status_code, 404)

	def test_create_donation(self):
		self.authenticate(self.donor)

		response = self.client.post('/api/donations/', {
			'latitude': PICKUP[0],
			'longitude': PICKUP[1],
			'food_item': 'Biryani',
			'quantity': '25 plates',
		}, format='json')

		self.assertEqual(response.status_code, 201)
		self.assertEqual(response.data['status'], 'pending')
		self.assertTrue(Donation.objects.filter(pk=response.data['donation_id']).exists())

	def test_create_donation_without_location_returns_400(self):
		self.authenticate(self.donor)

		response = self.client.post('/api/donations/', {'food_item': 'Biryani'}, format='json')

		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.data['error'], 'Missing or invalid location')

	def test_respond_to_offer_via_api(self):
		donation = Donation.objects.create(
			donor=self.donor,
			latitude=PICKUP[0],
			longitude=PICKUP[1],
			food_item='Rice',
			status='offered',
			offered_to=self.beneficiary,
			offer_expiry=timezone.now() + timedelta(minutes=5)
		)
		self.authenticate(self.beneficiary)

		response = self.client.post(
			'/api/donations/%d/respond/' % donation.pk, {'decision': 'decline'}, format='json'
		)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['status'], 'pending')

	def test_nearest_beneficiaries(self):
		far = make_user('far', 'beneficiary', 13.0500, 77.6500)
		self.authenticate(self.donor)

		response = self.client.get('/api/beneficiaries/nearest/', {
			'latitude': PICKUP[0], 'longitude': PICKUP[1]
		})

		self.assertEqual(response.status_code, 200)
		ids = [item['id'] for item in response.data['beneficiaries']]
		self.assertEqual(ids, [self.beneficiary.id, far.id])

	def test_nearest_beneficiaries_rejects_bad_coordinates(self):
		self.authenticate(self.donor)

		response = self.client.get('/api/beneficiaries/nearest/', {'latitude': 'abc', 'longitude': 77.59})

		self.assertEqual(response.status_code, 400)
