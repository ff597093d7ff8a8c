from unittest.mock import patch

from django.test import TestCase, override_settings
from rest_framework.test import APIClient

from accounts.models import User
from .models import Notification
from .sink import (
	ChannelLayerNotificationSink,
	get_notification_sink,
	notify_admins,
	notify_user,
)
from .services import unread_count


class NotificationSinkTests(TestCase):
	def setUp(self):
		self.user = User.objects.create_user(username='donor', password='pass1234', role='donor')
		self.sink = ChannelLayerNotificationSink()

	def test_user_notification_is_persisted(self):
		delivered = notify_user(
			self.sink, self.user.id, 'donation_accepted', 'Donation accepted',
			'Your donation was accepted.', {'donation_id': 7}
		)
		notification = Notification.objects.get()

		self.assertTrue(delivered)
		self.assertEqual(notification.recipient, self.user)
		self.assertEqual(notification.event_type, 'donation_accepted')
		self.assertEqual(notification.donation_id, 7)

	def test_admin_alert_has_no_recipient(self):
		notify_admins(self.sink, 'no_volunteers', 'No volunteers available', data={'donation_id': 3})
		notification = Notification.objects.get()

		self.assertIsNone(notification.recipient)
		self.assertEqual(notification.audience, 'admins')

	def test_missing_recipient_is_skipped(self):
		self.assertFalse(notify_user(self.sink, None, 'task_offered', 'New delivery request'))
		self.assertFalse(Notification.objects.exists())

	@patch('notifications.sink.get_channel_layer', side_effect=RuntimeError('redis down'))
	def test_push_failure_is_swallowed(self, mock_layer):
		delivered = notify_user(self.sink, self.user.id, 'task_offered', 'New delivery request')

		self.assertFalse(delivered)
		mock_layer.assert_called_once()

	@override_settings(NOTIFICATION_SINK='notifications.sink.ChannelLayerNotificationSink')
	def test_sink_comes_from_settings(self):
		self.assertIsInstance(get_notification_sink(), ChannelLayerNotificationSink)


class NotificationInboxTests(TestCase):
	def setUp(self):
		self.donor = User.objects.create_user(username='donor', password='pass1234', role='donor')
		self.other = User.objects.create_user(username='shelter', password='pass1234', role='beneficiary')

		self.accepted = Notification.objects.create(
			recipient=self.donor, event_type='donation_accepted', title='Donation accepted', donation_id=1
		)
		self.delivered = Notification.objects.create(
			recipient=self.donor, event_type='delivery_completed', title='Delivery completed', donation_id=1
		)
		self.foreign = Notification.objects.create(
			recipient=self.other, event_type='donation_offered', title='New donation offer'
		)
		Notification.objects.create(audience='admins', event_type='no_volunteers', title='No volunteers available')

		self.client = APIClient()
		self.client.force_authenticate(user=self.donor)

	def test_list_returns_own_notifications_with_unread_count(self):
		response = self.client.get('/api/notifications/')

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['unread_count'], 2)
		self.assertEqual(
			{n['id'] for n in response.data['notifications']},
			{self.accepted.id, self.delivered.id}
		)

	def test_mark_one_as_read(self):
		response = self.client.post(f'/api/notifications/{self.accepted.id}/read/')
		self.accepted.refresh_from_db()

		self.assertEqual(response.status_code, 200)
		self.assertTrue(self.accepted.read)
		self.assertEqual(response.data['unread_count'], 1)

		unread = self.client.get('/api/notifications/', {'unread': 'true'})
		self.assertEqual([n['id'] for n in unread.data['notifications']], [self.delivered.id])

	def test_cannot_mark_someone_elses_notification(self):
		response = self.client.post(f'/api/notifications/{self.foreign.id}/read/')
		self.foreign.refresh_from_db()

		self.assertEqual(response.status_code, 404)
		self.assertFalse(self.foreign.read)

	def test_mark_all_as_read_only_touches_own_notifications(self):
		response = self.client.post('/api/notifications/read-all/')

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['marked_read'], 2)
		self.assertEqual(unread_count(self.donor), 0)
		self.assertEqual(unread_count(self.other), 1)
		self.assertEqual(self.client.get('/api/notifications/unread-count/').data['unread_count'], 0)

	def test_inbox_requires_authentication(self):
		response = APIClient().get('/api/notifications/')

		self.assertEqual(response.status_code, 401)
