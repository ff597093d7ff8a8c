from django.test import TestCase
from rest_framework.test import APIClient

from accounts.models import User
from .models import VolunteerProfile
from .services import get_available_volunteers, update_service_toggle


class VolunteerServiceTests(TestCase):
	def setUp(self):
		self.user = User.objects.create_user(username='vol', password='pass1234', role='volunteer')
		self.profile = VolunteerProfile.objects.create(
			user=self.user,
			current_latitude=12.9720,
			current_longitude=77.5950
		)

	def test_toggle_switches_between_available_and_inactive(self):
		update_service_toggle(self.profile, True)
		self.assertEqual(self.profile.availability, 'available')

		update_service_toggle(self.profile, False)
		self.assertEqual(self.profile.availability, 'inactive')

	def test_toggle_does_not_clear_busy(self):
		self.profile.availability = 'busy'
		self.profile.save(update_fields=['availability'])

		update_service_toggle(self.profile, False)
		self.profile.refresh_from_db()

		self.assertEqual(self.profile.availability, 'busy')
		self.assertFalse(self.profile.transport_active)

	def test_available_volunteers_need_a_location(self):
		update_service_toggle(self.profile, True)
		other = User.objects.create_user(username='nowhere', password='pass1234', role='volunteer')
		VolunteerProfile.objects.create(user=other, availability='available', transport_active=True)

		self.assertEqual([p.user_id for p in get_available_volunteers()], [self.user.id])


class VolunteerApiTests(TestCase):
	def setUp(self):
		self.user = User.objects.create_user(username='vol', password='pass1234', role='volunteer')
		self.client = APIClient()
		self.client.force_authenticate(user=self.user)

	def test_status_creates_profile_on_first_read(self):
		response = self.client.get('/api/volunteer/status/')

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['availability'], 'inactive')
		self.assertTrue(VolunteerProfile.objects.filter(user=self.user).exists())

	def test_put_status_sets_toggle(self):
		response = self.client.put('/api/volunteer/status/', {'transport_active': True}, format='json')

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['availability'], 'available')

	def test_location_update(self):
		response = self.client.post(
			'/api/volunteer/location/', {'latitude': 12.97, 'longitude': 77.59}, format='json'
		)
		profile = VolunteerProfile.objects.get(user=self.user)

		self.assertEqual(response.status_code, 200)
		self.assertTrue(profile.has_valid_location)

	def test_location_update_rejects_bad_coordinates(self):
		response = self.client.post(
			'/api/volunteer/location/', {'latitude': 120, 'longitude': 77.59}, format='json'
		)

		self.assertEqual(response.status_code, 400)

	def test_other_roles_are_forbidden(self):
		donor = User.objects.create_user(username='donor', password='pass1234', role='donor')
		self.client.force_authenticate(user=donor)

		response = self.client.get('/api/volunteer/status/')

		self.assertEqual(response.status_code, 403)
