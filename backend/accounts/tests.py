from django.test import TestCase
from rest_framework.test import APIClient

from .models import User
from .services import find_nearest_beneficiaries, location_of


class BeneficiaryDirectoryTests(TestCase):
	def test_nearest_beneficiaries_sorted_by_distance(self):
		far = User.objects.create_user(
			username='far', password='pass1234', role='beneficiary', latitude=13.05, longitude=77.65
		)
		near = User.objects.create_user(
			username='near', password='pass1234', role='beneficiary', latitude=12.975, longitude=77.60
		)
		User.objects.create_user(username='unknown', password='pass1234', role='beneficiary')

		nearby = find_nearest_beneficiaries(12.9716, 77.5946)

		self.assertEqual([item['id'] for item in nearby], [near.id, far.id])
		self.assertLess(nearby[0]['distance_km'], nearby[1]['distance_km'])

	def test_location_of_requires_valid_coordinates(self):
		user = User.objects.create_user(username='b', password='pass1234', role='beneficiary')
		self.assertIsNone(location_of(user))

		user.latitude, user.longitude = 12.975, 77.60
		self.assertEqual(location_of(user), (12.975, 77.60))


class LoginTests(TestCase):
	def setUp(self):
		self.client = APIClient()
		User.objects.create_user(username='vol', password='pass1234', role='volunteer')

	def test_login_returns_tokens(self):
		response = self.client.post('/api/auth/login/', {'username': 'vol', 'password': 'pass1234'}, format='json')

		self.assertEqual(response.status_code, 200)
		self.assertIn('access', response.data['tokens'])

		refreshed = self.client.post(
			'/api/auth/token/refresh/', {'refresh': response.data['tokens']['refresh']}, format='json'
		)
		self.assertEqual(refreshed.status_code, 200)
		self.assertIn('access', refreshed.data)

	def test_bad_credentials(self):
		response = self.client.post('/api/auth/login/', {'username': 'vol', 'password': 'wrong'}, format='json')

		self.assertEqual(response.status_code, 401)

	def test_bad_refresh_token(self):
		response = self.client.post('/api/auth/token/refresh/', {'refresh': 'garbage'}, format='json')

		self.assertEqual(response.status_code, 401)
