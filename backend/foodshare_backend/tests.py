from unittest.mock import patch

from django.test import TestCase
from rest_framework.test import APIClient


class HealthCheckTests(TestCase):
	@patch('foodshare_backend.views.redis.Redis')
	def test_healthy_when_services_respond(self, mock_redis):
		response = APIClient().get('/health/')

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['services']['database'], 'healthy')
		self.assertEqual(response.data['services']['celery'], 'healthy')
		mock_redis.return_value.ping.assert_called_once()

	@patch('foodshare_backend.views.redis.Redis')
	def test_unhealthy_when_redis_is_down(self, mock_redis):
		mock_redis.return_value.ping.side_effect = ConnectionError('refused')

		response = APIClient().get('/health/')

		self.assertEqual(response.status_code, 503)
		self.assertTrue(response.data['services']['redis'].startswith('unhealthy'))
