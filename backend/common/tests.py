from decimal import Decimal

from django.test import SimpleTestCase

from common.utils import distance_km, is_valid_coordinate


class DistanceTests(SimpleTestCase):
	def test_same_point_is_zero(self):
		self.assertEqual(distance_km(12.9716, 77.5946, 12.9716, 77.5946), 0.0)

	def test_one_degree_of_latitude(self):
		self.assertAlmostEqual(distance_km(0, 0, 1, 0), 111.19, places=1)

	def test_distance_is_symmetric(self):
		there = distance_km(12.9716, 77.5946, 12.9304, 77.6254)
		back = distance_km(12.9304, 77.6254, 12.9716, 77.5946)

		self.assertAlmostEqual(there, back, places=9)
		self.assertTrue(5 < there < 6.5)

	def test_accepts_decimal_coordinates(self):
		d = distance_km(Decimal('12.971600'), Decimal('77.594600'), 12.9720, 77.5950)
		self.assertLess(d, 0.1)


class CoordinateValidationTests(SimpleTestCase):
	def test_valid_coordinates(self):
		self.assertTrue(is_valid_coordinate(12.9716, 77.5946))
		self.assertTrue(is_valid_coordinate(Decimal('-90'), Decimal('180')))
		self.assertTrue(is_valid_coordinate(0, 0))

	def test_rejects_missing_or_out_of_range(self):
		self.assertFalse(is_valid_coordinate(None, 77.5946))
		self.assertFalse(is_valid_coordinate(91, 0))
		self.assertFalse(is_valid_coordinate(0, -181))

	def test_rejects_non_numeric_values(self):
		self.assertFalse(is_valid_coordinate('12.97', '77.59'))
		self.assertFalse(is_valid_coordinate(True, 77.5946))
		self.assertFalse(is_valid_coordinate(float('nan'), 0))
		self.assertFalse(is_valid_coordinate(float('inf'), 0))
