from __future__ import annotations

import math
import unittest

from app.services.geofence import EARTH_RADIUS_M, distance_m, evaluate_geofence


def _north_of(lat: float, metres: float) -> float:
    return lat + math.degrees(metres / EARTH_RADIUS_M)


class GeofenceTests(unittest.TestCase):
    center = (12.9716, 77.5946)

    def test_distance_to_self_is_zero(self) -> None:
        self.assertEqual(distance_m(*self.center, *self.center), 0.0)

    def test_distance_is_symmetric(self) -> None:
        other = (12.9352, 77.6245)
        self.assertAlmostEqual(
            distance_m(*self.center, *other),
            distance_m(*other, *self.center),
            places=6,
        )

    def test_known_city_distance(self) -> None:
        # Bengaluru MG Road to Koramangala, roughly 5 km.
        distance = distance_m(12.9755, 77.6069, 12.9352, 77.6245)
        self.assertGreater(distance, 4500)
        self.assertLess(distance, 5000)

    def test_point_inside_fence_reports_rounded_distance(self) -> None:
        lat = _north_of(self.center[0], 40)
        result = evaluate_geofence(lat, self.center[1], *self.center, 100)
        self.assertTrue(result.within_fence)
        self.assertEqual(result.distance_m, 40)

    def test_boundary_is_inclusive(self) -> None:
        lat = _north_of(self.center[0], 99.9)
        result = evaluate_geofence(lat, self.center[1], *self.center, 100)
        self.assertTrue(result.within_fence)
        self.assertEqual(result.distance_m, 100)

    def test_membership_uses_unrounded_distance(self) -> None:
        lat = _north_of(self.center[0], 100.4)
        result = evaluate_geofence(lat, self.center[1], *self.center, 100)
        self.assertFalse(result.within_fence)
        self.assertEqual(result.distance_m, 100)

    def test_point_outside_fence(self) -> None:
        lat = _north_of(self.center[0], 250)
        result = evaluate_geofence(lat, self.center[1], *self.center, 100)
        self.assertFalse(result.within_fence)
        self.assertEqual(result.distance_m, 250)

    def test_zero_radius_only_accepts_exact_point(self) -> None:
        self.assertTrue(evaluate_geofence(*self.center, *self.center, 0).within_fence)
        lat = _north_of(self.center[0], 1)
        self.assertFalse(evaluate_geofence(lat, self.center[1], *self.center, 0).within_fence)

    def test_rejects_out_of_range_coordinates(self) -> None:
        with self.assertRaises(ValueError):
            distance_m(91.0, 0.0, 0.0, 0.0)
        with self.assertRaises(ValueError):
            distance_m(0.0, 0.0, 0.0, -181.0)

    def test_rejects_negative_radius(self) -> None:
        with self.assertRaises(ValueError):
            evaluate_geofence(*self.center, *self.center, -1)


if __name__ == "__main__":
    unittest.main()
