import unittest
from datetime import datetime, time

from court_reservations import InvalidIntervalError, contains, duration_minutes, overlaps


class TestOverlaps(unittest.TestCase):
    def setUp(self) -> None:
        self.exist_start = time(10, 0)
        self.exist_end = time(11, 0)

    def test_non_overlapping_before_passes(self) -> None:
        self.assertFalse(overlaps(time(9, 0), time(9, 59), self.exist_start, self.exist_end))

    def test_exactly_touching_boundary_passes(self) -> None:
        self.assertFalse(overlaps(time(11, 0), time(12, 0), self.exist_start, self.exist_end))
        self.assertFalse(overlaps(time(9, 0), time(10, 0), self.exist_start, self.exist_end))

    def test_partially_overlapping_fails(self) -> None:
        self.assertTrue(overlaps(time(10, 30), time(11, 30), self.exist_start, self.exist_end))

    def test_fully_contained_fails(self) -> None:
        self.assertTrue(overlaps(time(10, 15), time(10, 45), self.exist_start, self.exist_end))

    def test_works_on_datetimes(self) -> None:
        self.assertTrue(
            overlaps(
                datetime(2026, 2, 24, 10, 0),
                datetime(2026, 2, 24, 12, 0),
                datetime(2026, 2, 24, 11, 0),
                datetime(2026, 2, 24, 13, 0),
            )
        )


class TestDurationAndContainment(unittest.TestCase):
    def test_duration_minutes(self) -> None:
        self.assertEqual(duration_minutes(time(8, 0), time(9, 30)), 90)

    def test_duration_rejects_empty_or_reversed_interval(self) -> None:
        with self.assertRaises(InvalidIntervalError):
            duration_minutes(time(9, 0), time(9, 0))
        with self.assertRaises(InvalidIntervalError):
            duration_minutes(time(10, 0), time(9, 0))

    def test_invalid_interval_is_a_value_error(self) -> None:
        with self.assertRaises(ValueError):
            duration_minutes(time(10, 0), time(9, 0))

    def test_contains(self) -> None:
        self.assertTrue(contains(time(8, 0), time(12, 0), time(8, 0), time(12, 0)))
        self.assertTrue(contains(time(8, 0), time(12, 0), time(9, 0), time(10, 0)))
        self.assertFalse(contains(time(8, 0), time(12, 0), time(11, 0), time(12, 30)))


if __name__ == "__main__":
    unittest.main()
