from __future__ import annotations

import unittest
from datetime import datetime, timezone

from app.pagination import PageParams, build_page_meta
from app.services.analytics import bucket_by_hour, conversion_rate


class PageMetaTests(unittest.TestCase):
    def test_middle_page(self) -> None:
        meta = build_page_meta(45, PageParams(page=2, limit=20))
        self.assertEqual(meta.total_pages, 3)
        self.assertTrue(meta.has_next)
        self.assertTrue(meta.has_prev)

    def test_last_page(self) -> None:
        meta = build_page_meta(40, PageParams(page=2, limit=20))
        self.assertEqual(meta.total_pages, 2)
        self.assertFalse(meta.has_next)

    def test_empty_result(self) -> None:
        meta = build_page_meta(0, PageParams())
        self.assertEqual(meta.total_pages, 0)
        self.assertFalse(meta.has_next)
        self.assertFalse(meta.has_prev)

    def test_offset(self) -> None:
        self.assertEqual(PageParams(page=3, limit=25).offset, 50)


class AnalyticsHelperTests(unittest.TestCase):
    def test_conversion_rate_rounds_to_one_decimal(self) -> None:
        self.assertEqual(conversion_rate(3, 1), 33.3)
        self.assertEqual(conversion_rate(0, 0), 0.0)

    def test_hourly_buckets_cover_business_hours(self) -> None:
        buckets = bucket_by_hour([])
        self.assertEqual([bucket.hour for bucket in buckets], list(range(8, 21)))
        self.assertEqual(buckets[0].label, "08:00")

    def test_hourly_buckets_count_engagements_and_conversions(self) -> None:
        rows = [
            (datetime(2026, 3, 4, 10, 5, tzinfo=timezone.utc), True),
            (datetime(2026, 3, 4, 10, 40, tzinfo=timezone.utc), False),
            (datetime(2026, 3, 4, 22, 15, tzinfo=timezone.utc), True),
        ]
        buckets = {bucket.hour: bucket for bucket in bucket_by_hour(rows)}

        self.assertEqual(buckets[10].engagements, 2)
        self.assertEqual(buckets[10].conversions, 1)
        self.assertIn(22, buckets)
        self.assertEqual(buckets[22].conversions, 1)
        self.assertNotIn(23, buckets)


if __name__ == "__main__":
    unittest.main()
