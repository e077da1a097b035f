import datetime as dt
import threading
import unittest

from personio_assistant.day_cache import DayIDCache
from personio_assistant.models import AttendanceCalendar

from tests.personio_tests.fixtures import calendar_body, make_day


class FakeCalendarSource:
    """Records calendar queries and answers from a fixed day list."""

    def __init__(self, days=None, fail=False):
        self.days = days or []
        self.fail = fail
        self.calls = []

    def __call__(self, start, end):
        self.calls.append((start, end))
        if self.fail:
            raise RuntimeError("calendar unavailable")
        return AttendanceCalendar.from_json(calendar_body(self.days, envelope=False))


class CountingMint:
    def __init__(self):
        self.count = 0

    def __call__(self):
        self.count += 1
        return f"minted-{self.count}"


class DayIDCacheTests(unittest.TestCase):
    def test_known_day_resolved_from_month_query(self):
        source = FakeCalendarSource([make_day("srv-15", "2023-01-15")])
        cache = DayIDCache(source, mint=CountingMint())

        self.assertEqual(cache.get_or_create(dt.date(2023, 1, 15)), "srv-15")
        self.assertEqual(source.calls, [(dt.date(2023, 1, 1), dt.date(2023, 1, 31))])

    def test_same_month_lookups_query_once(self):
        source = FakeCalendarSource([make_day("srv-15", "2023-01-15")])
        mint = CountingMint()
        cache = DayIDCache(source, mint=mint)

        cache.get_or_create(dt.date(2023, 1, 15))
        cache.get_or_create(dt.date(2023, 1, 16))
        cache.get_or_create(dt.date(2023, 1, 31))

        self.assertEqual(len(source.calls), 1)
        self.assertEqual(mint.count, 2)

    def test_other_month_issues_new_query(self):
        source = FakeCalendarSource()
        cache = DayIDCache(source, mint=CountingMint())

        cache.get_or_create(dt.date(2023, 1, 31))
        cache.get_or_create(dt.date(2023, 2, 1))

        self.assertEqual(
            source.calls,
            [(dt.date(2023, 1, 1), dt.date(2023, 1, 31)), (dt.date(2023, 2, 1), dt.date(2023, 2, 28))],
        )

    def test_get_or_create_is_idempotent_and_mints_once(self):
        source = FakeCalendarSource()
        mint = CountingMint()
        cache = DayIDCache(source, mint=mint)

        first = cache.get_or_create(dt.date(2023, 1, 18))
        second = cache.get_or_create(dt.date(2023, 1, 18))

        self.assertEqual(first, "minted-1")
        self.assertEqual(first, second)
        self.assertEqual(mint.count, 1)

    def test_looked_up_day_without_record_is_cached_as_none(self):
        source = FakeCalendarSource([make_day("srv-15", "2023-01-15")])
        cache = DayIDCache(source, mint=CountingMint())

        self.assertNotIn(dt.date(2023, 1, 3), cache)
        cache.refresh_month(dt.date(2023, 1, 3))

        self.assertIn(dt.date(2023, 1, 3), cache)
        self.assertIsNone(cache.peek(dt.date(2023, 1, 3)))
        self.assertEqual(cache.peek(dt.date(2023, 1, 15)), "srv-15")
        self.assertNotIn(dt.date(2023, 2, 1), cache)

    def test_refresh_keeps_minted_ids(self):
        source = FakeCalendarSource()
        cache = DayIDCache(source, mint=CountingMint())

        minted = cache.get_or_create(dt.date(2023, 1, 18))
        cache.refresh_month(dt.date(2023, 1, 5))

        self.assertEqual(cache.peek(dt.date(2023, 1, 18)), minted)

    def test_failed_query_caches_nothing(self):
        source = FakeCalendarSource(fail=True)
        mint = CountingMint()
        cache = DayIDCache(source, mint=mint)

        with self.assertRaises(RuntimeError):
            cache.get_or_create(dt.date(2023, 1, 18))
        self.assertNotIn(dt.date(2023, 1, 18), cache)
        self.assertEqual(mint.count, 0)

    def test_concurrent_callers_share_one_query_and_one_mint(self):
        source = FakeCalendarSource()
        mint = CountingMint()
        cache = DayIDCache(source, mint=mint)
        results = []

        def worker():
            results.append(cache.get_or_create(dt.date(2023, 3, 9)))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(len(source.calls), 1)
        self.assertEqual(mint.count, 1)
        self.assertEqual(set(results), {"minted-1"})


if __name__ == "__main__":
    unittest.main()
