import unittest
from datetime import datetime, timedelta, timezone

from shared.constants import validate_tier_poem_count
from shared.types import contest_month_for
from writory.coupons import validate_coupon
from writory.entitlements import (
    effective_free_used,
    free_tier_enabled,
    is_free_entry,
    parse_timestamp,
)

USED_AT = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


class FreeEntryTests(unittest.TestCase):
    def test_free_tier_is_free_entry(self):
        self.assertTrue(is_free_entry("free", None))

    def test_single_with_free_code_is_free_entry(self):
        self.assertTrue(is_free_entry("single", validate_coupon("INKWIN100", "single")))

    def test_single_with_discount_code_is_paid(self):
        self.assertFalse(
            is_free_entry("single", validate_coupon("DISCOUNT10", "single"))
        )

    def test_paid_tiers_without_coupon(self):
        for tier in ("single", "double", "bulk"):
            self.assertFalse(is_free_entry(tier, None))


class ResetRuleTests(unittest.TestCase):
    def test_unused_flag(self):
        self.assertFalse(effective_free_used(False, None, None))

    def test_used_without_reset(self):
        self.assertTrue(effective_free_used(True, USED_AT, None))

    def test_reset_after_use_restores(self):
        reset = (USED_AT + timedelta(hours=1)).isoformat()
        self.assertFalse(effective_free_used(True, USED_AT, reset))

    def test_use_after_reset_counts(self):
        reset = (USED_AT - timedelta(hours=1)).isoformat()
        self.assertTrue(effective_free_used(True, USED_AT, reset))

    def test_naive_used_at_treated_as_utc(self):
        reset = "2025-03-10T11:00:00Z"
        self.assertTrue(
            effective_free_used(True, USED_AT.replace(tzinfo=None), reset)
        )

    def test_parse_timestamp(self):
        self.assertEqual(parse_timestamp("2025-03-10T12:00:00Z"), USED_AT)
        self.assertIsNone(parse_timestamp("not a date"))
        self.assertIsNone(parse_timestamp(None))

    def test_free_tier_enabled_setting(self):
        self.assertTrue(free_tier_enabled(None))
        self.assertTrue(free_tier_enabled("TRUE"))
        self.assertFalse(free_tier_enabled("false"))


class ContestRulesTests(unittest.TestCase):
    def test_contest_month_in_utc(self):
        moment = datetime(2025, 1, 31, 23, 30, tzinfo=timezone(timedelta(hours=-5)))
        self.assertEqual(contest_month_for(moment), "2025-02")
        self.assertEqual(contest_month_for(USED_AT), "2025-03")

    def test_tier_poem_counts(self):
        self.assertTrue(validate_tier_poem_count("free", 1))
        self.assertTrue(validate_tier_poem_count("double", 2))
        self.assertTrue(validate_tier_poem_count("bulk", 5))
        self.assertFalse(validate_tier_poem_count("bulk", 4))
        self.assertFalse(validate_tier_poem_count("platinum", 1))


if __name__ == "__main__":
    unittest.main()
