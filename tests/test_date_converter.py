import unittest
from datetime import date

from nebresult.utils.date_converter import convert_ad_to_bs, convert_bs_to_ad, self_check


class BsToAdTests(unittest.TestCase):
    def test_new_year_2080(self):
        self.assertEqual(convert_bs_to_ad("2080-01-01"), "2023-04-14")

    def test_accepts_other_separators(self):
        self.assertEqual(convert_bs_to_ad("2080/01/01"), "2023-04-14")
        self.assertEqual(convert_bs_to_ad("2080.1.1"), "2023-04-14")

    def test_failures_return_none(self):
        for value in (None, "", "2080-01", "2080-ab-01", "1990-01-01", "2080-13-01", "2080-01-33"):
            self.assertIsNone(convert_bs_to_ad(value), value)


class AdToBsTests(unittest.TestCase):
    def test_from_string_and_date(self):
        self.assertEqual(convert_ad_to_bs("2023-04-14"), "2080-01-01")
        self.assertEqual(convert_ad_to_bs(date(2023, 4, 14)), "2080-01-01")

    def test_failures_return_none(self):
        self.assertIsNone(convert_ad_to_bs("not-a-date"))
        self.assertIsNone(convert_ad_to_bs(None))

    def test_self_check(self):
        self.assertTrue(self_check())


if __name__ == "__main__":
    unittest.main()
