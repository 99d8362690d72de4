import unittest

from nebresult.core.gpa import CreditedGradePoint, calculate_overall_gpa, is_graded


class GPATests(unittest.TestCase):
    def test_empty(self):
        self.assertEqual(calculate_overall_gpa([]), "0.00")

    def test_weighted_mean(self):
        subjects = [CreditedGradePoint(4, 4.0), CreditedGradePoint(4, 2.0)]
        self.assertEqual(calculate_overall_gpa(subjects), "3.00")

    def test_ungraded_subject_is_excluded(self):
        subjects = [CreditedGradePoint(4, 4.0), CreditedGradePoint(2, 0)]
        self.assertEqual(calculate_overall_gpa(subjects), "4.00")

    def test_zero_credit_hours(self):
        subjects = [CreditedGradePoint(0, 3.6), CreditedGradePoint(0, 2.4)]
        self.assertEqual(calculate_overall_gpa(subjects), "0.00")

    def test_mapping_entries_and_strings(self):
        subjects = [
            {"total_credit_hour": "5", "grade_point": "3.6"},
            {"total_credit_hour": 4, "grade_point": 3.2},
            {"total_credit_hour": None, "grade_point": 4.0},
            {"total_credit_hour": "abc", "grade_point": 4.0},
            {},
        ]
        # (18 + 12.8) / 9 = 3.4222...
        self.assertEqual(calculate_overall_gpa(subjects), "3.42")

    def test_always_two_decimals(self):
        result = calculate_overall_gpa([CreditedGradePoint(5, 3.6), CreditedGradePoint(4, 2.8), CreditedGradePoint(3, 4.0)])
        # (18 + 11.2 + 12) / 12 = 3.4333...
        self.assertEqual(result, "3.43")
        self.assertIsInstance(result, str)

    def test_huge_grade_point_still_formats(self):
        self.assertEqual(calculate_overall_gpa([{"total_credit_hour": 1, "grade_point": 1e30}]), "1000000000000000019884624838656.00")
        self.assertEqual(calculate_overall_gpa([{"total_credit_hour": 10, "grade_point": 1e308}]), "0.00")

    def test_is_graded_predicate(self):
        self.assertTrue(is_graded(CreditedGradePoint(1, 1.6)))
        self.assertFalse(is_graded(CreditedGradePoint(0, 4.0)))
        self.assertFalse(is_graded(CreditedGradePoint(4, 0)))


if __name__ == "__main__":
    unittest.main()
