import unittest

from errors import ValidationError
from fees import commission_amount, compute_therapist_earnings, compute_therapist_fee


class TherapistFeeTests(unittest.TestCase):

    def test_earnings_base_commission_and_tip(self):
        self.assertEqual(compute_therapist_earnings(15000, 0.10, 200000, 10000), 45000)

    def test_fee_excludes_tip(self):
        self.assertEqual(compute_therapist_fee(15000, 0.12, 150000), 33000)

    def test_zero_rate_pays_base_fee_only(self):
        self.assertEqual(compute_therapist_fee(10000, 0, 250000), 10000)

    def test_free_visit_still_pays_base_fee(self):
        self.assertEqual(compute_therapist_earnings(12000, 0.10, 0, 0), 12000)

    def test_commission_rounds_half_up(self):
        # 0.15 * 12345 = 1851.75
        self.assertEqual(commission_amount(0.15, 12345), 1852)
        # 0.1 * 5 = 0.5
        self.assertEqual(commission_amount(0.1, 5), 1)
        self.assertEqual(commission_amount(0.12, 150000), 18000)

    def test_formula_holds_over_grid(self):
        for base in (0, 10000, 18000):
            for rate in (0, 0.08, 0.1, 0.15, 1):
                for price in (0, 75000, 180000):
                    for tip in (0, 5000):
                        expected = base + int(round(price * rate + 1e-9)) + tip
                        self.assertEqual(compute_therapist_earnings(base, rate, price, tip), expected)

    def test_monotonic_in_each_argument(self):
        base = compute_therapist_earnings(10000, 0.10, 100000, 0)
        self.assertLessEqual(base, compute_therapist_earnings(11000, 0.10, 100000, 0))
        self.assertLessEqual(base, compute_therapist_earnings(10000, 0.11, 100000, 0))
        self.assertLessEqual(base, compute_therapist_earnings(10000, 0.10, 100001, 0))
        self.assertLessEqual(base, compute_therapist_earnings(10000, 0.10, 100000, 1))

    def test_rejects_negative_amounts(self):
        with self.assertRaises(ValidationError):
            compute_therapist_fee(-1, 0.1, 1000)
        with self.assertRaises(ValidationError):
            compute_therapist_fee(1000, 0.1, -5)
        with self.assertRaises(ValidationError):
            compute_therapist_earnings(1000, 0.1, 1000, -100)

    def test_rejects_rate_outside_fraction_range(self):
        with self.assertRaises(ValidationError):
            commission_amount(12, 100000)
        with self.assertRaises(ValidationError):
            commission_amount(-0.1, 100000)

    def test_rejects_non_finite_rate(self):
        for rate in (float('nan'), float('inf'), float('-inf')):
            with self.assertRaises(ValidationError):
                compute_therapist_fee(1000, rate, 100000)
            with self.assertRaises(ValidationError):
                compute_therapist_earnings(1000, rate, 100000, 0)

    def test_rejects_non_integer_rupiah(self):
        with self.assertRaises(ValidationError):
            compute_therapist_fee(1000.5, 0.1, 1000)
        with self.assertRaises(ValidationError):
            compute_therapist_fee(True, 0.1, 1000)
