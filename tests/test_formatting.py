import unittest
from datetime import date

from errors import ValidationError
from formatting import (
    format_date_id, format_rupiah, parse_amount, parse_date, parse_time,
    percent_to_rate, rate_to_percent, therapist_status_label,
)
from models import TherapistStatus


class FormattingTests(unittest.TestCase):

    def test_format_rupiah(self):
        self.assertEqual(format_rupiah(150000), 'Rp 150.000')
        self.assertEqual(format_rupiah(1500000), 'Rp 1.500.000')
        self.assertEqual(format_rupiah(0), 'Rp 0')
        self.assertEqual(format_rupiah(-50000), '-Rp 50.000')

    def test_format_date_id(self):
        self.assertEqual(format_date_id(date(2024, 8, 17)), '17 Agustus 2024')
        self.assertEqual(format_date_id(None), '')

    def test_rate_percent_conversion(self):
        self.assertEqual(rate_to_percent(0.12), 12)
        self.assertEqual(rate_to_percent(0.125), 12.5)
        self.assertAlmostEqual(percent_to_rate(15), 0.15)

    def test_status_label(self):
        self.assertEqual(therapist_status_label(TherapistStatus.ACTIVE), 'Aktif')
        self.assertEqual(therapist_status_label(TherapistStatus.INACTIVE), 'Tidak Aktif')
        self.assertEqual(therapist_status_label(TherapistStatus.ON_LEAVE), 'Cuti')


class ParsingTests(unittest.TestCase):

    def test_parse_date(self):
        self.assertEqual(parse_date('2024-03-05'), date(2024, 3, 5))
        with self.assertRaises(ValidationError):
            parse_date('05/03/2024')
        with self.assertRaises(ValidationError):
            parse_date(None)

    def test_parse_amount(self):
        self.assertEqual(parse_amount('150000', 'omzet'), 150000)
        self.assertEqual(parse_amount(2000.0, 'omzet'), 2000)
        self.assertEqual(parse_amount(None, 'omzet', default=0), 0)
        for bad in (-1, 'abc', True, 10.5):
            with self.assertRaises(ValidationError):
                parse_amount(bad, 'omzet')

    def test_parse_time(self):
        self.assertEqual(parse_time('9:05'), '09:05')
        with self.assertRaises(ValidationError):
            parse_time('25:00')
        with self.assertRaises(ValidationError):
            parse_time('')
