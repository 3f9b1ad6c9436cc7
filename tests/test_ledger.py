import unittest
from datetime import date
from types import SimpleNamespace

from errors import DuplicateEntryError, ValidationError
from ledger import (
    aggregate_day, auto_entry, create_entry, delete_entry, mean_rating, month_summary,
    period_range, period_report, recompute_running_totals, update_entry,
)
from models import db, MonthlyBookkeeping
from tests.base import SalonTestCase
import workflow

TODAY = date(2024, 5, 31)


def _row(day, revenue=0, operational=0, salary=0, fee=0, other=0):
    return SimpleNamespace(date=day, daily_revenue=revenue, operational_cost=operational,
                           salary_expense=salary, therapist_fee=fee, other_expenses=other,
                           total_expense=None, net_income=None, running_total=None)


class AggregateDayTests(unittest.TestCase):

    def test_revenue_fees_and_net_profit(self):
        treatments = [
            SimpleNamespace(service_price=100000, therapist_fee=25000, tip_amount=0),
            SimpleNamespace(service_price=150000, therapist_fee=32500, tip_amount=0),
        ]
        day = aggregate_day(treatments)
        self.assertEqual(day['total_revenue'], 250000)
        self.assertEqual(day['total_therapist_fees'], 57500)
        self.assertEqual(day['net_profit'], 192500)
        self.assertEqual(day['treatment_count'], 2)

    def test_tips_reported_separately(self):
        treatments = [SimpleNamespace(service_price=100000, therapist_fee=25000, tip_amount=10000)]
        day = aggregate_day(treatments)
        self.assertEqual(day['total_tips'], 10000)
        self.assertEqual(day['total_therapist_fees_with_tips'], 35000)
        self.assertEqual(day['net_profit'], 75000)

    def test_empty_day(self):
        day = aggregate_day([])
        self.assertEqual(day['total_revenue'], 0)
        self.assertEqual(day['net_profit'], 0)


class RunningTotalTests(unittest.TestCase):

    def test_running_total_sequence(self):
        rows = [
            _row(date(2024, 5, 1), revenue=50000),
            _row(date(2024, 5, 2), revenue=0, operational=20000),
            _row(date(2024, 5, 3), revenue=40000, other=10000),
        ]
        ordered = recompute_running_totals(rows)
        self.assertEqual([r.net_income for r in ordered], [50000, -20000, 30000])
        self.assertEqual([r.running_total for r in ordered], [50000, 30000, 60000])

    def test_rows_sorted_by_date(self):
        rows = [_row(date(2024, 5, 3), revenue=3), _row(date(2024, 5, 1), revenue=1), _row(date(2024, 5, 2), revenue=2)]
        ordered = recompute_running_totals(rows)
        self.assertEqual([r.running_total for r in ordered], [1, 3, 6])

    def test_recompute_twice_is_idempotent(self):
        rows = [_row(date(2024, 5, d), revenue=d * 10000, operational=7000) for d in range(1, 6)]
        first = [(r.total_expense, r.net_income, r.running_total) for r in recompute_running_totals(rows)]
        second = [(r.total_expense, r.net_income, r.running_total) for r in recompute_running_totals(rows)]
        self.assertEqual(first, second)

    def test_running_total_is_prefix_sum(self):
        rows = [_row(date(2024, 4, d), revenue=(d * 37000) % 90000, fee=(d * 13000) % 50000) for d in range(1, 21)]
        ordered = recompute_running_totals(rows)
        for i, row in enumerate(ordered):
            self.assertEqual(row.running_total, sum(r.net_income for r in ordered[:i + 1]))


class PeriodRangeTests(unittest.TestCase):

    def test_weekly_runs_monday_to_sunday(self):
        start, end = period_range('weekly', date(2024, 5, 16))  # Kamis
        self.assertEqual(start, date(2024, 5, 13))
        self.assertEqual(end, date(2024, 5, 19))

    def test_monthly_and_yearly(self):
        self.assertEqual(period_range('monthly', date(2024, 2, 10)), (date(2024, 2, 1), date(2024, 2, 29)))
        self.assertEqual(period_range('yearly', date(2024, 2, 10)), (date(2024, 1, 1), date(2024, 12, 31)))

    def test_unknown_period(self):
        with self.assertRaises(ValidationError):
            period_range('hourly', date(2024, 2, 10))


class BookkeepingEntryTests(SalonTestCase):

    def _entry(self, day, **values):
        data = {'date': day.isoformat()}
        data.update(values)
        entry = create_entry(data, today=TODAY)
        db.session.commit()
        return entry

    def test_create_computes_totals(self):
        e = self._entry(date(2024, 5, 1), dailyRevenue=500000, operationalCost=100000,
                        salaryExpense=50000, therapistFee=120000, otherExpenses=30000)
        self.assertEqual(e.total_expense, 300000)
        self.assertEqual(e.net_income, 200000)
        self.assertEqual(e.running_total, 200000)

    def test_form_aliases_accepted(self):
        e = self._entry(date(2024, 5, 1), omzet='250000', operasional='50000')
        self.assertEqual(e.daily_revenue, 250000)
        self.assertEqual(e.net_income, 200000)

    def test_duplicate_date_rejected(self):
        self._entry(date(2024, 5, 1), dailyRevenue=100000)
        with self.assertRaises(DuplicateEntryError):
            self._entry(date(2024, 5, 1), dailyRevenue=200000)
        db.session.rollback()
        self.assertEqual(MonthlyBookkeeping.query.count(), 1)

    def test_edit_of_same_date_allowed(self):
        e = self._entry(date(2024, 5, 1), dailyRevenue=100000)
        update_entry(e.id, {'dailyRevenue': 150000}, today=TODAY)
        self.assertEqual(e.daily_revenue, 150000)
        self.assertEqual(e.running_total, 150000)

    def test_edit_onto_other_date_rejected(self):
        self._entry(date(2024, 5, 1), dailyRevenue=100000)
        e2 = self._entry(date(2024, 5, 2), dailyRevenue=100000)
        with self.assertRaises(DuplicateEntryError):
            update_entry(e2.id, {'date': '2024-05-01'}, today=TODAY)

    def test_future_date_rejected(self):
        with self.assertRaises(ValidationError):
            self._entry(date(2024, 6, 1), dailyRevenue=100000)

    def test_negative_amount_rejected(self):
        with self.assertRaises(ValidationError):
            self._entry(date(2024, 5, 1), dailyRevenue=-1)

    def test_insert_in_middle_recomputes_later_rows(self):
        first = self._entry(date(2024, 5, 1), dailyRevenue=50000)
        third = self._entry(date(2024, 5, 3), dailyRevenue=30000)
        self._entry(date(2024, 5, 2), operationalCost=20000)
        self.assertEqual(first.running_total, 50000)
        self.assertEqual(third.running_total, 60000)

    def test_delete_recomputes(self):
        self._entry(date(2024, 5, 1), dailyRevenue=50000)
        second = self._entry(date(2024, 5, 2), dailyRevenue=30000)
        third = self._entry(date(2024, 5, 3), dailyRevenue=10000)
        delete_entry(second.id)
        self.assertEqual(third.running_total, 60000)

    def test_month_summary(self):
        self._entry(date(2024, 5, 1), dailyRevenue=200000, operationalCost=50000)
        self._entry(date(2024, 5, 2), dailyRevenue=100000, therapistFee=50000)
        self._entry(date(2024, 4, 30), dailyRevenue=80000)
        summary = month_summary(5, 2024)
        self.assertEqual(len(summary['entries']), 2)
        self.assertEqual(summary['monthlyTotals']['totalRevenue'], 300000)
        self.assertEqual(summary['monthlyTotals']['totalNetIncome'], 200000)
        self.assertEqual(summary['averageDailyRevenue'], 150000)
        # saldo berjalan ikut membawa bulan sebelumnya
        self.assertEqual(summary['runningTotal'], 280000)

    def test_month_out_of_range(self):
        with self.assertRaises(ValidationError):
            month_summary(13, 2024)


class TreatmentLedgerTests(SalonTestCase):

    def setUp(self):
        super().setUp()
        self.therapist = self.make_therapist('R', base_fee=15000, rate=0.10)
        self.service = self.make_service(price=200000)

    def _done(self, day, price, tip=0):
        t = workflow.create_treatment({
            'date': day.isoformat(), 'customerName': 'Walk-in', 'serviceId': self.service.id,
            'therapistId': self.therapist.id, 'servicePrice': price, 'tipAmount': tip,
            'startTime': '10:00', 'endTime': '11:00',
        })
        db.session.commit()
        return t

    def test_auto_entry_from_treatments(self):
        self._done(date(2024, 5, 10), 200000, tip=10000)
        self._done(date(2024, 5, 10), 100000)
        entry = auto_entry(date(2024, 5, 10), operational_cost=20000, today=TODAY)
        self.assertEqual(entry.daily_revenue, 300000)
        self.assertEqual(entry.therapist_fee, 35000 + 25000)
        self.assertEqual(entry.net_income, 300000 - 60000 - 20000)

    def test_auto_entry_updates_existing_row(self):
        self._done(date(2024, 5, 10), 200000)
        auto_entry(date(2024, 5, 10), today=TODAY)
        self._done(date(2024, 5, 10), 100000)
        entry = auto_entry(date(2024, 5, 10), today=TODAY)
        self.assertEqual(MonthlyBookkeeping.query.count(), 1)
        self.assertEqual(entry.daily_revenue, 300000)

    def test_period_report(self):
        self._done(date(2024, 5, 13), 200000, tip=5000)
        self._done(date(2024, 5, 19), 100000)
        self._done(date(2024, 5, 20), 100000)
        report = period_report('weekly', date(2024, 5, 15))
        self.assertEqual(report['revenue'], 300000)
        self.assertEqual(report['treatments'], 2)
        self.assertEqual(report['customers'], 1)
        self.assertEqual(report['therapistFees'], 35000 + 25000)
        self.assertEqual(report['tips'], 5000)
        self.assertEqual(report['therapistFeesWithTips'], 65000)
        self.assertEqual(report['netProfit'], 240000)


class MeanRatingTests(unittest.TestCase):

    def test_no_ratings_is_none_everywhere(self):
        from feedback import feedback_analytics
        self.assertIsNone(mean_rating([]))
        ratings = feedback_analytics([])['ratings']
        self.assertTrue(all(value is None for value in ratings.values()))

    def test_two_decimals(self):
        self.assertEqual(mean_rating([5, 4, 4]), 4.33)
