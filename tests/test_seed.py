import random
from datetime import date

from models import (
    db, Customer, CustomerFeedback, DailyTreatment, FeedbackStatus, MonthlyBookkeeping,
    Service, ServiceCategory, Therapist, User,
)
from seed import seed
from tests.base import SalonTestCase

TODAY = date(2024, 5, 31)


def _counts():
    return {
        'users': User.query.count(),
        'categories': ServiceCategory.query.count(),
        'services': Service.query.count(),
        'therapists': Therapist.query.count(),
        'customers': Customer.query.count(),
        'treatments': DailyTreatment.query.count(),
        'feedback': CustomerFeedback.query.count(),
        'bookkeeping': MonthlyBookkeeping.query.count(),
    }


class SeedTests(SalonTestCase):

    def test_reference_counts(self):
        seed(with_history=False, today=TODAY)
        counts = _counts()
        self.assertEqual(counts['users'], 1)
        self.assertEqual(counts['categories'], 5)
        self.assertEqual(counts['services'], 12)
        self.assertEqual(counts['therapists'], 4)
        self.assertEqual(counts['customers'], 5)
        self.assertEqual(counts['treatments'], 0)

    def test_running_twice_creates_no_duplicates(self):
        seed(rng=random.Random(7), today=TODAY)
        first = _counts()
        seed(rng=random.Random(8), today=TODAY)
        self.assertEqual(_counts(), first)
        initials = [t.initial for t in Therapist.query.all()]
        self.assertEqual(len(initials), len(set(initials)))

    def test_existing_rows_are_updated(self):
        db.session.add(Therapist(initial='R', full_name='Nama Lama', base_fee_per_treatment=1))
        db.session.commit()
        seed(with_history=False, today=TODAY)
        r = Therapist.query.filter_by(initial='R').one()
        self.assertEqual(r.full_name, 'Ratna Sari')
        self.assertEqual(r.base_fee_per_treatment, 15000)
        self.assertEqual(Therapist.query.count(), 4)

    def test_history_is_consistent(self):
        seed(rng=random.Random(3), today=TODAY)
        treatments = DailyTreatment.query.all()
        self.assertTrue(treatments)
        for t in treatments:
            self.assertNotEqual(t.date.weekday(), 6)
            self.assertTrue(t.is_completed)
            expected = FeedbackStatus.COLLECTED if t.feedback is not None else FeedbackStatus.SKIPPED
            self.assertEqual(t.feedback_status, expected)

        rows = MonthlyBookkeeping.query.order_by(MonthlyBookkeeping.date).all()
        self.assertEqual(rows[-1].running_total, sum(r.net_income for r in rows))

        for customer in Customer.query.all():
            done = [t for t in treatments if t.customer_id == customer.id]
            self.assertEqual(customer.total_visits, len(done))
            self.assertEqual(customer.total_spending, sum(t.service_price for t in done))

    def test_monthly_stats_cover_every_treatment_month(self):
        seed(rng=random.Random(5), today=date(2024, 5, 10))
        for therapist in Therapist.query.all():
            worked = {(t.date.year, t.date.month) for t in therapist.treatments if t.is_completed}
            stats = {(s.year, s.month) for s in therapist.monthly_stats}
            self.assertTrue(worked <= stats)
        months = {(t.date.year, t.date.month) for t in DailyTreatment.query.all()}
        self.assertEqual(months, {(2024, 4), (2024, 5)})
