"""Idempotent bootstrap of reference and sample historical data.

Reference entities are upserted on their natural keys, services are looked
up by name before being created, and historical sample data is only written
when its table is still empty. Running ``seed()`` twice leaves the same rows
as running it once.
"""
import logging
import random
from datetime import date, timedelta

from flask import current_app
from sqlalchemy.exc import IntegrityError
from werkzeug.security import generate_password_hash

from fees import therapist_fee_for
from ledger import (
    aggregate_day, recompute_customer_stats, recompute_ledger, recompute_service_popularity,
    recompute_therapist_monthly_stats, recompute_therapist_stats, therapist_months,
)
from models import (
    db, tznow, Customer, CustomerFeedback, DailyTreatment, FeedbackStatus,
    MonthlyBookkeeping, PaymentMethod, Service, ServiceCategory, Therapist, User,
)

logger = logging.getLogger(__name__)

THERAPISTS = [
    {'initial': 'R', 'full_name': 'Ratna Sari', 'phone': '+628123456789',
     'base_fee_per_treatment': 15000, 'commission_rate': 0.12, 'join_date': date(2023, 1, 15)},
    {'initial': 'A', 'full_name': 'Ayu Permata', 'phone': '+628123456790',
     'base_fee_per_treatment': 12000, 'commission_rate': 0.10, 'join_date': date(2023, 3, 3)},
    {'initial': 'E', 'full_name': 'Evi Susanti', 'phone': '+628123456791',
     'base_fee_per_treatment': 18000, 'commission_rate': 0.15, 'join_date': date(2023, 2, 20)},
    {'initial': 'T', 'full_name': 'Tina Rahayu', 'phone': '+628123456792',
     'base_fee_per_treatment': 10000, 'commission_rate': 0.08, 'join_date': date(2023, 4, 10)},
]

CATEGORIES = [
    {'name': 'Perawatan Wajah', 'description': 'Berbagai layanan perawatan untuk kecantikan wajah',
     'icon': '✨', 'sort_order': 1},
    {'name': 'Perawatan Rambut', 'description': 'Layanan perawatan untuk kesehatan dan keindahan rambut',
     'icon': '💇', 'sort_order': 2},
    {'name': 'Perawatan Tubuh', 'description': 'Layanan spa dan perawatan tubuh relaksasi',
     'icon': '🤲', 'sort_order': 3},
    {'name': 'Perawatan Kuku', 'description': 'Perawatan kuku tangan dan kaki',
     'icon': '💅', 'sort_order': 4},
    {'name': 'Paket Spesial', 'description': 'Paket perawatan lengkap dan membership',
     'icon': '🎁', 'sort_order': 5},
]

SERVICES = [
    {'name': 'Basic Facial', 'category': 'Perawatan Wajah', 'normal_price': 150000, 'duration': 60,
     'description': 'Pembersihan wajah dasar dengan produk halal dan organic'},
    {'name': 'Whitening Facial', 'category': 'Perawatan Wajah', 'normal_price': 200000,
     'promo_price': 180000, 'duration': 75,
     'description': 'Facial untuk mencerahkan dan meratakan warna kulit'},
    {'name': 'Anti-Aging Facial', 'category': 'Perawatan Wajah', 'normal_price': 250000, 'duration': 90,
     'description': 'Perawatan wajah untuk mengurangi tanda-tanda penuaan'},
    {'name': 'Hair Wash & Styling', 'category': 'Perawatan Rambut', 'normal_price': 75000, 'duration': 45,
     'description': 'Keramas dan styling rambut dengan produk premium'},
    {'name': 'Creambath', 'category': 'Perawatan Rambut', 'normal_price': 125000, 'duration': 60,
     'description': 'Perawatan rambut dengan cream dan pijat kepala'},
    {'name': 'Hair Spa Treatment', 'category': 'Perawatan Rambut', 'normal_price': 200000,
     'promo_price': 170000, 'duration': 90,
     'description': 'Perawatan rambut lengkap dengan masker dan serum'},
    {'name': 'Body Massage', 'category': 'Perawatan Tubuh', 'normal_price': 180000, 'duration': 90,
     'description': 'Pijat tubuh relaksasi dengan minyak aromaterapi'},
    {'name': 'Body Scrub', 'category': 'Perawatan Tubuh', 'normal_price': 150000, 'duration': 60,
     'description': 'Lulur tubuh untuk kulit halus dan sehat'},
    {'name': 'Manicure', 'category': 'Perawatan Kuku', 'normal_price': 80000, 'duration': 45,
     'description': 'Perawatan kuku tangan dengan kutek halal'},
    {'name': 'Pedicure', 'category': 'Perawatan Kuku', 'normal_price': 90000, 'duration': 60,
     'description': 'Perawatan kuku kaki dengan foot spa'},
    {'name': 'Bridal Package', 'category': 'Paket Spesial', 'normal_price': 1500000, 'duration': 240,
     'description': 'Paket lengkap untuk pengantin: makeup, hair do, dan spa'},
    {'name': 'Monthly Membership', 'category': 'Paket Spesial', 'normal_price': 800000,
     'promo_price': 650000, 'duration': 0,
     'description': 'Paket bulanan dengan 4x treatment pilihan'},
]

CUSTOMERS = [
    {'name': 'Siti Aminah', 'phone': '+628111222333', 'email': 'siti.aminah@email.com',
     'address': 'Jl. Mawar No. 15, Jakarta Selatan', 'notes': 'Alergi produk berbahan alkohol'},
    {'name': 'Fatimah Zahra', 'phone': '+628111222334', 'email': 'fatimah.z@email.com',
     'address': 'Jl. Melati No. 22, Jakarta Timur', 'is_vip': True},
    {'name': 'Khadijah Rahmah', 'phone': '+628111222335',
     'address': 'Jl. Anggrek No. 8, Jakarta Pusat', 'notes': 'Prefer therapist wanita'},
    {'name': 'Aisyah Putri', 'phone': '+628111222336', 'email': 'aisyah.putri@email.com',
     'address': 'Jl. Kenanga No. 12, Jakarta Barat'},
    {'name': 'Maryam Salma', 'phone': '+628111222337',
     'address': 'Jl. Cempaka No. 5, Jakarta Utara', 'notes': 'Langganan bulanan'},
]

DEFAULT_REFERENCE = {
    'therapists': THERAPISTS,
    'services': SERVICES,
    'customers': CUSTOMERS,
    'categories': CATEGORIES,
}

HISTORY_DAYS = 30


def upsert(model, key, values):
    """Update the row whose natural key matches, or create it.

    A unique-key collision while creating means a concurrent writer won the
    race; the row then exists and is updated instead.
    """
    obj = model.query.filter_by(**{key: values[key]}).first()
    if obj is None:
        obj = model(**values)
        try:
            with db.session.begin_nested():
                db.session.add(obj)
            return obj
        except IntegrityError:
            obj = model.query.filter_by(**{key: values[key]}).one()
    for field, value in values.items():
        setattr(obj, field, value)
    return obj


def find_or_create_service(values):
    svc = Service.query.filter_by(name=values['name']).first()
    if svc is None:
        svc = Service(**values)
        db.session.add(svc)
    return svc


def seed_admin():
    cfg = current_app.config
    admin = upsert(User, 'username', {
        'username': cfg['ADMIN_USERNAME'],
        'name': cfg['ADMIN_NAME'],
        'role': 'admin',
        'password_hash': generate_password_hash(cfg['ADMIN_PASSWORD']),
    })
    logger.info("Admin user created/updated: %s", admin.name)
    return admin


def seed_reference(reference=None):
    reference = reference or DEFAULT_REFERENCE
    categories = [upsert(ServiceCategory, 'name', dict(c)) for c in reference.get('categories', [])]
    logger.info("Service categories created/updated: %d", len(categories))

    services = [find_or_create_service(dict(s)) for s in reference.get('services', [])]
    logger.info("Services available: %d", len(services))

    therapists = [upsert(Therapist, 'initial', dict(t)) for t in reference.get('therapists', [])]
    logger.info("Therapists created/updated: %d", len(therapists))

    customers = [upsert(Customer, 'phone', dict(c)) for c in reference.get('customers', [])]
    logger.info("Customers created/updated: %d", len(customers))
    db.session.flush()
    return services, therapists, customers


def _add_minutes(hhmm, minutes):
    h, m = (int(x) for x in hhmm.split(':'))
    total = h * 60 + m + minutes
    return f"{(total // 60) % 24:02d}:{total % 60:02d}"


def seed_treatments(services, therapists, customers, rng, today):
    if DailyTreatment.query.count() > 0:
        logger.warning("Sample treatments already exist, skipping...")
        return 0
    if not (services and therapists and customers):
        return 0
    created = 0
    for i in range(HISTORY_DAYS):
        day = today - timedelta(days=i)
        if day.weekday() == 6:  # Minggu libur
            continue
        for _ in range(rng.randint(2, 8)):
            svc = rng.choice(services)
            therapist = rng.choice(therapists)
            cust = rng.choice(customers)
            price = svc.effective_price
            start = f"{rng.randint(8, 15):02d}:00"
            t = DailyTreatment(
                date=day,
                customer=cust,
                customer_name=cust.name,
                service=svc,
                service_name=svc.name,
                service_price=price,
                therapist=therapist,
                tip_amount=rng.randint(0, 3) * 5000,
                payment_method=rng.choice(list(PaymentMethod)),
                start_time=start,
                end_time=_add_minutes(start, svc.duration or 60),
                notes='Customer sangat puas dengan layanan' if rng.random() > 0.7 else None,
                therapist_fee=therapist_fee_for(therapist, price),
                feedback_status=FeedbackStatus.SKIPPED,
            )
            db.session.add(t)
            if rng.random() > 0.3:
                t.feedback = CustomerFeedback(
                    customer_id=cust.id,
                    overall_rating=rng.randint(4, 5),
                    service_quality=rng.randint(4, 5),
                    therapist_service=rng.randint(4, 5),
                    cleanliness=rng.randint(4, 5),
                    value_for_money=rng.randint(4, 5),
                    comment='Pelayanan sangat memuaskan, akan kembali lagi!' if rng.random() > 0.5 else None,
                    would_recommend=rng.random() > 0.1,
                )
                t.feedback_status = FeedbackStatus.COLLECTED
            created += 1
    db.session.flush()
    logger.info("Sample treatments created: %d", created)
    return created


def seed_bookkeeping(rng, today):
    if MonthlyBookkeeping.query.count() > 0:
        logger.warning("Sample bookkeeping entries already exist, skipping...")
        return 0
    created = 0
    for i in range(HISTORY_DAYS):
        day = today - timedelta(days=i)
        if day.weekday() == 6:
            continue
        treatments = DailyTreatment.query.filter(
            DailyTreatment.date == day, DailyTreatment.end_time.isnot(None)).all()
        totals = aggregate_day(treatments)
        db.session.add(MonthlyBookkeeping(
            date=day,
            daily_revenue=totals['total_revenue'],
            operational_cost=rng.randint(100000, 300000),
            salary_expense=0,  # gaji bulanan, bukan harian
            therapist_fee=totals['total_therapist_fees'],
            other_expenses=rng.randint(0, 100000),
            notes='Entry hari ini' if i == 0 else None,
        ))
        created += 1
    db.session.flush()
    logger.info("Sample bookkeeping entries created: %d", created)
    return created


def recompute_all(today=None):
    """Full pass over every derived figure."""
    today = today or tznow().date()
    rows = recompute_ledger()
    for therapist in Therapist.query.all():
        recompute_therapist_stats(therapist)
        months = set(therapist_months(therapist))
        months.add((today.year, today.month))
        for year, month in sorted(months):
            recompute_therapist_monthly_stats(therapist, month, year)
    for customer in Customer.query.all():
        recompute_customer_stats(customer)
    recompute_service_popularity()
    db.session.flush()
    return len(rows)


def seed(reference=None, with_history=True, rng=None, today=None):
    logger.info("Seeding %s database...", current_app.config.get('SALON_NAME'))
    today = today or tznow().date()
    rng = rng or random.Random(current_app.config.get('SEED_RANDOM', 42))

    seed_admin()
    services, therapists, customers = seed_reference(reference)
    summary = {
        'categories': ServiceCategory.query.count(),
        'services': len(services),
        'therapists': len(therapists),
        'customers': len(customers),
        'treatments': 0,
        'bookkeeping': 0,
    }
    if with_history:
        summary['treatments'] = seed_treatments(services, therapists, customers, rng, today)
        summary['bookkeeping'] = seed_bookkeeping(rng, today)
    summary['ledgerRows'] = recompute_all(today)
    db.session.commit()
    logger.info("Seeding completed: %s", summary)
    return summary
