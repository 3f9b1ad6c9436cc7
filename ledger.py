"""Daily ledger aggregation, monthly running totals and derived statistics.

Every aggregate here is recomputed from the underlying rows instead of being
incremented, so a single recompute call always restores consistency.
"""
import calendar
import logging
from datetime import date, timedelta

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from errors import DuplicateEntryError, NotFoundError, ValidationError
from formatting import parse_amount, parse_date
from models import db, tznow, DailyTreatment, MonthlyBookkeeping, Service, TherapistMonthlyStats

logger = logging.getLogger(__name__)

# nama field JSON -> (kolom, alias dari form pembukuan)
MONEY_FIELDS = [
    ('dailyRevenue', 'daily_revenue', 'omzet'),
    ('operationalCost', 'operational_cost', 'operasional'),
    ('salaryExpense', 'salary_expense', 'gaji'),
    ('therapistFee', 'therapist_fee', 'feeTherapist'),
    ('otherExpenses', 'other_expenses', 'lainnya'),
]

PERIODS = ('daily', 'weekly', 'monthly', 'yearly')


# ====== Agregasi harian =======

def aggregate_day(treatments):
    total_revenue = 0
    total_fees = 0
    total_tips = 0
    count = 0
    for t in treatments:
        total_revenue += t.service_price or 0
        total_fees += t.therapist_fee or 0
        total_tips += t.tip_amount or 0
        count += 1
    return {
        'total_revenue': total_revenue,
        'total_therapist_fees': total_fees,
        'total_tips': total_tips,
        'total_therapist_fees_with_tips': total_fees + total_tips,
        # tip diteruskan ke therapist, bukan pendapatan salon
        'net_profit': total_revenue - total_fees,
        'treatment_count': count,
    }


def completed_treatments_between(start, end):
    return (
        DailyTreatment.query
        .filter(DailyTreatment.date >= start, DailyTreatment.date <= end)
        .filter(DailyTreatment.end_time.isnot(None))
        .order_by(DailyTreatment.date.asc(), DailyTreatment.id.asc())
        .all()
    )


# ====== Running total bulanan =======

def recompute_running_totals(rows):
    """Recompute totals for every row, in date order, from scratch.

    ``sorted`` is stable, so rows sharing a date keep the order they were
    passed in (callers pass them ordered by id).
    """
    ordered = sorted(rows, key=lambda r: r.date)
    running = 0
    for row in ordered:
        row.total_expense = (
            (row.operational_cost or 0)
            + (row.salary_expense or 0)
            + (row.therapist_fee or 0)
            + (row.other_expenses or 0)
        )
        row.net_income = (row.daily_revenue or 0) - row.total_expense
        running += row.net_income
        row.running_total = running
    return ordered


def recompute_ledger():
    rows = MonthlyBookkeeping.query.order_by(MonthlyBookkeeping.id.asc()).all()
    ordered = recompute_running_totals(rows)
    db.session.flush()
    logger.debug("Ledger recomputed: %d rows", len(ordered))
    return ordered


def validate_entry(data, current=None, today=None):
    """Validate a bookkeeping form/JSON body and return column values.

    ``current`` holds the existing row for an edit; fields missing from
    ``data`` keep their stored value.
    """
    today = today or tznow().date()
    raw_date = data.get('date')
    if raw_date is None and current is not None:
        entry_date = current.date
    else:
        entry_date = parse_date(raw_date, 'Tanggal')
    if entry_date > today:
        raise ValidationError('Tanggal tidak boleh di masa depan.')

    values = {'date': entry_date}
    for key, column, alias in MONEY_FIELDS:
        raw = data.get(key, data.get(alias))
        if raw is None and current is not None:
            values[column] = getattr(current, column)
        else:
            values[column] = parse_amount(raw, key, default=0)

    if 'notes' in data:
        values['notes'] = (data.get('notes') or '').strip() or None
    elif current is not None:
        values['notes'] = current.notes
    return values


def _date_taken(entry_date, exclude_id=None):
    q = MonthlyBookkeeping.query.filter(MonthlyBookkeeping.date == entry_date)
    if exclude_id is not None:
        q = q.filter(MonthlyBookkeeping.id != exclude_id)
    return db.session.query(q.exists()).scalar()


def _flush_entry(entry):
    try:
        with db.session.begin_nested():
            db.session.add(entry)
    except IntegrityError:
        raise DuplicateEntryError('Sudah ada entri pembukuan untuk tanggal ini.')


def create_entry(data, today=None):
    values = validate_entry(data, today=today)
    if _date_taken(values['date']):
        raise DuplicateEntryError('Sudah ada entri pembukuan untuk tanggal ini.')
    entry = MonthlyBookkeeping(**values)
    _flush_entry(entry)
    recompute_ledger()
    return entry


def get_entry(entry_id):
    entry = db.session.get(MonthlyBookkeeping, entry_id)
    if not entry:
        raise NotFoundError('Entri pembukuan tidak ditemukan.')
    return entry


def update_entry(entry_id, data, today=None):
    entry = get_entry(entry_id)
    values = validate_entry(data, current=entry, today=today)
    if _date_taken(values['date'], exclude_id=entry.id):
        raise DuplicateEntryError('Sudah ada entri pembukuan untuk tanggal ini.')
    for column, value in values.items():
        setattr(entry, column, value)
    _flush_entry(entry)
    recompute_ledger()
    return entry


def delete_entry(entry_id):
    entry = get_entry(entry_id)
    db.session.delete(entry)
    db.session.flush()
    recompute_ledger()


def auto_entry(entry_date, operational_cost=0, salary_expense=0, other_expenses=0, notes=None, today=None):
    """Create or refresh the ledger row of a date from that day's treatments."""
    day = aggregate_day(completed_treatments_between(entry_date, entry_date))
    data = {
        'date': entry_date,
        'dailyRevenue': day['total_revenue'],
        'operationalCost': operational_cost,
        'salaryExpense': salary_expense,
        'therapistFee': day['total_therapist_fees'],
        'otherExpenses': other_expenses,
        'notes': notes,
    }
    existing = MonthlyBookkeeping.query.filter_by(date=parse_date(entry_date)).first()
    if existing:
        return update_entry(existing.id, data, today=today)
    return create_entry(data, today=today)


def month_bounds(month: int, year: int):
    if not 1 <= month <= 12:
        raise ValidationError('Bulan harus antara 1 dan 12.')
    first = date(year, month, 1)
    last = first.replace(day=calendar.monthrange(year, month)[1])
    return first, last


def month_summary(month: int, year: int):
    first, last = month_bounds(month, year)
    entries = (
        MonthlyBookkeeping.query
        .filter(MonthlyBookkeeping.date >= first, MonthlyBookkeeping.date <= last)
        .order_by(MonthlyBookkeeping.date.asc())
        .all()
    )
    totals = {
        'totalRevenue': sum(e.daily_revenue for e in entries),
        'totalOperationalCost': sum(e.operational_cost for e in entries),
        'totalSalaryExpense': sum(e.salary_expense for e in entries),
        'totalTherapistFee': sum(e.therapist_fee for e in entries),
        'totalOtherExpenses': sum(e.other_expenses for e in entries),
        'totalExpense': sum(e.total_expense for e in entries),
        'totalNetIncome': sum(e.net_income for e in entries),
    }
    revenue = totals['totalRevenue']
    return {
        'entries': entries,
        'monthlyTotals': totals,
        'averageDailyRevenue': round(revenue / len(entries)) if entries else 0,
        'profitMargin': round(totals['totalNetIncome'] / revenue * 100, 2) if revenue else 0,
        'runningTotal': entries[-1].running_total if entries else 0,
    }


def ledger_analytics(start, end):
    entries = (
        MonthlyBookkeeping.query
        .filter(MonthlyBookkeeping.date >= start, MonthlyBookkeeping.date <= end)
        .order_by(MonthlyBookkeeping.date.asc())
        .all()
    )
    revenue = sum(e.daily_revenue for e in entries)
    net = sum(e.net_income for e in entries)
    best = max(entries, key=lambda e: e.daily_revenue, default=None)
    worst = min(entries, key=lambda e: e.daily_revenue, default=None)
    return {
        'totalRevenue': revenue,
        'totalExpenses': sum(e.total_expense for e in entries),
        'totalNetIncome': net,
        'operationalCosts': sum(e.operational_cost for e in entries),
        'therapistFees': sum(e.therapist_fee for e in entries),
        'salaryExpenses': sum(e.salary_expense for e in entries),
        'bestDay': {'date': best.date.isoformat(), 'revenue': best.daily_revenue} if best else None,
        'worstDay': {'date': worst.date.isoformat(), 'revenue': worst.daily_revenue} if worst else None,
        'averageRevenue': round(revenue / len(entries)) if entries else 0,
        'profitMargin': round(net / revenue * 100, 2) if revenue else 0,
        'entryCount': len(entries),
    }


# ====== Statistik turunan customer / therapist =======

def recompute_customer_stats(customer):
    treatments = sorted(
        (t for t in customer.treatments if t.is_completed),
        key=lambda t: (t.date, t.id or 0),
    )
    loyalty = 0
    for t in treatments:
        # treatment gratis mereset hitungan loyalitas
        loyalty = 0 if t.is_free_visit else loyalty + 1
    customer.total_visits = len(treatments)
    customer.total_spending = sum(t.service_price for t in treatments)
    customer.loyalty_visits = loyalty
    customer.last_visit = treatments[-1].date if treatments else None
    customer.touch()
    return customer


def mean_rating(values):
    """Average of 1-5 ratings to two decimals; None when nobody rated yet."""
    values = list(values)
    return round(sum(values) / len(values), 2) if values else None


def recompute_therapist_stats(therapist):
    treatments = [t for t in therapist.treatments if t.is_completed]
    therapist.total_treatments = len(treatments)
    therapist.total_earnings = sum(t.therapist_earnings for t in treatments)
    therapist.average_rating = mean_rating(
        t.feedback.therapist_service for t in treatments if t.feedback is not None
    )
    return therapist


def recompute_therapist_monthly_stats(therapist, month: int, year: int):
    first, last = month_bounds(month, year)
    treatments = [t for t in therapist.treatments if t.is_completed and first <= t.date <= last]
    stats = TherapistMonthlyStats.query.filter_by(therapist_id=therapist.id, month=month, year=year).first()
    if not stats:
        stats = TherapistMonthlyStats(therapist_id=therapist.id, month=month, year=year)
        db.session.add(stats)
    stats.treatment_count = len(treatments)
    stats.total_revenue = sum(t.service_price for t in treatments)
    stats.total_fees = sum(t.therapist_fee for t in treatments)
    stats.total_tips = sum(t.tip_amount for t in treatments)
    stats.average_rating = mean_rating(
        t.feedback.therapist_service for t in treatments if t.feedback is not None
    )
    return stats


def therapist_months(therapist):
    """Every (year, month) with completed work or an existing stats row."""
    months = {(t.date.year, t.date.month) for t in therapist.treatments if t.is_completed}
    months.update((s.year, s.month) for s in therapist.monthly_stats)
    return sorted(months)


def recompute_service_popularity():
    """Popularity 0-10 relative to the most completed service."""
    counts = dict(
        db.session.query(DailyTreatment.service_id, func.count(DailyTreatment.id))
        .filter(DailyTreatment.end_time.isnot(None))
        .group_by(DailyTreatment.service_id)
        .all()
    )
    top = max(counts.values(), default=0)
    for service in Service.query.all():
        service.popularity = round(counts.get(service.id, 0) / top * 10, 1) if top else 0
    db.session.flush()


def refresh_aggregates(customer, therapist, treatment_date):
    """Recompute everything derived from a treatment after it was written or deleted."""
    db.session.flush()
    if customer is not None:
        db.session.expire(customer, ['treatments'])
        recompute_customer_stats(customer)
    if therapist is not None:
        db.session.expire(therapist, ['treatments'])
        recompute_therapist_stats(therapist)
        recompute_therapist_monthly_stats(therapist, treatment_date.month, treatment_date.year)
    recompute_service_popularity()
    db.session.flush()


# ====== Laporan periode =======

def period_range(period, ref_date):
    if period not in PERIODS:
        raise ValidationError('period harus daily, weekly, monthly, atau yearly.')
    if period == 'daily':
        return ref_date, ref_date
    if period == 'weekly':
        start = ref_date - timedelta(days=ref_date.weekday())  # Senin
        return start, start + timedelta(days=6)
    if period == 'monthly':
        return month_bounds(ref_date.month, ref_date.year)
    return ref_date.replace(month=1, day=1), ref_date.replace(month=12, day=31)


def period_report(period, ref_date):
    start, end = period_range(period, ref_date)
    treatments = completed_treatments_between(start, end)
    day = aggregate_day(treatments)
    customers = {t.customer_id or f"name:{t.customer_name}" for t in treatments}
    return {
        'period': period,
        'start': start.isoformat(),
        'end': end.isoformat(),
        'revenue': day['total_revenue'],
        'treatments': day['treatment_count'],
        'customers': len(customers),
        'therapistFees': day['total_therapist_fees'],
        'tips': day['total_tips'],
        'therapistFeesWithTips': day['total_therapist_fees_with_tips'],
        'netProfit': day['net_profit'],
    }


def monthly_summaries():
    """Per (year, month) totals from completed treatments, oldest first."""
    buckets = {}
    treatments = DailyTreatment.query.filter(DailyTreatment.end_time.isnot(None)).all()
    for t in treatments:
        key = (t.date.year, t.date.month)
        b = buckets.setdefault(key, {'revenue': 0, 'fees': 0, 'count': 0, 'free': 0})
        b['revenue'] += t.service_price
        b['fees'] += t.therapist_fee
        b['count'] += 1
        if t.is_free_visit:
            b['free'] += 1
    rows = []
    for (year, month), b in sorted(buckets.items()):
        rows.append({
            'id': year * 100 + month,
            'month': month,
            'year': year,
            'totalRevenue': b['revenue'],
            'totalTherapistFees': b['fees'],
            'totalTreatments': b['count'],
            'freeTreatments': b['free'],
        })
    return rows
