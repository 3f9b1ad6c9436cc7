"""Treatment completion and feedback workflow.

A treatment moves Booked -> Completed -> FeedbackPending and ends in either
FeedbackCollected or FeedbackSkipped. ``DailyTreatment.feedback_status`` is
the single source of truth for the feedback half of the lifecycle.
"""
import logging

from flask import current_app
from flask_mail import Message
from sqlalchemy.exc import IntegrityError

from errors import DuplicateFeedbackError, NotFoundError, ValidationError
from fees import therapist_fee_for
from formatting import format_rupiah, parse_amount, parse_date, parse_time
from ledger import refresh_aggregates
from models import (
    db, Customer, CustomerFeedback, DailyTreatment, FeedbackStatus, PaymentMethod,
    Service, Therapist, tznow,
)

logger = logging.getLogger(__name__)

RATING_FIELDS = [
    ('overallRating', 'overall_rating'),
    ('serviceQuality', 'service_quality'),
    ('therapistService', 'therapist_service'),
    ('cleanliness', 'cleanliness'),
    ('valueForMoney', 'value_for_money'),
]


def treatment_state(t) -> str:
    if t.is_cancelled:
        return 'cancelled'
    if not t.is_completed:
        return 'booked'
    if t.feedback_status is None:
        return 'completed'
    return {
        FeedbackStatus.PENDING: 'feedback_pending',
        FeedbackStatus.COLLECTED: 'feedback_collected',
        FeedbackStatus.SKIPPED: 'feedback_skipped',
    }[t.feedback_status]


def parse_payment_method(value) -> PaymentMethod:
    try:
        return PaymentMethod((value or '').strip().lower())
    except ValueError:
        raise ValidationError('Metode pembayaran harus cash, transfer, atau qris.')


def _as_id(value, label):
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"ID {label} tidak valid.")


def _get_or_404(model, obj_id, label):
    obj = db.session.get(model, _as_id(obj_id, label))
    if not obj:
        raise NotFoundError(f"{label} tidak ditemukan.")
    return obj


def get_treatment(treatment_id) -> DailyTreatment:
    return _get_or_404(DailyTreatment, treatment_id, 'Treatment')


def _resolve_customer(data, customer_name):
    customer_id = data.get('customerId')
    if customer_id:
        return _get_or_404(Customer, customer_id, 'Customer')
    phone = (data.get('customerPhone') or data.get('phone') or '').strip()
    if not phone:
        return None
    cust = Customer.query.filter_by(phone=phone).first()
    if not cust:
        cust = Customer(name=customer_name, phone=phone)
        db.session.add(cust)
        db.session.flush()  # dapatkan cust.id
    return cust


# ====== Booking / input manual =======

def loyalty_reward_available(customer) -> bool:
    """Customer sudah mencapai batas loyalitas dan hadiahnya belum dipakai booking lain."""
    if customer is None or customer.id is None:
        return False
    threshold = current_app.config.get('LOYALTY_THRESHOLD', 3)
    if (customer.loyalty_visits or 0) < threshold:
        return False
    open_free = DailyTreatment.query.filter(
        DailyTreatment.customer_id == customer.id,
        DailyTreatment.is_free_visit.is_(True),
        DailyTreatment.end_time.is_(None),
        DailyTreatment.cancelled_at.is_(None),
    ).count()
    return open_free == 0


def create_treatment(data) -> DailyTreatment:
    customer_name = (data.get('customerName') or '').strip()
    treatment_date = parse_date(data.get('date'), 'Tanggal')
    if not customer_name and not data.get('customerId'):
        raise ValidationError('Nama customer wajib diisi.')
    if not data.get('serviceId') or not data.get('therapistId'):
        raise ValidationError('Service dan therapist wajib dipilih.')
    tip = parse_amount(data.get('tipAmount'), 'tipAmount', default=0)
    method = parse_payment_method(data.get('paymentMethod') or 'cash')
    end_time = parse_time(data['endTime']) if data.get('endTime') else None
    start_time = parse_time(data['startTime'], 'startTime') if data.get('startTime') else None

    service = _get_or_404(Service, data.get('serviceId'), 'Service')
    therapist = _get_or_404(Therapist, data.get('therapistId'), 'Therapist')
    if not therapist.is_active:
        raise ValidationError(f"Therapist {therapist.initial} sedang tidak aktif.")

    customer = _resolve_customer(data, customer_name)
    if customer is not None and not customer_name:
        customer_name = customer.name

    price = parse_amount(data.get('servicePrice'), 'servicePrice', default=service.effective_price)
    is_free = bool(data.get('isFreeVisit')) or loyalty_reward_available(customer)
    if is_free:
        price = 0

    t = DailyTreatment(
        date=treatment_date,
        customer=customer,
        customer_name=customer_name,
        service=service,
        service_name=service.name,
        service_price=price,
        therapist=therapist,
        tip_amount=tip,
        payment_method=method,
        start_time=start_time,
        end_time=end_time,
        notes=(data.get('notes') or '').strip() or None,
        is_free_visit=is_free,
        therapist_fee=therapist_fee_for(therapist, price),
    )
    if end_time:
        # input manual treatment yang sudah selesai langsung masuk antrian feedback
        t.feedback_status = FeedbackStatus.PENDING
    db.session.add(t)
    refresh_aggregates(customer, therapist, treatment_date)
    logger.info("Treatment created: %s %s by %s (%s)", customer_name, service.name,
                therapist.initial, format_rupiah(price))
    return t


def delete_treatment(t):
    customer, therapist, treatment_date = t.customer, t.therapist, t.date
    db.session.delete(t)
    refresh_aggregates(customer, therapist, treatment_date)


def reschedule_treatment(t, data, today=None) -> DailyTreatment:
    if t.is_cancelled or t.is_completed:
        raise ValidationError('Hanya booking yang belum selesai yang bisa dijadwal ulang.')
    today = today or tznow().date()
    new_date = parse_date(data.get('date'), 'Tanggal')
    if new_date < today:
        raise ValidationError('Booking tidak bisa dijadwal ulang ke tanggal yang sudah lewat.')
    start_time = parse_time(data['startTime'], 'startTime') if data.get('startTime') else t.start_time
    old_date = t.date
    t.date = new_date
    t.start_time = start_time
    db.session.flush()
    logger.info("Treatment %s rescheduled %s -> %s", t.id, old_date, new_date)
    return t


def cancel_treatment(t) -> DailyTreatment:
    if t.is_cancelled:
        raise ValidationError('Booking sudah dibatalkan.')
    if t.is_completed:
        raise ValidationError('Treatment yang sudah selesai tidak bisa dibatalkan.')
    t.cancelled_at = tznow()
    refresh_aggregates(t.customer, t.therapist, t.date)
    logger.info("Treatment %s cancelled", t.id)
    return t


# ====== Penyelesaian treatment =======

def complete_treatment(t, data) -> DailyTreatment:
    if t.is_cancelled:
        raise ValidationError('Booking sudah dibatalkan.')
    if t.is_completed:
        raise ValidationError('Treatment sudah diselesaikan.')
    end_time = parse_time(data.get('endTime'))
    actual_price = parse_amount(data.get('actualPrice'), 'actualPrice')
    method = parse_payment_method(data.get('paymentMethod'))
    tip = parse_amount(data.get('tipAmount'), 'tipAmount', default=t.tip_amount or 0)

    therapist = t.therapist
    if data.get('therapistId') and _as_id(data['therapistId'], 'Therapist') != t.therapist_id:
        therapist = _get_or_404(Therapist, data['therapistId'], 'Therapist')
    previous_therapist = t.therapist

    t.end_time = end_time
    t.service_price = actual_price
    if t.is_free_visit and actual_price > 0:
        # customer tetap membayar, hadiah loyalitas tidak terpakai
        t.is_free_visit = False
    t.payment_method = method
    t.tip_amount = tip
    t.therapist = therapist
    if data.get('notes') or data.get('treatmentNotes'):
        t.notes = (data.get('notes') or data.get('treatmentNotes')).strip()
    t.therapist_fee = therapist_fee_for(therapist, actual_price)
    # Completed -> FeedbackPending terjadi otomatis
    t.feedback_status = FeedbackStatus.PENDING

    refresh_aggregates(t.customer, therapist, t.date)
    if previous_therapist is not None and previous_therapist is not therapist:
        refresh_aggregates(None, previous_therapist, t.date)
    logger.info("Treatment %s completed at %s, therapist earnings %s",
                t.id, end_time, format_rupiah(t.therapist_earnings))
    return t


# ====== Feedback =======

def has_feedback(treatment_id) -> bool:
    return db.session.query(
        CustomerFeedback.query.filter_by(daily_treatment_id=treatment_id).exists()
    ).scalar()


def request_feedback(t) -> DailyTreatment:
    if not t.is_completed:
        raise ValidationError('Treatment belum selesai, feedback belum bisa diminta.')
    if t.feedback_status == FeedbackStatus.COLLECTED or has_feedback(t.id):
        raise DuplicateFeedbackError('Feedback sudah pernah diberikan untuk treatment ini.')
    t.feedback_status = FeedbackStatus.PENDING
    db.session.flush()
    send_feedback_request(t)
    return t


def send_feedback_request(t):
    """Kirim link feedback ke email customer. Gagal kirim tidak membatalkan apa pun."""
    customer = t.customer
    if customer is None or not customer.email:
        return False
    link = f"{current_app.config.get('PUBLIC_BASE_URL', '').rstrip('/')}/feedback/{t.id}"
    salon = current_app.config.get('SALON_NAME')
    msg = Message(
        subject=f"Bagaimana treatment Anda? - {salon}",
        recipients=[customer.email],
    )
    msg.body = (
        f"Halo {customer.name},\n\n"
        f"Terima kasih sudah melakukan {t.service_name} di {salon}.\n"
        f"Mohon luangkan waktu untuk memberi penilaian: {link}"
    )
    mail = current_app.extensions.get('mail')
    if mail is None:
        return False
    try:
        mail.send(msg)
    except Exception:
        logger.warning("Gagal mengirim email feedback untuk treatment %s", t.id, exc_info=True)
        return False
    return True


def skip_feedback(t) -> DailyTreatment:
    if t.feedback_status != FeedbackStatus.PENDING:
        raise ValidationError('Tidak ada permintaan feedback yang menunggu untuk treatment ini.')
    t.feedback_status = FeedbackStatus.SKIPPED
    db.session.flush()
    logger.info("Feedback skipped for treatment %s", t.id)
    return t


def _parse_rating(value, field):
    if value is None or value == '':
        raise ValidationError('Semua rating wajib diisi.')
    if isinstance(value, bool):
        raise ValidationError(f"{field} harus berupa angka.")
    try:
        rating = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} harus berupa angka.")
    return min(5, max(1, rating))


def submit_feedback(data) -> CustomerFeedback:
    treatment_id = data.get('dailyTreatmentId')
    if not treatment_id:
        raise ValidationError('dailyTreatmentId wajib diisi.')
    ratings = {column: _parse_rating(data.get(key), key) for key, column in RATING_FIELDS}

    t = get_treatment(treatment_id)
    if not t.is_completed:
        raise ValidationError('Treatment belum selesai.')
    # cek dulu sebelum insert; unique constraint tetap jadi penjaga terakhir
    if t.feedback_status == FeedbackStatus.COLLECTED or has_feedback(t.id):
        raise DuplicateFeedbackError('Feedback sudah pernah diberikan untuk treatment ini.')
    if t.feedback_status == FeedbackStatus.SKIPPED:
        raise ValidationError('Feedback untuk treatment ini sudah dilewati. Minta ulang feedback terlebih dahulu.')

    fb = CustomerFeedback(
        daily_treatment_id=t.id,
        customer_id=t.customer_id,
        comment=(data.get('comment') or '').strip() or None,
        would_recommend=data.get('wouldRecommend') is not False,
        **ratings,
    )
    try:
        with db.session.begin_nested():
            db.session.add(fb)
    except IntegrityError:
        raise DuplicateFeedbackError('Feedback sudah pernah diberikan untuk treatment ini.')

    t.feedback_status = FeedbackStatus.COLLECTED
    db.session.expire(t, ['feedback'])
    refresh_aggregates(None, t.therapist, t.date)
    logger.info("Feedback collected for treatment %s (overall %s)", t.id, fb.overall_rating)
    return fb


def feedback_status_map(treatment_ids):
    ids = []
    for raw in treatment_ids:
        try:
            ids.append(int(raw))
        except (TypeError, ValueError):
            raise ValidationError('treatmentIds harus berisi id treatment.')
    treatments = {t.id: t for t in DailyTreatment.query.filter(DailyTreatment.id.in_(ids)).all()} if ids else {}
    result = {}
    for raw, tid in zip(treatment_ids, ids):
        t = treatments.get(tid)
        fb = t.feedback if t is not None else None
        result[str(raw)] = {
            'hasFeedback': fb is not None,
            'rating': fb.overall_rating if fb else None,
            'submittedAt': fb.created_at.isoformat() if fb else None,
            'feedbackStatus': t.feedback_status.value if t is not None and t.feedback_status else None,
        }
    return result
