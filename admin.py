import logging
import math
from flask import Blueprint, request, jsonify
from flask_login import login_required
from sqlalchemy.exc import IntegrityError

from models import db, Customer, Therapist, TherapistStatus, Service, DailyTreatment
from errors import DuplicateEntryError, NotFoundError, ValidationError
from formatting import parse_amount, parse_date, percent_to_rate

logger = logging.getLogger(__name__)

bp = Blueprint('admin', __name__, url_prefix='/admin')


def _payload():
    return request.get_json(silent=True) or {}


def _get_or_404(model, obj_id, label):
    obj = db.session.get(model, obj_id)
    if not obj:
        raise NotFoundError(f"{label} tidak ditemukan.")
    return obj


def _save(message):
    try:
        with db.session.begin_nested():
            db.session.flush()
    except IntegrityError:
        raise DuplicateEntryError(message)
    db.session.commit()


def _required_text(data, key, label):
    value = (data.get(key) or '').strip()
    if not value:
        raise ValidationError(f"{label} wajib diisi.")
    return value


def _optional_text(data, key, current=None):
    if key not in data:
        return current
    return (data.get(key) or '').strip() or None


# ====== Customer Management =======
@bp.route('/customers', methods=['GET'])
@login_required
def customers_list():
    query = Customer.query
    q = (request.args.get('q') or '').strip()
    if q:
        # autocomplete dari form treatment
        query = query.filter(Customer.phone.like(f"%{q}%") | Customer.name.ilike(f"%{q}%"))
        customers = query.order_by(Customer.name).limit(15).all()
    else:
        customers = query.order_by(Customer.name).all()
    return jsonify({'success': True, 'data': [c.to_dict() for c in customers]})


def _apply_customer(customer, data, creating):
    if creating or 'name' in data:
        customer.name = _required_text(data, 'name', 'Nama pelanggan')
    if creating or 'phone' in data:
        customer.phone = _required_text(data, 'phone', 'Nomor telepon')
    customer.email = _optional_text(data, 'email', customer.email)
    customer.address = _optional_text(data, 'address', customer.address)
    customer.notes = _optional_text(data, 'notes', customer.notes)
    if 'isVip' in data:
        customer.is_vip = bool(data['isVip'])


@bp.route('/customers', methods=['POST'])
@login_required
def customer_create():
    customer = Customer()
    _apply_customer(customer, _payload(), creating=True)
    db.session.add(customer)
    _save('Nomor telepon sudah terdaftar untuk pelanggan lain.')
    logger.info("Customer created: %s (%s)", customer.name, customer.phone)
    return jsonify({'success': True, 'data': customer.to_dict()}), 201


@bp.route('/customers/<int:customer_id>', methods=['PUT'])
@login_required
def customer_edit(customer_id):
    customer = _get_or_404(Customer, customer_id, 'Pelanggan')
    _apply_customer(customer, _payload(), creating=False)
    customer.touch()
    _save('Nomor telepon sudah terdaftar untuk pelanggan lain.')
    return jsonify({'success': True, 'data': customer.to_dict()})


@bp.route('/customers/<int:customer_id>', methods=['DELETE'])
@login_required
def customer_delete(customer_id):
    customer = _get_or_404(Customer, customer_id, 'Pelanggan')

    # Pelanggan dengan riwayat treatment tidak boleh dihapus
    treatment_count = DailyTreatment.query.filter_by(customer_id=customer.id).count()
    if treatment_count > 0:
        raise ValidationError(f'Pelanggan tidak dapat dihapus karena memiliki {treatment_count} treatment.')

    db.session.delete(customer)
    db.session.commit()
    return jsonify({'success': True})


# ====== Therapist Management =======
def _parse_status(value) -> TherapistStatus:
    try:
        return TherapistStatus((value or '').strip().lower())
    except ValueError:
        raise ValidationError('Status therapist harus active, inactive, atau on_leave.')


def _parse_commission(data):
    if data.get('commissionPercent') not in (None, ''):
        raw, label = data['commissionPercent'], 'commissionPercent'
    else:
        raw, label = data.get('commissionRate'), 'commissionRate'
    if isinstance(raw, bool):
        raise ValidationError(f"{label} harus berupa angka.")
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"{label} harus berupa angka.")
    if not math.isfinite(value):
        raise ValidationError(f"{label} harus berupa angka.")
    rate = percent_to_rate(value) if label == 'commissionPercent' else value
    if rate < 0 or rate > 1:
        raise ValidationError('Komisi harus di antara 0% dan 100%.')
    return rate


def _apply_therapist(therapist, data, creating):
    if creating or 'initial' in data:
        initial = _required_text(data, 'initial', 'Inisial').upper()
        if len(initial) > 3:
            raise ValidationError('Inisial maksimal 3 karakter.')
        therapist.initial = initial
    if creating or 'fullName' in data:
        therapist.full_name = _required_text(data, 'fullName', 'Nama lengkap')
    therapist.phone = _optional_text(data, 'phone', therapist.phone)
    if 'status' in data:
        therapist.status = _parse_status(data['status'])
    elif creating:
        therapist.status = TherapistStatus.ACTIVE
    if creating or 'baseFeePerTreatment' in data:
        therapist.base_fee_per_treatment = parse_amount(
            data.get('baseFeePerTreatment'), 'baseFeePerTreatment', default=0)
    if creating or 'commissionRate' in data or 'commissionPercent' in data:
        if creating and data.get('commissionRate') is None and data.get('commissionPercent') is None:
            therapist.commission_rate = 0
        else:
            therapist.commission_rate = _parse_commission(data)
    if data.get('joinDate'):
        therapist.join_date = parse_date(data['joinDate'], 'joinDate')


@bp.route('/therapists', methods=['GET'])
@login_required
def therapists_list():
    query = Therapist.query
    if request.args.get('status'):
        query = query.filter(Therapist.status == _parse_status(request.args['status']))
    therapists = query.order_by(Therapist.initial).all()
    return jsonify({'success': True, 'data': [t.to_dict() for t in therapists]})


@bp.route('/therapists', methods=['POST'])
@login_required
def therapist_create():
    therapist = Therapist()
    _apply_therapist(therapist, _payload(), creating=True)
    db.session.add(therapist)
    _save(f'Inisial {therapist.initial} sudah dipakai therapist lain.')
    logger.info("Therapist created: %s (%s)", therapist.initial, therapist.full_name)
    return jsonify({'success': True, 'data': therapist.to_dict()}), 201


@bp.route('/therapists/<int:therapist_id>', methods=['PUT'])
@login_required
def therapist_edit(therapist_id):
    therapist = _get_or_404(Therapist, therapist_id, 'Therapist')
    _apply_therapist(therapist, _payload(), creating=False)
    _save(f'Inisial {therapist.initial} sudah dipakai therapist lain.')
    return jsonify({'success': True, 'data': therapist.to_dict()})


@bp.route('/therapists/<int:therapist_id>', methods=['DELETE'])
@login_required
def therapist_delete(therapist_id):
    therapist = _get_or_404(Therapist, therapist_id, 'Therapist')

    # Therapist yang sudah pernah menangani treatment cukup dinonaktifkan
    usage_count = DailyTreatment.query.filter_by(therapist_id=therapist.id).count()
    if usage_count > 0:
        raise ValidationError(
            f'Therapist tidak bisa dihapus karena sudah menangani {usage_count} treatment. Ubah status menjadi tidak aktif.')

    db.session.delete(therapist)
    db.session.commit()
    return jsonify({'success': True})


# ====== Services Management =======
def _apply_service(service, data, creating):
    if creating or 'name' in data:
        service.name = _required_text(data, 'name', 'Nama layanan')
    if creating or 'category' in data:
        service.category = _required_text(data, 'category', 'Kategori')
    if creating or 'normalPrice' in data:
        service.normal_price = parse_amount(data.get('normalPrice'), 'normalPrice')
    if 'promoPrice' in data:
        service.promo_price = (parse_amount(data['promoPrice'], 'promoPrice')
                               if data['promoPrice'] not in (None, '') else None)
    if 'duration' in data:
        service.duration = parse_amount(data['duration'], 'duration')
    service.description = _optional_text(data, 'description', service.description)
    if 'therapistFee' in data:
        service.therapist_fee = (parse_amount(data['therapistFee'], 'therapistFee')
                                 if data['therapistFee'] not in (None, '') else None)
    if 'isActive' in data:
        service.is_active = bool(data['isActive'])


@bp.route('/services', methods=['GET'])
@login_required
def services_list():
    query = Service.query
    if request.args.get('active') == 'true':
        query = query.filter(Service.is_active.is_(True))
    if request.args.get('category'):
        query = query.filter(Service.category == request.args['category'])
    services = query.order_by(Service.category.asc(), Service.name.asc()).all()
    return jsonify({'success': True, 'data': [s.to_dict() for s in services]})


@bp.route('/services', methods=['POST'])
@login_required
def service_create():
    service = Service()
    _apply_service(service, _payload(), creating=True)
    db.session.add(service)
    db.session.commit()
    logger.info("Service created: %s", service.name)
    return jsonify({'success': True, 'data': service.to_dict()}), 201


@bp.route('/services/<int:service_id>', methods=['PUT'])
@login_required
def service_edit(service_id):
    service = _get_or_404(Service, service_id, 'Layanan')
    _apply_service(service, _payload(), creating=False)
    db.session.commit()
    return jsonify({'success': True, 'data': service.to_dict()})


@bp.route('/services/<int:service_id>', methods=['DELETE'])
@login_required
def service_delete(service_id):
    service = _get_or_404(Service, service_id, 'Layanan')

    # Cek apakah layanan masih digunakan di treatment
    usage_count = DailyTreatment.query.filter_by(service_id=service.id).count()
    if usage_count > 0:
        raise ValidationError(f'Layanan tidak bisa dihapus karena masih digunakan di {usage_count} treatment.')

    db.session.delete(service)
    db.session.commit()
    return jsonify({'success': True})
