import logging
from flask import Blueprint, request, jsonify
from flask_login import login_required
from models import db, DailyTreatment
from formatting import parse_date
from ledger import aggregate_day
import workflow

logger = logging.getLogger(__name__)

bp = Blueprint('treatments', __name__, url_prefix='/treatments')


@bp.route('', methods=['GET'])
@login_required
def list_treatments():
    page = request.args.get('page', 1, type=int)
    per_page = min(request.args.get('limit', 20, type=int), 100)

    query = DailyTreatment.query
    if request.args.get('date'):
        query = query.filter(DailyTreatment.date == parse_date(request.args['date']))
    if request.args.get('therapistId', type=int):
        query = query.filter(DailyTreatment.therapist_id == request.args.get('therapistId', type=int))
    if request.args.get('customerId', type=int):
        query = query.filter(DailyTreatment.customer_id == request.args.get('customerId', type=int))
    search = (request.args.get('search') or '').strip()
    if search:
        like = f"%{search}%"
        query = query.filter(
            DailyTreatment.customer_name.ilike(like)
            | DailyTreatment.service_name.ilike(like)
            | DailyTreatment.notes.ilike(like)
        )

    # ringkasan dihitung dari semua baris hasil filter, bukan hanya halaman ini
    completed = [t for t in query.all() if t.is_completed]
    summary = aggregate_day(completed)

    query = query.order_by(DailyTreatment.date.desc(), DailyTreatment.start_time.desc(), DailyTreatment.id.desc())
    pagination = query.paginate(page=page, per_page=per_page, error_out=False)

    return jsonify({
        'success': True,
        'data': [t.to_dict() for t in pagination.items],
        'pagination': {
            'page': pagination.page,
            'limit': per_page,
            'total': pagination.total,
            'pages': pagination.pages,
        },
        'summary': {
            'totalRevenue': summary['total_revenue'],
            'totalTherapistFees': summary['total_therapist_fees'],
            'totalTips': summary['total_tips'],
            'totalTherapistEarnings': summary['total_therapist_fees_with_tips'],
            'netProfit': summary['net_profit'],
            'completed': summary['treatment_count'],
        },
    })


@bp.route('', methods=['POST'])
@login_required
def create_treatment():
    data = request.get_json(silent=True) or {}
    t = workflow.create_treatment(data)
    db.session.commit()
    return jsonify({'success': True, 'data': t.to_dict()}), 201


@bp.route('/<int:treatment_id>', methods=['GET'])
@login_required
def treatment_detail(treatment_id):
    t = workflow.get_treatment(treatment_id)
    return jsonify({'success': True, 'data': t.to_dict()})


@bp.route('/<int:treatment_id>', methods=['DELETE'])
@login_required
def treatment_delete(treatment_id):
    t = workflow.get_treatment(treatment_id)
    workflow.delete_treatment(t)
    db.session.commit()
    logger.info("Treatment %s deleted", treatment_id)
    return jsonify({'success': True})


@bp.route('/<int:treatment_id>/complete', methods=['POST'])
@login_required
def treatment_complete(treatment_id):
    t = workflow.get_treatment(treatment_id)
    workflow.complete_treatment(t, request.get_json(silent=True) or {})
    db.session.commit()
    return jsonify({'success': True, 'data': t.to_dict()})


@bp.route('/<int:treatment_id>/feedback/request', methods=['POST'])
@login_required
def feedback_request(treatment_id):
    t = workflow.get_treatment(treatment_id)
    workflow.request_feedback(t)
    db.session.commit()
    return jsonify({'success': True, 'data': t.to_dict()})


@bp.route('/<int:treatment_id>/feedback/skip', methods=['POST'])
@login_required
def feedback_skip(treatment_id):
    t = workflow.get_treatment(treatment_id)
    workflow.skip_feedback(t)
    db.session.commit()
    return jsonify({'success': True, 'data': t.to_dict()})


@bp.route('/<int:treatment_id>/cancel', methods=['POST'])
@login_required
def treatment_cancel(treatment_id):
    t = workflow.get_treatment(treatment_id)
    workflow.cancel_treatment(t)
    db.session.commit()
    return jsonify({'success': True, 'data': t.to_dict()})


@bp.route('/<int:treatment_id>/reschedule', methods=['POST'])
@login_required
def treatment_reschedule(treatment_id):
    t = workflow.get_treatment(treatment_id)
    workflow.reschedule_treatment(t, request.get_json(silent=True) or {})
    db.session.commit()
    return jsonify({'success': True, 'data': t.to_dict()})
