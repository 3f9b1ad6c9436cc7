from flask import Blueprint, request, jsonify
from flask_login import login_required
from models import db, CustomerFeedback, DailyTreatment
from formatting import parse_date
from errors import ValidationError
from ledger import mean_rating
import workflow

bp = Blueprint('feedback', __name__, url_prefix='/feedback')


def feedback_analytics(items):
    total = len(items)
    recommend = sum(1 for f in items if f.would_recommend)
    return {
        'totalFeedback': total,
        'ratings': {
            'overallRating': mean_rating([f.overall_rating for f in items]),
            'serviceQuality': mean_rating([f.service_quality for f in items]),
            'therapistService': mean_rating([f.therapist_service for f in items]),
            'cleanliness': mean_rating([f.cleanliness for f in items]),
            'valueForMoney': mean_rating([f.value_for_money for f in items]),
        },
        'recommendation': {
            'total': recommend,
            'percentage': round(recommend / total * 100, 2) if total else 0,
        },
        'distribution': [
            {
                'rating': r,
                'count': sum(1 for f in items if f.overall_rating == r),
                'percentage': round(sum(1 for f in items if f.overall_rating == r) / total * 100, 2) if total else 0,
            }
            for r in range(1, 6)
        ],
    }


@bp.route('', methods=['GET'])
@login_required
def list_feedback():
    q = CustomerFeedback.query.join(DailyTreatment, DailyTreatment.id == CustomerFeedback.daily_treatment_id)
    therapist_id = request.args.get('therapistId', type=int)
    if therapist_id:
        q = q.filter(DailyTreatment.therapist_id == therapist_id)
    if request.args.get('startDate'):
        q = q.filter(DailyTreatment.date >= parse_date(request.args['startDate'], 'startDate'))
    if request.args.get('endDate'):
        q = q.filter(DailyTreatment.date <= parse_date(request.args['endDate'], 'endDate'))
    min_rating = request.args.get('minRating', type=int)
    if min_rating:
        q = q.filter(CustomerFeedback.overall_rating >= min_rating)
    items = q.order_by(CustomerFeedback.created_at.desc(), CustomerFeedback.id.desc()).all()

    data = []
    for f in items:
        t = f.daily_treatment
        row = f.to_dict()
        row.update({
            'treatmentDate': t.date.isoformat(),
            'customerName': t.customer_name,
            'serviceName': t.service_name,
            'therapistName': t.therapist_name,
            'therapistInitial': t.therapist.initial if t.therapist else None,
        })
        data.append(row)

    resp = {'success': True, 'data': data, 'total': len(data)}
    if request.args.get('analytics') == 'true':
        resp['analytics'] = feedback_analytics(items)
    return jsonify(resp)


@bp.route('', methods=['POST'])
def submit_feedback():
    # tanpa login: customer mengisi lewat link feedback publik
    fb = workflow.submit_feedback(request.get_json(silent=True) or {})
    db.session.commit()
    return jsonify({
        'success': True,
        'message': 'Terima kasih atas feedback Anda!',
        'data': fb.to_dict(),
    }), 201


@bp.route('/check', methods=['POST'])
def check_feedback():
    payload = request.get_json(silent=True) or {}
    ids = payload.get('treatmentIds')
    if not isinstance(ids, list):
        raise ValidationError('treatmentIds array is required')
    return jsonify({'success': True, 'data': workflow.feedback_status_map(ids)})
