from io import BytesIO
from datetime import datetime

import pandas as pd
from openpyxl.styles import Font, PatternFill
from flask import Blueprint, request, jsonify, Response
from flask_login import login_required

from models import db, tznow, MonthlyBookkeeping
from errors import ValidationError
from formatting import parse_amount, parse_date, BULAN
import ledger

bp = Blueprint('bookkeeping', __name__, url_prefix='/monthly-bookkeeping')


def _month_year():
    today = tznow().date()
    month = request.args.get('month', today.month, type=int)
    year = request.args.get('year', today.year, type=int)
    return month, year


@bp.route('', methods=['GET'])
@login_required
def list_entries():
    if not request.args.get('month') and not request.args.get('year'):
        rows = MonthlyBookkeeping.query.order_by(MonthlyBookkeeping.date.asc()).all()
        return jsonify({'success': True, 'data': [r.to_dict() for r in rows]})
    month, year = _month_year()
    summary = ledger.month_summary(month, year)
    summary['entries'] = [e.to_dict() for e in summary['entries']]
    return jsonify({'success': True, 'data': summary['entries'], 'summary': summary})


@bp.route('', methods=['POST'])
@login_required
def create_entry():
    entry = ledger.create_entry(request.get_json(silent=True) or {})
    db.session.commit()
    return jsonify({'success': True, 'data': entry.to_dict()}), 201


@bp.route('', methods=['PUT'])
@login_required
def update_entry():
    data = request.get_json(silent=True) or {}
    if not data.get('id'):
        raise ValidationError('ID is required')
    try:
        entry_id = int(data['id'])
    except (TypeError, ValueError):
        raise ValidationError('ID tidak valid.')
    entry = ledger.update_entry(entry_id, data)
    db.session.commit()
    return jsonify({'success': True, 'data': entry.to_dict()})


@bp.route('', methods=['DELETE'])
@login_required
def delete_entry():
    entry_id = request.args.get('id', type=int)
    if not entry_id:
        raise ValidationError('ID is required')
    ledger.delete_entry(entry_id)
    db.session.commit()
    return jsonify({'success': True})


@bp.route('/auto', methods=['POST'])
@login_required
def auto_entry():
    """Isi omzet & fee therapist otomatis dari treatment hari itu."""
    data = request.get_json(silent=True) or {}
    entry = ledger.auto_entry(
        parse_date(data.get('date'), 'Tanggal'),
        operational_cost=parse_amount(data.get('operationalCost'), 'operationalCost', default=0),
        salary_expense=parse_amount(data.get('salaryExpense'), 'salaryExpense', default=0),
        other_expenses=parse_amount(data.get('otherExpenses'), 'otherExpenses', default=0),
        notes=data.get('notes'),
    )
    db.session.commit()
    return jsonify({'success': True, 'data': entry.to_dict()})


@bp.route('/analytics', methods=['GET'])
@login_required
def analytics():
    start = parse_date(request.args.get('start'), 'start')
    end = parse_date(request.args.get('end'), 'end')
    if end < start:
        raise ValidationError('Tanggal akhir harus setelah tanggal mulai.')
    return jsonify({'success': True, 'data': ledger.ledger_analytics(start, end)})


@bp.route('/export.xlsx')
@login_required
def export_xlsx():
    """Export pembukuan satu bulan ke Excel"""
    month, year = _month_year()
    summary = ledger.month_summary(month, year)

    data = []
    for e in summary['entries']:
        data.append({
            'Tanggal': e.date.strftime('%Y-%m-%d'),
            'Omzet': e.daily_revenue,
            'Operasional': e.operational_cost,
            'Gaji': e.salary_expense,
            'Fee Therapist': e.therapist_fee,
            'Lainnya': e.other_expenses,
            'Total Pengeluaran': e.total_expense,
            'Laba Bersih': e.net_income,
            'Saldo Berjalan': e.running_total,
            'Catatan': e.notes or '',
        })
    df = pd.DataFrame(data, columns=[
        'Tanggal', 'Omzet', 'Operasional', 'Gaji', 'Fee Therapist', 'Lainnya',
        'Total Pengeluaran', 'Laba Bersih', 'Saldo Berjalan', 'Catatan',
    ])

    sheet = f"{BULAN[month - 1]} {year}"
    output = BytesIO()
    with pd.ExcelWriter(output, engine='openpyxl') as writer:
        df.to_excel(writer, sheet_name=sheet, index=False)

        worksheet = writer.sheets[sheet]
        worksheet.column_dimensions['A'].width = 14  # Tanggal
        for col in 'BCDEFGHI':
            worksheet.column_dimensions[col].width = 16
        worksheet.column_dimensions['J'].width = 30  # Catatan
        for cell in worksheet[1]:
            cell.font = Font(bold=True)
            cell.fill = PatternFill(start_color="DDDDDD", end_color="DDDDDD", fill_type="solid")

    output.seek(0)
    timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
    filename = f"pembukuan_{year}_{month:02d}_{timestamp}.xlsx"
    return Response(
        output.getvalue(),
        mimetype='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
        headers={'Content-Disposition': f'attachment; filename={filename}'}
    )
