from io import BytesIO

import pandas as pd
from flask import Blueprint, request, jsonify, Response, send_file, current_app
from flask_login import login_required
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

from models import tznow
from formatting import format_date_id, format_rupiah, parse_date
import ledger

bp = Blueprint('reports', __name__, url_prefix='/reports')

CSV_COLUMNS = ['id', 'month', 'year', 'totalRevenue', 'totalTherapistFees', 'totalTreatments', 'freeTreatments']


@bp.route('', methods=['GET'])
@login_required
def period_report():
    period = request.args.get('period', 'monthly')
    ref = parse_date(request.args['date']) if request.args.get('date') else tznow().date()
    return jsonify({'success': True, 'data': ledger.period_report(period, ref)})


@bp.route('/monthly.csv')
@login_required
def export_monthly_csv():
    df = pd.DataFrame(ledger.monthly_summaries(), columns=CSV_COLUMNS)
    return Response(
        df.to_csv(index=False),
        mimetype='text/csv',
        headers={'Content-Disposition': 'attachment; filename=rekap_bulanan.csv'}
    )


@bp.route('/daily.pdf')
@login_required
def daily_pdf():
    day = parse_date(request.args['date']) if request.args.get('date') else tznow().date()
    treatments = ledger.completed_treatments_between(day, day)
    totals = ledger.aggregate_day(treatments)

    page_w, page_h = A4
    line_h = 6 * mm
    x_l = 15 * mm
    x_r = page_w - 15 * mm
    y = page_h - 20 * mm

    buf = BytesIO()
    p = canvas.Canvas(buf, pagesize=A4)

    def new_page_if_needed():
        nonlocal y
        if y < 25 * mm:
            p.showPage()
            y = page_h - 20 * mm

    # --- header ---
    p.setFont("Helvetica-Bold", 14)
    p.drawCentredString(page_w / 2, y, current_app.config.get('SALON_NAME', '')); y -= line_h
    p.setFont("Helvetica", 10)
    p.drawCentredString(page_w / 2, y, f"Rekap Harian {format_date_id(day)}"); y -= line_h * 1.5
    p.line(x_l, y, x_r, y); y -= line_h

    # --- daftar treatment ---
    p.setFont("Helvetica-Bold", 9)
    p.drawString(x_l, y, "Customer")
    p.drawString(x_l + 50 * mm, y, "Treatment")
    p.drawString(x_l + 100 * mm, y, "Th.")
    p.drawRightString(x_r - 35 * mm, y, "Harga")
    p.drawRightString(x_r, y, "Fee + Tip"); y -= line_h
    p.setFont("Helvetica", 9)
    for t in treatments:
        new_page_if_needed()
        p.drawString(x_l, y, (t.customer_name or '')[:28])
        p.drawString(x_l + 50 * mm, y, (t.service_name or '')[:28])
        p.drawString(x_l + 100 * mm, y, t.therapist.initial if t.therapist else '-')
        p.drawRightString(x_r - 35 * mm, y, f"{t.service_price:,}")
        p.drawRightString(x_r, y, f"{t.therapist_earnings:,}")
        y -= line_h
    if not treatments:
        p.drawString(x_l, y, "Belum ada treatment selesai."); y -= line_h

    new_page_if_needed()
    p.line(x_l, y, x_r, y); y -= line_h

    # --- total ---
    rows = [
        ("Omzet", totals['total_revenue']),
        ("Fee Therapist", totals['total_therapist_fees']),
        ("Tip (diteruskan ke therapist)", totals['total_tips']),
        ("Laba Bersih", totals['net_profit']),
    ]
    for label, amount in rows:
        new_page_if_needed()
        p.setFont("Helvetica-Bold" if label == "Laba Bersih" else "Helvetica", 10)
        p.drawString(x_l, y, label)
        p.drawRightString(x_r, y, format_rupiah(amount)); y -= line_h

    p.showPage()
    p.save()
    buf.seek(0)

    return send_file(
        buf,
        mimetype="application/pdf",
        as_attachment=True,
        download_name=f"rekap-harian-{day.isoformat()}.pdf",
        max_age=0,
    )
