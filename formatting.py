from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP

from errors import ValidationError

BULAN = [
    'Januari', 'Februari', 'Maret', 'April', 'Mei', 'Juni',
    'Juli', 'Agustus', 'September', 'Oktober', 'November', 'Desember',
]

STATUS_LABELS = {
    'active': 'Aktif',
    'inactive': 'Tidak Aktif',
    'on_leave': 'Cuti',
}


def format_rupiah(amount) -> str:
    """Format integer Rupiah seperti Intl id-ID: 150000 -> 'Rp 150.000'."""
    amount = int(amount or 0)
    body = f"{abs(amount):,}".replace(',', '.')
    if amount < 0:
        return f"-Rp {body}"
    return f"Rp {body}"


def format_date_id(d) -> str:
    if not d:
        return ''
    return f"{d.day} {BULAN[d.month - 1]} {d.year}"


def rate_to_percent(rate) -> float:
    pct = Decimal(str(rate or 0)) * 100
    pct = pct.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP).normalize()
    return int(pct) if pct == pct.to_integral_value() else float(pct)


def percent_to_rate(percent) -> float:
    return float(Decimal(str(percent)) / 100)


def therapist_status_label(status) -> str:
    value = getattr(status, 'value', status)
    return STATUS_LABELS.get(value, value or '')


# --- parsing input dari form / JSON ---

def parse_date(value, field='date'):
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value:
        raise ValidationError(f"{field} wajib diisi.")
    try:
        return datetime.strptime(str(value)[:10], '%Y-%m-%d').date()
    except ValueError:
        raise ValidationError(f"Format {field} tidak valid (YYYY-MM-DD).")


def parse_amount(value, field, default=None):
    """Integer Rupiah >= 0. Angka string dari form (mis. '150000') ikut diterima."""
    if value is None or value == '':
        if default is not None:
            return default
        raise ValidationError(f"{field} wajib diisi.")
    if isinstance(value, bool):
        raise ValidationError(f"{field} harus berupa angka.")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f"{field} harus bilangan bulat Rupiah.")
        value = int(value)
    try:
        amount = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} harus berupa angka.")
    if amount < 0:
        raise ValidationError(f"{field} tidak boleh negatif.")
    return amount


def parse_time(value, field='endTime'):
    if not value:
        raise ValidationError(f"{field} wajib diisi.")
    try:
        return datetime.strptime(str(value), '%H:%M').strftime('%H:%M')
    except ValueError:
        raise ValidationError(f"Format {field} tidak valid (HH:MM).")
