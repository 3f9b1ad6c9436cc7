"""Fee/commission engine.

All amounts are integer Rupiah. The commission term is the only value that is
rounded, once, half-up; sums are never rounded.
"""
import math
from decimal import Decimal, ROUND_HALF_UP

from errors import ValidationError


def _check_amount(name, value):
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} harus bilangan bulat Rupiah.")
    if value < 0:
        raise ValidationError(f"{name} tidak boleh negatif.")


def _check_rate(rate):
    if isinstance(rate, bool) or not isinstance(rate, (int, float, Decimal)):
        raise ValidationError("commissionRate harus berupa angka.")
    if not math.isfinite(rate):
        raise ValidationError("commissionRate harus berupa angka.")
    if rate < 0 or rate > 1:
        raise ValidationError("commissionRate harus di antara 0 dan 1.")


def commission_amount(commission_rate, service_price: int) -> int:
    _check_rate(commission_rate)
    _check_amount('servicePrice', service_price)
    raw = Decimal(service_price) * Decimal(str(commission_rate))
    return int(raw.quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def compute_therapist_fee(base_fee: int, commission_rate, service_price: int) -> int:
    """Base fee + commission, excluding tips."""
    _check_amount('baseFee', base_fee)
    return base_fee + commission_amount(commission_rate, service_price)


def compute_therapist_earnings(base_fee: int, commission_rate, service_price: int, tip_amount: int) -> int:
    _check_amount('tipAmount', tip_amount)
    return compute_therapist_fee(base_fee, commission_rate, service_price) + tip_amount


def therapist_fee_for(therapist, service_price: int) -> int:
    return compute_therapist_fee(therapist.base_fee_per_treatment, therapist.commission_rate, service_price)
