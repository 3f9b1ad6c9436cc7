import enum
from datetime import datetime
import pytz
from flask_sqlalchemy import SQLAlchemy
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash
from config import Config
from sqlalchemy.orm import relationship

db = SQLAlchemy()

def tznow():
    tz = pytz.timezone(Config.TIMEZONE)
    return datetime.now(tz)


def _enum_values(enum_cls):
    return [m.value for m in enum_cls]


class TherapistStatus(enum.Enum):
    ACTIVE = 'active'
    INACTIVE = 'inactive'
    ON_LEAVE = 'on_leave'


class PaymentMethod(enum.Enum):
    CASH = 'cash'
    TRANSFER = 'transfer'
    QRIS = 'qris'


class FeedbackStatus(enum.Enum):
    PENDING = 'pending'
    COLLECTED = 'collected'
    SKIPPED = 'skipped'


def _iso(value):
    return value.isoformat() if value else None


class User(db.Model, UserMixin):
    __tablename__ = 'users'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    username = db.Column(db.String(80), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(20), nullable=False, default='admin')
    is_active_user = db.Column(db.Boolean, default=True)

    def set_password(self, password: str):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {'id': self.id, 'name': self.name, 'username': self.username, 'role': self.role}


class ServiceCategory(db.Model):
    __tablename__ = 'service_categories'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), unique=True, nullable=False)
    description = db.Column(db.String(255))
    icon = db.Column(db.String(20))
    sort_order = db.Column(db.Integer, nullable=False, default=0)


class Service(db.Model):
    __tablename__ = 'services'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    category = db.Column(db.String(120), nullable=False)
    normal_price = db.Column(db.Integer, nullable=False)
    promo_price = db.Column(db.Integer, nullable=True)
    duration = db.Column(db.Integer, nullable=False, default=60)  # menit
    description = db.Column(db.String(255))
    is_active = db.Column(db.Boolean, default=True)
    therapist_fee = db.Column(db.Integer, nullable=True)
    popularity = db.Column(db.Float, nullable=False, default=0)  # 0-10, turunan dari treatment selesai

    @property
    def effective_price(self) -> int:
        return self.promo_price if self.promo_price is not None else self.normal_price

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'category': self.category,
            'normalPrice': self.normal_price,
            'promoPrice': self.promo_price,
            'effectivePrice': self.effective_price,
            'duration': self.duration,
            'description': self.description,
            'isActive': self.is_active,
            'therapistFee': self.therapist_fee,
            'popularity': self.popularity,
        }


class Customer(db.Model):
    __tablename__ = 'customers'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    phone = db.Column(db.String(30), unique=True, nullable=False)
    email = db.Column(db.String(120), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.String(255), nullable=True)
    # agregat turunan, dihitung ulang dari daily_treatments
    total_visits = db.Column(db.Integer, nullable=False, default=0)
    total_spending = db.Column(db.Integer, nullable=False, default=0)
    loyalty_visits = db.Column(db.Integer, nullable=False, default=0)
    is_vip = db.Column(db.Boolean, nullable=False, default=False)
    last_visit = db.Column(db.Date, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=tznow)
    updated_at = db.Column(db.DateTime, nullable=False, default=tznow, onupdate=tznow)

    treatments = relationship('DailyTreatment', back_populates='customer')

    def touch(self):
        self.updated_at = tznow()

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'phone': self.phone,
            'email': self.email,
            'address': self.address,
            'notes': self.notes,
            'totalVisits': self.total_visits,
            'totalSpending': self.total_spending,
            'loyaltyVisits': self.loyalty_visits,
            'isVip': self.is_vip,
            'lastVisit': _iso(self.last_visit),
            'createdAt': _iso(self.created_at),
        }


class Therapist(db.Model):
    __tablename__ = 'therapists'

    id = db.Column(db.Integer, primary_key=True)
    initial = db.Column(db.String(3), unique=True, nullable=False)
    full_name = db.Column(db.String(120), nullable=False)
    phone = db.Column(db.String(30), nullable=True)
    status = db.Column(
        db.Enum(TherapistStatus, name='therapist_status', values_callable=_enum_values),
        nullable=False,
        default=TherapistStatus.ACTIVE,
    )
    base_fee_per_treatment = db.Column(db.Integer, nullable=False, default=0)
    commission_rate = db.Column(db.Float, nullable=False, default=0)  # pecahan, 0.12 = 12%
    join_date = db.Column(db.Date, nullable=True)
    total_treatments = db.Column(db.Integer, nullable=False, default=0)
    total_earnings = db.Column(db.Integer, nullable=False, default=0)
    average_rating = db.Column(db.Float, nullable=True)

    treatments = relationship('DailyTreatment', back_populates='therapist')
    monthly_stats = relationship('TherapistMonthlyStats', back_populates='therapist', cascade='all, delete-orphan')

    @property
    def is_active(self) -> bool:
        return self.status == TherapistStatus.ACTIVE

    def to_dict(self):
        from formatting import rate_to_percent, therapist_status_label
        return {
            'id': self.id,
            'initial': self.initial,
            'fullName': self.full_name,
            'phone': self.phone,
            'status': self.status.value,
            'statusLabel': therapist_status_label(self.status),
            'isActive': self.is_active,
            'baseFeePerTreatment': self.base_fee_per_treatment,
            'commissionRate': self.commission_rate,
            'commissionPercent': rate_to_percent(self.commission_rate),
            'joinDate': _iso(self.join_date),
            'totalTreatments': self.total_treatments,
            'totalEarnings': self.total_earnings,
            'averageRating': self.average_rating,
        }


class DailyTreatment(db.Model):
    __tablename__ = 'daily_treatments'

    id = db.Column(db.Integer, primary_key=True)
    date = db.Column(db.Date, nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey('customers.id'), nullable=True)
    customer_name = db.Column(db.String(120), nullable=False)
    service_id = db.Column(db.Integer, db.ForeignKey('services.id'), nullable=False)
    service_name = db.Column(db.String(120), nullable=False)
    service_price = db.Column(db.Integer, nullable=False)  # snapshot harga, bukan join ke katalog
    therapist_id = db.Column(db.Integer, db.ForeignKey('therapists.id'), nullable=False)
    tip_amount = db.Column(db.Integer, nullable=False, default=0)
    payment_method = db.Column(
        db.Enum(PaymentMethod, name='payment_method', values_callable=_enum_values),
        nullable=False,
        default=PaymentMethod.CASH,
    )
    start_time = db.Column(db.String(5), nullable=True)  # HH:MM
    end_time = db.Column(db.String(5), nullable=True)
    notes = db.Column(db.String(255), nullable=True)
    is_free_visit = db.Column(db.Boolean, nullable=False, default=False)
    therapist_fee = db.Column(db.Integer, nullable=False, default=0)  # base fee + komisi, tanpa tip
    feedback_status = db.Column(
        db.Enum(FeedbackStatus, name='feedback_status', values_callable=_enum_values),
        nullable=True,
    )
    cancelled_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=tznow)

    customer = relationship('Customer', back_populates='treatments')
    service = relationship('Service')
    therapist = relationship('Therapist', back_populates='treatments')
    feedback = relationship(
        'CustomerFeedback', back_populates='daily_treatment', uselist=False, cascade='all, delete-orphan'
    )

    @property
    def therapist_name(self):
        return self.therapist.full_name if self.therapist else None

    @property
    def therapist_earnings(self) -> int:
        return self.therapist_fee + self.tip_amount

    @property
    def is_completed(self) -> bool:
        return self.end_time is not None

    @property
    def is_cancelled(self) -> bool:
        return self.cancelled_at is not None

    def to_dict(self):
        from workflow import treatment_state
        fb = self.feedback
        return {
            'id': self.id,
            'date': _iso(self.date),
            'customerId': self.customer_id,
            'customerName': self.customer_name,
            'serviceId': self.service_id,
            'serviceName': self.service_name,
            'servicePrice': self.service_price,
            'therapistId': self.therapist_id,
            'therapistName': self.therapist_name,
            'therapistInitial': self.therapist.initial if self.therapist else None,
            'tipAmount': self.tip_amount,
            'paymentMethod': self.payment_method.value if self.payment_method else None,
            'startTime': self.start_time,
            'endTime': self.end_time,
            'notes': self.notes,
            'isFreeVisit': self.is_free_visit,
            'therapistFee': self.therapist_fee,
            'therapistEarnings': self.therapist_earnings,
            'state': treatment_state(self),
            'feedbackStatus': self.feedback_status.value if self.feedback_status else None,
            'feedback': fb.to_dict() if fb else None,
            'cancelledAt': _iso(self.cancelled_at),
            'createdAt': _iso(self.created_at),
        }


class CustomerFeedback(db.Model):
    __tablename__ = 'customer_feedback'

    id = db.Column(db.Integer, primary_key=True)
    daily_treatment_id = db.Column(
        db.Integer, db.ForeignKey('daily_treatments.id', ondelete='CASCADE'), unique=True, nullable=False
    )
    customer_id = db.Column(db.Integer, db.ForeignKey('customers.id'), nullable=True)
    overall_rating = db.Column(db.Integer, nullable=False)
    service_quality = db.Column(db.Integer, nullable=False)
    therapist_service = db.Column(db.Integer, nullable=False)
    cleanliness = db.Column(db.Integer, nullable=False)
    value_for_money = db.Column(db.Integer, nullable=False)
    comment = db.Column(db.Text, nullable=True)
    would_recommend = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=tznow)

    daily_treatment = relationship('DailyTreatment', back_populates='feedback')

    def to_dict(self):
        return {
            'id': self.id,
            'dailyTreatmentId': self.daily_treatment_id,
            'customerId': self.customer_id,
            'overallRating': self.overall_rating,
            'serviceQuality': self.service_quality,
            'therapistService': self.therapist_service,
            'cleanliness': self.cleanliness,
            'valueForMoney': self.value_for_money,
            'comment': self.comment,
            'wouldRecommend': self.would_recommend,
            'createdAt': _iso(self.created_at),
        }


class MonthlyBookkeeping(db.Model):
    __tablename__ = 'monthly_bookkeeping'

    id = db.Column(db.Integer, primary_key=True)
    date = db.Column(db.Date, unique=True, nullable=False)  # satu entri per hari
    daily_revenue = db.Column(db.Integer, nullable=False, default=0)
    operational_cost = db.Column(db.Integer, nullable=False, default=0)
    salary_expense = db.Column(db.Integer, nullable=False, default=0)
    therapist_fee = db.Column(db.Integer, nullable=False, default=0)
    other_expenses = db.Column(db.Integer, nullable=False, default=0)
    total_expense = db.Column(db.Integer, nullable=False, default=0)
    net_income = db.Column(db.Integer, nullable=False, default=0)
    running_total = db.Column(db.Integer, nullable=False, default=0)
    notes = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=tznow)
    updated_at = db.Column(db.DateTime, nullable=False, default=tznow, onupdate=tznow)

    def to_dict(self):
        return {
            'id': self.id,
            'date': _iso(self.date),
            'dailyRevenue': self.daily_revenue,
            'operationalCost': self.operational_cost,
            'salaryExpense': self.salary_expense,
            'therapistFee': self.therapist_fee,
            'otherExpenses': self.other_expenses,
            'totalExpense': self.total_expense,
            'netIncome': self.net_income,
            'runningTotal': self.running_total,
            'notes': self.notes,
        }


class TherapistMonthlyStats(db.Model):
    __tablename__ = 'therapist_monthly_stats'
    __table_args__ = (
        db.UniqueConstraint('therapist_id', 'month', 'year', name='uq_therapist_month_year'),
    )

    id = db.Column(db.Integer, primary_key=True)
    therapist_id = db.Column(db.Integer, db.ForeignKey('therapists.id'), nullable=False)
    month = db.Column(db.Integer, nullable=False)
    year = db.Column(db.Integer, nullable=False)
    treatment_count = db.Column(db.Integer, nullable=False, default=0)
    total_revenue = db.Column(db.Integer, nullable=False, default=0)
    total_fees = db.Column(db.Integer, nullable=False, default=0)
    total_tips = db.Column(db.Integer, nullable=False, default=0)
    average_rating = db.Column(db.Float, nullable=True)

    therapist = relationship('Therapist', back_populates='monthly_stats')

    def to_dict(self):
        return {
            'therapistId': self.therapist_id,
            'month': self.month,
            'year': self.year,
            'treatmentCount': self.treatment_count,
            'totalRevenue': self.total_revenue,
            'totalFees': self.total_fees,
            'totalTips': self.total_tips,
            'averageRating': self.average_rating,
        }
