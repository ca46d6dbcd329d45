from models.database import db, SerializerMixin
from datetime import datetime
import random

PAYMENT_METHODS = ('cash', 'transfer', 'other')


def generate_receipt_number(now=None):
    """Receipt number in the form KWT/YYYYMMDD/RRRRRR."""
    now = now or datetime.now()
    return f"KWT/{now.strftime('%Y%m%d')}/{random.randint(100000, 999999)}"


class PaymentType(SerializerMixin, db.Model):
    __tablename__ = 'payment_types'
    __table_args__ = {'sqlite_autoincrement': True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)  # e.g. "SPP", "Buku", "Seragam"
    amount = db.Column(db.Integer, nullable=False)  # smallest currency unit
    is_recurring = db.Column(db.Boolean, nullable=False)  # billed monthly
    allow_installment = db.Column(db.Boolean, nullable=False)
    description = db.Column(db.Text)

    # Optional billing period overriding the July-June calendar
    from_month = db.Column(db.Integer)
    from_year = db.Column(db.Integer)
    to_month = db.Column(db.Integer)
    to_year = db.Column(db.Integer)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    @property
    def period(self):
        bounds = (self.from_month, self.from_year, self.to_month, self.to_year)
        if all(bounds):
            return bounds
        return None

    def __repr__(self):
        return f'<PaymentType {self.name}>'


class Payment(SerializerMixin, db.Model):
    __tablename__ = 'payments'
    __table_args__ = {'sqlite_autoincrement': True}

    id = db.Column(db.Integer, primary_key=True)

    student_id = db.Column(db.Integer, db.ForeignKey('students.id'), nullable=False)
    payment_type_id = db.Column(db.Integer, db.ForeignKey('payment_types.id'), nullable=False)
    academic_year_id = db.Column(db.Integer, db.ForeignKey('academic_years.id'), nullable=False)

    # Snapshot taken when the payment is recorded
    student_name = db.Column(db.String(200), nullable=False)
    student_nis = db.Column(db.String(30), nullable=False)
    class_name = db.Column(db.String(50), nullable=False)
    payment_type_name = db.Column(db.String(100), nullable=False)

    amount = db.Column(db.Integer, nullable=False)
    month = db.Column(db.Integer)  # 1-12, recurring fees only
    year = db.Column(db.Integer, nullable=False)
    payment_date = db.Column(db.Date, nullable=False)
    receipt_number = db.Column(db.String(40), unique=True, nullable=False)
    payment_method = db.Column(db.String(20), nullable=False)
    notes = db.Column(db.Text)
    created_by = db.Column(db.String(80), nullable=False, default='admin')

    # Installments
    is_installment = db.Column(db.Boolean, default=False)
    installment_of = db.Column(db.Integer)
    installment_number = db.Column(db.Integer)
    total_installments = db.Column(db.Integer)
    is_paid_off = db.Column(db.Boolean, default=False)
    original_amount = db.Column(db.Integer)
    remaining_amount = db.Column(db.Integer)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    payment_type = db.relationship('PaymentType', lazy=True)

    @property
    def is_settled(self):
        return bool(self.is_paid_off) or not self.is_installment

    def __repr__(self):
        return f'<Payment {self.receipt_number}>'
