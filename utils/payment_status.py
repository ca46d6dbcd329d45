"""Read-only payment status computations.

Everything here works on plain lists of model instances already loaded by
the caller, so the same functions back the API, the reports and the XLSX
exports.
"""
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

from utils.errors import MonthAlreadySettled
from utils.formatters import camel_case, month_name

# July .. June
ACADEMIC_MONTH_ORDER = [7, 8, 9, 10, 11, 12, 1, 2, 3, 4, 5, 6]


@dataclass
class StudentPaymentStatus:
    student_id: int
    student_name: str
    student_nis: str
    class_name: str
    parent_phone: Optional[str] = None
    paid_months: List[int] = field(default_factory=list)
    unpaid_months: List[int] = field(default_factory=list)
    is_paid: Optional[bool] = None
    total_paid: int = 0
    total_due: int = 0

    def to_dict(self):
        data = {camel_case(key): value for key, value in self.__dict__.items()}
        data['unpaidMonthNames'] = [month_name(m) for m in self.unpaid_months]
        return data


def is_settled(payment) -> bool:
    return bool(payment.is_paid_off) or not payment.is_installment


def _split_year_name(name):
    parts = str(name).split('/')
    start = int(parts[0])
    end = int(parts[1]) if len(parts) > 1 and parts[1].strip() else start + 1
    return start, end


def academic_months(year_name, period=None):
    """Ordered ``(month, year)`` pairs billed in an academic year.

    ``period`` is ``(from_month, from_year, to_month, to_year)``; when given
    it replaces the July-June calendar.
    """
    if period and all(period):
        from_month, from_year, to_month, to_year = period
        months = []
        month, year = from_month, from_year
        while (year, month) <= (to_year, to_month):
            months.append((month, year))
            month += 1
            if month > 12:
                month, year = 1, year + 1
        return months

    if not year_name:
        return []
    start, end = _split_year_name(year_name)
    return [(m, start if m >= 7 else end) for m in ACADEMIC_MONTH_ORDER]


def _rows_for(payments, student_id, payment_type_id, academic_year_id=None):
    return [
        p for p in payments
        if p.student_id == student_id
        and p.payment_type_id == payment_type_id
        and (academic_year_id is None or p.academic_year_id == academic_year_id)
    ]


def paid_months(payments, student_id, payment_type_id, academic_year_id):
    """Months closed by at least one settled payment."""
    return {
        p.month
        for p in _rows_for(payments, student_id, payment_type_id, academic_year_id)
        if p.month is not None and is_settled(p)
    }


def unpaid_months(months, paid):
    """``months`` (a list of month numbers) minus ``paid``, order preserved."""
    seen = set()
    unpaid = []
    for month in months:
        if month not in paid and month not in seen:
            unpaid.append(month)
            seen.add(month)
    return unpaid


def amount_due(unpaid, amount):
    return len(unpaid) * amount


def is_fee_paid(payments, student_id, payment_type_id, academic_year_id=None):
    return any(
        is_settled(p)
        for p in _rows_for(payments, student_id, payment_type_id, academic_year_id)
    )


def find_tuition_type(payment_types):
    """The fee named SPP, falling back to the first recurring fee."""
    for payment_type in payment_types:
        if payment_type.name.strip().lower() == 'spp':
            return payment_type
    for payment_type in payment_types:
        if payment_type.is_recurring:
            return payment_type
    return None


def months_to_check(today, academic_year=None, period=None):
    """Billed month numbers that have already started as of ``today``.

    Without an academic year this is the July-June order cut at the current
    month; with one, months of that year lying after ``today`` are dropped.
    """
    if academic_year is None and period is None:
        index = ACADEMIC_MONTH_ORDER.index(today.month)
        return ACADEMIC_MONTH_ORDER[:index + 1]
    year_name = academic_year.name if academic_year is not None else None
    return [
        month for month, year in academic_months(year_name, period)
        if (year, month) <= (today.year, today.month)
    ]


def student_status(student, payment_type, academic_year, payments, months=None):
    rows = _rows_for(payments, student.id, payment_type.id, academic_year.id)
    status = StudentPaymentStatus(
        student_id=student.id,
        student_name=student.name,
        student_nis=student.nis,
        class_name=student.class_name,
        parent_phone=student.parent_phone,
        total_paid=sum(p.amount for p in rows),
    )

    if payment_type.is_recurring:
        if months is None:
            months = [m for m, _ in academic_months(academic_year.name, payment_type.period)]
        paid = paid_months(rows, student.id, payment_type.id, academic_year.id)
        status.paid_months = sorted(paid, key=_academic_position)
        status.unpaid_months = unpaid_months(months, paid)
        status.total_due = amount_due(status.unpaid_months, payment_type.amount)
    else:
        status.is_paid = any(is_settled(p) for p in rows)
        status.total_due = 0 if status.is_paid else payment_type.amount
    return status


def _academic_position(month):
    return ACADEMIC_MONTH_ORDER.index(month) if month in ACADEMIC_MONTH_ORDER else len(ACADEMIC_MONTH_ORDER)


def arrears_list(students, payments, tuition_type, academic_year, today=None):
    """Active students owing tuition for months already started, largest debt first."""
    if tuition_type is None or academic_year is None:
        return []
    today = today or date.today()
    months = months_to_check(today, academic_year, tuition_type.period)

    arrears = []
    for student in students:
        if student.status != 'active':
            continue
        status = student_status(student, tuition_type, academic_year, payments, months)
        if status.unpaid_months:
            arrears.append(status)
    arrears.sort(key=lambda s: s.total_due, reverse=True)
    return arrears


def tracking_statuses(students, payments, payment_type, academic_year):
    return [
        student_status(student, payment_type, academic_year, payments)
        for student in students
        if student.status == 'active'
    ]


def tracking_summary(students, payments, payment_types, academic_year):
    """Collection progress of every fee type over the active students."""
    active = [s for s in students if s.status == 'active']
    summary = []
    for payment_type in payment_types:
        rows = [
            p for p in payments
            if p.payment_type_id == payment_type.id and p.academic_year_id == academic_year.id
        ]
        total_paid = sum(p.amount for p in rows)

        if payment_type.is_recurring:
            month_count = len(academic_months(academic_year.name, payment_type.period))
            expected_slots = len(active) * month_count
            paid_slots = sum(
                len(paid_months(rows, s.id, payment_type.id, academic_year.id)) for s in active
            )
            total_due = max(expected_slots * payment_type.amount - total_paid, 0)
            progress = paid_slots / expected_slots * 100 if expected_slots else 0
            paid_count = sum(
                1 for s in active
                if len(paid_months(rows, s.id, payment_type.id, academic_year.id)) >= month_count
            )
        else:
            paid_count = sum(1 for s in active if is_fee_paid(rows, s.id, payment_type.id))
            total_due = (len(active) - paid_count) * payment_type.amount
            progress = paid_count / len(active) * 100 if active else 0

        summary.append({
            'paymentTypeId': payment_type.id,
            'paymentTypeName': payment_type.name,
            'isRecurring': payment_type.is_recurring,
            'amount': payment_type.amount,
            'totalStudents': len(active),
            'paidStudents': paid_count,
            'totalPaid': total_paid,
            'totalDue': total_due,
            'progress': round(progress, 1),
        })
    return summary


def check_not_settled(payments, student_id, payment_type, academic_year_id, month=None,
                      is_installment=False):
    """Refuse a payment for a month (or one-time fee) that is already settled.

    A one-time fee that is already settled still accepts installment rows.
    """
    if payment_type.is_recurring:
        if month in paid_months(payments, student_id, payment_type.id, academic_year_id):
            raise MonthAlreadySettled(
                f'Pembayaran {payment_type.name} bulan {month_name(month)} sudah lunas',
                'MONTH_ALREADY_SETTLED',
                month=month,
            )
    elif not is_installment and is_fee_paid(payments, student_id, payment_type.id, academic_year_id):
        raise MonthAlreadySettled(
            f'Pembayaran {payment_type.name} sudah lunas',
            'ALREADY_SETTLED',
        )


def ledger_entries(payments):
    """Running balance over payments already ordered by date ascending."""
    balance = 0
    entries = []
    for payment in payments:
        balance += payment.amount
        entry = payment.to_dict()
        entry['balance'] = balance
        entries.append(entry)
    return entries


def dashboard_stats(students, payments, tuition_type, today=None):
    today = today or date.today()
    active = [s for s in students if s.status == 'active']
    this_month = [
        p for p in payments
        if p.payment_date.month == today.month and p.payment_date.year == today.year
    ]

    paid_students = set()
    if tuition_type is not None:
        paid_students = {
            p.student_id for p in payments
            if p.payment_type_id == tuition_type.id
            and p.month == today.month
            and p.year == today.year
            and is_settled(p)
        }
    paid_active = sum(1 for s in active if s.id in paid_students)
    unpaid_count = len(active) - paid_active
    tuition_amount = tuition_type.amount if tuition_type is not None else 0

    return {
        'totalStudents': len(active),
        'paymentsThisMonth': len(this_month),
        'totalAmountThisMonth': sum(p.amount for p in this_month),
        'totalOutstanding': unpaid_count * tuition_amount,
        'paymentRate': round(paid_active / len(active) * 100, 1) if active else 0,
        'tuitionType': tuition_type.name if tuition_type is not None else None,
    }
