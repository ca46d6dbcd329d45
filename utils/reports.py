from collections import OrderedDict

from models.payment import PAYMENT_METHODS
from utils.errors import ValidationError
from utils.formatters import month_name

GROUP_BY = ('type', 'month', 'none')


def _group_key(payment, by):
    if by == 'type':
        return payment.payment_type_id, payment.payment_type_name
    if by == 'month':
        day = payment.payment_date
        return (day.year, day.month), f'{month_name(day.month)} {day.year}'
    return None, 'Semua Pembayaran'


def group_payments(payments, by='type'):
    """Count and total per fee type, per payment month, or a single group."""
    if by not in GROUP_BY:
        raise ValidationError(f"groupBy must be one of: {', '.join(GROUP_BY)}", 'INVALID_GROUP_BY')

    groups = OrderedDict()
    for payment in payments:
        key, label = _group_key(payment, by)
        group = groups.setdefault(key, {
            'key': key if not isinstance(key, tuple) else '%04d-%02d' % key,
            'label': label,
            'count': 0,
            'amount': 0,
            'students': set(),
        })
        group['count'] += 1
        group['amount'] += payment.amount
        group['students'].add(payment.student_id)

    result = []
    for group in groups.values():
        group['studentCount'] = len(group.pop('students'))
        result.append(group)
    if by == 'month':
        result.sort(key=lambda g: g['key'])
    return result


def monthly_report(payments, month, year):
    """Payments dated within one calendar month, grouped by fee type."""
    in_month = [
        p for p in payments
        if p.payment_date.month == month and p.payment_date.year == year
    ]
    groups = group_payments(in_month, by='type')
    return {
        'month': month,
        'year': year,
        'monthName': month_name(month),
        'totalPayments': len(in_month),
        'totalAmount': sum(p.amount for p in in_month),
        'uniqueStudents': len({p.student_id for p in in_month}),
        'byPaymentType': [
            {
                'paymentTypeId': g['key'],
                'paymentTypeName': g['label'],
                'count': g['count'],
                'amount': g['amount'],
                'studentCount': g['studentCount'],
            }
            for g in groups
        ],
    }


def payment_stats(payments, filters=None):
    by_method = {method: {'count': 0, 'amount': 0} for method in PAYMENT_METHODS}
    by_type = OrderedDict()
    for payment in payments:
        method = (payment.payment_method or '').lower()
        bucket = by_method[method if method in by_method else 'other']
        bucket['count'] += 1
        bucket['amount'] += payment.amount

        type_bucket = by_type.setdefault(payment.payment_type_name, {'count': 0, 'amount': 0})
        type_bucket['count'] += 1
        type_bucket['amount'] += payment.amount

    stats = {
        'totalAmount': sum(p.amount for p in payments),
        'totalPayments': len(payments),
        'byMethod': by_method,
        'byPaymentType': [
            {'paymentTypeName': name, 'count': data['count'], 'amount': data['amount']}
            for name, data in by_type.items()
        ],
    }
    filters = {key: value for key, value in (filters or {}).items() if value is not None}
    if filters:
        stats['filters'] = filters
    return stats
