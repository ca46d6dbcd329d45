import logging

from flask import Blueprint, Response, current_app, jsonify, request
from flask_login import current_user

from models.payment import PAYMENT_METHODS, Payment, generate_receipt_number
from models.settings import SchoolInfo
from utils import repository
from utils.decorators import admin_required
from utils.errors import ValidationError
from utils.excel_handler import export_payments_to_excel, xlsx_response
from utils.payment_status import check_not_settled
from utils.receipt import render_receipt
from utils.reports import payment_stats
from utils.validators import (clean_str, get_json_body, id_arg, int_arg,
                              pagination, parse_date_field, parse_id,
                              parse_month, parse_positive_int, require_fields)

logger = logging.getLogger(__name__)

payments_bp = Blueprint('payments', __name__)

REQUIRED_FIELDS = [
    'studentId', 'studentName', 'studentNis', 'className', 'paymentTypeId',
    'paymentTypeName', 'amount', 'year', 'academicYearId', 'paymentDate', 'paymentMethod',
]
SNAPSHOT_FIELDS = {
    'studentName': 'student_name',
    'studentNis': 'student_nis',
    'className': 'class_name',
    'paymentTypeName': 'payment_type_name',
}
RECEIPT_ATTEMPTS = 5


def _payment_method(value):
    if value not in PAYMENT_METHODS:
        raise ValidationError('paymentMethod must be cash, transfer, or other', 'INVALID_PAYMENT_METHOD')
    return value


def _year(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError('year must be an integer', 'INVALID_YEAR')


def _optional_int(data, key, code):
    value = data.get(key)
    if value in (None, ''):
        return None
    return parse_id(value, code, f'{key} must be an integer')


def _unique_receipt_number():
    for _ in range(RECEIPT_ATTEMPTS):
        number = generate_receipt_number()
        if not Payment.query.filter_by(receipt_number=number).first():
            return number
    raise ValidationError('Could not allocate a receipt number, try again', 'RECEIPT_NUMBER_EXHAUSTED')


def _existing_payments(student_id, payment_type_id, academic_year_id, exclude_id=None):
    query = Payment.query.filter_by(
        student_id=student_id, payment_type_id=payment_type_id, academic_year_id=academic_year_id
    )
    if exclude_id is not None:
        query = query.filter(Payment.id != exclude_id)
    return query.all()


def _apply_installment(fields, data, payment_type, existing):
    """Fill the installment columns of a new or edited payment."""
    is_installment = bool(data.get('isInstallment', fields.get('is_installment', False)))
    fields['is_installment'] = is_installment
    if not is_installment:
        fields['is_paid_off'] = True
        fields['remaining_amount'] = None
        return

    if not payment_type.allow_installment:
        raise ValidationError(
            f'{payment_type.name} cannot be paid in installments', 'INSTALLMENT_NOT_ALLOWED'
        )

    total = _optional_int(data, 'totalInstallments', 'INVALID_TOTAL_INSTALLMENTS')
    if total is None or total < 2:
        raise ValidationError('totalInstallments must be at least 2', 'INVALID_TOTAL_INSTALLMENTS')
    number = _optional_int(data, 'installmentNumber', 'INVALID_INSTALLMENT_NUMBER')
    if number is not None and not 1 <= number <= total:
        raise ValidationError(
            f'installmentNumber must be between 1 and {total}', 'INVALID_INSTALLMENT_NUMBER'
        )

    installment_of = _optional_int(data, 'installmentOf', 'INVALID_INSTALLMENT_OF')
    series = []
    if installment_of is not None:
        parent = next((p for p in existing if p.id == installment_of), None)
        if parent is None:
            raise ValidationError(
                'installmentOf must reference a payment of the same student and fee',
                'INVALID_INSTALLMENT_OF'
            )
        series = [
            p for p in existing
            if p.id == installment_of or p.installment_of == installment_of
        ]
        if fields.get('month') is not None:
            series = [p for p in series if p.month == fields['month']]

    original = _optional_int(data, 'originalAmount', 'INVALID_AMOUNT') or payment_type.amount
    paid_before = sum(p.amount for p in series)
    remaining = max(original - paid_before - fields['amount'], 0)

    fields.update(
        total_installments=total,
        installment_number=number or len(series) + 1,
        installment_of=installment_of,
        original_amount=original,
        remaining_amount=remaining,
        is_paid_off=bool(data.get('isPaidOff')) or remaining == 0,
    )
    if fields['is_paid_off']:
        fields['remaining_amount'] = 0


@payments_bp.route('', methods=['GET'])
@admin_required
def list_payments():
    if request.args.get('id'):
        return jsonify(repository.payments.get(id_arg()).to_dict())

    config = current_app.config
    limit, offset = pagination(config['DEFAULT_PAYMENT_PAGE_SIZE'], config['MAX_PAYMENT_PAGE_SIZE'])
    filters = []
    for arg, column in (('studentId', Payment.student_id),
                        ('paymentTypeId', Payment.payment_type_id),
                        ('month', Payment.month),
                        ('year', Payment.year),
                        ('academicYearId', Payment.academic_year_id)):
        value = int_arg(arg)
        if value is not None:
            filters.append(column == value)

    payments = repository.payments.list(
        filters, order_by=(Payment.payment_date.desc(), Payment.id.desc()), limit=limit, offset=offset
    )
    return jsonify([p.to_dict() for p in payments])


@payments_bp.route('', methods=['POST'])
@admin_required
def create_payment():
    data = get_json_body()
    require_fields(data, REQUIRED_FIELDS)

    student = repository.students.get(parse_id(data['studentId'], 'INVALID_STUDENT_ID'))
    payment_type = repository.payment_types.get(parse_id(data['paymentTypeId'], 'INVALID_PAYMENT_TYPE_ID'))
    academic_year = repository.academic_years.get(
        parse_id(data['academicYearId'], 'INVALID_ACADEMIC_YEAR_ID')
    )

    fields = {column: clean_str(data[key]) for key, column in SNAPSHOT_FIELDS.items()}
    fields.update(
        student_id=student.id,
        payment_type_id=payment_type.id,
        academic_year_id=academic_year.id,
        amount=parse_positive_int(data['amount'], 'amount'),
        month=parse_month(data.get('month')),
        year=_year(data['year']),
        payment_date=parse_date_field(data['paymentDate'], 'paymentDate', 'INVALID_PAYMENT_DATE'),
        payment_method=_payment_method(data['paymentMethod']),
        notes=clean_str(data.get('notes')) or None,
        created_by=current_user.username if current_user.is_authenticated else 'admin',
    )
    if payment_type.is_recurring and fields['month'] is None:
        raise ValidationError('month is required for monthly fees', 'MISSING_MONTH')

    existing = _existing_payments(student.id, payment_type.id, academic_year.id)
    check_not_settled(
        existing, student.id, payment_type, academic_year.id,
        month=fields['month'], is_installment=bool(data.get('isInstallment'))
    )
    _apply_installment(fields, data, payment_type, existing)

    fields['receipt_number'] = _unique_receipt_number()
    payment = repository.payments.create(**fields)

    logger.info('Payment %s recorded: %s %s for %s',
                payment.receipt_number, payment.payment_type_name, payment.amount, payment.student_nis)
    return jsonify(payment.to_dict()), 201


@payments_bp.route('', methods=['PUT'])
@admin_required
def update_payment():
    payment_id = id_arg()
    data = get_json_body()
    payment = repository.payments.get(payment_id)

    fields = {}
    for key, column in SNAPSHOT_FIELDS.items():
        if key in data and clean_str(data[key]):
            fields[column] = clean_str(data[key])
    if 'studentId' in data:
        fields['student_id'] = repository.students.get(parse_id(data['studentId'], 'INVALID_STUDENT_ID')).id
    if 'paymentTypeId' in data:
        fields['payment_type_id'] = repository.payment_types.get(
            parse_id(data['paymentTypeId'], 'INVALID_PAYMENT_TYPE_ID')
        ).id
    if 'academicYearId' in data:
        fields['academic_year_id'] = repository.academic_years.get(
            parse_id(data['academicYearId'], 'INVALID_ACADEMIC_YEAR_ID')
        ).id
    if 'amount' in data:
        fields['amount'] = parse_positive_int(data['amount'], 'amount')
    if 'month' in data:
        fields['month'] = parse_month(data['month'])
    if 'year' in data:
        fields['year'] = _year(data['year'])
    if 'paymentDate' in data:
        fields['payment_date'] = parse_date_field(data['paymentDate'], 'paymentDate', 'INVALID_PAYMENT_DATE')
    if 'paymentMethod' in data:
        fields['payment_method'] = _payment_method(data['paymentMethod'])
    if 'notes' in data:
        fields['notes'] = clean_str(data['notes']) or None

    target = {
        key: fields.get(key, getattr(payment, key))
        for key in ('student_id', 'payment_type_id', 'academic_year_id', 'month', 'amount')
    }
    moved = any(
        target[key] != getattr(payment, key)
        for key in ('student_id', 'payment_type_id', 'academic_year_id', 'month')
    )
    payment_type = repository.payment_types.get(target['payment_type_id'])
    if payment_type.is_recurring and target['month'] is None:
        raise ValidationError('month is required for monthly fees', 'MISSING_MONTH')
    existing = _existing_payments(
        target['student_id'], target['payment_type_id'], target['academic_year_id'], exclude_id=payment.id
    )

    installment_keys = ('isInstallment', 'installmentOf', 'installmentNumber',
                        'totalInstallments', 'isPaidOff', 'originalAmount')
    if any(key in data for key in installment_keys) or 'amount' in fields:
        merged = {
            'isInstallment': payment.is_installment,
            'installmentOf': payment.installment_of,
            'installmentNumber': payment.installment_number,
            'totalInstallments': payment.total_installments,
            'isPaidOff': payment.is_paid_off,
            'originalAmount': payment.original_amount,
        }
        merged.update({key: data[key] for key in installment_keys if key in data})
        installment_fields = {'amount': target['amount'], 'month': target['month']}
        _apply_installment(installment_fields, merged, payment_type, existing)
        fields.update(installment_fields)

    # Moving the row, or settling it, must not close a month twice
    settled = bool(fields.get('is_paid_off', payment.is_paid_off)) \
        or not fields.get('is_installment', payment.is_installment)
    if moved or (settled and not payment.is_settled):
        check_not_settled(
            existing, target['student_id'], payment_type, target['academic_year_id'],
            month=target['month'], is_installment=not settled
        )

    repository.payments.update(payment, **fields)
    return jsonify(payment.to_dict())


@payments_bp.route('', methods=['DELETE'])
@admin_required
def delete_payment():
    payment = repository.payments.get(id_arg())
    deleted = repository.payments.delete(payment)
    logger.info('Payment %s deleted', deleted['receiptNumber'])
    return jsonify({'message': 'Payment deleted successfully', 'payment': deleted})


@payments_bp.route('/stats', methods=['GET'])
@admin_required
def stats():
    filters = {
        'academicYearId': int_arg('academicYearId'),
        'year': int_arg('year'),
        'month': int_arg('month'),
    }
    query = Payment.query
    if filters['academicYearId'] is not None:
        query = query.filter(Payment.academic_year_id == filters['academicYearId'])
    if filters['year'] is not None:
        query = query.filter(Payment.year == filters['year'])
    if filters['month'] is not None:
        query = query.filter(Payment.month == filters['month'])

    return jsonify(payment_stats(query.all(), filters))


@payments_bp.route('/student/<student_id>', methods=['GET'])
@admin_required
def student_payments(student_id):
    student_id = parse_id(student_id, 'INVALID_STUDENT_ID', 'Valid student ID is required')
    payments = Payment.query.filter_by(student_id=student_id).order_by(
        Payment.payment_date.desc(), Payment.id.desc()
    ).all()
    return jsonify([p.to_dict() for p in payments])


@payments_bp.route('/<int:payment_id>/receipt', methods=['GET'])
@admin_required
def receipt(payment_id):
    payment = repository.payments.get(payment_id)
    layout = request.args.get('layout', 'a4')
    html = render_receipt(payment, SchoolInfo.current(), layout)
    return Response(html, mimetype='text/html')


@payments_bp.route('/export', methods=['GET'])
@admin_required
def export_payments():
    query = Payment.query
    for arg, column in (('academicYearId', Payment.academic_year_id),
                        ('paymentTypeId', Payment.payment_type_id),
                        ('studentId', Payment.student_id),
                        ('month', Payment.month),
                        ('year', Payment.year)):
        value = int_arg(arg)
        if value is not None:
            query = query.filter(column == value)

    payments = query.order_by(Payment.payment_date, Payment.id).all()
    df = export_payments_to_excel(payments)
    return xlsx_response({'Pembayaran': df}, 'data_pembayaran.xlsx')
