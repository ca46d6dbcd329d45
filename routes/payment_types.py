from flask import Blueprint, jsonify, request

from models.payment import PaymentType
from utils import repository
from utils.decorators import admin_required
from utils.errors import ValidationError
from utils.validators import (get_json_body, id_arg, is_blank, pagination,
                              parse_bool, parse_month, parse_positive_int)

payment_types_bp = Blueprint('payment_types', __name__)

PERIOD_FIELDS = {
    'fromMonth': 'from_month',
    'fromYear': 'from_year',
    'toMonth': 'to_month',
    'toYear': 'to_year',
}


def _period_fields(data):
    fields = {}
    for key, column in PERIOD_FIELDS.items():
        if key not in data:
            continue
        value = data[key]
        if value in (None, '', 0):
            fields[column] = None
        elif key.endswith('Month'):
            fields[column] = parse_month(value)
        else:
            try:
                fields[column] = int(value)
            except (TypeError, ValueError):
                raise ValidationError(f'{key} must be a year', 'INVALID_PERIOD')
    return fields


def _check_period(fields):
    period = tuple(fields.get(column) for column in PERIOD_FIELDS.values())
    if all(period):
        from_month, from_year, to_month, to_year = period
        if (from_year, from_month) > (to_year, to_month):
            raise ValidationError('Billing period ends before it starts', 'INVALID_PERIOD')


def _description(value):
    if value is None:
        return None
    return str(value).strip() or None


@payment_types_bp.route('', methods=['GET'])
@admin_required
def list_payment_types():
    if request.args.get('id'):
        return jsonify(repository.payment_types.get(id_arg()).to_dict())

    limit, offset = pagination()
    payment_types = repository.payment_types.list(order_by=(PaymentType.id,), limit=limit, offset=offset)
    return jsonify([t.to_dict() for t in payment_types])


@payment_types_bp.route('', methods=['POST'])
@admin_required
def create_payment_type():
    data = get_json_body()
    if is_blank(data.get('name')):
        raise ValidationError('Name is required', 'MISSING_NAME')
    if data.get('amount') is None:
        raise ValidationError('Amount is required', 'MISSING_AMOUNT')
    if data.get('isRecurring') is None:
        raise ValidationError('isRecurring is required', 'MISSING_IS_RECURRING')
    if data.get('allowInstallment') is None:
        raise ValidationError('allowInstallment is required', 'MISSING_ALLOW_INSTALLMENT')

    fields = dict(
        name=str(data['name']).strip(),
        amount=parse_positive_int(data['amount'], 'Amount'),
        is_recurring=parse_bool(data['isRecurring'], 'isRecurring', 'INVALID_IS_RECURRING'),
        allow_installment=parse_bool(data['allowInstallment'], 'allowInstallment', 'INVALID_ALLOW_INSTALLMENT'),
        description=_description(data.get('description')),
        **_period_fields(data)
    )
    _check_period(fields)

    payment_type = repository.payment_types.create(**fields)
    return jsonify(payment_type.to_dict()), 201


@payment_types_bp.route('', methods=['PUT'])
@admin_required
def update_payment_type():
    type_id = id_arg()
    data = get_json_body()
    payment_type = repository.payment_types.get(type_id)

    fields = {}
    if 'name' in data:
        if is_blank(data['name']):
            raise ValidationError('Name is required', 'MISSING_NAME')
        fields['name'] = str(data['name']).strip()
    if 'amount' in data:
        fields['amount'] = parse_positive_int(data['amount'], 'Amount')
    if 'isRecurring' in data:
        fields['is_recurring'] = parse_bool(data['isRecurring'], 'isRecurring', 'INVALID_IS_RECURRING')
    if 'allowInstallment' in data:
        fields['allow_installment'] = parse_bool(
            data['allowInstallment'], 'allowInstallment', 'INVALID_ALLOW_INSTALLMENT'
        )
    if 'description' in data:
        fields['description'] = _description(data['description'])
    fields.update(_period_fields(data))
    _check_period({
        column: fields.get(column, getattr(payment_type, column))
        for column in PERIOD_FIELDS.values()
    })

    repository.payment_types.update(payment_type, **fields)
    return jsonify(payment_type.to_dict())


@payment_types_bp.route('', methods=['DELETE'])
@admin_required
def delete_payment_type():
    payment_type = repository.payment_types.get(id_arg())
    deleted = repository.payment_types.delete(payment_type)
    return jsonify({'message': 'Payment type deleted successfully', 'deletedPaymentType': deleted})
