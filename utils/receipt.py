from datetime import date

from flask import current_app, render_template

from utils.errors import ValidationError
from utils.formatters import (format_currency, format_date, month_name,
                              number_to_words, payment_method_label)

RECEIPT_LAYOUTS = {
    'a4': 'receipts/a4.html',
    'thermal': 'receipts/thermal.html',
}


def school_header(school=None):
    """School identity printed on receipts, with config defaults when none is saved."""
    if school is not None:
        return {
            'name': school.name,
            'address': school.address,
            'phone': school.phone,
            'email': school.email,
            'principal_name': school.principal_name,
            'npsn': school.npsn,
            'logo': school.logo,
        }
    config = current_app.config
    return {
        'name': config['SCHOOL_NAME'],
        'address': config['SCHOOL_ADDRESS'],
        'phone': config['SCHOOL_PHONE'],
        'email': config['SCHOOL_EMAIL'],
        'principal_name': config['SCHOOL_PRINCIPAL'],
        'npsn': config['SCHOOL_NPSN'],
        'logo': None,
    }


def payment_description(payment):
    """"SPP - Oktober 2024" for monthly fees, the fee name otherwise."""
    if payment.month:
        return f'{payment.payment_type_name} - {month_name(payment.month)} {payment.year}'
    return payment.payment_type_name


def receipt_context(payment, school=None):
    return {
        'school': school_header(school),
        'payment': payment,
        'description': payment_description(payment),
        'month_label': f'{month_name(payment.month)} {payment.year}' if payment.month else '-',
        'amount': format_currency(payment.amount),
        'amount_words': number_to_words(payment.amount),
        'method': payment_method_label(payment.payment_method),
        'payment_date': format_date(payment.payment_date),
        'payment_date_long': format_date(payment.payment_date, long=True),
        'printed_on': format_date(date.today(), long=True),
        'remaining': format_currency(payment.remaining_amount) if payment.remaining_amount else None,
    }


def render_receipt(payment, school=None, layout='a4'):
    template = RECEIPT_LAYOUTS.get(layout)
    if template is None:
        raise ValidationError(
            f"Unknown receipt layout '{layout}', expected one of: {', '.join(RECEIPT_LAYOUTS)}",
            'INVALID_LAYOUT'
        )
    return render_template(template, **receipt_context(payment, school))
