from datetime import MAXYEAR, MINYEAR, date

from flask import Blueprint, jsonify, request

from models.academic import AcademicYear
from models.payment import Payment, PaymentType
from models.student import Student
from utils import repository
from utils.decorators import admin_required
from utils.errors import NotFound, ValidationError
from utils.excel_handler import (export_arrears_to_excel,
                                 export_ledger_to_excel,
                                 export_monthly_report_to_excel,
                                 export_tracking_to_excel, xlsx_response)
from utils.formatters import month_name
from utils.payment_status import (arrears_list, dashboard_stats,
                                  find_tuition_type, ledger_entries,
                                  tracking_statuses, tracking_summary)
from utils.reports import group_payments, monthly_report
from utils.validators import int_arg, parse_date_field, parse_month

reports_bp = Blueprint('reports', __name__)


def _academic_year():
    """``?academicYearId=`` or the active year."""
    year_id = int_arg('academicYearId', code='INVALID_ACADEMIC_YEAR_ID')
    if year_id is not None:
        return repository.academic_years.get(year_id)
    year = AcademicYear.get_active()
    if year is None:
        raise NotFound('No active academic year found', 'NO_ACTIVE_ACADEMIC_YEAR')
    return year


def _wants_xlsx():
    return request.args.get('format') == 'xlsx'


def _today():
    raw = request.args.get('date')
    return parse_date_field(raw, 'date', 'INVALID_DATE') if raw else date.today()


@reports_bp.route('/arrears', methods=['GET'])
@admin_required
def arrears():
    academic_year = _academic_year()
    payment_types = PaymentType.query.order_by(PaymentType.id).all()

    type_id = int_arg('paymentTypeId', code='INVALID_PAYMENT_TYPE_ID')
    if type_id is not None:
        tuition_type = repository.payment_types.get(type_id)
        if not tuition_type.is_recurring:
            raise ValidationError('Arrears are only tracked for monthly fees', 'INVALID_PAYMENT_TYPE_ID')
    else:
        tuition_type = find_tuition_type(payment_types)

    students = Student.query.filter_by(status='active')
    class_id = int_arg('classId', code='INVALID_CLASS_ID')
    if class_id is not None:
        students = students.filter_by(class_id=class_id)
    payments = Payment.query.filter_by(academic_year_id=academic_year.id).all()

    statuses = arrears_list(students.all(), payments, tuition_type, academic_year, _today())

    if _wants_xlsx():
        df = export_arrears_to_excel(statuses)
        return xlsx_response({'Tunggakan': df}, f"tunggakan_{academic_year.name.replace('/', '-')}.xlsx")

    return jsonify({
        'academicYear': academic_year.to_dict(),
        'paymentType': tuition_type.to_dict() if tuition_type else None,
        'totalStudents': len(statuses),
        'totalArrears': sum(s.total_due for s in statuses),
        'students': [s.to_dict() for s in statuses],
    })


@reports_bp.route('/tracking', methods=['GET'])
@admin_required
def tracking():
    academic_year = _academic_year()
    students = Student.query.filter_by(status='active').order_by(Student.class_name, Student.name).all()
    payments = Payment.query.filter_by(academic_year_id=academic_year.id).all()

    type_id = int_arg('paymentTypeId', code='INVALID_PAYMENT_TYPE_ID')
    if type_id is not None:
        payment_types = [repository.payment_types.get(type_id)]
    else:
        payment_types = PaymentType.query.order_by(PaymentType.id).all()

    summary = tracking_summary(students, payments, payment_types, academic_year)
    details = {
        payment_type: tracking_statuses(students, payments, payment_type, academic_year)
        for payment_type in payment_types
    }

    if _wants_xlsx():
        sheets = export_tracking_to_excel(summary, details)
        return xlsx_response(sheets, f"tracking_{academic_year.name.replace('/', '-')}.xlsx")

    return jsonify({
        'academicYear': academic_year.to_dict(),
        'summary': summary,
        'details': [
            {
                'paymentType': payment_type.to_dict(),
                'students': [s.to_dict() for s in statuses],
            }
            for payment_type, statuses in details.items()
        ],
    })


@reports_bp.route('/ledger', methods=['GET'])
@admin_required
def ledger():
    academic_year = _academic_year()
    query = Payment.query.filter_by(academic_year_id=academic_year.id)
    type_id = int_arg('paymentTypeId')
    if type_id is not None:
        query = query.filter_by(payment_type_id=type_id)
    payments = query.order_by(Payment.payment_date, Payment.id).all()

    entries = ledger_entries(payments)

    if _wants_xlsx():
        df = export_ledger_to_excel(entries)
        return xlsx_response({'Buku Kas': df}, f"buku_kas_{academic_year.name.replace('/', '-')}.xlsx")

    group_by = request.args.get('groupBy', 'month')
    return jsonify({
        'academicYear': academic_year.to_dict(),
        'entries': entries,
        'totalAmount': entries[-1]['balance'] if entries else 0,
        'groups': group_payments(payments, by=group_by),
    })


@reports_bp.route('/monthly', methods=['GET'])
@admin_required
def monthly():
    today = date.today()
    month = parse_month(request.args.get('month') or today.month)
    year = int_arg('year', code='INVALID_YEAR')
    if year is None:
        year = today.year
    elif not MINYEAR <= year < MAXYEAR:
        raise ValidationError(f'year must be between {MINYEAR} and {MAXYEAR - 1}', 'INVALID_YEAR')

    payments = Payment.query.filter(
        Payment.payment_date >= date(year, month, 1),
        Payment.payment_date < (date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1))
    ).order_by(Payment.payment_date, Payment.id).all()
    report = monthly_report(payments, month, year)

    if _wants_xlsx():
        df = export_monthly_report_to_excel(report)
        return xlsx_response({f'{month_name(month)} {year}': df}, f'laporan_{year}_{month:02d}.xlsx')

    return jsonify(report)


@reports_bp.route('/dashboard', methods=['GET'])
@admin_required
def dashboard():
    today = _today()
    students = Student.query.filter_by(status='active').all()
    tuition_type = find_tuition_type(PaymentType.query.order_by(PaymentType.id).all())
    payments = Payment.query.filter(
        Payment.payment_date >= date(today.year, today.month, 1)
    ).all()
    if tuition_type is not None:
        payments += Payment.query.filter(
            Payment.payment_type_id == tuition_type.id,
            Payment.month == today.month,
            Payment.year == today.year,
            Payment.payment_date < date(today.year, today.month, 1)
        ).all()

    stats = dashboard_stats(students, payments, tuition_type, today)
    active_year = AcademicYear.get_active()
    stats['activeAcademicYear'] = active_year.name if active_year else None
    return jsonify(stats)
