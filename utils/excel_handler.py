import logging
import re
from io import BytesIO

import pandas as pd
from flask import send_file

from models.academic import AcademicYear, ClassInfo
from models.database import db
from models.student import GENDERS, STUDENT_STATUSES, Student
from utils.formatters import format_date, month_name, payment_method_label

logger = logging.getLogger(__name__)

XLSX_MIMETYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'

STUDENT_COLUMNS = {
    'NIS': 'nis',
    'NISN': 'nisn',
    'Nama': 'name',
    'JK': 'gender',
    'Kelas': 'class_name',
    'Tempat Lahir': 'birth_place',
    'Tanggal Lahir': 'birth_date',
    'Alamat': 'address',
    'Nama Orang Tua': 'parent_name',
    'No HP Orang Tua': 'parent_phone',
}
OPTIONAL_STUDENT_COLUMNS = {'Status': 'status'}

# Characters Excel refuses in sheet titles
INVALID_SHEET_CHARS = re.compile(r"[\\/?*\[\]:]")
MAX_SHEET_TITLE = 31


def sheet_title(name, taken, tag=None):
    """A valid sheet title not yet in ``taken`` (lower-cased titles), which it joins.

    Clashing titles get `` (tag)`` appended, then a counter.
    """
    base = INVALID_SHEET_CHARS.sub('-', str(name)).strip().strip("'") or 'Sheet'
    title = base[:MAX_SHEET_TITLE]
    labels = [str(tag)] if tag is not None else []
    counter = 2
    while title.lower() in taken:
        if labels:
            label = labels.pop()
        else:
            label = f'{tag}-{counter}' if tag is not None else str(counter)
            counter += 1
        suffix = f' ({label})'
        title = base[:MAX_SHEET_TITLE - len(suffix)] + suffix
    taken.add(title.lower())
    return title


def write_workbook(sheets):
    """Write ``{sheet name: DataFrame}`` into an in-memory XLSX file."""
    output = BytesIO()
    taken = set()
    with pd.ExcelWriter(output, engine='openpyxl') as writer:
        for sheet_name, df in sheets.items():
            df.to_excel(writer, index=False, sheet_name=sheet_title(sheet_name, taken))
    output.seek(0)
    return output


def xlsx_response(sheets, filename):
    return send_file(
        write_workbook(sheets),
        download_name=filename,
        as_attachment=True,
        mimetype=XLSX_MIMETYPE
    )


def _resolve_class(class_name):
    """Class with that name, preferring the one in the active academic year."""
    query = ClassInfo.query.filter_by(name=class_name)
    active_year = AcademicYear.get_active()
    if active_year is not None:
        in_active_year = query.filter_by(academic_year_id=active_year.id).first()
        if in_active_year is not None:
            return in_active_year
    return query.first()


def import_students_from_excel(file):
    """
    Import students from an Excel upload
    Expected columns: NIS, NISN, Nama, JK, Kelas, Tempat Lahir, Tanggal Lahir,
    Alamat, Nama Orang Tua, No HP Orang Tua (optional: Status)
    """
    try:
        # Read as text so NIS/NISN keep their leading zeros
        df = pd.read_excel(file, dtype=str)
    except Exception as e:
        logger.warning('Unreadable student spreadsheet: %s', e)
        return False, f'Error processing Excel file: {e}'

    df.columns = df.columns.str.strip()
    for col in STUDENT_COLUMNS:
        if col not in df.columns:
            return False, f'Missing required column: {col}'
    df = df.fillna('')

    results = {
        'success': 0,
        'failed': 0,
        'errors': [],
        'students': []
    }
    seen_nis, seen_nisn = set(), set()

    for index, row in df.iterrows():
        line = index + 2  # header is row 1
        values = {field: str(row[col]).strip() for col, field in STUDENT_COLUMNS.items()}
        for col, field in OPTIONAL_STUDENT_COLUMNS.items():
            values[field] = str(row[col]).strip().lower() if col in df.columns else ''

        missing = [col for col, field in STUDENT_COLUMNS.items() if not values[field]]
        if missing:
            results['failed'] += 1
            results['errors'].append(f"Row {line}: {', '.join(missing)} is required")
            continue

        values['gender'] = values['gender'].upper()
        if values['gender'] not in GENDERS:
            results['failed'] += 1
            results['errors'].append(f"Row {line}: JK must be 'L' or 'P'")
            continue

        values['status'] = values['status'] or 'active'
        if values['status'] not in STUDENT_STATUSES:
            results['failed'] += 1
            results['errors'].append(f"Row {line}: invalid status '{values['status']}'")
            continue

        try:
            values['birth_date'] = pd.to_datetime(values['birth_date']).date()
        except (ValueError, TypeError):
            results['failed'] += 1
            results['errors'].append(f"Row {line}: invalid Tanggal Lahir '{values['birth_date']}'")
            continue

        if values['nis'] in seen_nis or Student.query.filter_by(nis=values['nis']).first():
            results['failed'] += 1
            results['errors'].append(f"Row {line}: Student with NIS {values['nis']} already exists")
            continue
        if values['nisn'] in seen_nisn or Student.query.filter_by(nisn=values['nisn']).first():
            results['failed'] += 1
            results['errors'].append(f"Row {line}: Student with NISN {values['nisn']} already exists")
            continue

        class_info = _resolve_class(values['class_name'])
        student = Student(class_id=class_info.id if class_info else None, **values)
        db.session.add(student)
        seen_nis.add(values['nis'])
        seen_nisn.add(values['nisn'])

        results['students'].append({'nis': values['nis'], 'name': values['name']})
        results['success'] += 1

    db.session.commit()
    logger.info('Student import: %d imported, %d failed', results['success'], results['failed'])
    return True, results


def export_students_to_excel(students):
    """Export students data to Excel"""
    data = []
    for student in students:
        data.append({
            'NIS': student.nis,
            'NISN': student.nisn,
            'Nama': student.name,
            'JK': student.gender,
            'Kelas': student.class_name,
            'Tempat Lahir': student.birth_place,
            'Tanggal Lahir': student.birth_date.isoformat() if student.birth_date else '',
            'Alamat': student.address,
            'Nama Orang Tua': student.parent_name,
            'No HP Orang Tua': student.parent_phone,
            'Status': student.status,
        })
    return pd.DataFrame(data, columns=list(STUDENT_COLUMNS) + list(OPTIONAL_STUDENT_COLUMNS))


PAYMENT_COLUMNS = [
    'No Kuitansi', 'Tanggal', 'NIS', 'Nama Siswa', 'Kelas', 'Jenis Pembayaran',
    'Bulan', 'Tahun', 'Jumlah', 'Metode', 'Cicilan', 'Catatan',
]


def export_payments_to_excel(payments):
    data = []
    for payment in payments:
        installment = ''
        if payment.is_installment:
            installment = f'{payment.installment_number or "-"}/{payment.total_installments or "-"}'
        data.append({
            'No Kuitansi': payment.receipt_number,
            'Tanggal': format_date(payment.payment_date),
            'NIS': payment.student_nis,
            'Nama Siswa': payment.student_name,
            'Kelas': payment.class_name,
            'Jenis Pembayaran': payment.payment_type_name,
            'Bulan': month_name(payment.month) if payment.month else '-',
            'Tahun': payment.year,
            'Jumlah': payment.amount,
            'Metode': payment_method_label(payment.payment_method),
            'Cicilan': installment,
            'Catatan': payment.notes or '',
        })
    return pd.DataFrame(data, columns=PAYMENT_COLUMNS)


ARREARS_COLUMNS = [
    'No', 'NIS', 'Nama Siswa', 'Kelas', 'No HP Orang Tua',
    'Bulan Belum Bayar', 'Jumlah Bulan', 'Total Tunggakan',
]


def export_arrears_to_excel(statuses):
    data = []
    for number, status in enumerate(statuses, start=1):
        data.append({
            'No': number,
            'NIS': status.student_nis,
            'Nama Siswa': status.student_name,
            'Kelas': status.class_name,
            'No HP Orang Tua': status.parent_phone or '',
            'Bulan Belum Bayar': ', '.join(month_name(m) for m in status.unpaid_months),
            'Jumlah Bulan': len(status.unpaid_months),
            'Total Tunggakan': status.total_due,
        })
    return pd.DataFrame(data, columns=ARREARS_COLUMNS)


def export_tracking_to_excel(summary, details):
    """Summary sheet plus one detail sheet per fee type.

    ``details`` maps a fee type to its list of student statuses.
    """
    summary_df = pd.DataFrame([
        {
            'Jenis Pembayaran': item['paymentTypeName'],
            'Tipe': 'Bulanan' if item['isRecurring'] else 'Sekali Bayar',
            'Nominal': item['amount'],
            'Jumlah Siswa': item['totalStudents'],
            'Siswa Lunas': item['paidStudents'],
            'Total Terbayar': item['totalPaid'],
            'Total Tunggakan': item['totalDue'],
            'Progress (%)': item['progress'],
        }
        for item in summary
    ])
    taken = set()
    sheets = {sheet_title('Ringkasan', taken): summary_df}

    for payment_type, statuses in details.items():
        rows = []
        for status in statuses:
            row = {
                'NIS': status.student_nis,
                'Nama Siswa': status.student_name,
                'Kelas': status.class_name,
            }
            if payment_type.is_recurring:
                row['Bulan Lunas'] = ', '.join(month_name(m, short=True) for m in status.paid_months)
                row['Bulan Belum Bayar'] = ', '.join(month_name(m, short=True) for m in status.unpaid_months)
            else:
                row['Status'] = 'Lunas' if status.is_paid else 'Belum Lunas'
            row['Total Terbayar'] = status.total_paid
            row['Total Tunggakan'] = status.total_due
            rows.append(row)
        sheets[sheet_title(payment_type.name, taken, payment_type.id)] = pd.DataFrame(rows)
    return sheets


def export_ledger_to_excel(entries):
    data = [
        {
            'Tanggal': format_date(entry['paymentDate']),
            'No Kuitansi': entry['receiptNumber'],
            'NIS': entry['studentNis'],
            'Nama Siswa': entry['studentName'],
            'Keterangan': entry['paymentTypeName'] + (
                f" - {month_name(entry['month'])} {entry['year']}" if entry['month'] else ''
            ),
            'Jumlah': entry['amount'],
            'Saldo': entry['balance'],
        }
        for entry in entries
    ]
    return pd.DataFrame(data, columns=[
        'Tanggal', 'No Kuitansi', 'NIS', 'Nama Siswa', 'Keterangan', 'Jumlah', 'Saldo'
    ])


def export_monthly_report_to_excel(report):
    df = pd.DataFrame([
        {
            'Jenis Pembayaran': item['paymentTypeName'],
            'Jumlah Transaksi': item['count'],
            'Jumlah Siswa': item['studentCount'],
            'Total': item['amount'],
        }
        for item in report['byPaymentType']
    ], columns=['Jenis Pembayaran', 'Jumlah Transaksi', 'Jumlah Siswa', 'Total'])
    total = pd.DataFrame([{
        'Jenis Pembayaran': 'TOTAL',
        'Jumlah Transaksi': report['totalPayments'],
        'Jumlah Siswa': report['uniqueStudents'],
        'Total': report['totalAmount'],
    }])
    return pd.concat([df, total], ignore_index=True)
