"""Whole-database export, import and reset."""
import logging
from datetime import datetime

from models.academic import AcademicYear, ClassInfo
from models.database import db
from models.payment import Payment, PaymentType
from models.settings import SchoolInfo
from models.student import Student
from utils.repository import clear_all_tables, reset_sequences

logger = logging.getLogger(__name__)

EXPORT_VERSION = '1.0'

# Insertion order: parents first
IMPORT_ORDER = [
    ('academicYears', AcademicYear),
    ('classes', ClassInfo),
    ('paymentTypes', PaymentType),
    ('students', Student),
    ('payments', Payment),
    ('schoolInfo', SchoolInfo),
]


def export_database():
    data = {}
    counts = {}
    for name, model in IMPORT_ORDER:
        rows = [record.to_dict() for record in model.query.order_by(model.id).all()]
        data[name] = rows
        counts[name] = len(rows)
    logger.info('Database export counts: %s', counts)

    return {
        'success': True,
        'data': data,
        'metadata': {
            'exportedAt': datetime.utcnow().isoformat() + 'Z',
            'totalRecords': sum(counts.values()),
            'counts': counts,
            'version': EXPORT_VERSION,
        }
    }


def _rows(data, name):
    rows = data.get(name)
    return rows if isinstance(rows, list) else []


def _insert(model, row):
    record = model.from_dict(row)
    db.session.add(record)
    db.session.flush()
    return record


def import_database(data):
    """Replace every table with ``data`` (the ``data`` object of an export).

    Rows are inserted without their ids and foreign keys are rewritten
    through old-id to new-id maps. A class or student pointing at a parent
    missing from the payload gets null; a payment keeps the raw value.
    """
    _, failed = clear_all_tables()
    if failed:
        raise RuntimeError(f"could not clear tables: {', '.join(f['table'] for f in failed)}")
    reset_sequences()

    imported = {name: 0 for name, _ in IMPORT_ORDER}
    id_maps = {name: {} for name, _ in IMPORT_ORDER}

    def remember(name, row, record):
        if row.get('id') is not None:
            id_maps[name][row['id']] = record.id
        imported[name] += 1

    try:
        for row in _rows(data, 'academicYears'):
            remember('academicYears', row, _insert(AcademicYear, row))

        for row in _rows(data, 'classes'):
            row = dict(row)
            if row.get('academicYearId'):
                row['academicYearId'] = id_maps['academicYears'].get(row['academicYearId'])
            remember('classes', row, _insert(ClassInfo, row))

        for row in _rows(data, 'paymentTypes'):
            remember('paymentTypes', row, _insert(PaymentType, row))

        for row in _rows(data, 'students'):
            row = dict(row)
            if row.get('classId'):
                row['classId'] = id_maps['classes'].get(row['classId'])
            remember('students', row, _insert(Student, row))

        for row in _rows(data, 'payments'):
            row = dict(row)
            for key, name in (('studentId', 'students'),
                              ('paymentTypeId', 'paymentTypes'),
                              ('academicYearId', 'academicYears')):
                if row.get(key):
                    row[key] = id_maps[name].get(row[key], row[key])
            db.session.add(Payment.from_dict(row))
            imported['payments'] += 1

        for row in _rows(data, 'schoolInfo'):
            db.session.add(SchoolInfo.from_dict(row))
            imported['schoolInfo'] += 1

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info('Database import completed: %s', imported)
    return imported


def reset_database():
    cleared, failed = clear_all_tables()
    reset_sequences()
    logger.info('Database reset: cleared %s, failed %s', cleared, [f['table'] for f in failed])
    return cleared, failed
