import logging

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError

from models.academic import AcademicYear, ClassInfo
from models.database import db
from models.payment import Payment, PaymentType
from models.settings import SchoolInfo
from models.student import Student
from utils.errors import DuplicateKey, NotFound

logger = logging.getLogger(__name__)

# Children before parents, so foreign keys never dangle mid-delete
DELETE_ORDER = [
    ('payments', Payment),
    ('students', Student),
    ('paymentTypes', PaymentType),
    ('classes', ClassInfo),
    ('academicYears', AcademicYear),
    ('schoolInfo', SchoolInfo),
]


def _clean(fields):
    return {
        key: value.strip() if isinstance(value, str) else value
        for key, value in fields.items()
    }


class Repository:
    """Create/read/update/delete for one model.

    Every write commits its own unit of work; validation happens before
    anything touches the session.
    """

    def __init__(self, model, label, not_found_code='NOT_FOUND'):
        self.model = model
        self.label = label
        self.not_found_code = not_found_code

    def list(self, filters=(), order_by=(), limit=None, offset=0):
        query = self.model.query
        for condition in filters:
            query = query.filter(condition)
        if order_by:
            query = query.order_by(*order_by)
        if offset:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def get(self, record_id):
        record = db.session.get(self.model, record_id)
        if record is None:
            raise NotFound(f'{self.label} not found', self.not_found_code)
        return record

    def ensure_unique(self, column, value, code, message, exclude_id=None):
        if value is None:
            return
        query = self.model.query.filter(column == (value.strip() if isinstance(value, str) else value))
        if exclude_id is not None:
            query = query.filter(self.model.id != exclude_id)
        if query.first() is not None:
            raise DuplicateKey(message, code)

    def create(self, **fields):
        record = self.model(**_clean(fields))
        db.session.add(record)
        db.session.commit()
        logger.debug('Created %r', record)
        return record

    def update(self, record, **fields):
        for key, value in _clean(fields).items():
            setattr(record, key, value)
        db.session.commit()
        return record

    def delete(self, record):
        snapshot = record.to_dict()
        db.session.delete(record)
        db.session.commit()
        logger.info('Deleted %s %s', self.label, snapshot.get('id'))
        return snapshot


def clear_all_tables():
    """Delete every row, table by table, in dependency order.

    Returns the names cleared and the failures; a failing table does not
    stop the remaining ones.
    """
    cleared, failed = [], []
    for name, model in DELETE_ORDER:
        try:
            model.query.delete(synchronize_session=False)
            db.session.commit()
            cleared.append(name)
            logger.info('Cleared table: %s', name)
        except DBAPIError as e:
            db.session.rollback()
            logger.error('Error clearing table %s: %s', name, e)
            failed.append({'table': name, 'error': str(e)})
    return cleared, failed


def reset_sequences():
    """Restart id counters so re-imported rows get clean sequential ids."""
    tables = [model.__tablename__ for _, model in DELETE_ORDER]
    dialect = db.engine.dialect.name
    try:
        if dialect == 'sqlite':
            names = ', '.join(f"'{table}'" for table in tables)
            db.session.execute(text(f'DELETE FROM sqlite_sequence WHERE name IN ({names})'))
        elif dialect == 'postgresql':
            for table in tables:
                db.session.execute(text(f'ALTER SEQUENCE {table}_id_seq RESTART WITH 1'))
        else:
            logger.info('Sequence reset not supported for %s, skipped', dialect)
            return False
        db.session.commit()
        logger.info('Reset autoincrement counters')
        return True
    except DBAPIError as e:
        db.session.rollback()
        logger.info('Sequence reset skipped: %s', e)
        return False


academic_years = Repository(AcademicYear, 'Academic year')
classes = Repository(ClassInfo, 'Class')
students = Repository(Student, 'Student', 'STUDENT_NOT_FOUND')
payment_types = Repository(PaymentType, 'Payment type')
payments = Repository(Payment, 'Payment')
school_info = Repository(SchoolInfo, 'School info', 'SCHOOL_INFO_NOT_FOUND')
