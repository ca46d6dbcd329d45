import logging

from flask import Blueprint, jsonify, request
from sqlalchemy import or_

from models.academic import ClassInfo
from models.database import db
from models.student import GENDERS, STUDENT_STATUSES, Student
from utils import repository
from utils.decorators import admin_required
from utils.errors import NotFound, ValidationError
from utils.excel_handler import (export_students_to_excel,
                                 import_students_from_excel, xlsx_response)
from utils.validators import (allowed_file, get_json_body, id_arg, int_arg,
                              is_blank, pagination, parse_date_field, parse_id,
                              require_fields)

logger = logging.getLogger(__name__)

student_bp = Blueprint('student', __name__)

REQUIRED_FIELDS = [
    'nis', 'nisn', 'name', 'gender', 'className', 'birthPlace',
    'birthDate', 'address', 'parentName', 'parentPhone',
]
TEXT_FIELDS = {
    'nis': 'nis',
    'nisn': 'nisn',
    'name': 'name',
    'className': 'class_name',
    'birthPlace': 'birth_place',
    'address': 'address',
    'parentName': 'parent_name',
    'parentPhone': 'parent_phone',
}


def _validate_status(status):
    if status not in STUDENT_STATUSES:
        raise ValidationError(
            'Status must be "active", "inactive", or "graduated"', 'INVALID_STATUS'
        )


def _class_id(value):
    if value in (None, '', 0):
        return None
    class_id = parse_id(value, 'INVALID_CLASS_ID', 'Valid classId is required')
    if db.session.get(ClassInfo, class_id) is None:
        raise ValidationError('Class not found', 'INVALID_CLASS_ID')
    return class_id


def _student_fields(data):
    """Map the camelCase body onto column values, validating what is present."""
    fields = {}
    for key, column in TEXT_FIELDS.items():
        if key in data:
            if is_blank(data[key]):
                raise ValidationError(f'{key} is required', 'MISSING_REQUIRED_FIELD')
            fields[column] = str(data[key]).strip()

    if 'gender' in data:
        if data['gender'] not in GENDERS:
            raise ValidationError('Gender must be "L" or "P"', 'INVALID_GENDER')
        fields['gender'] = data['gender']

    if 'status' in data and data['status'] is not None:
        _validate_status(data['status'])
        fields['status'] = data['status']

    if 'birthDate' in data:
        fields['birth_date'] = parse_date_field(data['birthDate'], 'birthDate', 'INVALID_BIRTH_DATE')

    if 'classId' in data:
        fields['class_id'] = _class_id(data['classId'])
    return fields


def _ensure_unique_numbers(fields, exclude_id=None):
    repository.students.ensure_unique(
        Student.nis, fields.get('nis'), 'DUPLICATE_NIS', 'NIS already exists', exclude_id
    )
    repository.students.ensure_unique(
        Student.nisn, fields.get('nisn'), 'DUPLICATE_NISN', 'NISN already exists', exclude_id
    )


@student_bp.route('', methods=['GET'])
@admin_required
def list_students():
    if request.args.get('id'):
        return jsonify(repository.students.get(id_arg()).to_dict())

    limit, offset = pagination()
    filters = []
    status = request.args.get('status')
    if status:
        filters.append(Student.status == status)
    class_id = int_arg('classId', code='INVALID_CLASS_ID')
    if class_id is not None:
        filters.append(Student.class_id == class_id)
    search = (request.args.get('search') or '').strip()
    if search:
        filters.append(or_(Student.name.ilike(f'%{search}%'), Student.nis.ilike(f'%{search}%')))

    students = repository.students.list(
        filters, order_by=(Student.created_at.desc(), Student.id.desc()), limit=limit, offset=offset
    )
    return jsonify([s.to_dict() for s in students])


@student_bp.route('', methods=['POST'])
@admin_required
def create_student():
    data = get_json_body()
    require_fields(data, REQUIRED_FIELDS)
    fields = _student_fields(data)
    fields.setdefault('status', 'active')
    _ensure_unique_numbers(fields)

    student = repository.students.create(**fields)
    logger.info('Student created: %s (%s)', student.name, student.nis)
    return jsonify(student.to_dict()), 201


@student_bp.route('', methods=['PUT'])
@admin_required
def update_student():
    student_id = id_arg()
    data = get_json_body()
    student = repository.students.get(student_id)

    fields = _student_fields(data)
    _ensure_unique_numbers(fields, exclude_id=student.id)
    repository.students.update(student, **fields)
    return jsonify(student.to_dict())


@student_bp.route('', methods=['DELETE'])
@admin_required
def delete_student():
    student = repository.students.get(id_arg())
    deleted = repository.students.delete(student)
    return jsonify({'message': 'Student deleted successfully', 'student': deleted})


@student_bp.route('/batch', methods=['POST'])
@admin_required
def batch_update():
    data = get_json_body()
    updates = data.get('updates')
    if updates is None:
        raise ValidationError('Updates array is required', 'MISSING_UPDATES_ARRAY')
    if not isinstance(updates, list):
        raise ValidationError('Updates must be an array', 'INVALID_UPDATES_TYPE')
    if not updates:
        raise ValidationError('Updates array cannot be empty', 'EMPTY_UPDATES_ARRAY')

    for i, update in enumerate(updates):
        if not isinstance(update, dict) or not update.get('id'):
            raise ValidationError(f'Update at index {i} is missing required field: id', 'MISSING_STUDENT_ID')
        if isinstance(update['id'], bool) or not isinstance(update['id'], int):
            raise ValidationError(f'Update at index {i} has invalid id', 'INVALID_STUDENT_ID')
        if 'status' in update and update['status'] not in STUDENT_STATUSES:
            raise ValidationError(
                f"Update at index {i} has invalid status. Must be one of: {', '.join(STUDENT_STATUSES)}",
                'INVALID_STATUS'
            )
        if not any(key in update for key in ('classId', 'className', 'status')):
            raise ValidationError(
                f'Update at index {i} must have at least one field to update (classId, className, or status)',
                'NO_FIELDS_TO_UPDATE'
            )

    # Look everything up first so a missing id leaves every row untouched
    targets = []
    for update in updates:
        student = db.session.get(Student, update['id'])
        if student is None:
            raise NotFound(f"Student not found with ID: {update['id']}", 'STUDENT_NOT_FOUND',
                           studentId=update['id'])
        targets.append((student, update))

    for student, update in targets:
        if 'classId' in update:
            student.class_id = update['classId'] or None
        if 'className' in update and update['className'] is not None:
            student.class_name = str(update['className']).strip()
        if 'status' in update:
            student.status = update['status']
    db.session.commit()

    logger.info('Batch updated %d students', len(targets))
    return jsonify([student.to_dict() for student, _ in targets])


def _next_class(current, classes, academic_year_id=None):
    """Class one grade up with the same section letter, e.g. 7A -> 8A."""
    for candidate in classes:
        if candidate.grade != current.grade + 1 or not candidate.name.endswith(current.section):
            continue
        if academic_year_id is not None and candidate.academic_year_id != academic_year_id:
            continue
        return candidate
    return None


@student_bp.route('/promote', methods=['POST'])
@admin_required
def promote_students():
    data = request.get_json(silent=True) or {}
    academic_year_id = None
    if data.get('academicYearId') is not None:
        academic_year_id = parse_id(data['academicYearId'], 'INVALID_ACADEMIC_YEAR_ID',
                                    'Valid academicYearId is required')

    classes = ClassInfo.query.order_by(ClassInfo.grade, ClassInfo.name).all()
    classes_by_id = {c.id: c for c in classes}

    promoted, graduated, skipped = [], [], []
    # Decide every move before applying any, so nobody is promoted twice
    moves = []
    for student in Student.query.filter_by(status='active').all():
        current = classes_by_id.get(student.class_id)
        if current is None:
            skipped.append(student.id)
            continue
        if current.grade >= 9:
            moves.append((student, None))
            continue
        target = _next_class(current, classes, academic_year_id)
        if target is None:
            skipped.append(student.id)
        else:
            moves.append((student, target))

    for student, target in moves:
        if target is None:
            student.status = 'graduated'
            graduated.append(student.id)
        else:
            student.class_id = target.id
            student.class_name = target.name
            promoted.append(student.id)
    db.session.commit()

    logger.info('Promotion: %d promoted, %d graduated, %d skipped',
                len(promoted), len(graduated), len(skipped))
    return jsonify({
        'success': True,
        'promoted': len(promoted),
        'graduated': len(graduated),
        'skipped': skipped,
    })


@student_bp.route('/import', methods=['POST'])
@admin_required
def import_students():
    if 'file' not in request.files:
        raise ValidationError('No file uploaded', 'MISSING_FILE')

    file = request.files['file']
    if file.filename == '' or not allowed_file(file.filename):
        raise ValidationError('Only .xlsx or .xls files are accepted', 'INVALID_FILE')

    success, result = import_students_from_excel(file)
    if not success:
        return jsonify({'success': False, 'message': result}), 400

    return jsonify({
        'success': True,
        'message': f"Import complete! Success: {result['success']}, Failed: {result['failed']}",
        'details': result
    })


@student_bp.route('/export', methods=['GET'])
@admin_required
def export_students():
    query = Student.query
    status = request.args.get('status')
    if status:
        query = query.filter_by(status=status)
    class_id = int_arg('classId', code='INVALID_CLASS_ID')
    if class_id is not None:
        query = query.filter_by(class_id=class_id)

    students = query.order_by(Student.class_name, Student.name).all()
    df = export_students_to_excel(students)
    return xlsx_response({'Siswa': df}, 'data_siswa.xlsx')
