from flask import Blueprint, jsonify, request

from models.academic import AcademicYear, ClassInfo
from models.database import db
from models.student import Student
from utils import repository
from utils.decorators import admin_required
from utils.errors import ValidationError
from utils.validators import (get_json_body, id_arg, int_arg, is_blank,
                              pagination, parse_id)

classes_bp = Blueprint('classes', __name__)

GRADES = (7, 8, 9)


def _grade(value):
    try:
        grade = int(value)
    except (TypeError, ValueError):
        grade = None
    if grade not in GRADES:
        raise ValidationError('Grade must be 7, 8, or 9', 'INVALID_GRADE')
    return grade


def _academic_year_id(value):
    if value in (None, ''):
        return None
    year_id = parse_id(value, 'INVALID_ACADEMIC_YEAR_ID', 'Academic year ID must be a valid integer')
    if db.session.get(AcademicYear, year_id) is None:
        raise ValidationError('Academic year not found', 'INVALID_ACADEMIC_YEAR_ID')
    return year_id


@classes_bp.route('', methods=['GET'])
@admin_required
def list_classes():
    if request.args.get('id'):
        return jsonify(repository.classes.get(id_arg()).to_dict())

    limit, offset = pagination()
    filters = []
    grade = int_arg('grade')
    if grade is not None:
        filters.append(ClassInfo.grade == grade)
    academic_year_id = int_arg('academicYearId')
    if academic_year_id is not None:
        filters.append(ClassInfo.academic_year_id == academic_year_id)

    classes = repository.classes.list(filters, order_by=(ClassInfo.id,), limit=limit, offset=offset)
    return jsonify([c.to_dict() for c in classes])


@classes_bp.route('', methods=['POST'])
@admin_required
def create_class():
    data = get_json_body()
    if is_blank(data.get('name')):
        raise ValidationError('Name is required', 'MISSING_NAME')
    if data.get('grade') in (None, ''):
        raise ValidationError('Grade is required', 'MISSING_GRADE')

    class_info = repository.classes.create(
        name=data['name'],
        grade=_grade(data['grade']),
        academic_year_id=_academic_year_id(data.get('academicYearId'))
    )
    return jsonify(class_info.to_dict()), 201


@classes_bp.route('', methods=['PUT'])
@admin_required
def update_class():
    class_id = id_arg()
    data = get_json_body()
    class_info = repository.classes.get(class_id)

    fields = {}
    if 'name' in data:
        if is_blank(data['name']):
            raise ValidationError('Name is required', 'MISSING_NAME')
        fields['name'] = data['name']
    if 'grade' in data:
        fields['grade'] = _grade(data['grade'])
    if 'academicYearId' in data:
        fields['academic_year_id'] = _academic_year_id(data['academicYearId'])

    renamed = 'name' in fields and fields['name'].strip() != class_info.name
    repository.classes.update(class_info, **fields)

    if renamed:
        # Students carry a display copy of the class name
        Student.query.filter_by(class_id=class_info.id).update(
            {Student.class_name: class_info.name}, synchronize_session='fetch'
        )
        db.session.commit()
    return jsonify(class_info.to_dict())


@classes_bp.route('', methods=['DELETE'])
@admin_required
def delete_class():
    class_info = repository.classes.get(id_arg())

    active_students = class_info.active_student_count()
    if active_students:
        raise ValidationError(
            f'Class still has {active_students} active students',
            'CLASS_HAS_ACTIVE_STUDENTS',
            activeStudents=active_students
        )

    deleted = repository.classes.delete(class_info)
    return jsonify({'message': 'Class deleted successfully', 'deletedClass': deleted})
