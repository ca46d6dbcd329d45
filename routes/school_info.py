import re

from flask import Blueprint, jsonify

from models.settings import SchoolInfo
from utils import repository
from utils.decorators import admin_required
from utils.errors import NotFound, ValidationError
from utils.validators import get_json_body, id_arg, is_blank

school_info_bp = Blueprint('school_info', __name__)

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')

# body key -> (column, code when missing, label)
FIELDS = {
    'name': ('name', 'MISSING_NAME', 'School name'),
    'address': ('address', 'MISSING_ADDRESS', 'School address'),
    'phone': ('phone', 'MISSING_PHONE', 'School phone'),
    'email': ('email', 'MISSING_EMAIL', 'School email'),
    'principalName': ('principal_name', 'MISSING_PRINCIPAL_NAME', 'Principal name'),
    'npsn': ('npsn', 'MISSING_NPSN', 'NPSN'),
}


def _email(value):
    email = str(value).strip().lower()
    if not EMAIL_PATTERN.match(email):
        raise ValidationError('Invalid email format', 'INVALID_EMAIL')
    return email


def _school_fields(data, partial=False):
    fields = {}
    for key, (column, code, label) in FIELDS.items():
        if key not in data and partial:
            continue
        if is_blank(data.get(key)):
            raise ValidationError(f'{label} is required', code)
        fields[column] = str(data[key]).strip()
    if 'email' in fields:
        fields['email'] = _email(fields['email'])
    if 'logo' in data:
        fields['logo'] = data['logo'] or None
    return fields


@school_info_bp.route('', methods=['GET'])
@admin_required
def get_school_info():
    school = SchoolInfo.current()
    if school is None:
        raise NotFound('School info not found', 'SCHOOL_INFO_NOT_FOUND')
    return jsonify(school.to_dict())


@school_info_bp.route('', methods=['POST'])
@admin_required
def save_school_info():
    """Create the school identity, or overwrite the existing one."""
    fields = _school_fields(get_json_body())

    school = SchoolInfo.current()
    if school is None:
        school = repository.school_info.create(**fields)
    else:
        repository.school_info.update(school, **fields)
    return jsonify(school.to_dict())


@school_info_bp.route('', methods=['PUT'])
@admin_required
def update_school_info():
    school_id = id_arg()
    fields = _school_fields(get_json_body(), partial=True)

    school = repository.school_info.get(school_id)
    repository.school_info.update(school, **fields)
    return jsonify(school.to_dict())
