import logging
import re

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import cast, or_, String

from models.academic import AcademicYear
from models.database import db
from models.payment import Payment
from utils import repository
from utils.decorators import admin_required
from utils.errors import NotFound, ValidationError
from utils.validators import (get_json_body, id_arg, is_blank, pagination,
                              parse_bool, parse_date_field)

logger = logging.getLogger(__name__)

academic_years_bp = Blueprint('academic_years', __name__)

YEAR_NAME = re.compile(r'^(\d{4})/(\d{4})$')


def _year_name(value, code):
    name = str(value).strip()
    match = YEAR_NAME.match(name)
    if not match or int(match.group(2)) != int(match.group(1)) + 1:
        raise ValidationError('Name must look like "2024/2025"', code)
    return name


def _page():
    config = current_app.config
    return pagination(config['DEFAULT_PAYMENT_PAGE_SIZE'], config['MAX_PAYMENT_PAGE_SIZE'])


@academic_years_bp.route('', methods=['GET'])
@admin_required
def list_academic_years():
    if request.args.get('id'):
        return jsonify(repository.academic_years.get(id_arg()).to_dict())

    limit, offset = _page()
    filters = []
    search = (request.args.get('search') or '').strip()
    if search:
        pattern = f'%{search}%'
        filters.append(or_(
            AcademicYear.name.ilike(pattern),
            cast(AcademicYear.start_date, String).ilike(pattern),
            cast(AcademicYear.end_date, String).ilike(pattern),
        ))

    years = repository.academic_years.list(
        filters, order_by=(AcademicYear.created_at.desc(), AcademicYear.id.desc()),
        limit=limit, offset=offset
    )
    return jsonify([y.to_dict() for y in years])


@academic_years_bp.route('/active', methods=['GET'])
@admin_required
def active_academic_year():
    year = AcademicYear.get_active()
    if year is None:
        raise NotFound('No active academic year found', 'NO_ACTIVE_ACADEMIC_YEAR')
    return jsonify(year.to_dict())


@academic_years_bp.route('', methods=['POST'])
@admin_required
def create_academic_year():
    data = get_json_body()
    if is_blank(data.get('name')) or not isinstance(data['name'], str):
        raise ValidationError('Name is required and must be a non-empty string', 'MISSING_NAME')
    if is_blank(data.get('startDate')):
        raise ValidationError('Start date is required', 'MISSING_START_DATE')
    if is_blank(data.get('endDate')):
        raise ValidationError('End date is required', 'MISSING_END_DATE')
    is_active = False
    if data.get('isActive') is not None:
        is_active = parse_bool(data['isActive'], 'isActive', 'INVALID_IS_ACTIVE')

    name = _year_name(data['name'], 'INVALID_NAME')
    start_date = parse_date_field(data['startDate'], 'startDate', 'INVALID_START_DATE')
    end_date = parse_date_field(data['endDate'], 'endDate', 'INVALID_END_DATE')
    if end_date <= start_date:
        raise ValidationError('End date must be after start date', 'INVALID_END_DATE')
    repository.academic_years.ensure_unique(
        AcademicYear.name, name, 'DUPLICATE_NAME', 'Academic year with this name already exists'
    )

    year = AcademicYear(name=name, start_date=start_date, end_date=end_date)
    db.session.add(year)
    db.session.flush()
    if is_active:
        year.activate()
    db.session.commit()

    logger.info('Academic year created: %s (active=%s)', year.name, year.is_active)
    return jsonify(year.to_dict()), 201


@academic_years_bp.route('', methods=['PUT'])
@admin_required
def update_academic_year():
    year_id = id_arg()
    data = get_json_body()
    year = repository.academic_years.get(year_id)

    if data.get('isActive') is not None:
        parse_bool(data['isActive'], 'isActive', 'INVALID_IS_ACTIVE')
    if 'name' in data:
        if not isinstance(data['name'], str) or is_blank(data['name']):
            raise ValidationError('Name must be a non-empty string', 'INVALID_NAME')
        name = _year_name(data['name'], 'INVALID_NAME')
        repository.academic_years.ensure_unique(
            AcademicYear.name, name, 'DUPLICATE_NAME',
            'Academic year with this name already exists', exclude_id=year.id
        )
        year.name = name
    if 'startDate' in data:
        year.start_date = parse_date_field(data['startDate'], 'startDate', 'INVALID_START_DATE')
    if 'endDate' in data:
        year.end_date = parse_date_field(data['endDate'], 'endDate', 'INVALID_END_DATE')

    if data.get('isActive') is True:
        year.activate()
    elif data.get('isActive') is False:
        year.is_active = False
    db.session.commit()
    return jsonify(year.to_dict())


@academic_years_bp.route('/<int:year_id>/activate', methods=['POST'])
@admin_required
def activate_academic_year(year_id):
    year = repository.academic_years.get(year_id)
    year.activate()
    db.session.commit()
    logger.info('Active academic year is now %s', year.name)
    return jsonify(year.to_dict())


@academic_years_bp.route('', methods=['DELETE'])
@admin_required
def delete_academic_year():
    year = repository.academic_years.get(id_arg())

    payment_count = Payment.query.filter_by(academic_year_id=year.id).count()
    if payment_count:
        raise ValidationError(
            f'Academic year still has {payment_count} payments',
            'ACADEMIC_YEAR_HAS_PAYMENTS',
            payments=payment_count
        )

    deleted = repository.academic_years.delete(year)
    return jsonify({'message': 'Academic year deleted successfully', 'deleted': deleted})
