from flask import current_app, request

from utils.errors import ValidationError
from utils.formatters import parse_date


def get_json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object', 'INVALID_BODY')
    return data


def clean_str(value):
    if value is None:
        return None
    return str(value).strip()


def is_blank(value):
    return value is None or (isinstance(value, str) and value.strip() == '')


def require_fields(data, fields, code='MISSING_REQUIRED_FIELD'):
    for field in fields:
        if is_blank(data.get(field)):
            raise ValidationError(f'{field} is required', code)


def parse_id(value, code='INVALID_ID', message='Valid ID is required'):
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(message, code)


def id_arg():
    """The ``?id=N`` query parameter used by PUT/DELETE."""
    return parse_id(request.args.get('id'))


def int_arg(name, code=None):
    """Optional integer query filter.

    Malformed values are ignored unless ``code`` is given, in which case
    they are rejected.
    """
    raw = request.args.get(name)
    if raw in (None, ''):
        return None
    try:
        return int(raw)
    except ValueError:
        if code:
            raise ValidationError(f'Valid {name} is required', code)
        return None


def pagination(default_limit=None, max_limit=None):
    default_limit = default_limit or current_app.config['DEFAULT_PAGE_SIZE']
    max_limit = max_limit or current_app.config['MAX_PAGE_SIZE']
    try:
        limit = int(request.args.get('limit', default_limit))
        offset = int(request.args.get('offset', 0))
    except ValueError:
        raise ValidationError('limit and offset must be integers', 'INVALID_PAGINATION')
    if limit < 1 or offset < 0:
        raise ValidationError('limit must be positive and offset non-negative', 'INVALID_PAGINATION')
    return min(limit, max_limit), offset


def parse_bool(value, field, code):
    if not isinstance(value, bool):
        raise ValidationError(f'{field} must be a boolean value', code)
    return value


def parse_positive_int(value, field, code='INVALID_AMOUNT'):
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f'{field} must be a positive integer', code)
    return value


def parse_month(value, code='INVALID_MONTH'):
    if value is None:
        return None
    try:
        month = int(value)
    except (TypeError, ValueError):
        raise ValidationError('month must be between 1 and 12', code)
    if month < 1 or month > 12:
        raise ValidationError('month must be between 1 and 12', code)
    return month


def parse_date_field(value, field, code):
    try:
        return parse_date(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be a date (YYYY-MM-DD)', code)


def allowed_file(filename):
    return '.' in filename and \
        filename.rsplit('.', 1)[1].lower() in current_app.config['ALLOWED_EXTENSIONS']
