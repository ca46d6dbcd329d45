import logging

from flask import jsonify
from werkzeug.exceptions import HTTPException

from models.database import db

logger = logging.getLogger(__name__)


class ApiError(Exception):
    status_code = 400
    default_code = None

    def __init__(self, message, code=None, **extra):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.extra = extra

    def to_dict(self):
        body = {'error': self.message}
        if self.code:
            body['code'] = self.code
        body.update(self.extra)
        return body


class ValidationError(ApiError):
    status_code = 400
    default_code = 'VALIDATION_ERROR'


class DuplicateKey(ApiError):
    status_code = 400
    default_code = 'DUPLICATE_KEY'


class NotFound(ApiError):
    status_code = 404
    default_code = 'NOT_FOUND'


class MonthAlreadySettled(ApiError):
    """A settled payment already closes the month (or one-time fee)."""
    status_code = 400
    default_code = 'MONTH_ALREADY_SETTLED'


class Unauthorized(ApiError):
    status_code = 401
    default_code = 'UNAUTHORIZED'


def register_error_handlers(app):
    @app.errorhandler(ApiError)
    def handle_api_error(error):
        db.session.rollback()
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        code = (error.name or 'error').upper().replace(' ', '_')
        return jsonify({'error': error.description, 'code': code}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        db.session.rollback()
        logger.exception('Unhandled error: %s', error)
        return jsonify({
            'error': f'Internal server error: {error}',
            'code': 'INTERNAL_ERROR'
        }), 500
