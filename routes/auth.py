import logging

from flask import Blueprint, current_app, jsonify, request
from flask_login import login_user, logout_user
from werkzeug.security import check_password_hash, generate_password_hash

from models.database import db
from models.settings import AdminSettings
from utils.decorators import admin_required
from utils.errors import ValidationError
from utils.validators import get_json_body

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__)


def get_admin_settings():
    """The single AdminSettings row, created with the default password if missing."""
    settings = AdminSettings.query.order_by(AdminSettings.id).first()
    if settings is None:
        config = current_app.config
        settings = AdminSettings(
            username=config['DEFAULT_ADMIN_USERNAME'],
            password=generate_password_hash(config['DEFAULT_ADMIN_PASSWORD']),
            app_name=config['DEFAULT_APP_NAME']
        )
        db.session.add(settings)
        db.session.commit()
        logger.info('Created default admin settings')
    return settings


@auth_bp.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}
    password = data.get('password')

    settings = get_admin_settings()
    if isinstance(password, str) and check_password_hash(settings.password, password):
        login_user(settings)
        return jsonify({'success': True})

    logger.warning('Failed admin login attempt')
    return jsonify({'error': 'Password salah'}), 401


@auth_bp.route('/logout', methods=['POST'])
def logout():
    logout_user()
    return jsonify({'success': True})


@auth_bp.route('/settings', methods=['GET'])
def get_settings():
    return jsonify(get_admin_settings().to_dict())


@auth_bp.route('/settings', methods=['POST'])
@admin_required
def update_settings():
    data = get_json_body()
    settings = get_admin_settings()

    password = data.get('password')
    if password is not None:
        if not isinstance(password, str) or not password.strip():
            raise ValidationError('Password cannot be empty', 'INVALID_PASSWORD')
        settings.password = generate_password_hash(password)

    if data.get('appName'):
        settings.app_name = str(data['appName']).strip()
    if 'appLogo' in data:
        settings.app_logo = data['appLogo']

    db.session.commit()
    return jsonify(settings.to_dict())
