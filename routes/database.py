import logging
from datetime import datetime

from flask import Blueprint, jsonify, request

from utils.backup import export_database, import_database, reset_database
from utils.decorators import admin_required

logger = logging.getLogger(__name__)

database_bp = Blueprint('database', __name__)


@database_bp.route('/export', methods=['GET', 'POST'])
@admin_required
def export():
    try:
        return jsonify(export_database())
    except Exception as e:
        logger.exception('Database export failed')
        return jsonify({
            'success': False,
            'error': f'Failed to export database: {e}',
            'code': 'EXPORT_ERROR'
        }), 500


@database_bp.route('/import', methods=['POST'])
@admin_required
def import_data():
    body = request.get_json(silent=True) or {}
    data = body.get('data') if isinstance(body, dict) else None
    if not isinstance(data, dict):
        return jsonify({
            'error': 'Data object is required in request body',
            'code': 'MISSING_DATA_OBJECT'
        }), 400

    try:
        imported = import_database(data)
    except Exception as e:
        logger.exception('Database import failed')
        return jsonify({
            'success': False,
            'error': f'Failed to import data: {e}',
            'code': 'IMPORT_ERROR'
        }), 500

    return jsonify({
        'success': True,
        'message': 'Data imported successfully',
        'imported': imported
    })


@database_bp.route('/reset', methods=['POST'])
@admin_required
def reset():
    cleared, failed = reset_database()
    if failed:
        return jsonify({
            'success': False,
            'message': 'Some tables failed to clear',
            'tablesCleared': cleared,
            'tablesFailed': failed,
            'error': f'Failed to clear {len(failed)} table(s)'
        }), 500

    return jsonify({
        'success': True,
        'message': 'All data deleted successfully',
        'tablesCleared': cleared,
        'timestamp': datetime.utcnow().isoformat() + 'Z'
    })
