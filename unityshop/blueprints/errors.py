import traceback
from flask import Blueprint, jsonify, current_app

from unityshop.extensions import db
from unityshop.errors import StoreUnavailable, InvariantViolation

errors_bp = Blueprint('errors', __name__)

# app_errorhandler catches errors raised anywhere in the app, not only in this blueprint

@errors_bp.app_errorhandler(404)
def not_found_error(error):
    return jsonify({'status': 'error',
                    'message': getattr(error, 'description', 'Not found')}), 404

@errors_bp.app_errorhandler(403)
def forbidden_error(error):
    return jsonify({'status': 'error',
                    'message': getattr(error, 'description', 'You do not have permission for this action')}), 403

@errors_bp.app_errorhandler(StoreUnavailable)
def store_unavailable_error(error):
    current_app.logger.error(f"Store unavailable: {error}")
    return jsonify({'status': 'error',
                    'message': 'The store is temporarily unavailable, please retry.'}), 503

@errors_bp.app_errorhandler(InvariantViolation)
def invariant_error(error):
    db.session.rollback()
    current_app.logger.critical(f"Invariant violated: {error}")
    return jsonify({'status': 'error', 'message': 'Internal error'}), 500

@errors_bp.app_errorhandler(500)
def internal_error(error):
    db.session.rollback()
    current_app.logger.error(f"Internal Server Error: {error}")
    traceback.print_exc()
    return jsonify({'status': 'error', 'message': 'Internal server error'}), 500
