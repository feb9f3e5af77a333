import traceback
from functools import wraps
from flask import abort, jsonify, request, current_app
from flask_login import current_user, login_required
from sqlalchemy import exc

from unityshop.extensions import db
from unityshop.constants import RejectionReason
from unityshop.errors import StoreUnavailable

def admin_required(f):
    @wraps(f)
    @login_required
    def decorated_function(*args, **kwargs):
        if not current_user.is_admin:
            abort(403, description="Admin access is required for this action.")
        return f(*args, **kwargs)
    return decorated_function

def json_body():
    return request.get_json(silent=True) or {}

def status_code_for(result):
    if result.get('status') != 'error':
        return 200
    reason = result.get('reason')
    if reason in RejectionReason.STOCK:
        return 409
    if reason == RejectionReason.ORDER_NOT_FOUND:
        return 404
    return 400

def result_response(result, success_code=200):
    """JSON response for a service result dict."""
    code = status_code_for(result)
    return jsonify(result), success_code if code == 200 else code

def server_error(e, context):
    db.session.rollback()
    if isinstance(e, (StoreUnavailable, exc.OperationalError)):
        current_app.logger.error(f"{context}: store unavailable: {e}")
        return jsonify({'status': 'error', 'message': 'The store is temporarily unavailable, please retry.'}), 503
    current_app.logger.error(f"{context}: {e}")
    traceback.print_exc()
    return jsonify({'status': 'error', 'message': f'Server error: {e}'}), 500
