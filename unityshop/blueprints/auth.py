from flask import Blueprint, request, jsonify, current_app
from flask_login import login_user, logout_user, current_user, login_required
from flask_wtf.csrf import generate_csrf

from unityshop.extensions import db, login_manager
from unityshop.models import User

auth_bp = Blueprint('auth', __name__, url_prefix='/auth')

@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({'status': 'error', 'message': 'Please log in first'}), 401

@auth_bp.route('/csrf-token', methods=['GET'])
def csrf_token():
    # Back-office clients send this back in the X-CSRFToken header
    return jsonify({'csrf_token': generate_csrf()})

@auth_bp.route('/login', methods=['POST'])
def login():
    if current_user.is_authenticated:
        return jsonify({'status': 'success', 'username': current_user.username, 'is_admin': current_user.is_admin})

    data = request.get_json(silent=True) or request.form
    username = (data.get('username') or '').strip()
    password = data.get('password') or ''

    user = User.query.filter_by(username=username).first()
    if not user or not user.check_password(password):
        current_app.logger.warning(f"Failed login for '{username}'")
        return jsonify({'status': 'error', 'message': 'Invalid username or password'}), 401

    login_user(user)
    current_app.logger.info(f"User '{username}' logged in")
    return jsonify({'status': 'success', 'username': user.username, 'is_admin': user.is_admin})

@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify({'status': 'success', 'message': 'Logged out'})

@auth_bp.route('/change_password', methods=['POST'])
@login_required
def change_password():
    data = request.get_json(silent=True) or {}
    current_pw = data.get('current_password')
    new_pw = data.get('new_password')

    if not current_pw or not new_pw:
        return jsonify({'status': 'error', 'message': 'Current and new password are required'}), 400

    if not current_user.check_password(current_pw):
        return jsonify({'status': 'error', 'message': 'Current password is incorrect'}), 400

    current_user.set_password(new_pw)
    db.session.commit()

    return jsonify({'status': 'success', 'message': 'Password changed'})
