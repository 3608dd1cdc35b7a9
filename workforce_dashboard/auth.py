from __future__ import annotations
from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user

from .extensions import db, login_manager
from .models import User

auth_bp = Blueprint('auth', __name__)


@login_manager.user_loader
def load_user(user_id: str):
    return db.session.get(User, int(user_id))


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({'error': 'authentication required'}), 401


@auth_bp.route('/login', methods=['POST'])
def login():
    if current_user.is_authenticated:
        return jsonify({'status': 'ok', 'user': current_user.email})

    payload = request.get_json(silent=True) or request.form
    email = (payload.get('email') or '').strip().lower()
    password = payload.get('password') or ''

    user = User.query.filter_by(email=email).first()
    if user and user.check_password(password):
        login_user(user)
        return jsonify({'status': 'ok', 'user': user.email, 'is_admin': bool(user.is_admin)})

    return jsonify({'error': 'Невірний email або пароль'}), 401


@auth_bp.route('/logout')
@login_required
def logout():
    logout_user()
    return jsonify({'status': 'ok'})
