"""
Authentication Routes
JSON registration, login, logout and current-user endpoints.
"""

import logging
import re
from datetime import datetime

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user
from sqlalchemy.exc import SQLAlchemyError

from models import User, db

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__, url_prefix='/auth')


def is_valid_email(email):
    """Validate email format."""
    pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
    return re.match(pattern, email) is not None


def is_valid_password(password):
    """Validate password strength."""
    if len(password) < 8:
        return False, "Password must be at least 8 characters long"
    if not re.search(r'[A-Za-z]', password):
        return False, "Password must contain at least one letter"
    if not re.search(r'[0-9]', password):
        return False, "Password must contain at least one number"
    return True, "Valid password"


@auth_bp.route('/register', methods=['POST'])
def register():
    data = request.get_json(silent=True) or {}
    email = (data.get('email') or '').strip().lower()
    username = (data.get('username') or '').strip() or None
    password = data.get('password') or ''

    errors = []
    if not email:
        errors.append("Email is required")
    elif not is_valid_email(email):
        errors.append("Please enter a valid email address")
    elif db.session.query(User).filter_by(email=email).first():
        errors.append("An account with this email already exists")

    if not password:
        errors.append("Password is required")
    else:
        valid, message = is_valid_password(password)
        if not valid:
            errors.append(message)

    if errors:
        return jsonify({'success': False, 'message': errors[0], 'errors': errors}), 400

    try:
        user = User(email=email, username=username)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Registration failed for {email}: {e}")
        return jsonify({'success': False, 'message': 'Registration failed'}), 500

    login_user(user)
    logger.info(f"New user registered: {user.id}")
    return jsonify({'success': True, 'user': user.to_dict()}), 201


@auth_bp.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''

    if not email or not password:
        return jsonify({'success': False, 'message': 'Email and password are required'}), 400

    user = db.session.query(User).filter_by(email=email).first()
    if user is None or not user.check_password(password):
        logger.info(f"Failed login attempt for {email}")
        return jsonify({'success': False, 'message': 'Invalid email or password'}), 401
    if not user.is_active:
        return jsonify({'success': False, 'message': 'Account is inactive'}), 403

    login_user(user, remember=bool(data.get('remember')))
    user.last_login = datetime.now()
    db.session.commit()
    return jsonify({'success': True, 'user': user.to_dict()})


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify({'success': True, 'message': 'Logged out'})


@auth_bp.route('/me', methods=['GET'])
@login_required
def me():
    return jsonify({'success': True, 'user': current_user.to_dict()})
