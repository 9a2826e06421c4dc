from flask import Blueprint, jsonify, current_app
from flask_login import login_required, current_user
from quizmaster import db
from quizmaster.models import User, ROLE_USER, get_setting
from quizmaster.forms import LoginForm, RegisterForm
from quizmaster.auth.tokens import create_token
from quizmaster.utils import ApiError, validate_form
from datetime import datetime

auth_bp = Blueprint('auth', __name__)


# ==================== REGISTER ====================
@auth_bp.route('/register', methods=['POST'])
def register():
    """Đăng ký tài khoản user mới"""
    form = validate_form(RegisterForm())

    user = User(
        username=form.username.data.strip(),
        full_name=form.full_name.data.strip(),
        qualification=form.qualification.data,
        dob=form.dob.data,
        role=ROLE_USER
    )
    user.set_password(form.password.data)

    db.session.add(user)
    db.session.commit()

    current_app.logger.info(f'Registered user {user.username}')
    return jsonify({'message': 'User registered successfully', 'user': user.to_dict()}), 201


# ==================== LOGIN ====================
@auth_bp.route('/login', methods=['POST'])
def login():
    """Đăng nhập - CÓ GIỚI HẠN SỐ LẦN SAI VÀ KHÓA TÀI KHOẢN"""
    form = validate_form(LoginForm())

    max_attempts = int(get_setting('login_attempt_limit', '5'))
    lockout_minutes = current_app.config['LOGIN_LOCKOUT_MINUTES']
    now = datetime.utcnow()

    user = User.query.filter_by(username=form.username.data.strip()).first()

    if user and user.is_locked(now):
        remaining = int((user.locked_until - now).total_seconds())
        raise ApiError(f'Account is locked. Try again in {remaining // 60} minutes {remaining % 60} seconds.', 429)

    if not user or not user.check_password(form.password.data):
        current_app.logger.warning(f'Failed login for {form.username.data!r}')
        if user:
            remaining = user.register_failed_login(max_attempts, lockout_minutes, now)
            db.session.commit()
            if remaining == 0:
                raise ApiError(f'Account locked for {lockout_minutes} minutes after '
                               f'{max_attempts} failed attempts', 429)
        raise ApiError('Invalid username or password', 401)

    if not user.is_active:
        raise ApiError('Account is disabled', 403)

    user.reset_failed_logins()
    db.session.commit()

    return jsonify({'token': create_token(user), 'user': user.to_dict()})


# ==================== CURRENT USER ====================
@auth_bp.route('/me')
@login_required
def me():
    """Profile của user đang đăng nhập"""
    return jsonify(current_user.to_dict())
