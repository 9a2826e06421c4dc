"""
Bearer token (JWT HS256) cho API

Client gửi header: Authorization: Bearer <token>
Flask-Login đọc token qua request_loader nên login_required/current_user dùng như bình thường.
"""
from datetime import datetime, timedelta
from flask import current_app, jsonify
import jwt

from quizmaster import db, login_manager


def create_token(user):
    """Tạo access token cho user"""
    now = datetime.utcnow()
    payload = {
        'sub': str(user.id),
        'role': user.role,
        'iat': now,
        'exp': now + timedelta(hours=current_app.config['TOKEN_EXPIRES_HOURS']),
    }
    return jwt.encode(payload, current_app.config['SECRET_KEY'],
                      algorithm=current_app.config['TOKEN_ALGORITHM'])


def decode_token(token):
    """Giải mã token, trả về payload hoặc None nếu sai/hết hạn"""
    try:
        return jwt.decode(token, current_app.config['SECRET_KEY'],
                          algorithms=[current_app.config['TOKEN_ALGORITHM']])
    except jwt.ExpiredSignatureError:
        current_app.logger.info('Rejected expired token')
        return None
    except jwt.InvalidTokenError as e:
        current_app.logger.warning(f'Rejected invalid token: {e}')
        return None


@login_manager.request_loader
def load_user_from_request(request):
    """Lấy user từ header Authorization"""
    from quizmaster.models import User

    header = request.headers.get('Authorization', '')
    scheme, _, token = header.partition(' ')
    if scheme.lower() != 'bearer' or not token:
        return None

    payload = decode_token(token.strip())
    if not payload:
        return None

    try:
        user_id = int(payload.get('sub'))
    except (TypeError, ValueError):
        return None

    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        return None
    return user


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({'message': 'Authentication required'}), 401
