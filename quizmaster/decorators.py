from functools import wraps
from flask import jsonify
from flask_login import current_user, login_required


def role_required(*roles):
    """
    Decorator kiểm tra role của user (route guard phía server)

    Chưa đăng nhập → 401, sai role → 403

    Usage:
        @role_required('admin')
        def delete_quiz(id): ...
    """
    def decorator(f):
        @wraps(f)
        @login_required
        def decorated_function(*args, **kwargs):
            if current_user.role not in roles:
                return jsonify({'message': 'You do not have permission to access this resource'}), 403
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def admin_required(f):
    """Chỉ admin"""
    return role_required('admin')(f)
