"""
Helpers dùng chung: lỗi API, format thời gian, đọc form
"""
from flask import current_app
import pytz


class ApiError(Exception):
    """Lỗi trả về client dạng JSON {message, errors}"""

    def __init__(self, message, status_code=400, errors=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.errors = errors

    def to_dict(self):
        data = {'message': self.message}
        if self.errors:
            data['errors'] = self.errors
        return data


def validate_form(form):
    """Validate FlaskForm, raise ApiError 400 kèm lỗi từng field"""
    if not form.validate_on_submit():
        raise ApiError('Invalid input', 400, errors=form.errors)
    return form


def get_json_body():
    """Lấy JSON body dạng dict, body rỗng/sai kiểu → {}"""
    from flask import request
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


# ==================== TIMEZONE ====================
def utc_to_local(dt):
    """Chuyển UTC datetime (naive) sang múi giờ APP_TIMEZONE"""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = pytz.utc.localize(dt)
    tz = current_app.config.get('APP_TZ') or pytz.utc
    return dt.astimezone(tz)


def isoformat(dt):
    """ISO 8601 cho datetime UTC lưu trong DB"""
    if dt is None:
        return None
    return dt.isoformat() + ('Z' if dt.tzinfo is None else '')
