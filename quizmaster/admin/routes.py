from flask import Blueprint, jsonify, request, current_app
from flask_login import current_user
from slugify import slugify
from quizmaster import db
from quizmaster.models import (User, Subject, Chapter, Quiz, Question, Score,
                               ROLE_USER, get_setting, set_setting)
from quizmaster.forms import (SubjectForm, SubjectUpdateForm, ChapterForm, ChapterUpdateForm,
                              UserAdminForm)
from quizmaster.decorators import admin_required
from quizmaster.quiz.engine import parse_time_duration
from quizmaster.utils import ApiError, validate_form, get_json_body

admin_bp = Blueprint('admin', __name__)

# Các key admin được phép sửa qua API, kèm hàm kiểm tra giá trị
EDITABLE_SETTINGS = {
    'default_time_duration': parse_time_duration,
    'default_pass_percentage': lambda v: 0 <= float(v) <= 100 or _raise('must be between 0 and 100'),
    'login_attempt_limit': lambda v: 3 <= int(v) <= 10 or _raise('must be between 3 and 10'),
}


def _raise(message):
    raise ValueError(message)


# ==================== DASHBOARD ====================
@admin_bp.route('/admin/summary')
@admin_required
def summary():
    """Dashboard admin: đếm số lượng + kết quả gần nhất"""
    recent_scores = Score.query.order_by(Score.time_stamp_of_attempt.desc(), Score.id.desc()).limit(
        current_app.config['RECENT_SCORES_LIMIT']).all()

    return jsonify({
        'total_users': User.query.filter_by(role=ROLE_USER).count(),
        'total_subjects': Subject.query.count(),
        'total_chapters': Chapter.query.count(),
        'total_quizzes': Quiz.query.count(),
        'total_questions': Question.query.count(),
        'total_scores': Score.query.count(),
        'recent_scores': [s.to_dict() for s in recent_scores],
    })


# ==================== CÀI ĐẶT ====================
@admin_bp.route('/admin/settings')
@admin_required
def settings():
    config = current_app.config
    return jsonify({
        'default_time_duration': get_setting('default_time_duration', config['DEFAULT_TIME_DURATION']),
        'default_pass_percentage': float(get_setting('default_pass_percentage',
                                                     config['DEFAULT_PASS_PERCENTAGE'])),
        'login_attempt_limit': int(get_setting('login_attempt_limit', '5')),
    })


@admin_bp.route('/admin/settings', methods=['PUT'])
@admin_required
def update_settings():
    """Cập nhật settings (chỉ các key trong EDITABLE_SETTINGS)"""
    body = get_json_body()
    unknown = sorted(set(body) - set(EDITABLE_SETTINGS))
    if unknown:
        raise ApiError(f'Unknown settings: {", ".join(unknown)}', 400)

    errors = {}
    for key, value in body.items():
        try:
            EDITABLE_SETTINGS[key](str(value))
        except (TypeError, ValueError) as e:
            errors[key] = [str(e)]
    if errors:
        raise ApiError('Invalid settings', 400, errors=errors)

    for key, value in body.items():
        set_setting(key, value, group='quiz' if key.startswith('default_') else 'security')
    db.session.commit()

    current_app.logger.info(f'Settings updated by {current_user.username}: {sorted(body)}')
    return settings()


# ==================== QUẢN LÝ MÔN HỌC ====================
@admin_bp.route('/subjects', methods=['POST'])
@admin_required
def add_subject():
    """Thêm môn học mới"""
    form = validate_form(SubjectForm())
    name = form.name.data.strip()

    if Subject.query.filter((Subject.name == name) | (Subject.slug == slugify(name))).first():
        raise ApiError('Subject already exists', 400)

    subject = Subject(description=form.description.data)
    subject.set_name(name)
    db.session.add(subject)
    db.session.commit()

    current_app.logger.info(f'Subject created: {subject.name}')
    return jsonify({'message': 'Subject created successfully', 'subject': subject.to_dict()}), 201


@admin_bp.route('/subjects/<int:id>', methods=['PUT'])
@admin_required
def edit_subject(id):
    """Sửa môn học"""
    subject = Subject.query.get_or_404(id, description='Subject not found')
    form = validate_form(SubjectUpdateForm())

    if form.name.data and form.name.data.strip() != subject.name:
        name = form.name.data.strip()
        duplicate = Subject.query.filter(
            (Subject.name == name) | (Subject.slug == slugify(name)),
            Subject.id != subject.id
        ).first()
        if duplicate:
            raise ApiError('Subject already exists', 400)
        subject.set_name(name)

    if 'description' in get_json_body():
        subject.description = form.description.data

    db.session.commit()
    return jsonify({'message': 'Subject updated successfully', 'subject': subject.to_dict()})


@admin_bp.route('/subjects/<int:id>', methods=['DELETE'])
@admin_required
def delete_subject(id):
    """Xóa môn học (xóa luôn chương, quiz, câu hỏi, kết quả)"""
    subject = Subject.query.get_or_404(id, description='Subject not found')
    db.session.delete(subject)
    db.session.commit()

    current_app.logger.info(f'Subject deleted: {subject.name}')
    return jsonify({'message': 'Subject deleted successfully'})


# ==================== QUẢN LÝ CHƯƠNG ====================
@admin_bp.route('/chapters', methods=['POST'])
@admin_required
def add_chapter():
    """Thêm chương vào môn học"""
    form = validate_form(ChapterForm())
    subject = Subject.query.get_or_404(form.subject_id.data, description='Subject not found')
    name = form.name.data.strip()

    if Chapter.query.filter_by(subject_id=subject.id, name=name).first():
        raise ApiError('Chapter already exists in this subject', 400)

    chapter = Chapter(subject_id=subject.id, name=name, description=form.description.data)
    db.session.add(chapter)
    db.session.commit()

    current_app.logger.info(f'Chapter created: {subject.name} / {chapter.name}')
    return jsonify({'message': 'Chapter created successfully', 'chapter': chapter.to_dict()}), 201


@admin_bp.route('/chapters/<int:id>', methods=['PUT'])
@admin_required
def edit_chapter(id):
    """Sửa chương (có thể chuyển sang môn khác)"""
    chapter = Chapter.query.get_or_404(id, description='Chapter not found')
    form = validate_form(ChapterUpdateForm())

    subject_id = form.subject_id.data or chapter.subject_id
    if subject_id != chapter.subject_id:
        Subject.query.get_or_404(subject_id, description='Subject not found')

    name = form.name.data.strip() if form.name.data else chapter.name
    duplicate = Chapter.query.filter(
        Chapter.subject_id == subject_id,
        Chapter.name == name,
        Chapter.id != chapter.id
    ).first()
    if duplicate:
        raise ApiError('Chapter already exists in this subject', 400)

    chapter.subject_id = subject_id
    chapter.name = name
    if 'description' in get_json_body():
        chapter.description = form.description.data

    db.session.commit()
    return jsonify({'message': 'Chapter updated successfully', 'chapter': chapter.to_dict()})


@admin_bp.route('/chapters/<int:id>', methods=['DELETE'])
@admin_required
def delete_chapter(id):
    chapter = Chapter.query.get_or_404(id, description='Chapter not found')
    db.session.delete(chapter)
    db.session.commit()

    current_app.logger.info(f'Chapter deleted: {chapter.name}')
    return jsonify({'message': 'Chapter deleted successfully'})


# ==================== QUẢN LÝ NGƯỜI DÙNG ====================
@admin_bp.route('/users')
@admin_required
def users():
    """Danh sách người dùng, lọc theo role và tìm theo username/họ tên"""
    query = User.query

    role_filter = request.args.get('role', '')
    if role_filter:
        query = query.filter_by(role=role_filter)

    search = request.args.get('search', '').strip()
    if search:
        pattern = f'%{search}%'
        query = query.filter(User.username.ilike(pattern) | User.full_name.ilike(pattern))

    return jsonify([u.to_dict() for u in query.order_by(User.created_at.desc(), User.id.desc()).all()])


@admin_bp.route('/users/<int:id>')
@admin_required
def user_detail(id):
    user = User.query.get_or_404(id, description='User not found')
    data = user.to_dict()
    data['score_count'] = user.scores.count()
    return jsonify(data)


@admin_bp.route('/users/<int:id>', methods=['PUT'])
@admin_required
def edit_user(id):
    """Sửa người dùng (role, trạng thái, thông tin cá nhân, mật khẩu)"""
    user = User.query.get_or_404(id, description='User not found')
    form = validate_form(UserAdminForm())
    body = get_json_body()

    if user.id == current_user.id and (
            ('role' in body and form.role.data != user.role) or
            ('is_active' in body and not form.is_active.data)):
        raise ApiError('You cannot change your own role or deactivate yourself', 400)

    if form.full_name.data:
        user.full_name = form.full_name.data.strip()
    if 'qualification' in body:
        user.qualification = form.qualification.data or None
    if 'dob' in body:
        user.dob = form.dob.data
    if form.role.data:
        user.role = form.role.data
    if 'is_active' in body:
        user.is_active = form.is_active.data
    if form.password.data:
        user.set_password(form.password.data)
        user.reset_failed_logins()

    db.session.commit()

    current_app.logger.info(f'User {user.username} updated by {current_user.username}')
    return jsonify({'message': 'User updated successfully', 'user': user.to_dict()})


@admin_bp.route('/users/<int:id>', methods=['DELETE'])
@admin_required
def delete_user(id):
    """Xóa người dùng (kèm kết quả làm bài)"""
    if id == current_user.id:
        raise ApiError('You cannot delete your own account', 400)

    user = User.query.get_or_404(id, description='User not found')
    db.session.delete(user)
    db.session.commit()

    current_app.logger.info(f'User deleted: {user.username}')
    return jsonify({'message': 'User deleted successfully'})
