from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required, current_user
from sqlalchemy import func
from quizmaster import db
from quizmaster.models import Subject, Chapter, Quiz, Score
from quizmaster.forms import ProfileForm
from quizmaster.utils import validate_form, get_json_body

# Blueprint cho phần dành cho mọi user đã đăng nhập
main_bp = Blueprint('main', __name__)


# ==================== ROOT ====================
@main_bp.route('/')
def index():
    return jsonify({'message': 'Welcome to Quiz Master API'})


# ==================== MÔN HỌC ====================
@main_bp.route('/api/subjects')
@login_required
def subjects():
    """Danh sách môn học"""
    items = Subject.query.order_by(Subject.name).all()
    return jsonify([s.to_dict() for s in items])


@main_bp.route('/api/subjects/<int:id>')
@login_required
def subject_detail(id):
    """Chi tiết môn học kèm danh sách chương"""
    subject = Subject.query.get_or_404(id, description='Subject not found')
    return jsonify(subject.to_dict(include_chapters=True))


# ==================== CHƯƠNG ====================
@main_bp.route('/api/chapters')
@login_required
def chapters():
    """Danh sách chương, lọc theo subject_id nếu có"""
    query = Chapter.query
    subject_id = request.args.get('subject_id', type=int)
    if subject_id:
        query = query.filter_by(subject_id=subject_id)
    return jsonify([c.to_dict() for c in query.order_by(Chapter.id).all()])


@main_bp.route('/api/chapters/subject/<int:subject_id>')
@login_required
def chapters_by_subject(subject_id):
    Subject.query.get_or_404(subject_id, description='Subject not found')
    items = Chapter.query.filter_by(subject_id=subject_id).order_by(Chapter.id).all()
    return jsonify([c.to_dict() for c in items])


@main_bp.route('/api/chapters/<int:id>')
@login_required
def chapter_detail(id):
    """Chi tiết chương kèm danh sách quiz"""
    chapter = Chapter.query.get_or_404(id, description='Chapter not found')
    return jsonify(chapter.to_dict(include_quizzes=True))


# ==================== PROFILE ====================
@main_bp.route('/api/users/profile')
@login_required
def profile():
    return jsonify(current_user.to_dict())


@main_bp.route('/api/users/profile', methods=['PUT'])
@login_required
def update_profile():
    """User tự sửa profile (không đổi được role/username)"""
    form = validate_form(ProfileForm())
    body = get_json_body()

    if form.full_name.data:
        current_user.full_name = form.full_name.data.strip()
    if 'qualification' in body:
        current_user.qualification = form.qualification.data or None
    if 'dob' in body:
        current_user.dob = form.dob.data
    if form.password.data:
        current_user.set_password(form.password.data)

    db.session.commit()
    return jsonify({'message': 'Profile updated successfully', 'user': current_user.to_dict()})


# ==================== DASHBOARD USER ====================
@main_bp.route('/api/users/dashboard')
@login_required
def dashboard():
    """
    Tổng quan kết quả của user:
    - Số lượt làm bài, điểm trung bình, điểm cao nhất, số bài đạt
    - 5 kết quả gần nhất
    - Điểm trung bình theo môn
    """
    base = Score.query.filter_by(user_id=current_user.id)

    attempts, average, best, passed = db.session.query(
        func.count(Score.id),
        func.avg(Score.percentage),
        func.max(Score.percentage),
        func.sum(db.case((Score.passed.is_(True), 1), else_=0)),
    ).filter(Score.user_id == current_user.id).one()

    recent = base.order_by(Score.time_stamp_of_attempt.desc(), Score.id.desc()).limit(
        current_app.config['RECENT_SCORES_LIMIT']).all()

    per_subject = (
        db.session.query(Subject.id, Subject.name, func.count(Score.id), func.avg(Score.percentage))
        .join(Chapter, Chapter.subject_id == Subject.id)
        .join(Quiz, Quiz.chapter_id == Chapter.id)
        .join(Score, Score.quiz_id == Quiz.id)
        .filter(Score.user_id == current_user.id)
        .group_by(Subject.id, Subject.name)
        .order_by(Subject.name)
        .all()
    )

    return jsonify({
        'attempts': attempts,
        'average_percentage': round(average, 2) if average is not None else None,
        'best_percentage': best,
        'passed': int(passed or 0),
        'recent_scores': [s.to_dict() for s in recent],
        'subjects': [
            {'subject_id': sid, 'subject_name': name, 'attempts': count,
             'average_percentage': round(avg, 2) if avg is not None else None}
            for sid, name, count, avg in per_subject
        ],
    })
