from flask import Blueprint, jsonify, current_app
from flask_login import current_user
from sqlalchemy import func
from quizmaster import db
from quizmaster.models import Chapter, Quiz, Question, Score, get_setting, normalize_options
from quizmaster.forms import QuizForm, QuizUpdateForm, QuestionForm, QuestionUpdateForm
from quizmaster.decorators import admin_required
from quizmaster.utils import ApiError, validate_form, get_json_body
from datetime import datetime

quiz_admin_bp = Blueprint('quiz_admin', __name__)


# ==================== HELPERS ====================
def parse_options(body):
    """
    Đọc danh sách đáp án từ JSON

    Hỗ trợ 2 dạng:
    - options: [{option_text, is_correct}, ...]
    - options: ["A", "B", ...] + correct_option: index đáp án đúng

    Returns:
        list of (option_text, is_correct)

    Raises:
        ApiError: ít hơn 2 đáp án hoặc số đáp án đúng khác 1
    """
    try:
        return normalize_options(body.get('options'), body.get('correct_option'))
    except ValueError as e:
        raise ApiError(str(e), 400)


def score_stats(query):
    """Thống kê: số lượt, điểm trung bình, cao nhất, tỉ lệ đạt"""
    attempts, average, highest, passed = query.with_entities(
        func.count(Score.id),
        func.avg(Score.percentage),
        func.max(Score.percentage),
        func.sum(db.case((Score.passed.is_(True), 1), else_=0)),
    ).one()
    return {
        'attempts': attempts,
        'average_percentage': round(average, 2) if average is not None else None,
        'highest_percentage': highest,
        'pass_rate': round(100.0 * (passed or 0) / attempts, 2) if attempts else None,
    }


# ==================== QUẢN LÝ QUIZ ====================
@quiz_admin_bp.route('/quizzes', methods=['POST'])
@admin_required
def create_quiz():
    """Tạo quiz mới trong một chương"""
    form = validate_form(QuizForm())

    chapter = db.session.get(Chapter, form.chapter_id.data)
    if not chapter:
        raise ApiError('Chapter not found', 404)

    name = form.title.data.strip()
    if Quiz.query.filter_by(name=name, chapter_id=chapter.id).first():
        raise ApiError('Quiz already exists in this chapter', 400)

    config = current_app.config
    pass_percentage = form.pass_percentage.data
    if pass_percentage is None:
        pass_percentage = float(get_setting('default_pass_percentage', config['DEFAULT_PASS_PERCENTAGE']))

    quiz = Quiz(
        name=name,
        remarks=form.description.data,
        chapter_id=chapter.id,
        date_of_quiz=datetime.utcnow(),
        time_duration=form.time_limit.data or get_setting('default_time_duration', config['DEFAULT_TIME_DURATION']),
        pass_percentage=pass_percentage
    )
    db.session.add(quiz)
    db.session.commit()

    current_app.logger.info(f'Quiz created: {quiz.name} (chapter {chapter.id}) by {current_user.username}')
    return jsonify({'message': 'Quiz created successfully', 'quiz': quiz.to_dict()}), 201


@quiz_admin_bp.route('/quizzes/<int:id>', methods=['PUT'])
@admin_required
def update_quiz(id):
    """Sửa quiz, field nào không gửi thì giữ nguyên"""
    quiz = Quiz.query.get_or_404(id, description='Quiz not found')
    form = validate_form(QuizUpdateForm())

    chapter_id = form.chapter_id.data or quiz.chapter_id
    if chapter_id != quiz.chapter_id and not db.session.get(Chapter, chapter_id):
        raise ApiError('Chapter not found', 404)

    name = form.title.data.strip() if form.title.data else quiz.name
    duplicate = Quiz.query.filter(Quiz.chapter_id == chapter_id, Quiz.name == name, Quiz.id != quiz.id).first()
    if duplicate:
        raise ApiError('Quiz already exists in this chapter', 400)

    quiz.name = name
    quiz.chapter_id = chapter_id
    if form.description.data:
        quiz.remarks = form.description.data
    if form.time_limit.data:
        quiz.time_duration = form.time_limit.data
    if form.pass_percentage.data is not None:
        quiz.pass_percentage = form.pass_percentage.data

    db.session.commit()
    return jsonify({'message': 'Quiz updated successfully', 'quiz': quiz.to_dict()})


@quiz_admin_bp.route('/quizzes/<int:id>', methods=['DELETE'])
@admin_required
def delete_quiz(id):
    """Xóa quiz (kèm câu hỏi, lượt làm và kết quả)"""
    quiz = Quiz.query.get_or_404(id, description='Quiz not found')
    db.session.delete(quiz)
    db.session.commit()

    current_app.logger.info(f'Quiz deleted: {quiz.name} by {current_user.username}')
    return jsonify({'message': 'Quiz deleted successfully'})


# ==================== QUẢN LÝ CÂU HỎI ====================
@quiz_admin_bp.route('/questions', methods=['POST'])
@admin_required
def create_question():
    """Thêm câu hỏi kèm đáp án"""
    form = validate_form(QuestionForm())
    quiz = db.session.get(Quiz, form.quiz_id.data)
    if not quiz:
        raise ApiError('Quiz not found', 404)

    options = parse_options(get_json_body())

    position = form.position.data
    if position is None:
        position = quiz.questions.count()

    question = Question(
        quiz_id=quiz.id,
        title=form.title.data,
        question_statement=form.question_statement.data.strip(),
        position=position
    )
    question.set_options(options)
    db.session.add(question)
    db.session.commit()

    return jsonify({'message': 'Question created successfully',
                    'question': question.to_dict(reveal_answers=True)}), 201


@quiz_admin_bp.route('/questions/<int:id>', methods=['PUT'])
@admin_required
def update_question(id):
    """Sửa câu hỏi; gửi options thì thay toàn bộ đáp án"""
    question = Question.query.get_or_404(id, description='Question not found')
    form = validate_form(QuestionUpdateForm())
    body = get_json_body()

    if form.quiz_id.data and form.quiz_id.data != question.quiz_id:
        if not db.session.get(Quiz, form.quiz_id.data):
            raise ApiError('Quiz not found', 404)
        question.quiz_id = form.quiz_id.data
    if 'title' in body:
        question.title = form.title.data
    if form.question_statement.data:
        question.question_statement = form.question_statement.data.strip()
    if form.position.data is not None:
        question.position = form.position.data
    if 'options' in body:
        question.set_options(parse_options(body))

    db.session.commit()
    return jsonify({'message': 'Question updated successfully',
                    'question': question.to_dict(reveal_answers=True)})


@quiz_admin_bp.route('/questions/<int:id>', methods=['DELETE'])
@admin_required
def delete_question(id):
    question = Question.query.get_or_404(id, description='Question not found')
    db.session.delete(question)
    db.session.commit()
    return jsonify({'message': 'Question deleted successfully'})


# ==================== XEM ĐIỂM ====================
@quiz_admin_bp.route('/scores')
@admin_required
def all_scores():
    """Tất cả kết quả, mới nhất trước"""
    items = Score.query.order_by(Score.time_stamp_of_attempt.desc(), Score.id.desc()).all()
    return jsonify([s.to_dict() for s in items])


@quiz_admin_bp.route('/scores/quiz/<int:quiz_id>')
@admin_required
def quiz_scores(quiz_id):
    """Kết quả của một quiz kèm thống kê"""
    quiz = Quiz.query.get_or_404(quiz_id, description='Quiz not found')
    query = Score.query.filter_by(quiz_id=quiz.id)
    items = query.order_by(Score.percentage.desc(), Score.time_taken, Score.id).all()
    return jsonify({
        'quiz': quiz.to_dict(),
        'stats': score_stats(query),
        'scores': [s.to_dict() for s in items],
    })
