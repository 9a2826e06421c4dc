from flask import Blueprint, jsonify, current_app
from flask_login import login_required, current_user
from quizmaster import db
from quizmaster.models import Quiz, Question, Attempt, Score, ATTEMPT_IN_PROGRESS
from quizmaster.quiz.engine import (QuizSession, AttemptStateError, InvalidAnswerError,
                                    grade, format_duration, parse_time_taken)
from quizmaster.utils import ApiError, get_json_body
from datetime import datetime

quiz_bp = Blueprint('quiz', __name__)


# ==================== HELPERS ====================
def _as_int(value, field):
    """Ép kiểu id từ JSON; bool không được coi là số"""
    if isinstance(value, bool):
        raise ApiError(f'{field} must be an integer', 400)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ApiError(f'{field} must be an integer', 400)


def _get_own_attempt(id):
    attempt = Attempt.query.get_or_404(id, description='Attempt not found')
    if attempt.user_id != current_user.id:
        raise ApiError('Attempt not found', 404)
    return attempt


def _finalize(attempt, session, now):
    """Chấm điểm session đã kết thúc và lưu Score"""
    result = session.finish(now)
    attempt.store(session)

    score = Score(
        quiz_id=attempt.quiz_id,
        user_id=attempt.user_id,
        attempt=attempt,
        time_stamp_of_attempt=session.finished_at,
        time_taken=format_duration(session.elapsed()),
        total_questions=result.total_questions,
        total_scored=result.total_scored,
        percentage=result.percentage,
        passed=result.passed,
        answers=result.answers,
    )
    db.session.add(score)
    return score


def _expire_if_needed(attempt, now):
    """Hết giờ thì tự nộp bài (giống client tự nộp bài khi timer về 0)"""
    if attempt.status != ATTEMPT_IN_PROGRESS:
        return None
    session = attempt.session()
    if not session.is_expired(now):
        return None
    score = _finalize(attempt, session, now)
    db.session.commit()
    current_app.logger.info(f'Attempt {attempt.id} auto-submitted after time limit')
    return score


# ==================== DANH SÁCH QUIZ ====================
@quiz_bp.route('/quizzes')
@login_required
def quizzes():
    """Tất cả quiz kèm chương"""
    items = Quiz.query.order_by(Quiz.id).all()
    return jsonify([q.to_dict() for q in items])


@quiz_bp.route('/quizzes/chapter/<int:chapter_id>')
@login_required
def quizzes_by_chapter(chapter_id):
    items = Quiz.query.filter_by(chapter_id=chapter_id).order_by(Quiz.id).all()
    return jsonify([q.to_dict() for q in items])


@quiz_bp.route('/quizzes/<int:id>')
@login_required
def quiz_detail(id):
    """Chi tiết quiz kèm câu hỏi; chỉ admin thấy đáp án đúng"""
    quiz = Quiz.query.get_or_404(id, description='Quiz not found')
    return jsonify(quiz.to_dict(include_questions=True, reveal_answers=current_user.is_admin))


# ==================== CÂU HỎI ====================
@quiz_bp.route('/questions/quiz/<int:quiz_id>')
@login_required
def questions_by_quiz(quiz_id):
    quiz = Quiz.query.get_or_404(quiz_id, description='Quiz not found')
    return jsonify([q.to_dict(reveal_answers=current_user.is_admin) for q in quiz.questions])


@quiz_bp.route('/questions/<int:id>')
@login_required
def question_detail(id):
    question = Question.query.get_or_404(id, description='Question not found')
    return jsonify(question.to_dict(reveal_answers=current_user.is_admin))


# ==================== LÀM BÀI ====================
@quiz_bp.route('/quizzes/<int:id>/attempts', methods=['POST'])
@login_required
def start_attempt(id):
    """
    Bắt đầu làm bài

    Nếu user đang có lượt làm dở (chưa hết giờ) của quiz này thì trả lại lượt đó.
    """
    quiz = Quiz.query.get_or_404(id, description='Quiz not found')
    now = datetime.utcnow()

    current = Attempt.query.filter_by(
        quiz_id=quiz.id, user_id=current_user.id, status=ATTEMPT_IN_PROGRESS
    ).order_by(Attempt.id.desc()).first()
    if current is not None:
        if _expire_if_needed(current, now) is None:
            return jsonify({'message': 'Attempt resumed', 'attempt': current.to_dict(now)}), 200

    session = QuizSession.for_quiz(quiz)
    try:
        session.start(now)
    except AttemptStateError as e:
        raise ApiError(str(e), 400)

    attempt = Attempt(quiz_id=quiz.id, user_id=current_user.id)
    attempt.store(session)
    db.session.add(attempt)
    db.session.commit()

    current_app.logger.info(f'User {current_user.username} started quiz {quiz.id} (attempt {attempt.id})')
    return jsonify({'message': 'Attempt started', 'attempt': attempt.to_dict(now)}), 201


@quiz_bp.route('/attempts/<int:id>')
@login_required
def attempt_detail(id):
    attempt = _get_own_attempt(id)
    now = datetime.utcnow()
    _expire_if_needed(attempt, now)
    return jsonify(attempt.to_dict(now))


@quiz_bp.route('/attempts/<int:id>/answers', methods=['PUT'])
@login_required
def save_answer(id):
    """Chọn/đổi/bỏ chọn đáp án cho một câu (selected_option = -1 hoặc null để bỏ chọn)"""
    attempt = _get_own_attempt(id)
    now = datetime.utcnow()

    if _expire_if_needed(attempt, now) is not None:
        raise ApiError('Time is up, the attempt has been submitted', 409)
    if attempt.status != ATTEMPT_IN_PROGRESS:
        raise ApiError('Attempt already finished', 409)

    body = get_json_body()
    if 'question_id' not in body:
        raise ApiError('question_id is required', 400)
    question_id = _as_int(body.get('question_id'), 'question_id')
    option = body.get('selected_option')
    option_id = None if option is None else _as_int(option, 'selected_option')

    session = attempt.session()
    try:
        session.select(question_id, option_id, now)
    except InvalidAnswerError as e:
        raise ApiError(str(e), 400)
    except AttemptStateError as e:
        raise ApiError(str(e), 409)

    attempt.store(session)
    db.session.commit()
    return jsonify(attempt.to_dict(now))


@quiz_bp.route('/attempts/<int:id>/finish', methods=['POST'])
@login_required
def finish_attempt(id):
    """Nộp bài, chấm điểm và lưu kết quả"""
    attempt = _get_own_attempt(id)
    now = datetime.utcnow()

    if attempt.status != ATTEMPT_IN_PROGRESS:
        raise ApiError('Attempt already finished', 409)

    score = _finalize(attempt, attempt.session(), now)
    db.session.commit()

    current_app.logger.info(f'User {current_user.username} finished quiz {attempt.quiz_id}: {score.percentage}%')
    return jsonify({'message': 'Quiz submitted successfully', 'score': score.to_dict()}), 201


# ==================== NỘP BÀI TRỰC TIẾP ====================
@quiz_bp.route('/scores/submit', methods=['POST'])
@login_required
def submit_quiz():
    """
    Nộp toàn bộ đáp án một lần (client tự đếm giờ)

    Body: {quiz_id, answers: [{question_id, selected_option}], time_taken: 'HH:MM:SS'}
    """
    body = get_json_body()
    if 'quiz_id' not in body:
        raise ApiError('quiz_id is required', 400)
    quiz = Quiz.query.get_or_404(_as_int(body['quiz_id'], 'quiz_id'), description='Quiz not found')
    if not quiz.questions.count():
        raise ApiError('Quiz has no questions', 400)

    answers = body.get('answers') or []
    if not isinstance(answers, list) or not all(isinstance(a, dict) for a in answers):
        raise ApiError('answers must be a list of {question_id, selected_option}', 400)
    answers = [
        {'question_id': _as_int(a.get('question_id'), 'question_id'),
         'selected_option': None if a.get('selected_option') is None
         else _as_int(a.get('selected_option'), 'selected_option')}
        for a in answers
    ]

    try:
        taken = parse_time_taken(body.get('time_taken') or '00:00:00')
    except ValueError as e:
        raise ApiError(str(e), 400)

    session = QuizSession.for_quiz(quiz)
    try:
        result = grade(session.answer_key, answers, quiz.pass_percentage)
    except InvalidAnswerError as e:
        raise ApiError(str(e), 400)

    score = Score(
        quiz_id=quiz.id,
        user_id=current_user.id,
        time_taken=format_duration(min(taken, quiz.time_limit_seconds)),
        total_questions=result.total_questions,
        total_scored=result.total_scored,
        percentage=result.percentage,
        passed=result.passed,
        answers=result.answers,
    )
    db.session.add(score)
    db.session.commit()

    current_app.logger.info(f'User {current_user.username} submitted quiz {quiz.id}: {score.percentage}%')
    return jsonify({'message': 'Quiz submitted successfully', 'score': score.to_dict()}), 201


# ==================== KẾT QUẢ ====================
@quiz_bp.route('/scores/user')
@login_required
def my_scores():
    """Kết quả của user hiện tại, mới nhất trước"""
    items = current_user.scores.order_by(Score.time_stamp_of_attempt.desc(), Score.id.desc()).all()
    return jsonify([s.to_dict() for s in items])


@quiz_bp.route('/scores/<int:id>')
@login_required
def score_detail(id):
    """Kết quả chi tiết từng câu (chủ sở hữu hoặc admin)"""
    score = Score.query.get_or_404(id, description='Score not found')
    if score.user_id != current_user.id and not current_user.is_admin:
        raise ApiError('Score not found', 404)
    return jsonify(score.to_dict(include_breakdown=True))
