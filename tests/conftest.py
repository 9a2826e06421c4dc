"""
Quiz Master - Test Configuration and Fixtures

Fixture trả về id (không trả model) vì mỗi request của test client chạy trong
app context riêng; cần đọc DB trong test thì mở `with app.app_context()`.
"""
from datetime import datetime, timedelta

import pytest

from quizmaster import create_app, db
from quizmaster.config import TestingConfig
from quizmaster.models import User, Subject, Chapter, Quiz, Question, Attempt, ROLE_ADMIN, ROLE_USER
from quizmaster.auth.tokens import create_token


@pytest.fixture
def app():
    """App với SQLite in-memory, tạo bảng mới cho mỗi test"""
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def make_user(app, username, password='password123', role=ROLE_USER, **kwargs):
    with app.app_context():
        user = User(username=username, full_name=kwargs.pop('full_name', username.title()), role=role, **kwargs)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user.id


def token_headers(app, user_id):
    with app.app_context():
        user = db.session.get(User, user_id)
        return {'Authorization': f'Bearer {create_token(user)}'}


@pytest.fixture
def admin_id(app):
    return make_user(app, 'admin', password='admin123', role=ROLE_ADMIN)


@pytest.fixture
def user_id(app):
    return make_user(app, 'alice')


@pytest.fixture
def admin_headers(app, admin_id):
    return token_headers(app, admin_id)


@pytest.fixture
def auth_headers(app, user_id):
    return token_headers(app, user_id)


@pytest.fixture
def subject_id(app):
    with app.app_context():
        subject = Subject(description='Numbers')
        subject.set_name('Mathematics')
        db.session.add(subject)
        db.session.commit()
        return subject.id


@pytest.fixture
def chapter_id(app, subject_id):
    with app.app_context():
        chapter = Chapter(subject_id=subject_id, name='Algebra')
        db.session.add(chapter)
        db.session.commit()
        return chapter.id


@pytest.fixture
def quiz_id(app, chapter_id):
    """Quiz 10 phút, 2 câu hỏi, đáp án đúng là option thứ 2 của mỗi câu"""
    with app.app_context():
        quiz = Quiz(chapter_id=chapter_id, name='Basics', time_duration='00:10', pass_percentage=50)
        db.session.add(quiz)
        db.session.flush()

        for position, statement in enumerate(['1 + 1 = ?', '2 * 3 = ?']):
            question = Question(quiz_id=quiz.id, question_statement=statement, position=position)
            question.set_options([('wrong', False), ('right', True), ('also wrong', False)])
            db.session.add(question)
        db.session.commit()
        return quiz.id


def answer_ids(app, quiz_id):
    """question_id → (id đáp án đúng, id một đáp án sai), theo thứ tự câu hỏi"""
    with app.app_context():
        ids = {}
        for question in db.session.get(Quiz, quiz_id).questions:
            correct = question.correct_option
            wrong = next(o for o in question.options if not o.is_correct)
            ids[question.id] = (correct.id, wrong.id)
        return ids


def rewind_attempt(app, attempt_id, seconds):
    """Lùi thời điểm bắt đầu để giả lập đã làm được `seconds` giây"""
    with app.app_context():
        attempt = db.session.get(Attempt, attempt_id)
        attempt.started_at = datetime.utcnow() - timedelta(seconds=seconds)
        attempt.deadline = attempt.started_at + timedelta(seconds=attempt.quiz.time_limit_seconds)
        db.session.commit()
