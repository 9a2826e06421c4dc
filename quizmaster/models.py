# ==================== MODELS ====================
# Schema: Users, Subjects, Chapters, Quizzes, Questions, Options, Attempts, Scores, Settings

from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash
from slugify import slugify
from quizmaster import db, login_manager
from quizmaster.utils import isoformat, utc_to_local
from datetime import datetime, timedelta


ROLE_ADMIN = 'admin'
ROLE_USER = 'user'


# ==================== USER MODEL ====================
class User(db.Model, UserMixin):
    """Người dùng: admin quản lý nội dung, user làm bài"""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255))
    full_name = db.Column(db.String(120), nullable=False)
    qualification = db.Column(db.String(120))
    dob = db.Column(db.Date)
    role = db.Column(db.String(20), nullable=False, default=ROLE_USER)
    is_active = db.Column(db.Boolean, default=True)

    # Khóa tài khoản khi đăng nhập sai nhiều lần
    failed_login_attempts = db.Column(db.Integer, default=0)
    locked_until = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    scores = db.relationship('Score', backref='user', lazy='dynamic', cascade='all, delete-orphan')
    attempts = db.relationship('Attempt', backref='user', lazy='dynamic', cascade='all, delete-orphan')

    def __repr__(self):
        return f'<User {self.username}>'

    def set_password(self, password):
        """Hash và lưu mật khẩu"""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        """Kiểm tra mật khẩu"""
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    @property
    def is_admin(self):
        return self.role == ROLE_ADMIN

    # ==================== LOCKOUT ====================
    def is_locked(self, now=None):
        now = now or datetime.utcnow()
        return self.locked_until is not None and now < self.locked_until

    def register_failed_login(self, max_attempts, lockout_minutes, now=None):
        """
        Tăng số lần đăng nhập sai, khóa tài khoản khi vượt giới hạn

        Returns:
            int: Số lần thử còn lại (0 nghĩa là vừa bị khóa)
        """
        now = now or datetime.utcnow()
        self.failed_login_attempts = (self.failed_login_attempts or 0) + 1
        remaining = max_attempts - self.failed_login_attempts
        if remaining <= 0:
            self.locked_until = now + timedelta(minutes=lockout_minutes)
            self.failed_login_attempts = 0
            return 0
        return remaining

    def reset_failed_logins(self):
        self.failed_login_attempts = 0
        self.locked_until = None

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'full_name': self.full_name,
            'qualification': self.qualification,
            'dob': self.dob.isoformat() if self.dob else None,
            'role': self.role,
            'is_active': self.is_active,
            'created_at': isoformat(self.created_at),
        }


# ==================== USER LOADER ====================
@login_manager.user_loader
def load_user(user_id):
    """Load user cho Flask-Login"""
    return db.session.get(User, int(user_id))


# ==================== SUBJECT MODEL ====================
class Subject(db.Model):
    """Môn học, gồm nhiều chương"""
    __tablename__ = 'subjects'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), unique=True, nullable=False)
    slug = db.Column(db.String(140), unique=True, nullable=False)
    description = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    chapters = db.relationship('Chapter', backref='subject', lazy='dynamic',
                               cascade='all, delete-orphan', order_by='Chapter.id')

    def __repr__(self):
        return f'<Subject {self.name}>'

    def set_name(self, name):
        """Đổi tên và tạo lại slug"""
        self.name = name
        self.slug = slugify(name)

    def to_dict(self, include_chapters=False):
        data = {
            'id': self.id,
            'name': self.name,
            'slug': self.slug,
            'description': self.description,
            'chapter_count': self.chapters.count(),
            'created_at': isoformat(self.created_at),
        }
        if include_chapters:
            data['chapters'] = [c.to_dict() for c in self.chapters]
        return data


# ==================== CHAPTER MODEL ====================
class Chapter(db.Model):
    """Chương thuộc môn học, gom nhóm các quiz"""
    __tablename__ = 'chapters'
    __table_args__ = (db.UniqueConstraint('subject_id', 'name', name='uq_chapter_subject_name'),)

    id = db.Column(db.Integer, primary_key=True)
    subject_id = db.Column(db.Integer, db.ForeignKey('subjects.id'), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    quizzes = db.relationship('Quiz', backref='chapter', lazy='dynamic',
                              cascade='all, delete-orphan', order_by='Quiz.id')

    def __repr__(self):
        return f'<Chapter {self.name}>'

    def to_dict(self, include_quizzes=False):
        data = {
            'id': self.id,
            'subject_id': self.subject_id,
            'name': self.name,
            'description': self.description,
            'quiz_count': self.quizzes.count(),
            'created_at': isoformat(self.created_at),
        }
        if include_quizzes:
            data['quizzes'] = [q.to_dict() for q in self.quizzes]
        return data


# ==================== QUIZ MODEL ====================
class Quiz(db.Model):
    """Đề thi có giới hạn thời gian, thuộc một chương"""
    __tablename__ = 'quizzes'
    __table_args__ = (db.UniqueConstraint('chapter_id', 'name', name='uq_quiz_chapter_name'),)

    id = db.Column(db.Integer, primary_key=True)
    chapter_id = db.Column(db.Integer, db.ForeignKey('chapters.id'), nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    remarks = db.Column(db.Text)
    date_of_quiz = db.Column(db.DateTime, default=datetime.utcnow)
    time_duration = db.Column(db.String(5), nullable=False, default='00:30')  # HH:MM
    pass_percentage = db.Column(db.Float, nullable=False, default=60)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    questions = db.relationship('Question', backref='quiz', lazy='dynamic',
                                cascade='all, delete-orphan',
                                order_by='(Question.position, Question.id)')
    attempts = db.relationship('Attempt', backref='quiz', lazy='dynamic', cascade='all, delete-orphan')
    scores = db.relationship('Score', backref='quiz', lazy='dynamic', cascade='all, delete-orphan')

    def __repr__(self):
        return f'<Quiz {self.name}>'

    @property
    def time_limit_seconds(self):
        from quizmaster.quiz.engine import parse_time_duration
        return parse_time_duration(self.time_duration)

    @property
    def time_limit_minutes(self):
        return self.time_limit_seconds // 60

    def to_dict(self, include_questions=False, reveal_answers=False):
        data = {
            'id': self.id,
            'name': self.name,
            'remarks': self.remarks,
            'chapter_id': self.chapter_id,
            'chapter': {'id': self.chapter.id, 'name': self.chapter.name} if self.chapter else None,
            'date_of_quiz': isoformat(self.date_of_quiz),
            'time_duration': self.time_duration,
            'time_limit_minutes': self.time_limit_minutes,
            'pass_percentage': self.pass_percentage,
            'question_count': self.questions.count(),
        }
        if include_questions:
            data['questions'] = [q.to_dict(reveal_answers=reveal_answers) for q in self.questions]
        return data


# ==================== QUESTION MODEL ====================
class Question(db.Model):
    """Câu hỏi trắc nghiệm, mỗi câu có đúng một đáp án đúng"""
    __tablename__ = 'questions'

    id = db.Column(db.Integer, primary_key=True)
    quiz_id = db.Column(db.Integer, db.ForeignKey('quizzes.id'), nullable=False, index=True)
    title = db.Column(db.String(200))
    question_statement = db.Column(db.Text, nullable=False)
    position = db.Column(db.Integer, default=0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    options = db.relationship('Option', backref='question', lazy='selectin',
                              cascade='all, delete-orphan',
                              order_by='(Option.position, Option.id)')

    def __repr__(self):
        return f'<Question {self.id}>'

    @property
    def correct_option(self):
        return next((o for o in self.options if o.is_correct), None)

    def set_options(self, options):
        """
        Thay danh sách đáp án, ghi đè tại chỗ theo vị trí

        Đáp án cùng vị trí giữ nguyên id nên kết quả cũ và lượt đang làm
        vẫn trỏ đúng; đáp án thừa bị xóa.

        Args:
            options: list of (option_text, is_correct)
        """
        current = list(self.options)
        updated = []
        for index, (text, is_correct) in enumerate(options):
            option = current[index] if index < len(current) else Option()
            option.option_text = text
            option.is_correct = bool(is_correct)
            option.position = index
            updated.append(option)
        self.options = updated

    def to_dict(self, reveal_answers=False):
        return {
            'id': self.id,
            'quiz_id': self.quiz_id,
            'title': self.title,
            'question_statement': self.question_statement,
            'position': self.position,
            'options': [o.to_dict(reveal_answers=reveal_answers) for o in self.options],
        }


def normalize_options(raw, correct_index=None):
    """
    Chuẩn hóa danh sách đáp án

    Args:
        raw: ["A", "B", ...] (kèm correct_index) hoặc [{option_text, is_correct}, ...]
        correct_index (int): index đáp án đúng khi raw là list string

    Returns:
        list of (option_text, is_correct)

    Raises:
        ValueError: ít hơn 2 đáp án, đáp án rỗng hoặc số đáp án đúng khác 1
    """
    if not isinstance(raw, list):
        raise ValueError('options must be a list')

    if all(isinstance(o, str) for o in raw):
        if isinstance(correct_index, bool) or not isinstance(correct_index, int) \
                or not 0 <= correct_index < len(raw):
            raise ValueError('correct_option must be the index of the correct option')
        options = [(text, index == correct_index) for index, text in enumerate(raw)]
    elif all(isinstance(o, dict) for o in raw):
        options = [(o.get('option_text'), bool(o.get('is_correct'))) for o in raw]
    else:
        raise ValueError('options must be all strings or all objects')

    options = [(text.strip() if isinstance(text, str) else '', correct) for text, correct in options]
    if any(not text for text, _ in options):
        raise ValueError('Option text cannot be empty')
    if len(options) < 2:
        raise ValueError('A question needs at least two options')
    if sum(1 for _, correct in options if correct) != 1:
        raise ValueError('A question needs exactly one correct option')
    return options


class Option(db.Model):
    __tablename__ = 'options'

    id = db.Column(db.Integer, primary_key=True)
    question_id = db.Column(db.Integer, db.ForeignKey('questions.id'), nullable=False, index=True)
    option_text = db.Column(db.Text, nullable=False)
    is_correct = db.Column(db.Boolean, default=False, nullable=False)
    position = db.Column(db.Integer, default=0)

    def to_dict(self, reveal_answers=False):
        data = {'id': self.id, 'option_text': self.option_text}
        if reveal_answers:
            data['is_correct'] = self.is_correct
        return data


# ==================== ATTEMPT MODEL ====================
ATTEMPT_IN_PROGRESS = 'in_progress'
ATTEMPT_FINISHED = 'finished'


class Attempt(db.Model):
    """Lượt làm bài đang diễn ra (đếm ngược + lưu đáp án đã chọn)"""
    __tablename__ = 'attempts'

    id = db.Column(db.Integer, primary_key=True)
    quiz_id = db.Column(db.Integer, db.ForeignKey('quizzes.id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    status = db.Column(db.String(20), nullable=False, default=ATTEMPT_IN_PROGRESS)
    started_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    deadline = db.Column(db.DateTime, nullable=False)
    finished_at = db.Column(db.DateTime)
    answers = db.Column(db.JSON, default=dict)  # {"question_id": option_id}

    score = db.relationship('Score', backref='attempt', uselist=False)

    def __repr__(self):
        return f'<Attempt {self.id} quiz={self.quiz_id} user={self.user_id}>'

    def session(self):
        """
        Dựng QuizSession từ trạng thái đã lưu

        Giới hạn thời gian lấy từ deadline đã chốt lúc bắt đầu, admin sửa
        timeLimit của quiz không ảnh hưởng lượt đang làm.
        """
        from quizmaster.quiz.engine import QuizSession

        time_limit = None
        if self.started_at is not None and self.deadline is not None:
            time_limit = int((self.deadline - self.started_at).total_seconds())

        session = QuizSession.for_quiz(
            self.quiz,
            time_limit=time_limit,
            status=self.status,
            started_at=self.started_at,
            answers={int(k): v for k, v in (self.answers or {}).items()},
            finished_at=self.finished_at,
        )
        # Bỏ đáp án trỏ tới câu hỏi/đáp án đã bị xóa
        session.answers = {
            qid: oid for qid, oid in session.answers.items()
            if oid in session.options_by_question.get(qid, ())
        }
        return session

    def store(self, session):
        """Ghi trạng thái QuizSession vào record"""
        self.status = session.status
        self.started_at = session.started_at
        self.deadline = session.deadline
        self.finished_at = session.finished_at
        self.answers = {str(k): v for k, v in session.answers.items()}

    def to_dict(self, now=None):
        session = self.session()
        return {
            'id': self.id,
            'quiz_id': self.quiz_id,
            'user_id': self.user_id,
            'status': self.status,
            'started_at': isoformat(self.started_at),
            'deadline': isoformat(self.deadline),
            'finished_at': isoformat(self.finished_at),
            'time_left': session.time_left(now),
            'answers': [
                {'question_id': qid, 'selected_option': oid}
                for qid, oid in sorted(session.answers.items())
            ],
            'score_id': self.score.id if self.score else None,
        }


# ==================== SCORE MODEL ====================
class Score(db.Model):
    """Kết quả một lượt làm bài đã hoàn thành"""
    __tablename__ = 'scores'

    id = db.Column(db.Integer, primary_key=True)
    quiz_id = db.Column(db.Integer, db.ForeignKey('quizzes.id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    attempt_id = db.Column(db.Integer, db.ForeignKey('attempts.id'))
    time_stamp_of_attempt = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    time_taken = db.Column(db.String(8), nullable=False, default='00:00:00')  # HH:MM:SS
    total_questions = db.Column(db.Integer, nullable=False, default=0)
    total_scored = db.Column(db.Integer, nullable=False, default=0)
    percentage = db.Column(db.Float, nullable=False, default=0)
    passed = db.Column(db.Boolean, nullable=False, default=False)
    answers = db.Column(db.JSON, default=list)  # [{"question_id", "selected_option"}]

    def __repr__(self):
        return f'<Score {self.id} {self.percentage}%>'

    @property
    def time_stamp_local(self):
        return utc_to_local(self.time_stamp_of_attempt)

    def breakdown(self):
        """
        Chi tiết từng câu: đáp án đã chọn so với đáp án đúng

        Câu đã trả lời dùng đáp án đúng lưu lúc chấm, để khớp với percentage
        dù sau đó admin có sửa câu hỏi.
        """
        graded = {a['question_id']: a for a in (self.answers or [])}
        rows = []
        for question in self.quiz.questions:
            entry = graded.get(question.id, {})
            chosen = entry.get('selected_option')
            if 'correct_option' in entry:
                correct_id = entry['correct_option']
            else:
                correct = question.correct_option
                correct_id = correct.id if correct else None
            rows.append({
                'question_id': question.id,
                'question_statement': question.question_statement,
                'options': [o.to_dict() for o in question.options],
                'selected_option': chosen,
                'correct_option': correct_id,
                'is_correct': correct_id is not None and chosen == correct_id,
            })
        return rows

    def to_dict(self, include_breakdown=False):
        local = self.time_stamp_local
        data = {
            'id': self.id,
            'quiz_id': self.quiz_id,
            'quiz_name': self.quiz.name if self.quiz else None,
            'user_id': self.user_id,
            'username': self.user.username if self.user else None,
            'attempt_id': self.attempt_id,
            'time_stamp_of_attempt': isoformat(self.time_stamp_of_attempt),
            'time_stamp_local': local.isoformat() if local else None,
            'time_taken': self.time_taken,
            'total_questions': self.total_questions,
            'total_scored': self.total_scored,
            'percentage': self.percentage,
            'passed': self.passed,
            'answers': self.answers or [],
        }
        if include_breakdown:
            data['breakdown'] = self.breakdown()
        return data


# ==================== SETTINGS ====================
class Settings(db.Model):
    """Model lưu cài đặt hệ thống (key-value)"""
    __tablename__ = 'settings'

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(100), unique=True, nullable=False, index=True)
    value = db.Column(db.Text, nullable=False)
    group = db.Column(db.String(50), nullable=False, default='general')
    description = db.Column(db.Text)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f'<Settings {self.key}: {self.value}>'


def get_setting(key, default=None):
    """Lấy giá trị setting từ DB"""
    setting = Settings.query.filter_by(key=key).first()
    return setting.value if setting else default


def set_setting(key, value, group='general', description=''):
    """Lưu hoặc cập nhật setting (không commit)"""
    if not isinstance(value, str):
        value = str(value) if value is not None else ''

    setting = Settings.query.filter_by(key=key).first()
    if setting:
        setting.value = value
        setting.group = group
        if description:
            setting.description = description
    else:
        setting = Settings(key=key, value=value, group=group, description=description)
        db.session.add(setting)
    return setting
