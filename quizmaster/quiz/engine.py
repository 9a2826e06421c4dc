"""
Quiz Engine - Logic làm bài có giới hạn thời gian

Trạng thái một lượt làm bài:
    not_started → in_progress → finished

- Đếm ngược theo time_duration của quiz (HH:MM)
- Lưu đáp án đã chọn theo từng câu, chọn lại thì ghi đè
- Chấm điểm: mỗi câu đúng 1 điểm, câu bỏ trống không tính
- Phần trăm tính trên tổng số câu của đề

Module này không đụng tới DB; routes dựng QuizSession từ model Quiz/Attempt.
"""
import re
from datetime import datetime, timedelta

NOT_STARTED = 'not_started'
IN_PROGRESS = 'in_progress'
FINISHED = 'finished'

UNANSWERED = -1

_DURATION_RE = re.compile(r'^(\d{1,2}):([0-5]\d)$')
_TIME_TAKEN_RE = re.compile(r'^(\d{1,3}):([0-5]\d):([0-5]\d)$')


class AttemptStateError(Exception):
    """Thao tác không hợp lệ với trạng thái hiện tại của lượt làm bài"""


class InvalidAnswerError(ValueError):
    """Câu hỏi/đáp án không thuộc đề thi"""


# ==================== THỜI GIAN ====================
def parse_time_duration(value):
    """
    Parse 'HH:MM' → số giây

    Raises:
        ValueError: sai định dạng hoặc bằng 00:00
    """
    match = _DURATION_RE.match((value or '').strip())
    if not match:
        raise ValueError(f'Invalid time duration {value!r}, expected HH:MM')
    seconds = int(match.group(1)) * 3600 + int(match.group(2)) * 60
    if seconds <= 0:
        raise ValueError('Time duration must be greater than 00:00')
    return seconds


def parse_time_taken(value):
    """Parse 'HH:MM:SS' → số giây"""
    match = _TIME_TAKEN_RE.match((value or '').strip())
    if not match:
        raise ValueError(f'Invalid time taken {value!r}, expected HH:MM:SS')
    hours, minutes, seconds = (int(g) for g in match.groups())
    return hours * 3600 + minutes * 60 + seconds


def format_duration(seconds):
    """Số giây → 'HH:MM:SS'"""
    seconds = max(0, int(seconds))
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    return f'{hours:02d}:{minutes:02d}:{secs:02d}'


# ==================== CHẤM ĐIỂM ====================
class QuizResult:
    """Kết quả chấm một lượt làm bài"""

    def __init__(self, total_questions, total_scored, percentage, passed, answers):
        self.total_questions = total_questions
        self.total_scored = total_scored
        self.percentage = percentage
        self.passed = passed
        self.answers = answers

    def __repr__(self):
        return f'<QuizResult {self.total_scored}/{self.total_questions} {self.percentage}%>'


def grade(answer_key, answers, pass_percentage):
    """
    Chấm điểm

    Args:
        answer_key (dict): question_id → id đáp án đúng (None nếu câu chưa có đáp án đúng)
        answers: dict question_id → option_id, hoặc list [{question_id, selected_option}]
        pass_percentage (float): ngưỡng đạt

    Returns:
        QuizResult

    Raises:
        InvalidAnswerError: question_id không thuộc đề
    """
    if isinstance(answers, dict):
        pairs = list(answers.items())
    else:
        pairs = [(a.get('question_id'), a.get('selected_option')) for a in answers]

    kept = []
    seen = set()
    for question_id, option_id in pairs:
        if option_id is None or option_id == UNANSWERED:
            continue
        if question_id not in answer_key:
            raise InvalidAnswerError(f'Question {question_id} does not belong to this quiz')
        if question_id in seen:
            raise InvalidAnswerError(f'Question {question_id} answered more than once')
        seen.add(question_id)
        kept.append({'question_id': question_id, 'selected_option': option_id,
                     'correct_option': answer_key[question_id]})

    total_scored = sum(
        1 for a in kept
        if answer_key[a['question_id']] is not None and a['selected_option'] == answer_key[a['question_id']]
    )
    total_questions = len(answer_key)
    percentage = round(100.0 * total_scored / total_questions, 2) if total_questions else 0.0

    return QuizResult(
        total_questions=total_questions,
        total_scored=total_scored,
        percentage=percentage,
        passed=percentage >= pass_percentage,
        answers=kept,
    )


# ==================== QUIZ SESSION ====================
class QuizSession:
    """
    State machine cho một lượt làm bài

    Args:
        time_limit (int): giới hạn thời gian (giây)
        options_by_question (dict): question_id → set option_id hợp lệ
        answer_key (dict): question_id → option_id đúng
        pass_percentage (float)
    """

    def __init__(self, time_limit, options_by_question, answer_key, pass_percentage,
                 status=NOT_STARTED, started_at=None, answers=None, finished_at=None):
        self.time_limit = time_limit
        self.options_by_question = options_by_question
        self.answer_key = answer_key
        self.pass_percentage = pass_percentage
        self.status = status
        self.started_at = started_at
        self.finished_at = finished_at
        self.answers = dict(answers or {})

    @classmethod
    def for_quiz(cls, quiz, time_limit=None, **kwargs):
        """
        Dựng session từ model Quiz (kèm questions/options)

        time_limit: giới hạn đã chốt lúc bắt đầu; None thì lấy theo quiz hiện tại
        """
        options_by_question = {}
        answer_key = {}
        for question in quiz.questions:
            options_by_question[question.id] = {o.id for o in question.options}
            correct = question.correct_option
            answer_key[question.id] = correct.id if correct else None
        return cls(
            time_limit=time_limit or quiz.time_limit_seconds,
            options_by_question=options_by_question,
            answer_key=answer_key,
            pass_percentage=quiz.pass_percentage,
            **kwargs
        )

    @property
    def deadline(self):
        if self.started_at is None:
            return None
        return self.started_at + timedelta(seconds=self.time_limit)

    def _require(self, status):
        if self.status != status:
            raise AttemptStateError(f'Attempt is {self.status}, expected {status}')

    def start(self, now=None):
        self._require(NOT_STARTED)
        if not self.options_by_question:
            raise AttemptStateError('Quiz has no questions')
        self.started_at = now or datetime.utcnow()
        self.status = IN_PROGRESS
        return self

    def time_left(self, now=None):
        """Số giây còn lại (không âm)"""
        if self.status == NOT_STARTED:
            return self.time_limit
        if self.status == FINISHED:
            return 0
        now = now or datetime.utcnow()
        remaining = (self.deadline - now).total_seconds()
        return max(0, int(remaining))

    def is_expired(self, now=None):
        if self.status != IN_PROGRESS:
            return False
        now = now or datetime.utcnow()
        return now >= self.deadline

    def select(self, question_id, option_id, now=None):
        """Chọn đáp án; option_id None/-1 để bỏ chọn"""
        self._require(IN_PROGRESS)
        if self.is_expired(now):
            raise AttemptStateError('Time is up for this attempt')
        if question_id not in self.options_by_question:
            raise InvalidAnswerError(f'Question {question_id} does not belong to this quiz')
        if option_id is None or option_id == UNANSWERED:
            self.answers.pop(question_id, None)
            return self
        if option_id not in self.options_by_question[question_id]:
            raise InvalidAnswerError(f'Option {option_id} does not belong to question {question_id}')
        self.answers[question_id] = option_id
        return self

    def clear(self, question_id, now=None):
        return self.select(question_id, None, now)

    def elapsed(self, now=None):
        """Thời gian đã làm (giây), tối đa bằng time_limit"""
        if self.started_at is None:
            return 0
        end = self.finished_at or now or datetime.utcnow()
        return min(self.time_limit, max(0, int((end - self.started_at).total_seconds())))

    def finish(self, now=None):
        """Nộp bài, trả về QuizResult"""
        self._require(IN_PROGRESS)
        now = now or datetime.utcnow()
        self.finished_at = min(now, self.deadline)
        self.status = FINISHED
        return self.result()

    def result(self):
        return grade(self.answer_key, self.answers, self.pass_percentage)
