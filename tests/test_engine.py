"""
Unit tests cho quiz engine (không cần DB)
"""
from datetime import datetime, timedelta

import pytest

from quizmaster.quiz.engine import (
    QuizSession, AttemptStateError, InvalidAnswerError, NOT_STARTED, IN_PROGRESS, FINISHED,
    UNANSWERED, grade, parse_time_duration, parse_time_taken, format_duration,
)

START = datetime(2024, 1, 1, 9, 0, 0)


def make_session(time_limit=600, pass_percentage=60):
    # 3 câu: q1 đúng = 11, q2 đúng = 21, q3 đúng = 31
    options = {1: {10, 11, 12}, 2: {20, 21}, 3: {30, 31}}
    key = {1: 11, 2: 21, 3: 31}
    return QuizSession(time_limit, options, key, pass_percentage)


class TestDurations:

    def test_parse_time_duration(self):
        assert parse_time_duration('00:30') == 1800
        assert parse_time_duration('1:05') == 3900
        assert parse_time_duration(' 02:00 ') == 7200

    @pytest.mark.parametrize('value', ['00:00', '0:00', '30', '00:60', 'ab:cd', '', None])
    def test_parse_time_duration_rejects(self, value):
        with pytest.raises(ValueError):
            parse_time_duration(value)

    def test_parse_time_taken(self):
        assert parse_time_taken('00:00:00') == 0
        assert parse_time_taken('01:02:03') == 3723
        with pytest.raises(ValueError):
            parse_time_taken('10:00')

    def test_format_duration(self):
        assert format_duration(0) == '00:00:00'
        assert format_duration(3723) == '01:02:03'
        assert format_duration(-5) == '00:00:00'


class TestGrade:

    def test_all_correct(self):
        result = grade({1: 11, 2: 21}, {1: 11, 2: 21}, 60)
        assert result.total_questions == 2
        assert result.total_scored == 2
        assert result.percentage == 100.0
        assert result.passed is True

    def test_unanswered_counts_against_percentage(self):
        result = grade({1: 11, 2: 21, 3: 31}, [{'question_id': 1, 'selected_option': 11},
                                               {'question_id': 2, 'selected_option': UNANSWERED}], 50)
        assert result.total_scored == 1
        assert result.percentage == 33.33
        assert result.passed is False
        assert result.answers == [{'question_id': 1, 'selected_option': 11, 'correct_option': 11}]

    def test_pass_threshold_is_inclusive(self):
        result = grade({1: 11, 2: 21}, {1: 11, 2: 20}, 50)
        assert result.percentage == 50.0
        assert result.passed is True

    def test_empty_quiz(self):
        result = grade({}, {}, 60)
        assert result.percentage == 0.0
        assert result.passed is False

    def test_unknown_question(self):
        with pytest.raises(InvalidAnswerError):
            grade({1: 11}, {99: 1}, 60)

    def test_duplicate_question(self):
        answers = [{'question_id': 1, 'selected_option': 11}, {'question_id': 1, 'selected_option': 10}]
        with pytest.raises(InvalidAnswerError):
            grade({1: 11}, answers, 60)


class TestQuizSession:

    def test_lifecycle(self):
        session = make_session()
        assert session.status == NOT_STARTED
        assert session.time_left() == 600

        session.start(START)
        assert session.status == IN_PROGRESS
        assert session.deadline == START + timedelta(seconds=600)
        assert session.time_left(START + timedelta(seconds=100)) == 500

        session.select(1, 11, START + timedelta(seconds=10))
        session.select(2, 20, START + timedelta(seconds=20))
        session.select(2, 21, START + timedelta(seconds=30))  # đổi đáp án
        result = session.finish(START + timedelta(seconds=120))

        assert session.status == FINISHED
        assert session.elapsed() == 120
        assert session.time_left() == 0
        assert result.total_scored == 2
        assert result.percentage == 66.67
        assert result.passed is True

    def test_clear_answer(self):
        session = make_session().start(START)
        session.select(1, 11, START)
        session.select(1, UNANSWERED, START)
        assert 1 not in session.answers
        session.select(2, 21, START)
        session.clear(2, START)
        assert session.answers == {}

    def test_cannot_start_twice(self):
        session = make_session().start(START)
        with pytest.raises(AttemptStateError):
            session.start(START)

    def test_cannot_start_without_questions(self):
        session = QuizSession(600, {}, {}, 60)
        with pytest.raises(AttemptStateError):
            session.start(START)

    def test_select_requires_in_progress(self):
        session = make_session()
        with pytest.raises(AttemptStateError):
            session.select(1, 11, START)

    def test_select_rejects_foreign_option(self):
        session = make_session().start(START)
        with pytest.raises(InvalidAnswerError):
            session.select(1, 21, START)
        with pytest.raises(InvalidAnswerError):
            session.select(42, 11, START)

    def test_expiry(self):
        session = make_session(time_limit=60).start(START)
        late = START + timedelta(seconds=61)
        assert session.is_expired(late)
        assert session.time_left(late) == 0
        with pytest.raises(AttemptStateError):
            session.select(1, 11, late)

    def test_finish_after_deadline_caps_elapsed(self):
        session = make_session(time_limit=60).start(START)
        session.select(1, 11, START)
        session.finish(START + timedelta(minutes=10))
        assert session.finished_at == START + timedelta(seconds=60)
        assert session.elapsed() == 60

    def test_cannot_finish_twice(self):
        session = make_session().start(START)
        session.finish(START)
        with pytest.raises(AttemptStateError):
            session.finish(START)
