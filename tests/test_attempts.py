"""
Tests cho luồng làm bài: bắt đầu, chọn đáp án, hết giờ, nộp bài
"""
from quizmaster import db
from quizmaster.models import Attempt, Score, Quiz
from conftest import answer_ids, rewind_attempt, make_user, token_headers


def start(client, headers, quiz_id):
    return client.post(f'/api/quizzes/{quiz_id}/attempts', headers=headers)


def answer(client, headers, attempt_id, question_id, option_id):
    return client.put(f'/api/attempts/{attempt_id}/answers', headers=headers,
                      json={'question_id': question_id, 'selected_option': option_id})


class TestStartAttempt:

    def test_start(self, client, auth_headers, quiz_id):
        response = start(client, auth_headers, quiz_id)
        assert response.status_code == 201
        attempt = response.get_json()['attempt']
        assert attempt['status'] == 'in_progress'
        assert attempt['quiz_id'] == quiz_id
        assert 590 <= attempt['time_left'] <= 600
        assert attempt['answers'] == []

    def test_resume_in_progress_attempt(self, client, auth_headers, quiz_id):
        first = start(client, auth_headers, quiz_id).get_json()['attempt']
        response = start(client, auth_headers, quiz_id)
        assert response.status_code == 200
        assert response.get_json()['message'] == 'Attempt resumed'
        assert response.get_json()['attempt']['id'] == first['id']

    def test_quiz_without_questions(self, app, client, auth_headers, chapter_id):
        with app.app_context():
            quiz = Quiz(chapter_id=chapter_id, name='Empty', time_duration='00:05')
            db.session.add(quiz)
            db.session.commit()
            empty_id = quiz.id

        response = start(client, auth_headers, empty_id)
        assert response.status_code == 400
        assert response.get_json()['message'] == 'Quiz has no questions'

    def test_missing_quiz(self, client, auth_headers):
        assert start(client, auth_headers, 999).status_code == 404


class TestAnswers:

    def test_select_change_and_clear(self, app, client, auth_headers, quiz_id):
        attempt_id = start(client, auth_headers, quiz_id).get_json()['attempt']['id']
        (q1, (right1, wrong1)), (q2, (right2, _)) = answer_ids(app, quiz_id).items()

        assert answer(client, auth_headers, attempt_id, q1, wrong1).status_code == 200
        response = answer(client, auth_headers, attempt_id, q1, right1)
        assert response.get_json()['answers'] == [{'question_id': q1, 'selected_option': right1}]

        answer(client, auth_headers, attempt_id, q2, right2)
        response = answer(client, auth_headers, attempt_id, q2, -1)
        assert response.get_json()['answers'] == [{'question_id': q1, 'selected_option': right1}]

    def test_option_from_other_question(self, app, client, auth_headers, quiz_id):
        attempt_id = start(client, auth_headers, quiz_id).get_json()['attempt']['id']
        (q1, _), (_, (right2, _)) = answer_ids(app, quiz_id).items()

        response = answer(client, auth_headers, attempt_id, q1, right2)
        assert response.status_code == 400

    def test_question_id_required(self, client, auth_headers, quiz_id):
        attempt_id = start(client, auth_headers, quiz_id).get_json()['attempt']['id']
        response = client.put(f'/api/attempts/{attempt_id}/answers', headers=auth_headers,
                              json={'selected_option': 1})
        assert response.status_code == 400

    def test_other_user_cannot_see_attempt(self, app, client, auth_headers, quiz_id):
        attempt_id = start(client, auth_headers, quiz_id).get_json()['attempt']['id']
        other = token_headers(app, make_user(app, 'bob'))

        assert client.get(f'/api/attempts/{attempt_id}', headers=other).status_code == 404
        assert client.post(f'/api/attempts/{attempt_id}/finish', headers=other).status_code == 404


class TestFinish:

    def test_finish_scores_attempt(self, app, client, auth_headers, quiz_id):
        attempt_id = start(client, auth_headers, quiz_id).get_json()['attempt']['id']
        (q1, (right1, _)), (q2, (_, wrong2)) = answer_ids(app, quiz_id).items()
        answer(client, auth_headers, attempt_id, q1, right1)
        answer(client, auth_headers, attempt_id, q2, wrong2)

        response = client.post(f'/api/attempts/{attempt_id}/finish', headers=auth_headers)
        assert response.status_code == 201
        score = response.get_json()['score']
        assert score['total_questions'] == 2
        assert score['total_scored'] == 1
        assert score['percentage'] == 50.0
        assert score['passed'] is True
        assert score['attempt_id'] == attempt_id

        detail = client.get(f'/api/attempts/{attempt_id}', headers=auth_headers).get_json()
        assert detail['status'] == 'finished'
        assert detail['time_left'] == 0
        assert detail['score_id'] == score['id']

    def test_finish_twice(self, client, auth_headers, quiz_id):
        attempt_id = start(client, auth_headers, quiz_id).get_json()['attempt']['id']
        client.post(f'/api/attempts/{attempt_id}/finish', headers=auth_headers)

        response = client.post(f'/api/attempts/{attempt_id}/finish', headers=auth_headers)
        assert response.status_code == 409

    def test_answer_after_finish(self, app, client, auth_headers, quiz_id):
        attempt_id = start(client, auth_headers, quiz_id).get_json()['attempt']['id']
        client.post(f'/api/attempts/{attempt_id}/finish', headers=auth_headers)
        q1, (right1, _) = next(iter(answer_ids(app, quiz_id).items()))

        assert answer(client, auth_headers, attempt_id, q1, right1).status_code == 409

    def test_elapsed_time_recorded(self, app, client, auth_headers, quiz_id):
        attempt_id = start(client, auth_headers, quiz_id).get_json()['attempt']['id']
        rewind_attempt(app, attempt_id, 125)

        score = client.post(f'/api/attempts/{attempt_id}/finish', headers=auth_headers).get_json()['score']
        assert score['time_taken'] in ('00:02:05', '00:02:06')


class TestExpiry:

    def test_expired_attempt_is_auto_submitted(self, app, client, auth_headers, quiz_id):
        attempt_id = start(client, auth_headers, quiz_id).get_json()['attempt']['id']
        q1, (right1, _) = next(iter(answer_ids(app, quiz_id).items()))
        answer(client, auth_headers, attempt_id, q1, right1)

        rewind_attempt(app, attempt_id, 11 * 60)

        response = answer(client, auth_headers, attempt_id, q1, right1)
        assert response.status_code == 409

        with app.app_context():
            attempt = db.session.get(Attempt, attempt_id)
            assert attempt.status == 'finished'
            score = Score.query.filter_by(attempt_id=attempt_id).one()
            assert score.total_scored == 1
            assert score.time_taken == '00:10:00'

    def test_expired_attempt_not_resumed(self, app, client, auth_headers, quiz_id):
        first = start(client, auth_headers, quiz_id).get_json()['attempt']['id']
        rewind_attempt(app, first, 11 * 60)

        response = start(client, auth_headers, quiz_id)
        assert response.status_code == 201
        assert response.get_json()['attempt']['id'] != first


class TestTimeLimitChanges:

    def test_editing_time_limit_keeps_running_deadline(self, app, client, auth_headers, admin_headers, quiz_id):
        started = start(client, auth_headers, quiz_id).get_json()['attempt']
        rewind_attempt(app, started['id'], 120)

        response = client.put(f'/api/quizzes/{quiz_id}', headers=admin_headers, json={'timeLimit': '00:01'})
        assert response.status_code == 200

        attempt = client.get(f'/api/attempts/{started["id"]}', headers=auth_headers).get_json()
        assert attempt['status'] == 'in_progress'
        assert 470 <= attempt['time_left'] <= 480

        q1, (right1, _) = next(iter(answer_ids(app, quiz_id).items()))
        assert answer(client, auth_headers, started['id'], q1, right1).status_code == 200

    def test_new_attempt_uses_new_time_limit(self, client, auth_headers, admin_headers, quiz_id):
        client.put(f'/api/quizzes/{quiz_id}', headers=admin_headers, json={'timeLimit': '00:01'})
        attempt = start(client, auth_headers, quiz_id).get_json()['attempt']
        assert 50 <= attempt['time_left'] <= 60
