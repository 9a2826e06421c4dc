"""
Tests cho môn học và chương
"""
from quizmaster import db
from quizmaster.models import Chapter, Quiz


class TestSubjects:

    def test_create_subject(self, client, admin_headers):
        response = client.post('/api/subjects', headers=admin_headers,
                               json={'name': 'Physics', 'description': 'Forces and motion'})
        assert response.status_code == 201
        subject = response.get_json()['subject']
        assert subject['name'] == 'Physics'
        assert subject['slug'] == 'physics'
        assert subject['chapter_count'] == 0

    def test_duplicate_subject(self, client, admin_headers, subject_id):
        response = client.post('/api/subjects', headers=admin_headers, json={'name': 'Mathematics'})
        assert response.status_code == 400
        assert response.get_json()['message'] == 'Subject already exists'

    def test_create_subject_requires_admin(self, client, auth_headers):
        response = client.post('/api/subjects', headers=auth_headers, json={'name': 'Physics'})
        assert response.status_code == 403

    def test_list_and_detail(self, client, auth_headers, chapter_id, subject_id):
        response = client.get('/api/subjects', headers=auth_headers)
        assert response.status_code == 200
        assert [s['name'] for s in response.get_json()] == ['Mathematics']

        detail = client.get(f'/api/subjects/{subject_id}', headers=auth_headers).get_json()
        assert detail['chapter_count'] == 1
        assert detail['chapters'][0]['name'] == 'Algebra'

    def test_subject_not_found(self, client, auth_headers):
        response = client.get('/api/subjects/999', headers=auth_headers)
        assert response.status_code == 404
        assert response.get_json()['message'] == 'Subject not found'

    def test_update_subject(self, client, admin_headers, subject_id):
        response = client.put(f'/api/subjects/{subject_id}', headers=admin_headers,
                              json={'name': 'Applied Mathematics'})
        assert response.status_code == 200
        subject = response.get_json()['subject']
        assert subject['slug'] == 'applied-mathematics'
        assert subject['description'] == 'Numbers'

    def test_delete_subject_cascades(self, app, client, admin_headers, subject_id, quiz_id):
        response = client.delete(f'/api/subjects/{subject_id}', headers=admin_headers)
        assert response.status_code == 200
        with app.app_context():
            assert Chapter.query.count() == 0
            assert db.session.get(Quiz, quiz_id) is None


class TestChapters:

    def test_create_chapter(self, client, admin_headers, subject_id):
        response = client.post('/api/chapters', headers=admin_headers,
                               json={'name': 'Geometry', 'subjectId': subject_id})
        assert response.status_code == 201
        assert response.get_json()['chapter']['subject_id'] == subject_id

    def test_create_chapter_missing_subject(self, client, admin_headers):
        response = client.post('/api/chapters', headers=admin_headers,
                               json={'name': 'Geometry', 'subjectId': 999})
        assert response.status_code == 404

    def test_duplicate_chapter_in_subject(self, client, admin_headers, subject_id, chapter_id):
        response = client.post('/api/chapters', headers=admin_headers,
                               json={'name': 'Algebra', 'subjectId': subject_id})
        assert response.status_code == 400
        assert response.get_json()['message'] == 'Chapter already exists in this subject'

    def test_chapters_by_subject(self, client, auth_headers, subject_id, chapter_id):
        response = client.get(f'/api/chapters/subject/{subject_id}', headers=auth_headers)
        assert [c['id'] for c in response.get_json()] == [chapter_id]

        filtered = client.get(f'/api/chapters?subject_id={subject_id}', headers=auth_headers)
        assert len(filtered.get_json()) == 1

    def test_chapter_detail_lists_quizzes(self, client, auth_headers, chapter_id, quiz_id):
        detail = client.get(f'/api/chapters/{chapter_id}', headers=auth_headers).get_json()
        assert detail['quiz_count'] == 1
        assert detail['quizzes'][0]['id'] == quiz_id

    def test_update_and_delete_chapter(self, client, admin_headers, chapter_id):
        response = client.put(f'/api/chapters/{chapter_id}', headers=admin_headers,
                              json={'name': 'Linear Algebra', 'description': 'Matrices'})
        assert response.status_code == 200
        assert response.get_json()['chapter']['name'] == 'Linear Algebra'

        assert client.delete(f'/api/chapters/{chapter_id}', headers=admin_headers).status_code == 200
        assert client.get(f'/api/chapters/{chapter_id}', headers=admin_headers).status_code == 404
