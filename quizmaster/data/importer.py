"""
Import ngân hàng câu hỏi từ JSON
================================
Chạy: flask --app wsgi import-quizzes quizmaster/data/sample_quizzes.json

Định dạng file:
{
  "subjects": [
    {"name": "...", "description": "...",
     "chapters": [
       {"name": "...", "description": "...",
        "quizzes": [
          {"name": "...", "remarks": "...", "time_duration": "00:10", "pass_percentage": 60,
           "questions": [
             {"question_statement": "...", "options": ["A", "B"], "correct_option": 0}
           ]}
        ]}
     ]}
  ]
}

Tính năng:
- Tìm theo tên: có rồi thì cập nhật, chưa có thì tạo mới
- Quiz có "questions" thì ghi đè câu hỏi theo vị trí (giữ id), câu thừa bị xóa
- Lỗi ở môn nào (dữ liệu sai, trùng slug...) thì rollback môn đó, các môn khác vẫn import
"""

import json
import os

from flask import current_app
from slugify import slugify
from sqlalchemy.exc import SQLAlchemyError

from quizmaster import db
from quizmaster.models import Subject, Chapter, Quiz, Question, normalize_options
from quizmaster.quiz.engine import parse_time_duration
from quizmaster.data import SAMPLE_QUIZZES_JSON


class QuizImportError(Exception):
    """Dữ liệu một mục không hợp lệ"""


class QuizImporter:
    """Class xử lý import quiz"""

    def __init__(self, json_file=None):
        self.json_file = json_file or SAMPLE_QUIZZES_JSON
        self.stats = {
            'subjects_created': 0,
            'subjects_updated': 0,
            'chapters_created': 0,
            'chapters_updated': 0,
            'quizzes_created': 0,
            'quizzes_updated': 0,
            'questions_imported': 0,
            'skipped': 0,
            'errors': 0
        }

    def load_json_data(self):
        """Đọc dữ liệu từ file JSON"""
        if not os.path.exists(self.json_file):
            raise FileNotFoundError(f'File not found: {self.json_file}')

        with open(self.json_file, 'r', encoding='utf-8') as f:
            data = json.load(f)

        if not isinstance(data, dict) or not isinstance(data.get('subjects'), list):
            raise ValueError('JSON must be an object with a "subjects" list')
        return data

    # ==================== VALIDATE ====================
    @staticmethod
    def _item(data, kind):
        """Mỗi mục trong JSON phải là object"""
        if not isinstance(data, dict):
            raise QuizImportError(f'{kind} entry must be an object, got {type(data).__name__}')
        return data

    @staticmethod
    def _name(data):
        name = data.get('name')
        if name is not None and not isinstance(name, str):
            raise QuizImportError(f'Name must be a string, got {name!r}')
        return (name or '').strip()

    @staticmethod
    def _list(data, key, owner):
        items = data.get(key) or []
        if not isinstance(items, list):
            raise QuizImportError(f'{owner}: "{key}" must be a list')
        return items

    @staticmethod
    def _pass_percentage(name, value):
        if isinstance(value, bool):
            raise QuizImportError(f'Quiz {name!r}: pass_percentage must be a number')
        try:
            value = float(value)
        except (TypeError, ValueError):
            raise QuizImportError(f'Quiz {name!r}: pass_percentage must be a number, got {value!r}')
        if not 0 <= value <= 100:
            raise QuizImportError(f'Quiz {name!r}: pass_percentage must be between 0 and 100')
        return value

    # ==================== SUBJECT ====================
    def import_subject(self, subject_data):
        subject_data = self._item(subject_data, 'Subject')
        name = self._name(subject_data)
        if not name:
            raise QuizImportError('Missing subject name')

        subject = Subject.query.filter_by(name=name).first()
        if subject:
            if 'description' in subject_data:
                subject.description = subject_data['description']
            self.stats['subjects_updated'] += 1
        else:
            if Subject.query.filter_by(slug=slugify(name)).first():
                raise QuizImportError(f'Subject {name!r} clashes with an existing subject slug')
            subject = Subject(description=subject_data.get('description'))
            subject.set_name(name)
            db.session.add(subject)
            db.session.flush()  # Để lấy ID
            self.stats['subjects_created'] += 1

        for chapter_data in self._list(subject_data, 'chapters', f'Subject {name!r}'):
            self.import_chapter(subject, chapter_data)
        return subject

    # ==================== CHAPTER ====================
    def import_chapter(self, subject, chapter_data):
        chapter_data = self._item(chapter_data, 'Chapter')
        name = self._name(chapter_data)
        if not name:
            current_app.logger.warning(f'Skipped chapter without name in subject {subject.name}')
            self.stats['skipped'] += 1
            return None

        chapter = Chapter.query.filter_by(subject_id=subject.id, name=name).first()
        if chapter:
            if 'description' in chapter_data:
                chapter.description = chapter_data['description']
            self.stats['chapters_updated'] += 1
        else:
            chapter = Chapter(subject_id=subject.id, name=name, description=chapter_data.get('description'))
            db.session.add(chapter)
            db.session.flush()
            self.stats['chapters_created'] += 1

        for quiz_data in self._list(chapter_data, 'quizzes', f'Chapter {name!r}'):
            self.import_quiz(chapter, quiz_data)
        return chapter

    # ==================== QUIZ ====================
    def import_quiz(self, chapter, quiz_data):
        quiz_data = self._item(quiz_data, 'Quiz')
        name = self._name(quiz_data)
        if not name:
            current_app.logger.warning(f'Skipped quiz without name in chapter {chapter.name}')
            self.stats['skipped'] += 1
            return None

        config = current_app.config
        time_duration = quiz_data.get('time_duration') or config['DEFAULT_TIME_DURATION']
        try:
            parse_time_duration(time_duration)
        except (TypeError, AttributeError, ValueError) as e:
            raise QuizImportError(f'Quiz {name!r}: {e}')
        pass_percentage = self._pass_percentage(
            name, quiz_data.get('pass_percentage', config['DEFAULT_PASS_PERCENTAGE']))

        questions = []
        for index, question_data in enumerate(self._list(quiz_data, 'questions', f'Quiz {name!r}')):
            question_data = self._item(question_data, 'Question')
            statement = question_data.get('question_statement')
            if not isinstance(statement, str) or not statement.strip():
                raise QuizImportError(f'Quiz {name!r}: question #{index + 1} has no statement')
            try:
                options = normalize_options(question_data.get('options'), question_data.get('correct_option'))
            except ValueError as e:
                raise QuizImportError(f'Quiz {name!r}: question #{index + 1}: {e}')
            questions.append((question_data.get('title'), statement.strip(), options))

        quiz = Quiz.query.filter_by(chapter_id=chapter.id, name=name).first()
        if quiz:
            self.stats['quizzes_updated'] += 1
        else:
            quiz = Quiz(chapter_id=chapter.id, name=name)
            db.session.add(quiz)
            self.stats['quizzes_created'] += 1

        quiz.remarks = quiz_data.get('remarks', quiz.remarks)
        quiz.time_duration = time_duration
        quiz.pass_percentage = pass_percentage
        db.session.flush()

        if questions:
            self.replace_questions(quiz, questions)
        return quiz

    def replace_questions(self, quiz, questions):
        """
        Ghi câu hỏi theo thứ tự, câu cùng vị trí được sửa tại chỗ

        Giữ id câu hỏi/đáp án để kết quả cũ và lượt đang làm không bị lệch.
        """
        existing = quiz.questions.all()
        for position, (title, statement, options) in enumerate(questions):
            if position < len(existing):
                question = existing[position]
            else:
                question = Question(quiz=quiz)
                db.session.add(question)
            question.title = title
            question.question_statement = statement
            question.position = position
            question.set_options(options)

        for extra in existing[len(questions):]:
            db.session.delete(extra)
        self.stats['questions_imported'] += len(questions)

    def run(self):
        """Chạy toàn bộ quá trình import, trả về thống kê"""
        data = self.load_json_data()
        current_app.logger.info(f'Importing quizzes from {self.json_file}')

        for idx, subject_data in enumerate(data['subjects'], 1):
            try:
                subject = self.import_subject(subject_data)
                db.session.commit()
                current_app.logger.info(f'[{idx}] Imported subject {subject.name}')
            except (QuizImportError, SQLAlchemyError) as e:
                db.session.rollback()
                self.stats['errors'] += 1
                current_app.logger.error(f'[{idx}] Import failed: {e}')

        return self.stats
