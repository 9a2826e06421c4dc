"""
Forms validate JSON body (Flask-WTF đọc request.get_json() khi content-type là JSON)

Field name theo đúng key client gửi lên, ví dụ chapterId/timeLimit của quiz.
"""
import re

from flask_wtf import FlaskForm
from wtforms import fields, BooleanField, SelectField
from wtforms.validators import DataRequired, Length, Optional, ValidationError, NumberRange, InputRequired, Regexp
from quizmaster.models import User, ROLE_ADMIN, ROLE_USER

TIME_DURATION_PATTERN = r'^\d{1,2}:[0-5]\d$'
FALSE_VALUES = (False, 'false', 'False', '0', 0, '')


# ==================== JSON FIELDS ====================
class JsonTypeMixin:
    """
    JSON giữ nguyên kiểu (số, object...) khi qua form, field chỉ nhận đúng kiểu
    trong json_types; sai kiểu thành lỗi validate (400). null coi như không gửi.
    """
    json_types = (str,)
    json_type_message = 'Must be a string'

    def process_formdata(self, valuelist):
        if not valuelist or valuelist[0] is None:
            self.raw_data = []
            return
        value = valuelist[0]
        if isinstance(value, bool) or not isinstance(value, self.json_types):
            raise ValueError(self.json_type_message)
        super().process_formdata(valuelist)


class StringField(JsonTypeMixin, fields.StringField):
    pass


class TextAreaField(JsonTypeMixin, fields.TextAreaField):
    pass


class PasswordField(JsonTypeMixin, fields.PasswordField):
    pass


class DateField(JsonTypeMixin, fields.DateField):
    pass


class IntegerField(JsonTypeMixin, fields.IntegerField):
    json_types = (int, str)
    json_type_message = 'Must be an integer'


class FloatField(JsonTypeMixin, fields.FloatField):
    json_types = (int, float, str)
    json_type_message = 'Must be a number'


def _validate_time_duration(form, field):
    if field.data and re.match(r'^0{1,2}:00$', field.data):
        raise ValidationError('Time limit must be greater than 00:00')


# ==================== AUTH ====================
class LoginForm(FlaskForm):
    """Form đăng nhập"""
    username = StringField('Username', validators=[
        DataRequired(message='Username is required')
    ])
    password = PasswordField('Password', validators=[
        DataRequired(message='Password is required')
    ])


class RegisterForm(FlaskForm):
    """Form đăng ký tài khoản user"""
    username = StringField('Username', validators=[
        DataRequired(message='Username is required'),
        Length(min=3, max=80)
    ])
    password = PasswordField('Password', validators=[
        DataRequired(message='Password is required'),
        Length(min=6, message='Password must be at least 6 characters')
    ])
    full_name = StringField('Full name', validators=[
        DataRequired(message='Full name is required'),
        Length(max=120)
    ])
    qualification = StringField('Qualification', validators=[Optional(), Length(max=120)])
    dob = DateField('Date of birth', validators=[Optional()])

    def validate_username(self, username):
        """Kiểm tra username có trùng không"""
        if User.query.filter_by(username=username.data).first():
            raise ValidationError('Username already exists')


class ProfileForm(FlaskForm):
    """Sửa profile của chính mình (mọi field đều tùy chọn)"""
    full_name = StringField('Full name', validators=[Optional(), Length(min=1, max=120)])
    qualification = StringField('Qualification', validators=[Optional(), Length(max=120)])
    dob = DateField('Date of birth', validators=[Optional()])
    password = PasswordField('Password', validators=[
        Optional(),
        Length(min=6, message='Password must be at least 6 characters')
    ])


class UserAdminForm(ProfileForm):
    """Admin sửa user: thêm role và trạng thái"""
    role = SelectField('Role', choices=[(ROLE_ADMIN, 'Admin'), (ROLE_USER, 'User')],
                       validators=[Optional()], validate_choice=False)
    is_active = BooleanField('Active', false_values=FALSE_VALUES)

    def validate_role(self, role):
        if role.data and role.data not in (ROLE_ADMIN, ROLE_USER):
            raise ValidationError('Role must be admin or user')


# ==================== SUBJECT / CHAPTER ====================
class SubjectForm(FlaskForm):
    """Form môn học"""
    name = StringField('Name', validators=[
        DataRequired(message='Subject name is required'),
        Length(min=2, max=120)
    ])
    description = TextAreaField('Description', validators=[Optional()])


class SubjectUpdateForm(SubjectForm):
    name = StringField('Name', validators=[Optional(), Length(min=2, max=120)])


class ChapterForm(FlaskForm):
    """Form chương"""
    name = StringField('Name', validators=[
        DataRequired(message='Chapter name is required'),
        Length(min=1, max=120)
    ])
    description = TextAreaField('Description', validators=[Optional()])
    subject_id = IntegerField('Subject', name='subjectId', validators=[
        InputRequired(message='Subject is required')
    ])


class ChapterUpdateForm(ChapterForm):
    name = StringField('Name', validators=[Optional(), Length(min=1, max=120)])
    subject_id = IntegerField('Subject', name='subjectId', validators=[Optional()])


# ==================== QUIZ ====================
class QuizForm(FlaskForm):
    """Form tạo quiz (key giống client: title, description, chapterId, timeLimit)"""
    title = StringField('Title', validators=[
        DataRequired(message='Quiz title is required'),
        Length(min=1, max=200)
    ])
    description = TextAreaField('Description', validators=[Optional()])
    chapter_id = IntegerField('Chapter', name='chapterId', validators=[
        InputRequired(message='Chapter is required')
    ])
    time_limit = StringField('Time limit (HH:MM)', name='timeLimit', validators=[
        Optional(),
        Regexp(TIME_DURATION_PATTERN, message='Time limit must be HH:MM'),
        _validate_time_duration
    ])
    pass_percentage = FloatField('Pass percentage', name='passPercentage', validators=[
        Optional(),
        NumberRange(min=0, max=100, message='Pass percentage must be between 0 and 100')
    ])


class QuizUpdateForm(QuizForm):
    title = StringField('Title', validators=[Optional(), Length(min=1, max=200)])
    chapter_id = IntegerField('Chapter', name='chapterId', validators=[Optional()])


# ==================== QUESTION ====================
class QuestionForm(FlaskForm):
    """Form câu hỏi; options xử lý riêng vì là list lồng nhau"""
    quiz_id = IntegerField('Quiz', validators=[InputRequired(message='Quiz is required')])
    title = StringField('Title', validators=[Optional(), Length(max=200)])
    question_statement = TextAreaField('Question', validators=[
        DataRequired(message='Question statement is required')
    ])
    position = IntegerField('Position', validators=[Optional(), NumberRange(min=0)])


class QuestionUpdateForm(QuestionForm):
    quiz_id = IntegerField('Quiz', validators=[Optional()])
    question_statement = TextAreaField('Question', validators=[Optional()])
