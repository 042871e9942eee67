import math

from flask_wtf import FlaskForm
from wtforms import Field, StringField, PasswordField, SelectField
from wtforms.validators import DataRequired, Length, Regexp, ValidationError
from wtforms.widgets import TextInput

from testprep.validation import (
    EMAIL_RE, MIN_PASSWORD_LENGTH, sanitize_input, to_number, parse_tags,
    resolve_answer_key, build_test_questions, unique_ids,
)

QUESTION_TYPE_CHOICES = [
    ('mcq_single', 'MCQ (Single Correct)'),
    ('mcq_multiple', 'MCQ (Multiple Correct)'),
    ('numerical', 'Numerical'),
]
DIFFICULTY_CHOICES = [('easy', 'Easy'), ('medium', 'Medium'), ('hard', 'Hard')]


def _strip(value):
    return '' if value is None else str(value).strip()


def _strip_or_none(value):
    value = _strip(value)
    return value or None


def first_error(form):
    """The message shown inline: first failing field in declaration order."""
    for name, errors in form.errors.items():
        if name is not None and errors:
            return errors[0]
    if form.form_errors:
        return form.form_errors[0]
    return 'Invalid input.'


# ---------------------------------------------------------------------------
# List fields. JSON arrays arrive as repeated values; HTML forms may send a
# single comma separated value instead.
# ---------------------------------------------------------------------------

class StringListField(Field):
    widget = TextInput()

    def _value(self):
        return ', '.join(str(v) for v in self.data or [])

    def process_data(self, value):
        self.data = list(value or [])

    def process_formdata(self, valuelist):
        self.data = list(valuelist)


class TagListField(StringListField):
    def process_formdata(self, valuelist):
        self.data = parse_tags(valuelist)


class IdListField(StringListField):
    def process_formdata(self, valuelist):
        self.data = unique_ids(parse_tags(valuelist))


class EntryListField(Field):
    """Raw list of mapping entries (JSON only)."""
    widget = TextInput()

    def _value(self):
        return ''

    def process_data(self, value):
        self.data = list(value or [])

    def process_formdata(self, valuelist):
        self.data = list(valuelist)


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------

class LoginForm(FlaskForm):
    email = StringField('Email', filters=[_strip], validators=[
        Regexp(EMAIL_RE, message='Please enter a valid email address.')])
    password = PasswordField('Password', validators=[
        DataRequired(message='Password must be at least 6 characters long.'),
        Length(min=MIN_PASSWORD_LENGTH, message='Password must be at least 6 characters long.')])


class RegistrationForm(FlaskForm):
    name = StringField('Name', filters=[sanitize_input], validators=[
        Length(min=2, message='Name must be at least 2 characters long.')])
    email = StringField('Email', filters=[lambda v: _strip(v).lower()], validators=[
        Regexp(EMAIL_RE, message='Please enter a valid email address.')])
    password = PasswordField('Password', validators=[
        DataRequired(message='Password must be at least 6 characters long.'),
        Length(min=MIN_PASSWORD_LENGTH, message='Password must be at least 6 characters long.')])


# ---------------------------------------------------------------------------
# Question bank
# ---------------------------------------------------------------------------

class QuestionForm(FlaskForm):
    type = SelectField('Type', choices=QUESTION_TYPE_CHOICES, default='mcq_single')
    subject = StringField('Subject', filters=[sanitize_input],
                          validators=[DataRequired(message='Subject is required.')])
    chapter = StringField('Chapter', filters=[sanitize_input],
                          validators=[DataRequired(message='Chapter is required.')])
    topic = StringField('Topic', filters=[sanitize_input],
                        validators=[DataRequired(message='Topic is required.')])
    subtopic = StringField('Subtopic', filters=[sanitize_input],
                           validators=[DataRequired(message='Subtopic is required.')])
    text = StringField('Question', filters=[_strip],
                       validators=[DataRequired(message='Question text is required.')])
    marks = StringField('Marks', default='4')
    penalty = StringField('Penalty', default='0')
    difficulty = SelectField('Difficulty', choices=DIFFICULTY_CHOICES, default='easy')

    custom_id = StringField('Custom ID', filters=[_strip_or_none])
    tags = TagListField('Tags')
    image_url = StringField('Image URL', filters=[_strip_or_none])
    image_path = StringField('Image storage path', filters=[_strip_or_none])
    options = StringListField('Options')
    correct_options = StringListField('Correct options')
    correct_answer = StringField('Correct answer')
    explanation = StringField('Explanation', filters=[_strip_or_none])

    answer_key = None

    def validate_marks(self, field):
        value = to_number(field.data)
        if math.isnan(value) or value <= 0:
            raise ValidationError('Marks must be a positive number.')

    def validate_penalty(self, field):
        if math.isnan(to_number(field.data)):
            raise ValidationError('Penalty must be a number (0 if none).')

    def validate(self, extra_validators=None):
        if not super().validate(extra_validators=extra_validators):
            return False
        try:
            self.answer_key = resolve_answer_key(
                self.type.data, self.options.data, self.correct_options.data,
                self.correct_answer.data)
        except ValidationError as e:
            self.form_errors.append(str(e))
            return False
        return True

    def to_question_data(self):
        """Document fields for the data layer. Call after validate()."""
        options, correct_options, correct_answer = self.answer_key
        data = {
            'type': self.type.data,
            'subject': self.subject.data,
            'chapter': self.chapter.data or None,
            'topic': self.topic.data,
            'subtopic': self.subtopic.data or None,
            'custom_id': self.custom_id.data,
            'tags': self.tags.data,
            'text': self.text.data,
            'image_url': self.image_url.data,
            'image_path': self.image_path.data,
            'correct_answer': correct_answer,
            'explanation': self.explanation.data,
            'marks': to_number(self.marks.data),
            'penalty': to_number(self.penalty.data),
            'difficulty': self.difficulty.data,
        }
        if options is not None:
            data['options'] = options
            data['correct_options'] = correct_options
        return data


class EditQuestionForm(QuestionForm):
    # Older documents predate chapter/subtopic classification
    chapter = StringField('Chapter', filters=[sanitize_input])
    subtopic = StringField('Subtopic', filters=[sanitize_input])


# ---------------------------------------------------------------------------
# Tests and series
# ---------------------------------------------------------------------------

class TestForm(FlaskForm):
    title = StringField('Title', filters=[sanitize_input],
                        validators=[DataRequired(message='Test title is required.')])
    description = StringField('Description', filters=[sanitize_input])
    duration_minutes = StringField('Duration (minutes)', default='60')
    questions = EntryListField('Questions')

    test_questions = None

    def validate_duration_minutes(self, field):
        value = to_number(field.data)
        if math.isnan(value) or value <= 0:
            raise ValidationError('Duration must be a positive number.')

    def validate_questions(self, field):
        self.test_questions = build_test_questions(field.data)

    def to_test_data(self):
        return {
            'title': self.title.data,
            'description': self.description.data,
            'duration_minutes': to_number(self.duration_minutes.data),
            'questions': self.test_questions,
        }


class TestSeriesForm(FlaskForm):
    title = StringField('Title', filters=[sanitize_input],
                        validators=[DataRequired(message='Test series title is required.')])
    description = StringField('Description', filters=[sanitize_input])
    test_ids = IdListField('Tests')
    price = StringField('Price', default='0')
    thumbnail = StringField('Thumbnail', filters=[_strip_or_none])

    def validate_test_ids(self, field):
        if not field.data:
            raise ValidationError('Please select at least one test for the series.')

    def validate_price(self, field):
        value = to_number(field.data)
        if math.isnan(value) or value < 0:
            raise ValidationError('Please enter a valid price (must be a positive number).')

    def to_series_data(self):
        return {
            'title': self.title.data,
            'description': self.description.data,
            'test_ids': self.test_ids.data,
            'price': to_number(self.price.data),
            'thumbnail': self.thumbnail.data,
        }
