"""
Shape validation shared by the question, test and test-series forms.

The helpers raise ``wtforms.validators.ValidationError`` so that form
``validate_<field>`` hooks can call them directly; route code catches the
same exception for payload parts that are not plain form fields.
"""

import math
import re

from wtforms.validators import ValidationError

from testprep.firestore_models import MCQ_TYPES

EMAIL_RE = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
MIN_PASSWORD_LENGTH = 6
MIN_MCQ_OPTIONS = 2
MAX_MCQ_OPTIONS = 6


def is_valid_email(email):
    if not isinstance(email, str):
        return False
    return bool(EMAIL_RE.match(email.strip()))


def is_valid_password(password):
    return isinstance(password, str) and len(password) >= MIN_PASSWORD_LENGTH


def sanitize_input(value):
    """Trim and drop angle brackets (basic XSS prevention)."""
    if value is None:
        return ''
    return str(value).strip().replace('<', '').replace('>', '')


def to_number(value):
    """Coerce a form value the way a browser number input does.

    Blank or missing -> 0.0, finite numeric strings and numbers -> float,
    anything else (booleans and infinities included) -> NaN.
    """
    if value is None or isinstance(value, bool):
        return 0.0 if value is None else math.nan
    if isinstance(value, (int, float)):
        result = float(value)
    else:
        text = str(value).strip()
        if not text:
            return 0.0
        try:
            result = float(text)
        except ValueError:
            return math.nan
    return result if math.isfinite(result) else math.nan


def parse_tags(value):
    """Split a comma separated string (or list of strings) into clean tags."""
    if value is None:
        return []
    raw = value if isinstance(value, (list, tuple)) else [value]
    tags = []
    for item in raw:
        if item is None:
            continue
        for part in str(item).split(','):
            part = part.strip()
            if part:
                tags.append(part)
    return tags


def _plural(count, singular, plural=None):
    return singular if count == 1 else (plural or singular + 's')


def _empty_selection_message(indices, suffix):
    numbers = ', '.join(str(i + 1) for i in indices)
    many = len(indices) > 1
    return (
        f"You've selected option{'s' if many else ''} {numbers} as correct, "
        f"but {'they are' if many else 'it is'} empty. {suffix}"
    )


def _to_index(value):
    if isinstance(value, bool):
        raise ValidationError('Correct options must be option numbers.')
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError('Correct options must be option numbers.')


def resolve_answer_key(question_type, options=None, correct_options=None, correct_answer=None):
    """Normalise the answer fields of a question.

    MCQ: empty options are dropped and the selected indices are remapped onto
    the compacted option list. Numerical: only a trimmed free-text answer is
    kept. Returns ``(options, correct_options, correct_answer)`` where the
    option fields are ``None`` for numerical questions.
    """
    if question_type in MCQ_TYPES:
        trimmed = [sanitize_option(opt) for opt in (options or [])]

        original_to_new = {}
        filled = []
        for original_idx, opt in enumerate(trimmed):
            if opt:
                original_to_new[original_idx] = len(filled)
                filled.append(opt)

        if len(filled) < MIN_MCQ_OPTIONS:
            raise ValidationError(
                f'At least 2 option text fields must be filled in for MCQ questions. '
                f'You currently have {len(filled)} filled {_plural(len(filled), "option")}. '
                f'Please fill in at least 2 option text fields.'
            )
        if len(filled) > MAX_MCQ_OPTIONS:
            raise ValidationError(
                f'MCQ questions can have at most {MAX_MCQ_OPTIONS} options. '
                f'You currently have {len(filled)} filled options.'
            )

        selected = []
        for value in correct_options or []:
            idx = _to_index(value)
            if idx not in selected:
                selected.append(idx)

        if not selected:
            raise ValidationError('Please select at least one correct option by checking the boxes.')

        valid = [original_to_new[idx] for idx in selected if idx in original_to_new]
        empty = [idx for idx in selected if idx not in original_to_new]

        if not valid:
            raise ValidationError(_empty_selection_message(
                empty,
                f"Please fill in the text for the option{'s' if len(empty) > 1 else ''} "
                f"you've selected as correct."))

        if empty:
            raise ValidationError(_empty_selection_message(
                empty, 'Please fill in the text for all selected options.'))

        if question_type == 'mcq_single' and len(valid) != 1:
            raise ValidationError('Single correct MCQ must have exactly one correct option selected.')

        return filled, valid, None

    if question_type == 'numerical':
        answer = '' if correct_answer is None else str(correct_answer).strip()
        if not answer:
            raise ValidationError('Correct answer is required for numerical questions.')
        return None, None, answer

    raise ValidationError('Not a valid question type.')


def sanitize_option(value):
    return '' if value is None else str(value).strip()


def build_test_questions(entries):
    """Turn selected question entries into ordered test question dicts.

    Each entry is a mapping with ``question_id``, ``marks`` and
    ``negative_marks``; order follows the selection order.
    """
    if not entries:
        raise ValidationError('Please select at least one question for the test.')

    test_questions = []
    seen = set()
    for position, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise ValidationError(f'Question {position + 1} is not a valid selection.')
        question_id = sanitize_option(entry.get('question_id'))
        if not question_id:
            raise ValidationError(f'Question {position + 1} is missing questionId')
        if question_id in seen:
            continue
        seen.add(question_id)

        marks = to_number(entry.get('marks'))
        negative_marks = to_number(entry.get('negative_marks'))

        if math.isnan(marks) or marks <= 0:
            raise ValidationError(f'Question {len(test_questions) + 1} must have positive marks.')
        if math.isnan(negative_marks) or negative_marks < 0:
            raise ValidationError(
                f'Question {len(test_questions) + 1} cannot have negative marking less than 0.')

        test_questions.append({
            'question_id': question_id,
            'marks': marks,
            'negative_marks': negative_marks,
            'order': len(test_questions),
        })
    return test_questions


def unique_ids(values):
    """Clean a list of document ids, keeping first-seen order."""
    ids = []
    for value in values or []:
        value = sanitize_option(value)
        if value and value not in ids:
            ids.append(value)
    return ids
