"""Excel (.xlsx) import and export of the question bank.

Sheet layout: row 1 holds the column headers, row 2 a hint/example row and
questions start on row 3. Options use one column per letter and the correct
column holds letters for MCQ (``A`` or ``A,C``) or the answer for numerical
questions.
"""

import io
import logging
import string

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font, PatternFill

from testprep.validation import MAX_MCQ_OPTIONS

logger = logging.getLogger(__name__)

XLSX_MIMETYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'
OPTION_LETTERS = string.ascii_uppercase[:MAX_MCQ_OPTIONS]
FIRST_DATA_ROW = 3

COLUMNS = [
    ('type', 'Type', 'mcq_single'),
    ('subject', 'Subject', 'Physics'),
    ('chapter', 'Chapter', 'Mechanics'),
    ('topic', 'Topic', 'Kinematics'),
    ('subtopic', 'Subtopic', '1D Motion'),
    ('custom_id', 'Custom ID', 'PHY-001'),
    ('difficulty', 'Difficulty', 'easy'),
    ('text', 'Question', 'A ball is dropped from rest. Its speed after 2 s is?'),
] + [
    (f'option_{letter.lower()}', f'Option {letter}', example)
    for letter, example in zip(OPTION_LETTERS, ['9.8 m/s', '19.6 m/s', '4.9 m/s', '0 m/s', '', ''])
] + [
    ('correct', 'Correct (letters or numerical answer)', 'B'),
    ('marks', 'Marks', 4),
    ('penalty', 'Penalty', 1),
    ('tags', 'Tags (comma separated)', 'free fall, kinematics'),
    ('explanation', 'Explanation', 'v = g t = 9.8 x 2'),
]
COLUMN_KEYS = [key for key, _, _ in COLUMNS]


def _new_sheet(title):
    wb = Workbook()
    ws = wb.active
    ws.title = title

    header_font = Font(bold=True)
    header_fill = PatternFill(start_color='E0E0E0', end_color='E0E0E0', fill_type='solid')
    for col, (_, header, _) in enumerate(COLUMNS, start=1):
        cell = ws.cell(row=1, column=col, value=header)
        cell.font = header_font
        cell.fill = header_fill
        ws.column_dimensions[cell.column_letter].width = 40 if col == COLUMN_KEYS.index('text') + 1 else 18
    return wb, ws


def _save(wb):
    output = io.BytesIO()
    wb.save(output)
    output.seek(0)
    return output.getvalue()


def build_template():
    """Blank import workbook with headers and one italic example row."""
    wb, ws = _new_sheet('Questions')
    example_font = Font(italic=True, color='888888')
    for col, (_, _, example) in enumerate(COLUMNS, start=1):
        cell = ws.cell(row=2, column=col, value=example if col > 1 else f'(example) {example}')
        cell.font = example_font
    return _save(wb)


def _question_row(question):
    options = question.get('options') or []
    if question.get('type') == 'numerical':
        correct = question.get('correct_answer') or ''
    else:
        correct = ','.join(
            OPTION_LETTERS[i] for i in question.get('correct_options') or []
            if 0 <= i < len(OPTION_LETTERS))
    row = {
        'type': question.get('type'),
        'subject': question.get('subject'),
        'chapter': question.get('chapter'),
        'topic': question.get('topic'),
        'subtopic': question.get('subtopic'),
        'custom_id': question.get('custom_id'),
        'difficulty': question.get('difficulty'),
        'text': question.get('text'),
        'correct': correct,
        'marks': question.get('marks'),
        'penalty': question.get('penalty'),
        'tags': ', '.join(question.get('tags') or []),
        'explanation': question.get('explanation'),
    }
    for letter, option in zip(OPTION_LETTERS, options):
        row[f'option_{letter.lower()}'] = option
    return [row.get(key) for key in COLUMN_KEYS]


def export_questions(questions):
    """Workbook bytes for the given question dicts, in the import layout."""
    wb, ws = _new_sheet('Questions')
    hint_font = Font(italic=True, color='888888')
    ws.cell(row=2, column=1, value='(exported questions start on row 3)').font = hint_font
    for row_num, question in enumerate(questions, start=FIRST_DATA_ROW):
        for col, value in enumerate(_question_row(question), start=1):
            ws.cell(row=row_num, column=col, value=value)
    logger.info("Exported %d questions", len(questions))
    return _save(wb)


def _cell_text(value):
    if value is None:
        return ''
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def _letters_to_indices(value):
    indices = []
    for part in _cell_text(value).replace(';', ',').split(','):
        part = part.strip().upper()
        if not part:
            continue
        if part in OPTION_LETTERS:
            indices.append(OPTION_LETTERS.index(part))
        else:
            raise ValueError(f'Unknown correct option "{part}". Use letters A-{OPTION_LETTERS[-1]}.')
    return indices


def read_question_rows(file):
    """Yield ``(row_number, record)`` for every non-empty data row.

    ``record`` uses the question form's field names so it can be validated
    by the same form used for manual entry. A row whose correct column can
    not be read yields ``(row_number, ValueError)`` instead.
    """
    wb = load_workbook(file, read_only=True, data_only=True)
    ws = wb.active
    try:
        for row_num, row in enumerate(ws.iter_rows(min_row=FIRST_DATA_ROW, values_only=True),
                                      start=FIRST_DATA_ROW):
            values = dict(zip(COLUMN_KEYS, row or ()))
            if not any(_cell_text(v) for v in values.values()):
                continue

            question_type = _cell_text(values.get('type')).lower() or 'mcq_single'
            record = {
                'type': question_type,
                'subject': _cell_text(values.get('subject')),
                'chapter': _cell_text(values.get('chapter')),
                'topic': _cell_text(values.get('topic')),
                'subtopic': _cell_text(values.get('subtopic')),
                'custom_id': _cell_text(values.get('custom_id')),
                'difficulty': _cell_text(values.get('difficulty')).lower() or 'easy',
                'text': _cell_text(values.get('text')),
                'marks': _cell_text(values.get('marks')),
                'penalty': _cell_text(values.get('penalty')),
                'tags': _cell_text(values.get('tags')),
                'explanation': _cell_text(values.get('explanation')),
            }
            if question_type == 'numerical':
                record['correct_answer'] = _cell_text(values.get('correct'))
            else:
                record['options'] = [_cell_text(values.get(f'option_{letter.lower()}'))
                                     for letter in OPTION_LETTERS]
                try:
                    record['correct_options'] = _letters_to_indices(values.get('correct'))
                except ValueError as e:
                    yield row_num, e
                    continue
            yield row_num, record
    finally:
        wb.close()
