import io
import logging
from zipfile import BadZipFile

from flask import Blueprint, Response, current_app, jsonify, request, url_for
from openpyxl.utils.exceptions import InvalidFileException
from werkzeug.datastructures import MultiDict

from testprep.decorators import admin_required, get_current_user
from testprep import firestore_dao as dao
from testprep.firestore_models import Question
from testprep.forms import QuestionForm, EditQuestionForm, first_error
from testprep.services import spreadsheet
from testprep.services.storage import (
    build_image_folder_path, upload_question_image, delete_file,
)

logger = logging.getLogger(__name__)

bp = Blueprint('questions', __name__, url_prefix='/admin/questions')


def _question_json(record):
    question = Question.from_dict(record)
    record['is_mcq'] = question.is_mcq
    if question.is_mcq:
        record['option_labels'] = [question.option_label(i) for i in range(len(question.options))]
        record['correct_option_labels'] = question.correct_option_labels()
    return record


def _filters_from_args():
    return {
        field: request.args.get(field, '').strip() or None
        for field in dao.QUESTION_FILTER_FIELDS
    }


def _load_filtered():
    filters = _filters_from_args()
    question_type = filters.pop('type')
    return dao.list_questions(question_type=question_type, **filters)


def _remove_stored_image(storage_path):
    try:
        delete_file(storage_path)
    except Exception as e:
        logger.warning("Could not delete stored image %s: %s", storage_path, e)


@bp.route('/')
@admin_required
def index():
    try:
        questions = _load_filtered()
    except Exception as e:
        logger.exception("Failed to load questions")
        return jsonify({'error': str(e)}), 500

    shown = dao.search_questions_by_custom_id(questions, request.args.get('custom_id'))
    return jsonify({
        'questions': [_question_json(q) for q in shown],
        'total': len(questions),
        'shown': len(shown),
    })


@bp.route('/new', methods=['POST'])
@admin_required
def create():
    form = QuestionForm()
    if not form.validate_on_submit():
        return jsonify({'error': first_error(form)}), 400

    try:
        question_id = dao.create_question(form.to_question_data(), get_current_user().uid)
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        logger.exception("Failed to create question")
        return jsonify({'error': str(e)}), 500

    return jsonify({
        'id': question_id,
        'redirect': url_for('questions.index'),
    }), 201


@bp.route('/<question_id>')
@admin_required
def detail(question_id):
    try:
        question = dao.get_question(question_id)
    except Exception as e:
        logger.exception("Failed to load question %s", question_id)
        return jsonify({'error': str(e)}), 500
    if not question:
        return jsonify({'error': 'Question not found.'}), 404
    return jsonify({'question': _question_json(question)})


@bp.route('/<question_id>/edit', methods=['POST'])
@admin_required
def edit(question_id):
    try:
        existing = dao.get_question(question_id)
    except Exception as e:
        logger.exception("Failed to load question %s", question_id)
        return jsonify({'error': str(e)}), 500
    if not existing:
        return jsonify({'error': 'Question not found.'}), 404

    form = EditQuestionForm()
    if not form.validate_on_submit():
        return jsonify({'error': first_error(form)}), 400

    updates = form.to_question_data()
    try:
        dao.update_question(question_id, updates)
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        logger.exception("Failed to update question %s", question_id)
        return jsonify({'error': str(e)}), 500

    old_path = existing.get('image_path')
    if old_path and old_path != updates.get('image_path'):
        _remove_stored_image(old_path)

    return jsonify({
        'id': question_id,
        'redirect': url_for('questions.detail', question_id=question_id),
    })


@bp.route('/<question_id>/delete', methods=['POST'])
@admin_required
def delete(question_id):
    try:
        question = dao.get_question(question_id)
        if not question:
            return jsonify({'error': 'Question not found.'}), 404
        dao.delete_question(question_id)
    except Exception as e:
        logger.exception("Failed to delete question %s", question_id)
        return jsonify({'error': str(e)}), 500

    if question.get('image_path'):
        _remove_stored_image(question['image_path'])
    return jsonify({'deleted': question_id, 'redirect': url_for('questions.index')})


@bp.route('/upload-image', methods=['POST'])
@admin_required
def upload_image():
    file = request.files.get('image')
    if file is None or file.filename == '':
        return jsonify({'error': 'Please choose an image to upload.'}), 400

    folder = build_image_folder_path(
        request.form.get('subject'), request.form.get('chapter'), request.form.get('topic'))
    try:
        result = upload_question_image(
            file.read(), file.filename, file.mimetype, folder,
            max_inline_bytes=current_app.config['INLINE_IMAGE_MAX_BYTES'])
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        logger.exception("Image upload failed")
        return jsonify({'error': str(e)}), 500
    return jsonify(result), 201


@bp.route('/export')
@admin_required
def export():
    try:
        questions = _load_filtered()
    except Exception as e:
        logger.exception("Failed to load questions for export")
        return jsonify({'error': str(e)}), 500
    questions = dao.search_questions_by_custom_id(questions, request.args.get('custom_id'))

    return Response(
        spreadsheet.export_questions(questions),
        mimetype=spreadsheet.XLSX_MIMETYPE,
        headers={'Content-Disposition': 'attachment;filename=questions.xlsx'}
    )


@bp.route('/import-template')
@admin_required
def import_template():
    return Response(
        spreadsheet.build_template(),
        mimetype=spreadsheet.XLSX_MIMETYPE,
        headers={'Content-Disposition': 'attachment;filename=question_import_template.xlsx'}
    )


@bp.route('/import', methods=['POST'])
@admin_required
def import_questions():
    file = request.files.get('file')
    if file is None or file.filename == '':
        return jsonify({'error': 'Please choose a file to import.'}), 400
    if not file.filename.lower().endswith('.xlsx'):
        return jsonify({'error': 'Only Excel files (.xlsx) can be imported.'}), 400

    admin_uid = get_current_user().uid
    created = []
    errors = []
    try:
        for row_num, record in spreadsheet.read_question_rows(io.BytesIO(file.read())):
            if isinstance(record, ValueError):
                errors.append(f'Row {row_num}: {record}')
                continue
            formdata = MultiDict({k: v for k, v in record.items() if v not in ('', [])})
            form = QuestionForm(formdata=formdata, meta={'csrf': False})
            if not form.validate():
                errors.append(f'Row {row_num}: {first_error(form)}')
                continue
            created.append(dao.create_question(form.to_question_data(), admin_uid))
    except (BadZipFile, InvalidFileException):
        return jsonify({'error': 'The uploaded file is not a valid Excel workbook.'}), 400
    except Exception as e:
        logger.exception("Question import failed after %d rows", len(created))
        return jsonify({'error': str(e), 'created': len(created), 'ids': created}), 500

    logger.info("Imported %d questions with %d rejected rows", len(created), len(errors))
    status = 400 if errors and not created else 200
    return jsonify({'created': len(created), 'ids': created, 'errors': errors}), status
