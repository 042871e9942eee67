import logging

from flask import Blueprint, jsonify, url_for

from testprep.decorators import admin_required, get_current_user
from testprep import firestore_dao as dao
from testprep.firestore_models import Test
from testprep.forms import TestForm, first_error

logger = logging.getLogger(__name__)

bp = Blueprint('tests', __name__, url_prefix='/admin/tests')


def _test_summary(record):
    test = Test.from_dict(record)
    record['question_count'] = test.question_count
    record['total_marks'] = test.total_marks
    return record


@bp.route('/')
@admin_required
def index():
    try:
        tests = dao.list_tests()
    except Exception as e:
        logger.exception("Failed to load tests")
        return jsonify({'error': str(e)}), 500
    return jsonify({'tests': [_test_summary(t) for t in tests], 'total': len(tests)})


@bp.route('/new', methods=['POST'])
@admin_required
def create():
    form = TestForm()
    if not form.validate_on_submit():
        return jsonify({'error': first_error(form)}), 400

    try:
        test_id = dao.create_test(form.to_test_data(), get_current_user().uid)
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        logger.exception("Failed to create test")
        return jsonify({'error': str(e)}), 500

    return jsonify({'id': test_id, 'redirect': url_for('tests.index')}), 201


@bp.route('/<test_id>')
@admin_required
def detail(test_id):
    try:
        test = dao.get_test_with_questions(test_id)
    except Exception as e:
        logger.exception("Failed to load test %s", test_id)
        return jsonify({'error': str(e)}), 500
    if not test:
        return jsonify({'error': 'Test not found.'}), 404
    return jsonify({'test': test})


@bp.route('/<test_id>/edit', methods=['POST'])
@admin_required
def edit(test_id):
    form = TestForm()
    if not form.validate_on_submit():
        return jsonify({'error': first_error(form)}), 400

    try:
        if not dao.get_test(test_id):
            return jsonify({'error': 'Test not found.'}), 404
        dao.update_test(test_id, form.to_test_data())
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        logger.exception("Failed to update test %s", test_id)
        return jsonify({'error': str(e)}), 500

    return jsonify({'id': test_id, 'redirect': url_for('tests.detail', test_id=test_id)})


@bp.route('/<test_id>/delete', methods=['POST'])
@admin_required
def delete(test_id):
    try:
        if not dao.get_test(test_id):
            return jsonify({'error': 'Test not found.'}), 404
        dao.delete_test(test_id)
    except Exception as e:
        logger.exception("Failed to delete test %s", test_id)
        return jsonify({'error': str(e)}), 500
    return jsonify({'deleted': test_id, 'redirect': url_for('tests.index')})
