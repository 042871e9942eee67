import logging

from flask import Blueprint, jsonify

from testprep.decorators import admin_required, get_current_user
from testprep import firestore_dao as dao

logger = logging.getLogger(__name__)

bp = Blueprint('admin', __name__, url_prefix='/admin')


@bp.route('/')
@admin_required
def index():
    try:
        counts = {
            'questions': dao.count_collection(dao.QUESTIONS),
            'tests': dao.count_collection(dao.TESTS),
            'test_series': dao.count_collection(dao.TEST_SERIES),
        }
    except Exception as e:
        logger.exception("Failed to load admin summary")
        return jsonify({'error': str(e)}), 500
    return jsonify({'user': get_current_user().to_dict(), 'counts': counts})
