from flask import Blueprint, jsonify, request

from testprep.decorators import admin_required
from testprep import subject_data

bp = Blueprint('catalog', __name__, url_prefix='/admin/catalog')


def _brief(items):
    return [{'id': item['id'], 'name': item['name']} for item in items]


@bp.route('/subjects')
@admin_required
def subjects():
    return jsonify({'subjects': _brief(subject_data.get_subjects())})


@bp.route('/subjects/<subject_id>/chapters')
@admin_required
def chapters(subject_id):
    return jsonify({'chapters': _brief(subject_data.get_chapters_by_subject(subject_id))})


@bp.route('/subjects/<subject_id>/chapters/<chapter_id>/topics')
@admin_required
def topics(subject_id, chapter_id):
    return jsonify({'topics': _brief(subject_data.get_topics_by_chapter(subject_id, chapter_id))})


@bp.route('/subjects/<subject_id>/chapters/<chapter_id>/topics/<topic_id>/subtopics')
@admin_required
def subtopics(subject_id, chapter_id, topic_id):
    return jsonify({'subtopics': subject_data.get_subtopics_by_topic(subject_id, chapter_id, topic_id)})


@bp.route('/resolve')
@admin_required
def resolve():
    """Names for a dropdown selection; invalid levels and their children come back empty."""
    args = request.args
    return jsonify(subject_data.resolve_selection(
        args.get('subject_id'), args.get('chapter_id'),
        args.get('topic_id'), args.get('subtopic')))
