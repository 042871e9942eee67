"""Subject -> chapter -> topic -> subtopic catalog used by the question forms.

Questions store the display *names*; the dropdowns and list filters work on
the ids defined in ``data/subjects.json``.
"""

import json
import os
from functools import lru_cache

DATA_PATH = os.path.join(os.path.dirname(__file__), 'data', 'subjects.json')


@lru_cache(maxsize=1)
def _load():
    with open(DATA_PATH, encoding='utf-8') as fh:
        return json.load(fh)


def get_subjects():
    return _load().get('subjects', [])


def get_subject_by_id(subject_id):
    return next((s for s in get_subjects() if s['id'] == subject_id), None)


def get_chapters_by_subject(subject_id):
    subject = get_subject_by_id(subject_id)
    return subject.get('chapters', []) if subject else []


def get_chapter_by_id(subject_id, chapter_id):
    return next((c for c in get_chapters_by_subject(subject_id) if c['id'] == chapter_id), None)


def get_topics_by_chapter(subject_id, chapter_id):
    chapter = get_chapter_by_id(subject_id, chapter_id)
    return chapter.get('topics', []) if chapter else []


def get_topic_by_id(subject_id, chapter_id, topic_id):
    return next((t for t in get_topics_by_chapter(subject_id, chapter_id) if t['id'] == topic_id), None)


def get_subtopics_by_topic(subject_id, chapter_id, topic_id):
    topic = get_topic_by_id(subject_id, chapter_id, topic_id)
    return topic.get('subtopics', []) if topic else []


def get_subject_name(subject_id):
    subject = get_subject_by_id(subject_id)
    return subject['name'] if subject else subject_id


def get_chapter_name(subject_id, chapter_id):
    chapter = get_chapter_by_id(subject_id, chapter_id)
    return chapter['name'] if chapter else chapter_id


def get_topic_name(subject_id, chapter_id, topic_id):
    topic = get_topic_by_id(subject_id, chapter_id, topic_id)
    return topic['name'] if topic else topic_id


def resolve_selection(subject_id=None, chapter_id=None, topic_id=None, subtopic=None):
    """Resolve a cascading dropdown selection to stored names.

    A level is kept only when every level above it resolved; the first
    unknown or empty level clears itself and everything below, the same way
    changing a parent dropdown resets its children.
    """
    result = {
        'subject_id': '', 'subject': '',
        'chapter_id': '', 'chapter': '',
        'topic_id': '', 'topic': '',
        'subtopic': '',
    }

    subject = get_subject_by_id(subject_id) if subject_id else None
    if not subject:
        return result
    result.update(subject_id=subject['id'], subject=subject['name'])

    chapter = get_chapter_by_id(subject['id'], chapter_id) if chapter_id else None
    if not chapter:
        return result
    result.update(chapter_id=chapter['id'], chapter=chapter['name'])

    topic = get_topic_by_id(subject['id'], chapter['id'], topic_id) if topic_id else None
    if not topic:
        return result
    result.update(topic_id=topic['id'], topic=topic['name'])

    if subtopic and subtopic in topic.get('subtopics', []):
        result['subtopic'] = subtopic
    return result
