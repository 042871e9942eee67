"""
Firestore Data Access Object (DAO) layer.

Route files call functions from this module instead of touching the
Firestore client directly. Each operation checks its inputs, drops unset
fields, calls the Firestore primitive and maps the snapshot to a plain dict
carrying the document ``id``.
"""

import logging
from datetime import datetime, timezone

from google.cloud.firestore_v1 import DELETE_FIELD, FieldFilter

from testprep.firebase_init import get_db

logger = logging.getLogger(__name__)

USERS = 'users'
QUESTIONS = 'questions'
TESTS = 'tests'
TEST_SERIES = 'test_series'

QUESTION_FILTER_FIELDS = ('subject', 'chapter', 'topic', 'subtopic', 'difficulty', 'type')

# Fields an edit may explicitly clear by sending None
NULLABLE_QUESTION_FIELDS = ('explanation', 'correct_answer', 'image_url', 'image_path')


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _doc_to_dict(doc_snapshot):
    """Convert a Firestore DocumentSnapshot to a dict with 'id' field."""
    if not doc_snapshot.exists:
        return None
    d = doc_snapshot.to_dict()
    d['id'] = doc_snapshot.id
    return d


def _query_to_list(query_ref):
    """Run a query and return a list of dicts."""
    return [_doc_to_dict(doc) for doc in query_ref.stream()]


def _now():
    return datetime.now(timezone.utc)


def _require_id(value, label):
    if not value or not isinstance(value, str) or not value.strip():
        raise ValueError(f'{label} is required and must be a non-empty string')
    return value.strip()


def _clean(data, keep_none=()):
    """Drop None values (Firestore would store them as null)."""
    return {k: v for k, v in data.items() if v is not None or k in keep_none}


def _newest_first(records):
    """Sort by created_at descending; records without a timestamp go last."""
    epoch = datetime.min.replace(tzinfo=timezone.utc)

    def key(record):
        created = record.get('created_at')
        if not isinstance(created, datetime):
            return epoch
        if created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)
        return created

    return sorted(records, key=key, reverse=True)


def _get(collection, doc_id, label):
    doc_id = _require_id(doc_id, f'{label} id')
    try:
        doc = get_db().collection(collection).document(doc_id).get()
    except Exception as e:
        logger.error("Error fetching %s %s: %s", label, doc_id, e)
        raise
    record = _doc_to_dict(doc)
    if record is None:
        logger.warning("%s not found for id: %s", label, doc_id)
    return record


def _add(collection, data, label):
    try:
        _, doc_ref = get_db().collection(collection).add(data)
    except Exception as e:
        logger.error("Error creating %s: %s", label, e)
        raise
    logger.info("%s created with id: %s", label, doc_ref.id)
    return doc_ref.id


def _update(collection, doc_id, data, label):
    data['updated_at'] = _now()
    try:
        get_db().collection(collection).document(doc_id).update(data)
    except Exception as e:
        logger.error("Error updating %s %s: %s", label, doc_id, e)
        raise
    logger.info("%s %s updated", label, doc_id)


def _delete(collection, doc_id, label):
    doc_id = _require_id(doc_id, f'{label} id')
    try:
        get_db().collection(collection).document(doc_id).delete()
    except Exception as e:
        logger.error("Error deleting %s %s: %s", label, doc_id, e)
        raise
    logger.info("%s %s deleted", label, doc_id)


def _list_newest(collection, label):
    try:
        records = _query_to_list(
            get_db().collection(collection).order_by('created_at', direction='DESCENDING')
        )
    except Exception as e:
        logger.error("Error listing %s: %s", label, e)
        raise
    logger.info("Listed %d %s", len(records), label)
    return records


def count_collection(name):
    """Count documents in a collection with a server-side aggregation."""
    results = get_db().collection(name).count(alias='total').get()
    return int(results[0][0].value)


# ========================================================================
# Users  (collection: users)
# ========================================================================

def get_user(uid):
    """Get a user document by UID. Returns dict or None."""
    if not uid:
        return None
    doc = get_db().collection(USERS).document(uid).get()
    return _doc_to_dict(doc)


def create_user(uid, data):
    """Create a user document with the given UID as the document ID."""
    uid = _require_id(uid, 'uid')
    data = _clean(data)
    data.setdefault('role', 'student')
    data.setdefault('created_at', _now())
    data.setdefault('updated_at', data['created_at'])
    get_db().collection(USERS).document(uid).set(data)
    logger.info("User document created for %s", uid)


def update_user(uid, data):
    """Update fields on an existing user document."""
    uid = _require_id(uid, 'uid')
    data = _clean(data)
    data.setdefault('updated_at', _now())
    get_db().collection(USERS).document(uid).update(data)


def get_user_role(uid):
    """Role stored on the user document, 'student' when absent."""
    user = get_user(uid)
    if not user:
        return 'student'
    return user.get('role') or 'student'


# ========================================================================
# Questions  (collection: questions)
# ========================================================================

def create_question(data, admin_uid):
    """Create a question. Returns the generated doc ID."""
    logger.info("create_question called by %s", admin_uid)
    admin_uid = _require_id(admin_uid, 'adminUid')

    doc = _clean(data)
    doc['explanation'] = doc.get('explanation')
    doc['correct_answer'] = doc.get('correct_answer')
    doc['created_by'] = admin_uid
    doc['created_at'] = _now()
    doc['updated_at'] = doc['created_at']
    return _add(QUESTIONS, doc, 'Question')


def update_question(question_id, updates):
    """Update fields on an existing question.

    Switching a question to the numerical type removes its option fields.
    """
    logger.info("update_question called for %s", question_id)
    question_id = _require_id(question_id, 'Question id')

    data = _clean(updates, keep_none=NULLABLE_QUESTION_FIELDS)
    data.pop('created_by', None)
    data.pop('created_at', None)
    if data.get('type') == 'numerical':
        data['options'] = DELETE_FIELD
        data['correct_options'] = DELETE_FIELD
    _update(QUESTIONS, question_id, data, 'Question')


def delete_question(question_id):
    """Delete a question. Tests referencing it keep the dangling id."""
    logger.info("delete_question called for %s", question_id)
    _delete(QUESTIONS, question_id, 'Question')


def get_question(question_id):
    """Get a question by ID. Returns dict or None."""
    return _get(QUESTIONS, question_id, 'Question')


def list_questions(subject=None, chapter=None, topic=None, subtopic=None,
                   difficulty=None, question_type=None):
    """List questions with optional equality filters, newest first.

    Ordering happens server-side only when no filter is applied; combining
    equality filters with order_by would need a composite index per
    combination, so filtered results are sorted here instead.
    """
    filters = {
        'subject': subject,
        'chapter': chapter,
        'topic': topic,
        'subtopic': subtopic,
        'difficulty': difficulty,
        'type': question_type,
    }
    filters = {k: v for k, v in filters.items() if v}
    logger.info("list_questions called with filters: %s", filters)

    q = get_db().collection(QUESTIONS)
    try:
        if filters:
            for field_name, value in filters.items():
                q = q.where(filter=FieldFilter(field_name, '==', value))
            questions = _newest_first(_query_to_list(q))
        else:
            questions = _query_to_list(q.order_by('created_at', direction='DESCENDING'))
    except Exception as e:
        logger.error("Error listing questions: %s", e)
        raise

    logger.info("list_questions loaded count: %d", len(questions))
    return questions


def search_questions_by_custom_id(questions, term):
    """Case-insensitive substring match on custom_id."""
    term = (term or '').strip().lower()
    if not term:
        return questions
    return [q for q in questions if term in (q.get('custom_id') or '').lower()]


# ========================================================================
# Tests  (collection: tests)
# ========================================================================

def _check_test_questions(questions):
    if not questions:
        raise ValueError('At least one question is required for a test')
    for index, q in enumerate(questions, start=1):
        if not q.get('question_id') or not str(q['question_id']).strip():
            raise ValueError(f'Question {index} is missing questionId')
        if (q.get('marks') or 0) <= 0:
            raise ValueError(f'Question {index} must have positive marks')
        if (q.get('negative_marks') or 0) < 0:
            raise ValueError(f'Question {index} cannot have negative marking less than 0')


def create_test(data, admin_uid):
    """Create a test. Returns the generated doc ID."""
    logger.info("create_test called by %s", admin_uid)
    admin_uid = _require_id(admin_uid, 'adminUid')

    title = (data.get('title') or '').strip()
    if not title:
        raise ValueError('Test title is required')
    duration = data.get('duration_minutes') or 0
    if duration <= 0:
        raise ValueError('Duration must be a positive number')
    questions = data.get('questions') or []
    _check_test_questions(questions)

    now = _now()
    doc = {
        'title': title,
        'description': (data.get('description') or '').strip(),
        'duration_minutes': duration,
        'questions': questions,
        'created_by': admin_uid,
        'created_at': now,
        'updated_at': now,
    }
    return _add(TESTS, doc, 'Test')


def update_test(test_id, updates):
    """Update fields on an existing test."""
    logger.info("update_test called for %s", test_id)
    test_id = _require_id(test_id, 'Test id')

    data = _clean(updates)
    if 'title' in data:
        data['title'] = data['title'].strip()
    if 'description' in data:
        data['description'] = data['description'].strip()
    if 'questions' in data:
        _check_test_questions(data['questions'])
    _update(TESTS, test_id, data, 'Test')


def delete_test(test_id):
    logger.info("delete_test called for %s", test_id)
    _delete(TESTS, test_id, 'Test')


def get_test(test_id):
    """Get a test by ID. Returns dict or None."""
    return _get(TESTS, test_id, 'Test')


def list_tests():
    """All tests, newest first."""
    return _list_newest(TESTS, 'tests')


def get_test_with_questions(test_id):
    """Load a test and resolve its question references in test order.

    Returns None when the test is missing. Dangling references produce an
    entry with ``question`` set to None and ``found`` False.
    """
    test = get_test(test_id)
    if test is None:
        return None

    entries = []
    for tq in sorted(test.get('questions') or [], key=lambda q: q.get('order', 0)):
        question = None
        if tq.get('question_id'):
            question = get_question(tq['question_id'])
        entries.append({**tq, 'question': question, 'found': question is not None})

    test['questions'] = entries
    test['question_count'] = len(entries)
    test['total_marks'] = sum(e.get('marks') or 0 for e in entries)
    return test


# ========================================================================
# Test Series  (collection: test_series)
# ========================================================================

def create_test_series(data, admin_uid):
    """Create a test series. Returns the generated doc ID."""
    logger.info("create_test_series called by %s", admin_uid)
    admin_uid = _require_id(admin_uid, 'adminUid')

    doc = _clean(data)
    doc['test_ids'] = doc.get('test_ids') or []
    doc.setdefault('price', 0)
    doc['created_by'] = admin_uid
    doc['created_at'] = _now()
    doc['updated_at'] = doc['created_at']
    return _add(TEST_SERIES, doc, 'TestSeries')


def update_test_series(series_id, updates):
    logger.info("update_test_series called for %s", series_id)
    series_id = _require_id(series_id, 'TestSeries id')
    _update(TEST_SERIES, series_id, _clean(updates), 'TestSeries')


def delete_test_series(series_id):
    logger.info("delete_test_series called for %s", series_id)
    _delete(TEST_SERIES, series_id, 'TestSeries')


def get_test_series(series_id):
    """Get a test series by ID. Returns dict or None."""
    return _get(TEST_SERIES, series_id, 'TestSeries')


def list_test_series():
    """All test series, newest first."""
    return _list_newest(TEST_SERIES, 'test series')


def search_test_series(series, term):
    """Case-insensitive title substring match."""
    term = (term or '').strip().lower()
    if not term:
        return series
    return [s for s in series if term in (s.get('title') or '').lower()]


def get_test_series_with_tests(series_id):
    """Load a series with its tests resolved in series order.

    Totals only count tests that still exist.
    """
    series = get_test_series(series_id)
    if series is None:
        return None

    entries = []
    for test_id in series.get('test_ids') or []:
        test = get_test(test_id) if test_id else None
        entries.append({'test_id': test_id, 'test': test, 'found': test is not None})

    found = [e['test'] for e in entries if e['found']]
    series['tests'] = entries
    series['test_count'] = len(entries)
    series['total_questions'] = sum(len(t.get('questions') or []) for t in found)
    series['total_duration_minutes'] = sum(t.get('duration_minutes') or 0 for t in found)
    return series
