from datetime import datetime, timezone

import pytest


@pytest.fixture
def bank(db):
    for qid, text in (('q1', 'First'), ('q2', 'Second')):
        db.put('questions', qid, {'type': 'numerical', 'subject': 'Physics', 'topic': 'Kinematics',
                                  'text': text, 'correct_answer': '1', 'marks': 4})
    return db


def _payload(**overrides):
    data = {
        'title': 'Mock Test 1',
        'description': 'Mechanics only',
        'duration_minutes': 45,
        'questions': [
            {'question_id': 'q2', 'marks': 4, 'negative_marks': 1},
            {'question_id': 'q1', 'marks': '2', 'negative_marks': ''},
        ],
    }
    data.update(overrides)
    return data


def test_create_test_keeps_selection_order(admin_client, bank):
    resp = admin_client.post('/admin/tests/new', json=_payload())

    assert resp.status_code == 201
    stored = bank.raw('tests', resp.get_json()['id'])
    assert stored['duration_minutes'] == 45.0
    assert stored['questions'] == [
        {'question_id': 'q2', 'marks': 4.0, 'negative_marks': 1.0, 'order': 0},
        {'question_id': 'q1', 'marks': 2.0, 'negative_marks': 0.0, 'order': 1},
    ]


@pytest.mark.parametrize('overrides,message', [
    ({'title': ''}, 'Test title is required.'),
    ({'duration_minutes': 0}, 'Duration must be a positive number.'),
    ({'duration_minutes': 'soon'}, 'Duration must be a positive number.'),
    ({'questions': []}, 'Please select at least one question for the test.'),
    ({'questions': [{'question_id': 'q1', 'marks': -4}]}, 'Question 1 must have positive marks.'),
    ({'questions': [{'question_id': 'q1', 'marks': 4, 'negative_marks': -1}]},
     'Question 1 cannot have negative marking less than 0.'),
])
def test_create_test_validation(admin_client, bank, overrides, message):
    resp = admin_client.post('/admin/tests/new', json=_payload(**overrides))
    assert resp.status_code == 400
    assert resp.get_json()['error'] == message


def test_list_tests_with_totals(admin_client, db):
    db.put('tests', 't1', {'title': 'Old', 'duration_minutes': 30,
                           'questions': [{'question_id': 'q1', 'marks': 4, 'order': 0}],
                           'created_at': datetime(2024, 1, 1, tzinfo=timezone.utc)})
    db.put('tests', 't2', {'title': 'New', 'duration_minutes': 60, 'questions': [],
                           'created_at': datetime(2024, 2, 1, tzinfo=timezone.utc)})

    body = admin_client.get('/admin/tests/').get_json()

    assert [t['id'] for t in body['tests']] == ['t2', 't1']
    assert body['tests'][1]['question_count'] == 1
    assert body['tests'][1]['total_marks'] == 4


def test_detail_resolves_questions(admin_client, bank):
    test_id = admin_client.post('/admin/tests/new', json=_payload()).get_json()['id']
    bank.collections['questions'].pop('q1')

    test = admin_client.get(f'/admin/tests/{test_id}').get_json()['test']

    assert [e['found'] for e in test['questions']] == [True, False]
    assert test['questions'][0]['question']['text'] == 'Second'
    assert test['total_marks'] == 6
    assert admin_client.get('/admin/tests/missing').status_code == 404


def test_edit_and_delete_test(admin_client, bank):
    test_id = admin_client.post('/admin/tests/new', json=_payload()).get_json()['id']

    resp = admin_client.post(f'/admin/tests/{test_id}/edit', json=_payload(
        title=' Renamed ', questions=[{'question_id': 'q1', 'marks': 5}]))
    assert resp.status_code == 200
    stored = bank.raw('tests', test_id)
    assert stored['title'] == 'Renamed'
    assert stored['questions'] == [{'question_id': 'q1', 'marks': 5.0, 'negative_marks': 0.0, 'order': 0}]

    assert admin_client.post(f'/admin/tests/{test_id}/delete').status_code == 200
    assert bank.raw('tests', test_id) is None
    assert admin_client.post(f'/admin/tests/{test_id}/delete').status_code == 404


def test_edit_missing_test(admin_client, bank):
    assert admin_client.post('/admin/tests/nope/edit', json=_payload()).status_code == 404
