import pytest

from testprep.decorators import SESSION_KEY
from testprep.routes import auth as auth_routes


class FakeResponse:
    def __init__(self, status_code, payload):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        return self._payload


@pytest.fixture
def sign_in(monkeypatch):
    """Replace the REST sign-in call; returns the list of attempted emails."""
    calls = []

    def fake_post(url, json, timeout):
        calls.append(json['email'])
        if json['password'] == 'correct-horse':
            return FakeResponse(200, {'idToken': f'token-{json["email"]}'})
        return FakeResponse(400, {'error': {'message': 'INVALID_LOGIN_CREDENTIALS'}})

    monkeypatch.setattr(auth_routes.http_requests, 'post', fake_post)
    return calls


@pytest.mark.parametrize('code,message', [
    ('EMAIL_EXISTS', 'An account with this email already exists.'),
    ('INVALID_LOGIN_CREDENTIALS', 'Invalid email or password.'),
    ('WEAK_PASSWORD : Password should be at least 6 characters', 'Password must be at least 6 characters long.'),
    ('SOMETHING_NEW', 'Something went wrong. Please try again.'),
    (None, 'Something went wrong. Please try again.'),
])
def test_auth_error_message(code, message):
    assert auth_routes.auth_error_message(code) == message


def test_register_creates_student_and_signs_in(client, db, fake_auth, sign_in):
    resp = client.post('/auth/register', json={
        'name': 'Asha', 'email': 'Asha@Example.com', 'password': 'correct-horse'})

    assert resp.status_code == 201
    body = resp.get_json()
    assert body['user']['role'] == 'student'
    assert body['redirect'] == '/dashboard'

    uid = fake_auth.users['asha@example.com'].uid
    stored = db.raw('users', uid)
    assert stored['display_name'] == 'Asha'
    assert stored['role'] == 'student'
    assert sign_in == ['asha@example.com']
    with client.session_transaction() as sess:
        assert sess[SESSION_KEY] == 'cookie-for-token-asha@example.com'


@pytest.mark.parametrize('payload,message', [
    ({'name': 'A', 'email': 'a@example.com', 'password': 'secret1'},
     'Name must be at least 2 characters long.'),
    ({'name': 'Asha', 'email': 'not-an-email', 'password': 'secret1'},
     'Please enter a valid email address.'),
    ({'name': 'Asha', 'email': 'a@example.com', 'password': '123'},
     'Password must be at least 6 characters long.'),
])
def test_register_validation(client, payload, message):
    resp = client.post('/auth/register', json=payload)
    assert resp.status_code == 400
    assert resp.get_json()['error'] == message


def test_register_duplicate_email(client, fake_auth, sign_in):
    payload = {'name': 'Asha', 'email': 'asha@example.com', 'password': 'correct-horse'}
    client.post('/auth/register', json=payload)
    client.post('/auth/logout')

    resp = client.post('/auth/register', json=payload)

    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'An account with this email already exists.'


def test_login_success_sets_session(client, sign_in):
    resp = client.post('/auth/login', json={'email': 'ravi@example.com', 'password': 'correct-horse'})

    assert resp.status_code == 200
    assert resp.get_json()['redirect'] == '/dashboard'
    with client.session_transaction() as sess:
        assert sess[SESSION_KEY] == 'cookie-for-token-ravi@example.com'


def test_login_wrong_password(client, sign_in):
    resp = client.post('/auth/login', json={'email': 'ravi@example.com', 'password': 'wrong-pass'})
    assert resp.status_code == 401
    assert resp.get_json()['error'] == 'Invalid email or password.'


def test_login_validates_before_calling_firebase(client, sign_in):
    resp = client.post('/auth/login', json={'email': 'ravi', 'password': 'correct-horse'})
    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'Please enter a valid email address.'
    assert sign_in == []


def test_me_requires_login(client):
    resp = client.get('/auth/me')
    assert resp.status_code == 401
    assert resp.get_json()['redirect'] == '/auth/login'


def test_me_and_logout(student_client):
    assert student_client.get('/auth/me').get_json()['user']['role'] == 'student'

    assert student_client.post('/auth/logout').status_code == 200
    assert student_client.get('/auth/me').status_code == 401


def test_invalid_session_cookie_is_dropped(client):
    with client.session_transaction() as sess:
        sess[SESSION_KEY] = 'forged'
    assert client.get('/auth/me').status_code == 401
    with client.session_transaction() as sess:
        assert SESSION_KEY not in sess


def test_csrf_token_endpoint(client):
    assert client.get('/auth/csrf-token').get_json()['csrf_token']


def test_dashboard_redirects(admin_client):
    resp = admin_client.get('/dashboard')
    assert resp.status_code == 302
    assert resp.headers['Location'].endswith('/admin/')


def test_student_dashboard_and_admin_gate(student_client):
    resp = student_client.get('/dashboard')
    assert resp.status_code == 200
    assert resp.get_json()['user']['uid'] == 'student'

    resp = student_client.get('/admin/')
    assert resp.status_code == 403
    assert resp.get_json()['redirect'] == '/dashboard'


def test_index_and_health(client, student_client):
    assert client.get('/health').get_json() == {'status': 'ok'}
    assert student_client.get('/').status_code == 302


def test_register_removes_account_when_user_document_fails(client, db, fake_auth, sign_in, monkeypatch):
    def broken_create_user(uid, data):
        raise RuntimeError('firestore down')

    monkeypatch.setattr(auth_routes.dao, 'create_user', broken_create_user)

    resp = client.post('/auth/register', json={
        'name': 'Asha', 'email': 'asha@example.com', 'password': 'correct-horse'})

    assert resp.status_code == 500
    assert resp.get_json() == {'error': 'firestore down'}
    assert fake_auth.deleted_uids == ['uid-1']
    assert fake_auth.users == {}
    assert sign_in == []


def test_register_reports_sign_in_outage(client, db, fake_auth, monkeypatch):
    def unreachable(url, json, timeout):
        raise ConnectionError('identity toolkit unreachable')

    monkeypatch.setattr(auth_routes.http_requests, 'post', unreachable)

    resp = client.post('/auth/register', json={
        'name': 'Asha', 'email': 'asha@example.com', 'password': 'correct-horse'})

    assert resp.status_code == 500
    body = resp.get_json()
    assert body['error'] == 'identity toolkit unreachable'
    assert body['redirect'] == '/auth/login'
    assert db.raw('users', 'uid-1')['role'] == 'student'
    with client.session_transaction() as sess:
        assert SESSION_KEY not in sess


def test_user_lookup_failure_leaves_request_anonymous(student_client, monkeypatch):
    def broken_get_user(uid):
        raise RuntimeError('firestore down')

    monkeypatch.setattr(auth_routes.dao, 'get_user', broken_get_user)

    assert student_client.get('/health').get_json() == {'status': 'ok'}
    resp = student_client.get('/auth/me')
    assert resp.status_code == 401
    assert resp.get_json()['error'] == 'You must be logged in.'


def test_current_user_wraps_user_document(student_client):
    body = student_client.get('/auth/me').get_json()
    assert body['user'] == {'uid': 'student', 'email': 'student@example.com',
                            'display_name': 'Student', 'role': 'student'}
