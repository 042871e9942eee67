"""Shared fixtures: an in-memory Firestore/Storage double and a fake Firebase Auth."""
import copy
import itertools
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from firebase_admin import auth as firebase_auth
from google.api_core.exceptions import NotFound
from google.cloud.firestore_v1 import DELETE_FIELD

from config import TestingConfig
from testprep import create_app
from testprep import firebase_init
from testprep.decorators import SESSION_KEY


# ---------------------------------------------------------------------------
# Firestore double
# ---------------------------------------------------------------------------

class FakeSnapshot:
    def __init__(self, doc_id, data):
        self.id = doc_id
        self._data = data

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return copy.deepcopy(self._data) if self._data is not None else None


class FakeDocument:
    def __init__(self, store, doc_id):
        self._store = store
        self.id = doc_id

    def get(self):
        return FakeSnapshot(self.id, self._store.get(self.id))

    def set(self, data):
        self._store[self.id] = copy.deepcopy(data)

    def update(self, data):
        if self.id not in self._store:
            raise NotFound(f'No document to update: {self.id}')
        doc = self._store[self.id]
        for key, value in data.items():
            if value is DELETE_FIELD:
                doc.pop(key, None)
            else:
                doc[key] = copy.deepcopy(value)

    def delete(self):
        self._store.pop(self.id, None)


class FakeQuery:
    def __init__(self, db, name, filters=(), orders=()):
        self._db = db
        self._name = name
        self.filters = list(filters)
        self.orders = list(orders)

    def where(self, filter):
        return FakeQuery(self._db, self._name,
                         self.filters + [(filter.field_path, filter.op_string, filter.value)],
                         self.orders)

    def order_by(self, field_path, direction='ASCENDING'):
        return FakeQuery(self._db, self._name, self.filters,
                         self.orders + [(field_path, direction)])

    def count(self, alias=None):
        return FakeAggregation(self, alias)

    def stream(self):
        self._db.queries.append({'collection': self._name,
                                 'filters': list(self.filters), 'orders': list(self.orders)})
        docs = list(self._db.collections.setdefault(self._name, {}).items())
        for field_path, op, value in self.filters:
            assert op == '==', 'only equality filters are used'
            docs = [(i, d) for i, d in docs if d.get(field_path) == value]
        for field_path, direction in reversed(self.orders):
            # Firestore leaves out documents that lack the ordered field
            docs = [(i, d) for i, d in docs if d.get(field_path) is not None]
            docs.sort(key=lambda item: item[1][field_path], reverse=direction == 'DESCENDING')
        return iter([FakeSnapshot(i, d) for i, d in docs])


class FakeAggregation:
    def __init__(self, query, alias):
        self._query = query
        self._alias = alias

    def get(self):
        self._query._db.aggregations.append((self._query._name, self._alias))
        total = sum(1 for _ in self._query.stream())
        return [[SimpleNamespace(alias=self._alias, value=total)]]


class FakeCollection(FakeQuery):
    def document(self, doc_id):
        return FakeDocument(self._db.collections.setdefault(self._name, {}), doc_id)

    def add(self, data):
        doc = self.document(f'{self._name}-{next(self._db.ids)}')
        doc.set(data)
        return datetime.now(timezone.utc), doc


class FakeFirestore:
    def __init__(self):
        self.collections = {}
        self.queries = []
        self.aggregations = []
        self.ids = itertools.count(1)

    def collection(self, name):
        return FakeCollection(self, name)

    def put(self, name, doc_id, data):
        """Insert a raw document, bypassing the data layer."""
        self.collections.setdefault(name, {})[doc_id] = copy.deepcopy(data)

    def raw(self, name, doc_id):
        return self.collections.get(name, {}).get(doc_id)


# ---------------------------------------------------------------------------
# Storage double
# ---------------------------------------------------------------------------

class FakeBlob:
    def __init__(self, bucket, name):
        self.bucket = bucket
        self.name = name
        self.metadata = None

    def upload_from_string(self, data, content_type=None):
        if self.bucket.fail_uploads:
            raise RuntimeError('storage unavailable')
        self.bucket.files[self.name] = {'data': data, 'content_type': content_type,
                                        'metadata': self.metadata}

    def upload_from_file(self, file_obj, content_type=None):
        self.upload_from_string(file_obj.read(), content_type)

    def exists(self):
        return self.name in self.bucket.files

    def delete(self):
        del self.bucket.files[self.name]


class FakeBucket:
    def __init__(self, name='testprep.appspot.com'):
        self.name = name
        self.files = {}
        self.fail_uploads = False

    def blob(self, name):
        return FakeBlob(self, name)


# ---------------------------------------------------------------------------
# Auth double (keeps the real firebase_admin exception types)
# ---------------------------------------------------------------------------

class FakeAuth:
    InvalidSessionCookieError = firebase_auth.InvalidSessionCookieError
    ExpiredSessionCookieError = firebase_auth.ExpiredSessionCookieError
    RevokedSessionCookieError = firebase_auth.RevokedSessionCookieError
    UserDisabledError = firebase_auth.UserDisabledError
    EmailAlreadyExistsError = firebase_auth.EmailAlreadyExistsError

    def __init__(self):
        self.sessions = {}
        self.users = {}
        self.created_cookies = []
        self.deleted_uids = []

    def verify_session_cookie(self, session_cookie, check_revoked=False):
        if session_cookie not in self.sessions:
            raise firebase_auth.InvalidSessionCookieError('bad cookie')
        return {'uid': self.sessions[session_cookie]}

    def create_session_cookie(self, id_token, expires_in):
        assert isinstance(expires_in, timedelta)
        cookie = f'cookie-for-{id_token}'
        self.created_cookies.append(cookie)
        return cookie

    def create_user(self, email, password, display_name=None):
        if email in self.users:
            raise firebase_auth.EmailAlreadyExistsError('email exists', None, None)
        uid = f'uid-{len(self.users) + 1}'
        self.users[email] = SimpleNamespace(uid=uid, email=email, display_name=display_name)
        return self.users[email]

    def delete_user(self, uid):
        self.users = {email: user for email, user in self.users.items() if user.uid != uid}
        self.deleted_uids.append(uid)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def db():
    fake = FakeFirestore()
    firebase_init.use_clients(fake, None)
    yield fake
    firebase_init.use_clients(None, None)


@pytest.fixture
def bucket(db):
    fake = FakeBucket()
    firebase_init.use_clients(db, fake)
    return fake


@pytest.fixture
def fake_auth(monkeypatch):
    fake = FakeAuth()
    monkeypatch.setattr('testprep.decorators.get_auth', lambda: fake)
    monkeypatch.setattr('testprep.routes.auth.get_auth', lambda: fake)
    return fake


@pytest.fixture
def app(db, fake_auth):
    app = create_app(TestingConfig)
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


def _login(client, db, fake_auth, uid, role):
    db.put('users', uid, {
        'email': f'{uid}@example.com',
        'display_name': uid.title(),
        'role': role,
        'created_at': datetime(2024, 1, 1, tzinfo=timezone.utc),
    })
    cookie = f'session-{uid}'
    fake_auth.sessions[cookie] = uid
    with client.session_transaction() as sess:
        sess[SESSION_KEY] = cookie
    return client


@pytest.fixture
def admin_client(client, db, fake_auth):
    return _login(client, db, fake_auth, 'admin', 'admin')


@pytest.fixture
def student_client(client, db, fake_auth):
    return _login(client, db, fake_auth, 'student', 'student')


@pytest.fixture
def mcq_payload():
    return {
        'type': 'mcq_single',
        'subject': 'Physics',
        'chapter': 'Mechanics',
        'topic': 'Kinematics',
        'subtopic': '1D Motion',
        'text': '<p>Speed after 2 s of free fall?</p>',
        'options': ['9.8 m/s', '19.6 m/s', '4.9 m/s', '0 m/s'],
        'correct_options': [1],
        'marks': 4,
        'penalty': 1,
        'difficulty': 'easy',
        'custom_id': 'PHY-001',
        'tags': 'free fall, kinematics',
    }
