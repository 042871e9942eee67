import logging
from functools import wraps

from flask import jsonify, url_for, g, session

from testprep.firebase_init import get_auth
from testprep import firestore_dao as dao
from testprep.firestore_models import ROLE_ADMIN, ROLE_STUDENT, User

logger = logging.getLogger(__name__)

SESSION_KEY = 'firebase_session'


def _verify_session():
    """Verify the Firebase session cookie and load the user document."""
    session_cookie = session.get(SESSION_KEY)
    if not session_cookie:
        return None

    auth = get_auth()
    try:
        decoded = auth.verify_session_cookie(session_cookie, check_revoked=True)
    except (auth.InvalidSessionCookieError, auth.ExpiredSessionCookieError,
            auth.RevokedSessionCookieError, auth.UserDisabledError, ValueError) as e:
        logger.info("Dropping invalid session cookie: %s", e)
        session.pop(SESSION_KEY, None)
        return None

    uid = decoded['uid']
    try:
        user_data = dao.get_user(uid)
    except Exception:
        logger.exception("Could not load user document for %s", uid)
        return None
    if not user_data:
        logger.warning("Session for %s has no user document", uid)
        return None

    return User.from_dict(user_data, uid)


class CurrentUser:
    """Request-scoped wrapper around the signed-in ``User`` (or nobody)."""

    def __init__(self, user=None):
        self._user = user

    @property
    def is_authenticated(self):
        return self._user is not None

    @property
    def uid(self):
        return self._user.id if self._user else ''

    @property
    def role(self):
        return (self._user.role if self._user else None) or ROLE_STUDENT

    @property
    def display_name(self):
        if not self._user:
            return ''
        return self._user.display_name or self._user.email

    def is_admin(self):
        return bool(self._user) and self._user.is_admin()

    def to_dict(self):
        return {
            'uid': self.uid,
            'email': self._user.email if self._user else '',
            'display_name': self.display_name,
            'role': self.role,
        }


def load_current_user():
    """Load current user into g before each request."""
    if hasattr(g, '_current_user'):
        return
    g._current_user = CurrentUser(_verify_session())


def get_current_user():
    if not hasattr(g, '_current_user'):
        load_current_user()
    return g._current_user


def _login_required_response():
    return jsonify({'error': 'You must be logged in.', 'redirect': url_for('auth.login')}), 401


def auth_required(f):
    @wraps(f)
    def decorated(*args, **kwargs):
        user = get_current_user()
        if not user.is_authenticated:
            return _login_required_response()
        g.current_user = user
        return f(*args, **kwargs)
    return decorated


def role_required(*roles):
    def decorator(f):
        @wraps(f)
        def decorated(*args, **kwargs):
            user = get_current_user()
            if not user.is_authenticated:
                return _login_required_response()
            if user.role not in roles:
                logger.info("User %s with role %s denied access", user.uid, user.role)
                return jsonify({'error': 'Admin access required.',
                                'redirect': url_for('main.dashboard')}), 403
            g.current_user = user
            return f(*args, **kwargs)
        return decorated
    return decorator


admin_required = role_required(ROLE_ADMIN)
