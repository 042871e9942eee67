import logging
from datetime import timedelta

import requests as http_requests
from flask import Blueprint, jsonify, session, current_app
from flask_wtf.csrf import generate_csrf

from testprep.decorators import SESSION_KEY, auth_required, get_current_user
from testprep.firebase_init import get_auth
from testprep import firestore_dao as dao
from testprep.firestore_models import ROLE_STUDENT
from testprep.forms import LoginForm, RegistrationForm, first_error

logger = logging.getLogger(__name__)

bp = Blueprint('auth', __name__, url_prefix='/auth')

FIREBASE_SIGN_IN_URL = (
    'https://identitytoolkit.googleapis.com/v1/accounts:signInWithPassword'
)

AUTH_ERROR_MESSAGES = {
    'EMAIL_EXISTS': 'An account with this email already exists.',
    'EMAIL_NOT_FOUND': 'Invalid email or password.',
    'INVALID_PASSWORD': 'Invalid email or password.',
    'INVALID_LOGIN_CREDENTIALS': 'Invalid email or password.',
    'INVALID_EMAIL': 'Please enter a valid email address.',
    'WEAK_PASSWORD': 'Password must be at least 6 characters long.',
    'USER_DISABLED': 'This account has been disabled.',
    'TOO_MANY_ATTEMPTS_TRY_LATER': 'Too many failed attempts. Please try again later.',
}
DEFAULT_AUTH_ERROR = 'Something went wrong. Please try again.'


def auth_error_message(code):
    """Friendly message for a Firebase Auth error code.

    REST error codes may carry details after the code
    (``'WEAK_PASSWORD : Password should be at least 6 characters'``).
    """
    if not code:
        return DEFAULT_AUTH_ERROR
    return AUTH_ERROR_MESSAGES.get(str(code).split(' ', 1)[0].strip(), DEFAULT_AUTH_ERROR)


def _firebase_sign_in(email, password):
    """Verify email/password via Firebase Auth REST API.

    Returns (id_token, None) on success or (None, error_code) on failure.
    """
    api_key = current_app.config.get('FIREBASE_WEB_API_KEY')
    if not api_key:
        logger.error("FIREBASE_WEB_API_KEY is not configured")
        return None, None

    resp = http_requests.post(
        f'{FIREBASE_SIGN_IN_URL}?key={api_key}',
        json={
            'email': email,
            'password': password,
            'returnSecureToken': True,
        },
        timeout=10,
    )
    if resp.status_code == 200:
        return resp.json().get('idToken'), None
    try:
        code = resp.json().get('error', {}).get('message')
    except ValueError:
        code = None
    logger.info("Sign-in rejected for %s: %s", email, code)
    return None, code


def _start_session(id_token):
    """Exchange an ID token for a session cookie stored in the Flask session."""
    expires_in = timedelta(days=current_app.config.get('SESSION_COOKIE_DAYS', 5))
    session[SESSION_KEY] = get_auth().create_session_cookie(id_token, expires_in=expires_in)
    session.permanent = True


def _discard_auth_user(auth, uid):
    """Remove an Auth account whose user document could not be written."""
    try:
        auth.delete_user(uid)
    except Exception as e:
        logger.error("Could not remove half-registered account %s: %s", uid, e)


@bp.route('/csrf-token')
def csrf_token():
    return jsonify({'csrf_token': generate_csrf()})


@bp.route('/register', methods=['POST'])
def register():
    current_user = get_current_user()
    if current_user.is_authenticated:
        return jsonify({'user': current_user.to_dict(), 'redirect': '/dashboard'})

    form = RegistrationForm()
    if not form.validate_on_submit():
        return jsonify({'error': first_error(form)}), 400

    auth = get_auth()
    try:
        firebase_user = auth.create_user(
            email=form.email.data,
            password=form.password.data,
            display_name=form.name.data,
        )
    except auth.EmailAlreadyExistsError:
        return jsonify({'error': auth_error_message('EMAIL_EXISTS')}), 400
    except Exception as e:
        logger.exception("Registration failed for %s", form.email.data)
        return jsonify({'error': str(e)}), 500

    uid = firebase_user.uid
    try:
        dao.create_user(uid, {
            'email': form.email.data,
            'display_name': form.name.data,
            'role': ROLE_STUDENT,
        })
    except Exception as e:
        logger.exception("Could not create user document for %s", uid)
        _discard_auth_user(auth, uid)
        return jsonify({'error': str(e)}), 500
    logger.info("Registered user %s", uid)

    try:
        id_token, code = _firebase_sign_in(form.email.data, form.password.data)
        if not id_token:
            # Account exists; the client can still log in manually
            return jsonify({'error': auth_error_message(code), 'redirect': '/auth/login'}), 201
        _start_session(id_token)
    except Exception as e:
        logger.exception("Could not sign in new user %s", uid)
        return jsonify({'error': str(e), 'redirect': '/auth/login'}), 500

    return jsonify({
        'user': {'uid': uid, 'email': form.email.data,
                 'display_name': form.name.data, 'role': ROLE_STUDENT},
        'redirect': '/dashboard',
    }), 201


@bp.route('/login', methods=['GET', 'POST'])
def login():
    current_user = get_current_user()
    if current_user.is_authenticated:
        return jsonify({'user': current_user.to_dict(), 'redirect': '/dashboard'})

    form = LoginForm()
    if not form.is_submitted():
        return jsonify({'error': 'Please log in.'}), 401
    if not form.validate():
        return jsonify({'error': first_error(form)}), 400

    try:
        id_token, code = _firebase_sign_in(form.email.data, form.password.data)
        if not id_token:
            return jsonify({'error': auth_error_message(code)}), 401
        _start_session(id_token)
    except Exception as e:
        logger.exception("Login failed for %s", form.email.data)
        return jsonify({'error': str(e)}), 500

    logger.info("Login succeeded for %s", form.email.data)
    return jsonify({'redirect': '/dashboard'})


@bp.route('/logout', methods=['POST'])
@auth_required
def logout():
    session.pop(SESSION_KEY, None)
    return jsonify({'redirect': '/'})


@bp.route('/me')
@auth_required
def me():
    return jsonify({'user': get_current_user().to_dict()})
