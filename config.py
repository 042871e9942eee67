import os
from dotenv import load_dotenv

load_dotenv()


def _env_flag(name, default='false'):
    return os.environ.get(name, default).lower() in ('true', '1', 'yes')


class Config:
    SECRET_KEY = os.environ.get('SESSION_SECRET') or os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'
    WTF_CSRF_ENABLED = _env_flag('WTF_CSRF_ENABLED', 'true')
    WTF_CSRF_TIME_LIMIT = None

    FIREBASE_ENABLED = _env_flag('FIREBASE_ENABLED', 'true')
    FIREBASE_WEB_API_KEY = os.environ.get('FIREBASE_WEB_API_KEY', '')
    FIREBASE_STORAGE_BUCKET = os.environ.get('FIREBASE_STORAGE_BUCKET', '')
    GOOGLE_APPLICATION_CREDENTIALS = os.environ.get('GOOGLE_APPLICATION_CREDENTIALS', './firebase-service-account.json')
    SESSION_COOKIE_DAYS = int(os.environ.get('SESSION_COOKIE_DAYS', 5))

    # Images at or below this size are stored inline when the bucket is unavailable
    INLINE_IMAGE_MAX_BYTES = int(os.environ.get('INLINE_IMAGE_MAX_BYTES', 500 * 1024))
    MAX_CONTENT_LENGTH = 10 * 1024 * 1024

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret-key'
    WTF_CSRF_ENABLED = False
    FIREBASE_ENABLED = False
    FIREBASE_WEB_API_KEY = 'test-api-key'
    FIREBASE_STORAGE_BUCKET = ''
    LOG_LEVEL = 'WARNING'
