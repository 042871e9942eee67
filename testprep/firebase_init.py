import logging
import os

import firebase_admin
from firebase_admin import credentials, firestore, storage, auth

logger = logging.getLogger(__name__)

_app = None
_db = None
_bucket = None


def init_firebase(app_config=None):
    """Initialise the Admin SDK once per process.

    Firestore and the storage bucket are created lazily from the same app.
    A client installed with ``use_clients`` short-circuits initialisation.
    """
    global _app, _db, _bucket

    if _app is not None or _db is not None:
        return

    app_config = app_config or {}
    cred_path = (app_config.get('GOOGLE_APPLICATION_CREDENTIALS')
                 or os.environ.get('GOOGLE_APPLICATION_CREDENTIALS', './firebase-service-account.json'))

    if os.path.exists(cred_path):
        cred = credentials.Certificate(cred_path)
        logger.info("Using service account credentials from %s", cred_path)
    else:
        cred = credentials.ApplicationDefault()
        logger.info("Service account file not found, using application default credentials")

    bucket_name = app_config.get('FIREBASE_STORAGE_BUCKET', '') or os.environ.get('FIREBASE_STORAGE_BUCKET', '')

    options = {}
    if bucket_name:
        options['storageBucket'] = bucket_name

    _app = firebase_admin.initialize_app(cred, options=options if options else None)
    _db = firestore.client()

    if bucket_name:
        _bucket = storage.bucket()
    else:
        logger.warning("FIREBASE_STORAGE_BUCKET is not set; images will be stored inline")


def use_clients(db, bucket=None):
    """Install pre-built Firestore/bucket clients (emulator or test doubles)."""
    global _db, _bucket
    _db = db
    _bucket = bucket


def get_db():
    if _db is None:
        init_firebase()
    return _db


def get_bucket():
    # No bucket configured is a valid state: callers fall back to inline images
    if _db is None:
        init_firebase()
    return _bucket


def get_auth():
    return auth
