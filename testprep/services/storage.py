import base64
import logging
import mimetypes
import re
import uuid
from urllib.parse import quote

from testprep.firebase_init import get_bucket

logger = logging.getLogger(__name__)

DEFAULT_INLINE_IMAGE_MAX_BYTES = 500 * 1024
DOWNLOAD_URL = 'https://firebasestorage.googleapis.com/v0/b/{bucket}/o/{path}?alt=media&token={token}'


def _slug(value):
    value = re.sub(r'[^a-z0-9]+', '-', (value or '').strip().lower()).strip('-')
    return value or 'general'


def build_image_folder_path(subject, chapter=None, topic=None):
    """Storage folder for question images, e.g. 'questions/physics/mechanics/kinematics'."""
    return '/'.join(['questions', _slug(subject), _slug(chapter), _slug(topic)])


def upload_file(file_data, destination_path, content_type=None, metadata=None):
    """Upload file bytes to Firebase Storage.

    Args:
        file_data: bytes or file-like object
        destination_path: path in the bucket (e.g. 'questions/physics/x.png')
        content_type: MIME type
        metadata: custom blob metadata

    Returns:
        The uploaded blob
    """
    bucket = get_bucket()
    blob = bucket.blob(destination_path)
    if metadata:
        blob.metadata = metadata
    if isinstance(file_data, bytes):
        blob.upload_from_string(file_data, content_type=content_type)
    else:
        blob.upload_from_file(file_data, content_type=content_type)
    return blob


def to_data_uri(file_data, content_type):
    return f'data:{content_type};base64,{base64.b64encode(file_data).decode("ascii")}'


def upload_question_image(file_data, filename, content_type=None, folder=None,
                          max_inline_bytes=DEFAULT_INLINE_IMAGE_MAX_BYTES):
    """Store a question image and return how to reference it.

    The image goes to the storage bucket when one is configured. Without a
    bucket, or when the upload fails, small images are embedded as a base64
    data URI instead.

    Returns:
        dict with 'url', 'storage_path' (None when inline) and 'inline'
    """
    if hasattr(file_data, 'read'):
        file_data = file_data.read()
    if not file_data:
        raise ValueError('The uploaded image is empty.')

    content_type = content_type or mimetypes.guess_type(filename or '')[0] or ''
    if not content_type.startswith('image/'):
        raise ValueError('Only image files can be uploaded.')

    bucket = get_bucket()
    if bucket is not None:
        safe_name = re.sub(r'[^A-Za-z0-9._-]+', '_', filename or 'image')
        path = f'{folder or "questions/general"}/{uuid.uuid4().hex[:8]}_{safe_name}'
        token = uuid.uuid4().hex
        try:
            upload_file(file_data, path, content_type,
                        metadata={'firebaseStorageDownloadTokens': token})
            url = DOWNLOAD_URL.format(bucket=bucket.name, path=quote(path, safe=''), token=token)
            logger.info("Uploaded question image to %s", path)
            return {'url': url, 'storage_path': path, 'inline': False}
        except Exception as e:
            logger.warning("Image upload to %s failed, trying inline fallback: %s", path, e)

    if len(file_data) > max_inline_bytes:
        raise ValueError(
            f'Image is too large to store inline ({len(file_data) // 1024} KB). '
            f'Maximum is {max_inline_bytes // 1024} KB.')

    logger.info("Storing %d byte image inline", len(file_data))
    return {'url': to_data_uri(file_data, content_type), 'storage_path': None, 'inline': True}


def delete_file(storage_path):
    """Delete a file from Firebase Storage."""
    bucket = get_bucket()
    if bucket is None or not storage_path:
        return
    blob = bucket.blob(storage_path)
    if blob.exists():
        blob.delete()
        logger.info("Deleted %s", storage_path)
