import base64
import binascii
import os
import re
import uuid

from flask import current_app
from werkzeug.utils import secure_filename

from collabotree import errors

ALLOWED_EXTENSIONS = {'png', 'jpg', 'jpeg', 'webp'}
DATA_URL_RE = re.compile(r'^data:image/(png|jpe?g|webp);base64,(?P<payload>[A-Za-z0-9+/=\s]+)$')


def allowed_file(filename):
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in ALLOWED_EXTENSIONS


def check_image_reference(value):
    """Validate an ID image given as a data URL or an http(s) URL."""
    value = (value or '').strip()
    if not value:
        raise errors.ValidationError("ID card image is required")

    if value.startswith('data:'):
        match = DATA_URL_RE.match(value)
        if not match:
            raise errors.ValidationError("ID card must be a PNG, JPEG or WEBP image")
        try:
            raw = base64.b64decode(match.group('payload'), validate=False)
        except (binascii.Error, ValueError):
            raise errors.ValidationError("ID card image data is not valid base64")
        if not raw:
            raise errors.ValidationError("ID card image is empty")
        if len(raw) > current_app.config['MAX_ID_CARD_BYTES']:
            raise errors.ValidationError("ID card image is too large")
        return value

    if value.startswith(('http://', 'https://')):
        return value

    raise errors.ValidationError("ID card must be an image upload, data URL or http(s) URL")


def save_upload(file, subfolder):
    """Store an uploaded image and return its public path."""
    if not file or not file.filename:
        raise errors.ValidationError("No file uploaded")
    if not allowed_file(file.filename):
        raise errors.ValidationError("ID card must be a PNG, JPEG or WEBP image")

    folder = os.path.join(current_app.config['UPLOAD_FOLDER'], subfolder)
    os.makedirs(folder, exist_ok=True)

    filename = f"{uuid.uuid4().hex}_{secure_filename(file.filename)}"
    file.save(os.path.join(folder, filename))
    return f"/uploads/{subfolder}/{filename}"
