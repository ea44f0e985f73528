# tabletop/media.py
# Uploaded token media: storage naming, MIME classification, best-effort deletion

import os
import time
import logging

from PIL import Image, UnidentifiedImageError
from werkzeug.utils import secure_filename

from tabletop import config
from tabletop.errors import ValidationError


def stored_filename(original_name):
    """``<epoch-ms>-<sanitized original name>``, the naming used for media and music."""
    safe_name = secure_filename(original_name or '') or 'upload'
    return f"{int(time.time() * 1000)}-{safe_name}"


def classify_media(mimetype):
    """Map an upload MIME type onto a token mediaType."""
    mimetype = (mimetype or '').lower()
    if mimetype.startswith('video/'):
        return 'video'
    if mimetype.startswith('image/'):
        return 'image'
    raise ValidationError("Unsupported file type.")


def probe_image_size(path):
    """Return (width, height) of an image file, or None when Pillow cannot read it."""
    try:
        with Image.open(path) as img:
            return img.size
    except (UnidentifiedImageError, OSError) as e:
        logging.debug(f"Could not probe image size of {path}: {e}")
        return None


def save_media_upload(file_storage, uploads_folder):
    """Persist an uploaded token image/video and describe it for the client."""
    media_type = classify_media(file_storage.mimetype)
    filename = stored_filename(file_storage.filename)
    save_path = os.path.join(uploads_folder, filename)
    file_storage.save(save_path)
    logging.info(f"Media uploaded: {save_path} ({media_type})")
    result = {'imageUrl': f"{config.UPLOADS_URL_PREFIX}{filename}", 'mediaType': media_type}
    if media_type == 'image':
        size = probe_image_size(save_path)
        if size:
            result['width'], result['height'] = size
    return result


def media_path_for_url(image_url, uploads_folder):
    """Resolve a ``/uploads/<name>`` URL to a path inside the uploads folder, else None."""
    if not isinstance(image_url, str) or not image_url.startswith(config.UPLOADS_URL_PREFIX):
        return None
    filename = os.path.basename(image_url[len(config.UPLOADS_URL_PREFIX):])
    if not filename or filename in ('.', '..'):
        return None
    path = os.path.join(uploads_folder, filename)
    if not os.path.abspath(path).startswith(os.path.abspath(uploads_folder) + os.sep):
        return None
    return path


def delete_media_file(image_url, uploads_folder):
    """Delete the file behind an uploaded media URL. Never raises; returns True on deletion."""
    path = media_path_for_url(image_url, uploads_folder)
    if path is None:
        logging.debug(f"Not an uploaded media URL, nothing to delete: {image_url}")
        return False
    try:
        os.remove(path)
        logging.info(f"Deleted unused media file: {path}")
        return True
    except FileNotFoundError:
        logging.warning(f"Unused media file already missing: {path}")
    except OSError as e:
        logging.error(f"Error deleting media file {path}: {e}")
    return False
