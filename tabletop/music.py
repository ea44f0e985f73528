# tabletop/music.py
# Background music library backed by a flat directory of uploaded files

import os
import re
import logging

from tabletop import config
from tabletop.errors import ValidationError
from tabletop.media import stored_filename

# "1712345678901-Forest Theme.mp3" -> "Forest Theme.mp3"
TIMESTAMP_PREFIX_REGEX = re.compile(r'^\d+\s*[-_]?\s*')


def display_name(filename):
    return TIMESTAMP_PREFIX_REGEX.sub('', filename, count=1)


def is_music_file(filename):
    return filename.lower().endswith(config.ALLOWED_MUSIC_EXTENSIONS)


def save_music_upload(file_storage, music_folder):
    if not (file_storage.mimetype or '').lower().startswith('audio/'):
        raise ValidationError("Unsupported file type")
    filename = stored_filename(file_storage.filename)
    save_path = os.path.join(music_folder, filename)
    file_storage.save(save_path)
    logging.info(f"Music uploaded: {filename}")
    return {'success': True, 'musicUrl': f"{config.MUSIC_URL_PREFIX}{filename}", 'filename': filename}


def list_music(music_folder):
    """Enumerate music files on disk as ``{name, filename, url}`` entries."""
    files = sorted(f for f in os.listdir(music_folder)
                   if is_music_file(f) and os.path.isfile(os.path.join(music_folder, f)))
    return [{'name': display_name(f), 'filename': f, 'url': f"{config.MUSIC_URL_PREFIX}{f}"} for f in files]


def delete_music(filename, music_folder):
    """Delete a music file by name; raises FileNotFoundError when absent."""
    safe_filename = os.path.basename(filename.replace('\\', '/'))
    if not safe_filename or safe_filename in ('.', '..'):
        raise FileNotFoundError(filename)
    file_path = os.path.join(music_folder, safe_filename)
    if not os.path.isfile(file_path):
        raise FileNotFoundError(file_path)
    os.remove(file_path)
    logging.info(f"Deleted music file: {file_path}")
    return safe_filename
