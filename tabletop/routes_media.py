# tabletop/routes_media.py
# Blueprint: token media uploads and the music library

import logging

from flask import Blueprint, request, jsonify, current_app

from tabletop import media
from tabletop import music
from tabletop.auth import gm_required
from tabletop.errors import ValidationError

media_bp = Blueprint('media', __name__)


@media_bp.route('/upload', methods=['POST'])
@gm_required
def upload_file():
    file = request.files.get('file') or request.files.get('image')
    if file is None or file.filename == '':
        return "No file uploaded.", 400
    try:
        result = media.save_media_upload(file, current_app.config['UPLOADS_FOLDER'])
    except ValidationError as e:
        logging.warning(f"Upload rejected type: '{file.filename}' ({file.mimetype})")
        return str(e), 400
    except OSError as e:
        logging.error(f"Error saving upload '{file.filename}': {e}", exc_info=True)
        return "Could not save file.", 500
    return jsonify(result)


@media_bp.route('/uploadMusic', methods=['POST'])
@gm_required
def upload_music():
    file = request.files.get('music')
    if file is None or file.filename == '':
        return jsonify({"success": False, "message": "No music file uploaded."}), 400
    try:
        result = music.save_music_upload(file, current_app.config['MUSIC_FOLDER'])
    except ValidationError as e:
        logging.warning(f"Music upload rejected type: '{file.filename}' ({file.mimetype})")
        return jsonify({"success": False, "message": str(e)}), 400
    except OSError as e:
        logging.error(f"Error saving music '{file.filename}': {e}", exc_info=True)
        return jsonify({"success": False, "message": "Could not save file."}), 500
    return jsonify(result)


@media_bp.route('/musicList', methods=['GET'])
def get_music_list():
    try:
        tracks = music.list_music(current_app.config['MUSIC_FOLDER'])
    except OSError as e:
        logging.error(f"Error reading music directory: {e}")
        return jsonify({"success": False, "message": "Error reading music directory."}), 500
    return jsonify({"success": True, "musicTracks": tracks})


@media_bp.route('/deleteMusic', methods=['POST'])
@gm_required
def delete_music():
    body = request.get_json(silent=True)
    filename = body.get('filename') if isinstance(body, dict) else None
    if not filename or not isinstance(filename, str):
        return jsonify({"success": False, "message": "No filename provided."}), 400
    try:
        music.delete_music(filename, current_app.config['MUSIC_FOLDER'])
    except FileNotFoundError:
        logging.error(f"Music file does not exist: {filename}")
        return jsonify({"success": False, "message": "File not found."}), 404
    except OSError as e:
        logging.error(f"Error deleting music file: {e}")
        return jsonify({"success": False, "message": "Error deleting file."}), 500
    return jsonify({"success": True})
