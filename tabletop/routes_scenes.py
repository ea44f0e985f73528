# tabletop/routes_scenes.py
# Blueprint: scene CRUD and ordering

import logging

from flask import Blueprint, request, jsonify

from tabletop import config
from tabletop.auth import gm_required
from tabletop.errors import SceneNotFound, ValidationError, PersistenceError
from tabletop.state import current_table

scenes_bp = Blueprint('scenes', __name__)


def _json_body():
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else None


@scenes_bp.route('/createScene', methods=['POST'])
@gm_required
def create_scene():
    body = _json_body()
    if body is None:
        return jsonify({"error": "Request must be JSON"}), 400
    try:
        scene = current_table().registry.create_scene(body.get('sceneName'))
    except PersistenceError as e:
        logging.error(f"Error creating scene: {e}")
        return jsonify({"error": "Could not save scene"}), 500
    return jsonify({"sceneId": scene['sceneId']})


@scenes_bp.route('/scenes', methods=['GET'])
def list_scenes():
    try:
        return jsonify({"scenes": current_table().registry.list_scenes()})
    except Exception as e:
        logging.error(f"Error getting scenes: {e}", exc_info=True)
        return jsonify({"error": "Error getting scenes."}), 500


@scenes_bp.route('/updateScene', methods=['POST'])
@gm_required
def update_scene():
    body = _json_body()
    if body is None or 'scene' not in body:
        return jsonify({"error": "Request must be JSON with a scene"}), 400
    try:
        current_table().registry.update_scene(body['scene'])
    except ValidationError as e:
        logging.warning(f"Rejected scene update: {e}")
        return jsonify({"error": str(e)}), 400
    except PersistenceError as e:
        logging.error(f"Error updating scene: {e}")
        return jsonify({"error": "Error updating scene."}), 500
    return jsonify({"message": "Scene updated."})


@scenes_bp.route('/deleteScene', methods=['POST'])
@gm_required
def delete_scene():
    body = _json_body()
    scene_id = body.get('sceneId') if body else None
    if not scene_id:
        return jsonify({"success": False, "message": "No sceneId provided."}), 400
    table = current_table()
    try:
        table.registry.delete_scene(scene_id)
    except SceneNotFound:
        return jsonify({"success": False, "message": "Scene not found."}), 404
    except PersistenceError as e:
        logging.error(f"Error deleting scene: {e}")
        return jsonify({"success": False, "message": "Error deleting scene."}), 500
    if table.active_scene_id == scene_id:
        table.set_active_scene(None)
        if table.socketio is not None:
            table.socketio.emit('activeSceneId', None, to=config.ROOM_NAME)
    return jsonify({"success": True})


@scenes_bp.route('/updateSceneOrder', methods=['POST'])
@gm_required
def update_scene_order():
    body = _json_body()
    scene_order = body.get('sceneOrder') if body else None
    if not isinstance(scene_order, list) or not all(isinstance(i, str) for i in scene_order):
        return jsonify({"success": False, "message": "sceneOrder must be a list of scene ids"}), 400
    try:
        current_table().registry.update_scene_order(scene_order)
    except (SceneNotFound, PersistenceError) as e:
        logging.error(f"Error updating scene order: {e}")
        return jsonify({"success": False, "message": "Failed to update scene order"})
    return jsonify({"success": True})
