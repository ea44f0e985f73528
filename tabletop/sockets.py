# tabletop/sockets.py
# All SocketIO event handlers

import logging
from functools import wraps

from flask import request, session
from flask_socketio import emit as socketio_emit, join_room

from tabletop import config
from tabletop.errors import SceneNotFound, ValidationError, PersistenceError
from tabletop.state import ROLE_GM, ROLE_PLAYER
from tabletop.tokens import PLAYER_MOVABLE_FIELDS

# Music control events are relayed verbatim from the GM to everybody else
MUSIC_EVENTS = ('playTrack', 'pauseTrack', 'setTrackVolume', 'deleteTrack', 'addTrack')


def isolated(handler):
    """Log and swallow handler errors so one bad message cannot take the hub down."""
    @wraps(handler)
    def wrapper(*args, **kwargs):
        try:
            return handler(*args, **kwargs)
        except Exception as e:
            logging.error(f"Error handling '{handler.__name__}' from {request.sid}: {e}", exc_info=True)
    return wrapper


def _valid_volume(data):
    volume = data.get('volume')
    if volume is None:
        return True
    if isinstance(volume, bool) or not isinstance(volume, (int, float)):
        return False
    return 0.0 <= volume <= 1.0


def register_socket_handlers(sio, table):
    """Register all SocketIO event handlers on the given SocketIO instance."""
    registry = table.registry

    def require_gm(event):
        if table.is_gm(request.sid):
            return True
        logging.warning(f"Non-GM client {request.sid} tried to emit {event} — rejected.")
        return False

    @sio.on('connect')
    @isolated
    def handle_connect(auth=None):
        role = ROLE_GM if session.get('is_gm') else ROLE_PLAYER
        table.add_connection(request.sid, role)
        join_room(config.ROOM_NAME)
        logging.info(f"Client connected: {request.sid} ({role})")
        socketio_emit('activeSceneId', table.active_scene_id, to=request.sid)

    @sio.on('disconnect')
    @isolated
    def handle_disconnect(*args):
        role = table.drop_connection(request.sid)
        logging.info(f"Client disconnected: {request.sid} ({role})")

    @sio.on('loadScene')
    @isolated
    def handle_load_scene(data=None):
        scene_id = data.get('sceneId') if isinstance(data, dict) else None
        try:
            scene = registry.scene_snapshot(scene_id)
        except (SceneNotFound, PersistenceError) as e:
            logging.error(f"Failed to load scene for {request.sid}: {e}")
            socketio_emit('error', {'message': 'Failed to load scene.'}, to=request.sid)
            return
        socketio_emit('sceneData', scene, to=request.sid)

    @sio.on('changeScene')
    @isolated
    def handle_change_scene(data=None):
        if not require_gm('changeScene'):
            return
        if not isinstance(data, dict) or 'sceneId' not in data:
            logging.warning(f"changeScene from {request.sid} without sceneId ignored.")
            return
        scene_id = data['sceneId']
        # None clears the active scene
        if scene_id is not None:
            try:
                registry.load_scene(scene_id)
            except (SceneNotFound, PersistenceError) as e:
                logging.warning(f"changeScene to unknown scene ignored: {e}")
                return
        table.set_active_scene(scene_id)
        socketio_emit('activeSceneId', table.active_scene_id, to=config.ROOM_NAME)

    @sio.on('updateToken')
    @isolated
    def handle_update_token(data=None):
        if not isinstance(data, dict):
            return
        scene_id = data.get('sceneId')
        token_id = data.get('tokenId')
        properties = data.get('properties')
        if not isinstance(properties, dict):
            logging.warning(f"updateToken from {request.sid} without properties — ignored.")
            return
        if not table.is_gm(request.sid):
            token = registry.find_token(scene_id, token_id)
            if token is None:
                return
            if not token.get('movableByPlayers') or not set(properties) <= PLAYER_MOVABLE_FIELDS:
                logging.warning(f"Player {request.sid} may not update token {token_id} with {sorted(properties)} — rejected.")
                return
        try:
            delta = registry.update_token(scene_id, token_id, properties)
        except ValidationError as e:
            logging.warning(f"Invalid token update from {request.sid}: {e}")
            return
        if delta is None:
            return
        socketio_emit('updateToken', {'sceneId': scene_id, 'tokenId': token_id, 'properties': delta},
                      to=config.ROOM_NAME, include_self=False)

    @sio.on('addToken')
    @isolated
    def handle_add_token(data=None):
        if not require_gm('addToken') or not isinstance(data, dict):
            return
        scene_id = data.get('sceneId')
        try:
            token = registry.add_token(scene_id, data.get('token'))
        except ValidationError as e:
            logging.warning(f"Invalid token from {request.sid}: {e}")
            return
        if token is None:
            return
        logging.info(f"Token placed: {token['tokenId']} in scene {scene_id} by {request.sid}")
        socketio_emit('addToken', {'sceneId': scene_id, 'token': token}, to=config.ROOM_NAME)

    @sio.on('removeToken')
    @isolated
    def handle_remove_token(data=None):
        if not require_gm('removeToken') or not isinstance(data, dict):
            return
        scene_id = data.get('sceneId')
        token_id = data.get('tokenId')
        if registry.remove_token(scene_id, token_id) is None:
            return
        socketio_emit('removeToken', {'sceneId': scene_id, 'tokenId': token_id}, to=config.ROOM_NAME)

    def make_music_relay(event):
        def relay(data=None):
            if not require_gm(event):
                return
            if not isinstance(data, dict):
                logging.warning(f"Malformed {event} from {request.sid} — ignored.")
                return
            if event == 'setTrackVolume' and not _valid_volume(data):
                logging.warning(f"Out-of-range volume from {request.sid}: {data.get('volume')!r}")
                return
            socketio_emit(event, data, to=config.ROOM_NAME, include_self=False)
        relay.__name__ = f"handle_{event}"
        return relay

    for event in MUSIC_EVENTS:
        sio.on(event)(isolated(make_music_relay(event)))
