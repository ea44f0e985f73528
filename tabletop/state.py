# tabletop/state.py
# Process-wide table state, owned by create_app() and injected where needed

import logging
import threading

from flask import current_app

ROLE_GM = 'gm'
ROLE_PLAYER = 'player'


class TableContext:
    """Holds the scene registry, the active scene and the live connections."""

    def __init__(self, registry, socketio=None):
        self.registry = registry
        self.socketio = socketio
        self.autosave = None
        self.active_scene_id = None
        self.connections = {}     # {sid: role}
        self._lock = threading.Lock()

    def add_connection(self, sid, role):
        with self._lock:
            self.connections[sid] = role
        logging.info(f"Connection {sid} registered as {role}.")

    def drop_connection(self, sid):
        with self._lock:
            return self.connections.pop(sid, None)

    def role_of(self, sid):
        with self._lock:
            return self.connections.get(sid)

    def is_gm(self, sid):
        return self.role_of(sid) == ROLE_GM

    def set_active_scene(self, scene_id):
        self.active_scene_id = scene_id
        logging.info(f"Active scene changed to {scene_id}")


def current_table():
    """The TableContext of the application handling the current request."""
    return current_app.extensions['tabletop']
