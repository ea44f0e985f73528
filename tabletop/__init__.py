# tabletop/__init__.py
# Application factory — creates Flask app + SocketIO + the table context

from flask import Flask
from flask_socketio import SocketIO

from tabletop import config
from tabletop.autosave import AutosaveScheduler
from tabletop.registry import SceneRegistry
from tabletop.routes_auth import auth_bp
from tabletop.routes_media import media_bp
from tabletop.routes_scenes import scenes_bp
from tabletop.sockets import register_socket_handlers
from tabletop.state import TableContext
from tabletop.storage import SceneStore


def create_app(test_config=None):
    """Create and configure the Flask application.

    ``test_config`` overrides the defaults from ``config.default_settings()``.
    Each app gets its own SocketIO server and TableContext, reachable through
    ``app.extensions['socketio']`` and ``app.extensions['tabletop']``. The
    autosave loop is created here but only started by ``start_autosave()``.
    """
    settings = config.default_settings()
    if test_config:
        settings.update(test_config)

    # Uploaded media and music are served straight from the public folder
    app = Flask(__name__, static_folder=settings['PUBLIC_FOLDER'], static_url_path='')
    app.config.update(settings)
    config.ensure_directories(app.config)

    # Handlers run in the connection's own thread so each client's messages
    # are applied in arrival order
    socketio = SocketIO(app, cors_allowed_origins="*", async_mode='threading', async_handlers=False)

    registry = SceneRegistry(SceneStore(app.config['SCENES_FOLDER']), app.config['UPLOADS_FOLDER'])
    table = TableContext(registry, socketio)
    table.autosave = AutosaveScheduler(registry, socketio, interval=app.config['AUTOSAVE_INTERVAL'])
    app.extensions['tabletop'] = table

    # Register blueprints
    app.register_blueprint(auth_bp)
    app.register_blueprint(scenes_bp)
    app.register_blueprint(media_bp)

    # Register socket event handlers
    register_socket_handlers(socketio, table)

    return app


def start_autosave(app):
    table = app.extensions['tabletop']
    if app.config.get('AUTOSAVE_ENABLED', True):
        table.autosave.start()
    return table.autosave
