"""Shared fixtures: an isolated app per test with its own data directories."""

import os

import pytest

from tabletop import create_app
from tabletop.registry import SceneRegistry
from tabletop.storage import SceneStore

GM_PASSWORD = "open-sesame"


@pytest.fixture
def folders(tmp_path):
    public = tmp_path / "public"
    return {
        'SCENES_FOLDER': str(tmp_path / "data" / "scenes"),
        'PUBLIC_FOLDER': str(public),
        'UPLOADS_FOLDER': str(public / "uploads"),
        'MUSIC_FOLDER': str(public / "music"),
    }


@pytest.fixture
def app(folders):
    settings = {
        'TESTING': True,
        'SECRET_KEY': 'test-secret',
        'GM_PASSWORD': GM_PASSWORD,
        'AUTOSAVE_ENABLED': False,
    }
    settings.update(folders)
    return create_app(settings)


@pytest.fixture
def table(app):
    return app.extensions['tabletop']


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def gm_client(app):
    client = app.test_client()
    response = client.post('/gm-login', data={'password': GM_PASSWORD})
    assert response.status_code == 302
    return client


def connect(app, http_client):
    """Open a realtime connection sharing http_client's session cookie."""
    sio_client = app.extensions['socketio'].test_client(app, flask_test_client=http_client)
    assert sio_client.is_connected()
    return sio_client


def events(sio_client, name):
    return [msg['args'] for msg in sio_client.get_received() if msg['name'] == name]


@pytest.fixture
def gm_socket(app, gm_client):
    sio_client = connect(app, gm_client)
    sio_client.get_received()
    yield sio_client
    if sio_client.is_connected():
        sio_client.disconnect()


@pytest.fixture
def player_socket(app, client):
    sio_client = connect(app, client)
    sio_client.get_received()
    yield sio_client
    if sio_client.is_connected():
        sio_client.disconnect()


@pytest.fixture
def registry(folders):
    os.makedirs(folders['UPLOADS_FOLDER'], exist_ok=True)
    return SceneRegistry(SceneStore(folders['SCENES_FOLDER']), folders['UPLOADS_FOLDER'])


def make_token(token_id, image_url="/uploads/1-orc.png", **overrides):
    token = {
        'tokenId': token_id,
        'imageUrl': image_url,
        'x': 10,
        'y': 10,
        'width': 50,
        'height': 50,
    }
    token.update(overrides)
    return token


def touch_upload(folders, filename):
    path = os.path.join(folders['UPLOADS_FOLDER'], filename)
    with open(path, 'wb') as f:
        f.write(b"media")
    return path
