import os
from io import BytesIO

from PIL import Image

from conftest import GM_PASSWORD, make_token


def _png_bytes(size=(32, 24)):
    buf = BytesIO()
    Image.new('RGB', size, color='red').save(buf, format='PNG')
    return buf.getvalue()


def test_gm_routes_redirect_without_login(client):
    for path, body in (('/createScene', {'sceneName': 'x'}),
                       ('/deleteScene', {'sceneId': 'x'}),
                       ('/updateSceneOrder', {'sceneOrder': []}),
                       ('/updateScene', {'scene': {}}),
                       ('/deleteMusic', {'filename': 'x.mp3'})):
        response = client.post(path, json=body)
        assert response.status_code == 302, path
        assert response.headers['Location'].endswith('/gm-login')


def test_wrong_password_is_rejected(client):
    response = client.post('/gm-login', data={'password': 'guess'})
    assert response.status_code == 401
    assert b'Incorrect password' in response.data
    assert client.post('/createScene', json={'sceneName': 'x'}).status_code == 302


def test_login_accepts_json_and_logout_revokes(client):
    assert client.post('/gm-login', json={'password': GM_PASSWORD}).status_code == 302
    assert client.post('/createScene', json={'sceneName': 'x'}).status_code == 200
    client.post('/gm-logout')
    assert client.post('/createScene', json={'sceneName': 'y'}).status_code == 302


def test_create_scene_then_list_it(gm_client, client):
    response = gm_client.post('/createScene', json={'sceneName': 'Forest'})
    assert response.status_code == 200
    scene_id = response.get_json()['sceneId']

    listing = client.get('/scenes').get_json()
    assert listing == {'scenes': [{'sceneId': scene_id, 'sceneName': 'Forest', 'order': 0}]}


def test_reorder_scenes(gm_client, client):
    s1 = gm_client.post('/createScene', json={'sceneName': 's1'}).get_json()['sceneId']
    s2 = gm_client.post('/createScene', json={'sceneName': 's2'}).get_json()['sceneId']

    response = gm_client.post('/updateSceneOrder', json={'sceneOrder': [s2, s1]})
    assert response.get_json() == {'success': True}

    names = [s['sceneName'] for s in client.get('/scenes').get_json()['scenes']]
    assert names == ['s2', 's1']


def test_reorder_with_unknown_scene_reports_failure(gm_client):
    response = gm_client.post('/updateSceneOrder', json={'sceneOrder': ['nope']})
    assert response.get_json()['success'] is False


def test_update_scene_renames(gm_client, client, table):
    scene_id = gm_client.post('/createScene', json={'sceneName': 'Old'}).get_json()['sceneId']

    response = gm_client.post('/updateScene', json={'scene': {
        'sceneId': scene_id, 'sceneName': 'New', 'tokens': [make_token('t1')],
    }})

    assert response.get_json() == {'message': 'Scene updated.'}
    assert client.get('/scenes').get_json()['scenes'][0]['sceneName'] == 'New'
    assert table.registry.find_token(scene_id, 't1')['x'] == 10.0


def test_update_scene_rejects_invalid_payload(gm_client):
    scene_id = gm_client.post('/createScene', json={'sceneName': 'A'}).get_json()['sceneId']
    response = gm_client.post('/updateScene', json={'scene': {
        'sceneId': scene_id, 'sceneName': 'A', 'tokens': [make_token('t1', width='huge')],
    }})
    assert response.status_code == 400


def test_delete_scene(gm_client, client):
    scene_id = gm_client.post('/createScene', json={'sceneName': 'Gone'}).get_json()['sceneId']

    assert gm_client.post('/deleteScene', json={'sceneId': scene_id}).get_json() == {'success': True}
    assert client.get('/scenes').get_json() == {'scenes': []}

    missing = gm_client.post('/deleteScene', json={'sceneId': scene_id})
    assert missing.status_code == 404
    assert missing.get_json()['success'] is False


def test_delete_scene_that_autosave_has_not_written_yet(gm_client, client, table):
    gm_client.post('/updateScene', json={'scene': {'sceneId': 'fresh1', 'sceneName': 'Fresh', 'tokens': []}})

    response = gm_client.post('/deleteScene', json={'sceneId': 'fresh1'})
    table.autosave.tick()

    assert response.get_json() == {'success': True}
    assert client.get('/scenes').get_json() == {'scenes': []}
    assert not table.registry.store.exists('fresh1')


def test_upload_image_reports_media_type_and_size(gm_client, folders):
    response = gm_client.post('/upload', data={'file': (BytesIO(_png_bytes()), 'orc token.png', 'image/png')},
                              content_type='multipart/form-data')
    assert response.status_code == 200
    body = response.get_json()
    assert body['mediaType'] == 'image'
    assert body['imageUrl'].startswith('/uploads/')
    assert body['imageUrl'].endswith('-orc_token.png')
    assert (body['width'], body['height']) == (32, 24)

    filename = body['imageUrl'][len('/uploads/'):]
    assert os.path.exists(os.path.join(folders['UPLOADS_FOLDER'], filename))
    assert gm_client.get(body['imageUrl']).status_code == 200


def test_upload_video_under_image_field(gm_client):
    response = gm_client.post('/upload', data={'image': (BytesIO(b'\x00\x00'), 'fire.webm', 'video/webm')},
                              content_type='multipart/form-data')
    body = response.get_json()
    assert body['mediaType'] == 'video'
    assert body['imageUrl'].endswith('-fire.webm')
    assert 'width' not in body


def test_upload_rejects_other_mime_types(gm_client, folders):
    response = gm_client.post('/upload', data={'file': (BytesIO(b'hello'), 'notes.txt', 'text/plain')},
                              content_type='multipart/form-data')
    assert response.status_code == 400
    assert os.listdir(folders['UPLOADS_FOLDER']) == []


def test_upload_requires_a_file(gm_client):
    response = gm_client.post('/upload', data={}, content_type='multipart/form-data')
    assert response.status_code == 400


def test_music_upload_list_and_delete(gm_client, client, folders):
    response = gm_client.post('/uploadMusic', data={'music': (BytesIO(b'ID3'), 'Forest Theme.mp3', 'audio/mpeg')},
                              content_type='multipart/form-data')
    body = response.get_json()
    assert body['success'] is True
    assert body['musicUrl'] == f"/music/{body['filename']}"

    listing = client.get('/musicList').get_json()
    assert listing['success'] is True
    assert listing['musicTracks'] == [{
        'name': 'Forest_Theme.mp3', 'filename': body['filename'], 'url': body['musicUrl'],
    }]

    assert gm_client.post('/deleteMusic', json={'filename': body['filename']}).get_json() == {'success': True}
    assert client.get('/musicList').get_json()['musicTracks'] == []
    assert gm_client.post('/deleteMusic', json={'filename': body['filename']}).status_code == 404


def test_music_upload_rejects_non_audio(gm_client, folders):
    response = gm_client.post('/uploadMusic', data={'music': (BytesIO(b'x'), 'clip.mp4', 'video/mp4')},
                              content_type='multipart/form-data')
    assert response.status_code == 400
    assert response.get_json()['success'] is False
    assert os.listdir(folders['MUSIC_FOLDER']) == []


def test_delete_music_cannot_escape_music_folder(gm_client, folders, tmp_path):
    victim = tmp_path / 'public' / 'keep.mp3'
    victim.write_bytes(b'x')

    response = gm_client.post('/deleteMusic', json={'filename': '../keep.mp3'})

    assert response.status_code == 404
    assert victim.exists()


def test_music_list_ignores_non_music_files(client, folders):
    with open(os.path.join(folders['MUSIC_FOLDER'], 'readme.txt'), 'w') as f:
        f.write('x')
    with open(os.path.join(folders['MUSIC_FOLDER'], '1700000000000-Tavern.ogg'), 'wb') as f:
        f.write(b'x')

    tracks = client.get('/musicList').get_json()['musicTracks']
    assert [t['name'] for t in tracks] == ['Tavern.ogg']
