# tabletop/storage.py
# Scene persistence: one JSON file per scene, atomic overwrite

import os
import re
import json
import logging

from tabletop.errors import SceneNotFound, PersistenceError

SCENE_ID_REGEX = re.compile(r'^[A-Za-z0-9_-]+$')
SCENE_FILE_SUFFIX = '.json'

# Keys that live on a resident scene but never reach disk
TRANSIENT_KEYS = ('dirty',)


def is_valid_scene_id(scene_id):
    return isinstance(scene_id, str) and bool(SCENE_ID_REGEX.match(scene_id))


class SceneStore:
    """Flat directory of ``<sceneId>.json`` files."""

    def __init__(self, folder):
        self.folder = folder
        os.makedirs(self.folder, exist_ok=True)

    def path_for(self, scene_id):
        if not is_valid_scene_id(scene_id):
            raise SceneNotFound(scene_id)
        return os.path.join(self.folder, f"{scene_id}{SCENE_FILE_SUFFIX}")

    def exists(self, scene_id):
        return is_valid_scene_id(scene_id) and os.path.isfile(self.path_for(scene_id))

    def list_ids(self):
        """Scene ids of every persisted scene, in file-name order."""
        try:
            names = os.listdir(self.folder)
        except FileNotFoundError:
            return []
        ids = [name[:-len(SCENE_FILE_SUFFIX)] for name in names if name.endswith(SCENE_FILE_SUFFIX)]
        return sorted(i for i in ids if is_valid_scene_id(i))

    def read(self, scene_id):
        path = self.path_for(scene_id)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                scene = json.load(f)
        except FileNotFoundError:
            raise SceneNotFound(scene_id)
        except (OSError, ValueError) as e:
            raise PersistenceError(f"Could not read scene {scene_id}: {e}") from e
        if not isinstance(scene, dict) or not isinstance(scene.get('tokens', []), list):
            raise PersistenceError(f"Scene file {path} has an invalid structure")
        scene.setdefault('sceneId', scene_id)
        scene.setdefault('tokens', [])
        for key in TRANSIENT_KEYS:
            scene.pop(key, None)
        return scene

    def write(self, scene):
        scene_id = scene.get('sceneId')
        path = self.path_for(scene_id)
        temp_path = path + ".tmp"
        data = {k: v for k, v in scene.items() if k not in TRANSIENT_KEYS}
        try:
            with open(temp_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(temp_path, path)
            logging.debug(f"Scene {scene_id} written to {path}")
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(f"Could not write scene {scene_id}: {e}") from e
        finally:
            if os.path.exists(temp_path):
                try: os.remove(temp_path)
                except OSError: pass

    def delete(self, scene_id):
        path = self.path_for(scene_id)
        try:
            os.remove(path)
        except FileNotFoundError:
            raise SceneNotFound(scene_id)
        except OSError as e:
            raise PersistenceError(f"Could not delete scene {scene_id}: {e}") from e
        logging.info(f"Scene file deleted: {path}")
