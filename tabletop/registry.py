# tabletop/registry.py
# Authoritative in-memory scene cache: token mutation, dirty tracking, orphan sweep

import copy
import time
import logging
import threading

from tabletop import config
from tabletop import media
from tabletop import tokens as token_model
from tabletop.errors import SceneNotFound, PersistenceError, ValidationError
from tabletop.storage import is_valid_scene_id


class SceneRegistry:
    """Single source of truth for loaded scenes.

    Scenes stay resident once loaded. Every read-modify-write of the resident
    map happens under ``self._lock`` so socket handlers running on different
    threads never interleave on the same scene. Disk I/O never runs under
    that lock: a slow read or write only delays the caller that asked for it.
    Disk writes for token edits are deferred to ``flush_dirty()`` (driven by
    the autosave scheduler); scene creation and reordering are written
    through immediately.
    """

    def __init__(self, store, uploads_folder):
        self.store = store
        self.uploads_folder = uploads_folder
        self._scenes = {}
        self._dirty = set()
        self._lock = threading.RLock()
        # Held while scenes are written or deleted on disk; delete/reorder take
        # it so a stale autosave snapshot can never land on disk after them.
        self._flush_lock = threading.Lock()
        self._last_scene_id = 0

    # --- Scenes ---

    def _reserve_scene_id(self):
        with self._lock:
            candidate = max(int(time.time() * 1000), self._last_scene_id + 1)
            self._last_scene_id = candidate
        return str(candidate)

    def _next_scene_id(self):
        scene_id = self._reserve_scene_id()
        while self.store.exists(scene_id):
            scene_id = self._reserve_scene_id()
        return scene_id

    def create_scene(self, name):
        scene_name = name.strip() if isinstance(name, str) else ''
        scene = {
            'sceneId': self._next_scene_id(),
            'sceneName': scene_name or config.DEFAULT_SCENE_NAME,
            'tokens': [],
            'order': 0,
        }
        self.store.write(scene)
        with self._lock:
            self._scenes[scene['sceneId']] = scene
        logging.info(f"Scene created: {scene['sceneId']} ({scene['sceneName']})")
        return scene

    def load_scene(self, scene_id):
        if not isinstance(scene_id, str):
            raise SceneNotFound(scene_id)
        with self._lock:
            scene = self._scenes.get(scene_id)
        if scene is not None:
            return scene
        loaded = self.store.read(scene_id)
        with self._lock:
            # Another thread may have loaded it meanwhile; its copy wins
            scene = self._scenes.setdefault(scene_id, loaded)
        if scene is loaded:
            logging.info(f"Scene {scene_id} loaded.")
        return scene

    def scene_snapshot(self, scene_id):
        """Deep copy of a scene, safe to serialize while other threads mutate it."""
        scene = self.load_scene(scene_id)
        with self._lock:
            return copy.deepcopy(scene)

    def is_resident(self, scene_id):
        with self._lock:
            return scene_id in self._scenes

    def is_dirty(self, scene_id):
        with self._lock:
            return scene_id in self._dirty

    def evict(self, scene_id):
        """Drop a scene from the cache without saving it."""
        with self._lock:
            self._dirty.discard(scene_id)
            return self._scenes.pop(scene_id, None)

    def list_scenes(self):
        summaries = []
        for scene_id in self.store.list_ids():
            with self._lock:
                resident = self._scenes.get(scene_id)
                if resident is not None:
                    summaries.append(self._summary(resident))
                    continue
            try:
                summaries.append(self._summary(self.store.read(scene_id)))
            except (SceneNotFound, PersistenceError) as e:
                logging.error(f"Error reading scene file for {scene_id}: {e}")
        # sorted() is stable, so equal ranks keep file-name order
        return sorted(summaries, key=lambda s: s['order'])

    @staticmethod
    def _summary(scene):
        order = scene.get('order')
        if order is None:
            order = 0
        elif isinstance(order, bool) or not isinstance(order, int):
            logging.warning(f"Scene {scene.get('sceneId')} has a non-integer order {order!r}, treating it as 0.")
            order = 0
        return {'sceneId': scene.get('sceneId'), 'sceneName': scene.get('sceneName', ''), 'order': order}

    def update_scene(self, scene):
        normalized = token_model.normalize_scene(scene)
        scene_id = normalized['sceneId']
        if not is_valid_scene_id(scene_id):
            raise ValidationError(f"Invalid sceneId: {scene_id}")
        try:
            self.load_scene(scene_id)
        except SceneNotFound:
            pass
        with self._lock:
            existing = self._scenes.get(scene_id)
            if existing is not None:
                normalized.setdefault('order', existing.get('order', 0))
                # Replace contents in place so references held elsewhere stay valid
                existing.clear()
                existing.update(normalized)
                normalized = existing
            else:
                normalized.setdefault('order', 0)
                self._scenes[scene_id] = normalized
            self._dirty.add(scene_id)
        logging.info(f"Scene {scene_id} updated ({len(normalized['tokens'])} tokens).")
        return normalized

    def delete_scene(self, scene_id):
        self.load_scene(scene_id)
        with self._flush_lock:
            with self._lock:
                scene = self._scenes.pop(scene_id, None)
                self._dirty.discard(scene_id)
            if scene is None:
                # Deleted by a concurrent request between the load and here
                raise SceneNotFound(scene_id)
            try:
                self.store.delete(scene_id)
            except SceneNotFound:
                logging.info(f"Scene {scene_id} was never saved, nothing to remove on disk.")
        logging.info(f"Scene deleted: {scene_id}")
        image_urls = []
        for token in scene.get('tokens', []):
            url = token.get('imageUrl')
            if url and url not in image_urls:
                image_urls.append(url)
        for url in image_urls:
            self._delete_media_if_orphaned(url)
        return scene

    def update_scene_order(self, ordered_ids):
        for rank, scene_id in enumerate(ordered_ids):
            scene = self.load_scene(scene_id)
            with self._flush_lock:
                with self._lock:
                    scene['order'] = rank
                    snapshot = copy.deepcopy(scene)
                    self._dirty.discard(scene_id)
                try:
                    self.store.write(snapshot)
                except PersistenceError:
                    with self._lock:
                        if scene_id in self._scenes:
                            self._dirty.add(scene_id)
                    raise
        logging.info(f"Scene order updated: {list(ordered_ids)}")

    # --- Tokens ---

    @staticmethod
    def _find(scene, token_id):
        for token in scene['tokens']:
            if token.get('tokenId') == token_id:
                return token
        return None

    def find_token(self, scene_id, token_id):
        with self._lock:
            scene = self._scenes.get(scene_id)
            if scene is None:
                return None
            token = self._find(scene, token_id)
            return copy.deepcopy(token) if token is not None else None

    def update_token(self, scene_id, token_id, properties):
        """Merge validated properties into a resident token; None when there is nothing to update."""
        delta = token_model.validate_token_properties(properties)
        with self._lock:
            scene = self._scenes.get(scene_id)
            if scene is None:
                logging.debug(f"update_token: scene {scene_id} not resident, ignoring.")
                return None
            token = self._find(scene, token_id)
            if token is None:
                logging.debug(f"update_token: token {token_id} not in scene {scene_id}, ignoring.")
                return None
            if not delta:
                return None
            token.update(delta)
            self._dirty.add(scene_id)
        return delta

    def add_token(self, scene_id, token):
        new_token = token_model.normalize_token(token)
        with self._lock:
            scene = self._scenes.get(scene_id)
            if scene is None:
                logging.debug(f"add_token: scene {scene_id} not resident, ignoring.")
                return None
            if new_token['tokenId'] is None or self._find(scene, new_token['tokenId']) is not None:
                new_token['tokenId'] = token_model.generate_token_id()
            scene['tokens'].append(new_token)
            self._dirty.add(scene_id)
        logging.debug(f"Token {new_token['tokenId']} added to scene {scene_id}")
        return copy.deepcopy(new_token)

    def remove_token(self, scene_id, token_id):
        with self._lock:
            scene = self._scenes.get(scene_id)
            if scene is None:
                return None
            token = self._find(scene, token_id)
            if token is None:
                return None
            scene['tokens'].remove(token)
            self._dirty.add(scene_id)
        logging.info(f"Token {token_id} removed from scene {scene_id}")
        if token.get('imageUrl'):
            self._delete_media_if_orphaned(token['imageUrl'])
        return token

    # --- Orphaned media ---

    def _referenced_in_memory(self, image_url):
        with self._lock:
            return any(t.get('imageUrl') == image_url
                       for scene in self._scenes.values() for t in scene['tokens'])

    def is_media_referenced(self, image_url):
        """True if any token in any resident or persisted scene uses image_url."""
        if self._referenced_in_memory(image_url):
            return True
        with self._lock:
            resident_ids = set(self._scenes)
        for scene_id in self.store.list_ids():
            if scene_id in resident_ids:
                continue
            try:
                scene = self.store.read(scene_id)
            except (SceneNotFound, PersistenceError) as e:
                logging.warning(f"Skipping unreadable scene {scene_id} during media sweep: {e}")
                continue
            if any(t.get('imageUrl') == image_url for t in scene['tokens'] if isinstance(t, dict)):
                return True
        return False

    def _delete_media_if_orphaned(self, image_url):
        if self.is_media_referenced(image_url):
            logging.debug(f"Media still referenced, keeping: {image_url}")
            return False
        # Re-check resident scenes and unlink under one lock hold, so a token
        # added by another handler after the disk scan keeps its file.
        with self._lock:
            if self._referenced_in_memory(image_url):
                logging.debug(f"Media referenced again before deletion, keeping: {image_url}")
                return False
            return media.delete_media_file(image_url, self.uploads_folder)

    # --- Autosave ---

    def flush_dirty(self):
        """Write every dirty scene. Failed writes stay dirty for the next sweep."""
        with self._flush_lock:
            with self._lock:
                pending = [(scene_id, copy.deepcopy(self._scenes[scene_id]))
                           for scene_id in self._dirty if scene_id in self._scenes]
                self._dirty.clear()
            saved = 0
            for scene_id, snapshot in pending:
                try:
                    self.store.write(snapshot)
                    saved += 1
                    logging.debug(f"Scene {scene_id} saved.")
                except (PersistenceError, SceneNotFound) as e:
                    logging.error(f"Error saving scene {scene_id}, will retry: {e}")
                    with self._lock:
                        if scene_id in self._scenes:
                            self._dirty.add(scene_id)
        return saved
