# tabletop/errors.py
# Error taxonomy shared by the registry, the HTTP routes and the socket hub


class TabletopError(Exception):
    """Base class for all errors raised by the scene core."""


class SceneNotFound(TabletopError):
    def __init__(self, scene_id):
        super().__init__(f"Scene not found: {scene_id}")
        self.scene_id = scene_id


class ValidationError(TabletopError):
    """A payload failed validation; nothing was applied."""


class PersistenceError(TabletopError):
    """Reading or writing a scene file failed."""
