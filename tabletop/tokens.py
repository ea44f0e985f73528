# tabletop/tokens.py
# Token field whitelist, per-field validation, token/scene normalization

import math
import time
import logging
from uuid import uuid4

from tabletop.errors import ValidationError

MEDIA_TYPES = ('image', 'video')
MAX_ID_LENGTH = 128
MAX_URL_LENGTH = 512
MAX_NAME_LENGTH = 200

# Fields a player may change on a token flagged movableByPlayers
PLAYER_MOVABLE_FIELDS = frozenset({'x', 'y'})

TOKEN_DEFAULTS = {
    'mediaType': 'image',
    'x': 0.0,
    'y': 0.0,
    'width': 100.0,
    'height': 100.0,
    'rotation': 0.0,
    'zIndex': 0,
    'movableByPlayers': False,
    'hidden': False,
    'name': '',
}


def _number(field, value):
    # bool is an int subclass; a flag sent as a coordinate is a client bug
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{field} must be a number")
    value = float(value)
    if not math.isfinite(value):
        raise ValidationError(f"{field} must be finite")
    return value


def _positive(field, value):
    value = _number(field, value)
    if value <= 0:
        raise ValidationError(f"{field} must be greater than 0")
    return value


def _integer(field, value):
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer")
    return value


def _flag(field, value):
    if not isinstance(value, bool):
        raise ValidationError(f"{field} must be true or false")
    return value


def _media_type(field, value):
    if value not in MEDIA_TYPES:
        raise ValidationError(f"{field} must be one of {', '.join(MEDIA_TYPES)}")
    return value


def _image_url(field, value):
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} must be a non-empty string")
    if len(value) > MAX_URL_LENGTH:
        raise ValidationError(f"{field} is too long")
    return value


def _name(field, value):
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    return value[:MAX_NAME_LENGTH]


UPDATABLE_FIELDS = {
    'imageUrl': _image_url,
    'mediaType': _media_type,
    'x': _number,
    'y': _number,
    'width': _positive,
    'height': _positive,
    'rotation': _number,
    'zIndex': _integer,
    'movableByPlayers': _flag,
    'hidden': _flag,
    'name': _name,
}


def generate_token_id():
    return f"{int(time.time() * 1000)}-{uuid4().hex[:9]}"


def is_valid_token_id(token_id):
    return isinstance(token_id, str) and 0 < len(token_id) <= MAX_ID_LENGTH


def validate_token_properties(properties):
    """Return the whitelisted, normalized subset of a partial token update.

    Unknown keys (including ``tokenId``) are dropped. Any invalid value for a
    known key raises ValidationError so the update is applied all-or-nothing.
    """
    if not isinstance(properties, dict):
        raise ValidationError("properties must be an object")
    cleaned = {}
    for key, value in properties.items():
        validator = UPDATABLE_FIELDS.get(key)
        if validator is None:
            logging.debug(f"Dropping unknown token property '{key}'")
            continue
        cleaned[key] = validator(key, value)
    return cleaned


def normalize_token(token):
    """Build a complete token from client input, filling defaults."""
    if not isinstance(token, dict):
        raise ValidationError("token must be an object")
    if 'imageUrl' not in token:
        raise ValidationError("imageUrl is required")
    normalized = {'tokenId': token.get('tokenId')}
    normalized.update(TOKEN_DEFAULTS)
    normalized.update(validate_token_properties(token))
    if not is_valid_token_id(normalized['tokenId']):
        normalized['tokenId'] = None
    return normalized


def normalize_scene(scene):
    """Validate a full scene payload (as sent to /updateScene or read from disk)."""
    if not isinstance(scene, dict):
        raise ValidationError("scene must be an object")
    scene_id = scene.get('sceneId')
    if not isinstance(scene_id, str) or not scene_id:
        raise ValidationError("sceneId is required")
    scene_name = scene.get('sceneName', '')
    if not isinstance(scene_name, str):
        raise ValidationError("sceneName must be a string")
    tokens = scene.get('tokens', [])
    if not isinstance(tokens, list):
        raise ValidationError("tokens must be a list")
    normalized_tokens = []
    seen_ids = set()
    for token in tokens:
        normalized = normalize_token(token)
        if normalized['tokenId'] is None or normalized['tokenId'] in seen_ids:
            normalized['tokenId'] = generate_token_id()
        seen_ids.add(normalized['tokenId'])
        normalized_tokens.append(normalized)
    result = {'sceneId': scene_id, 'sceneName': scene_name, 'tokens': normalized_tokens}
    if 'order' in scene and scene['order'] is not None:
        result['order'] = _integer('order', scene['order'])
    return result
