# tabletop/config.py
# Paths, constants, environment overrides, logging, LAN IP detection

import os
import sys
import logging
import socket

# --- PyInstaller / dev path detection ---
if getattr(sys, 'frozen', False):
    BUNDLE_DIR = sys._MEIPASS
    APP_ROOT = os.path.dirname(sys.executable)
else:
    BUNDLE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    APP_ROOT = BUNDLE_DIR

# --- Folder paths ---
DATA_DIR = os.environ.get('TABLETOP_DATA_DIR', APP_ROOT)
SCENES_FOLDER = os.path.join(DATA_DIR, 'data', 'scenes')
PUBLIC_FOLDER = os.path.join(DATA_DIR, 'public')
UPLOADS_FOLDER = os.path.join(PUBLIC_FOLDER, 'uploads')
MUSIC_FOLDER = os.path.join(PUBLIC_FOLDER, 'music')

# --- Constants ---
ROOM_NAME = "table"
UPLOADS_URL_PREFIX = "/uploads/"
MUSIC_URL_PREFIX = "/music/"
ALLOWED_MUSIC_EXTENSIONS = ('.mp3', '.wav', '.ogg', '.m4a', '.flac')
DEFAULT_SCENE_NAME = "Untitled Scene"
AUTOSAVE_INTERVAL = float(os.environ.get('TABLETOP_AUTOSAVE_INTERVAL', '1.0'))
PORT = int(os.environ.get('PORT', '3000'))
LOG_LEVEL = os.environ.get('TABLETOP_LOG_LEVEL', 'INFO').upper()

# --- Logging ---
logging.basicConfig(level=getattr(logging, LOG_LEVEL, logging.INFO), format='%(asctime)s - %(levelname)s - %(message)s')


def default_settings():
    """Flask config mapping used by create_app() before test overrides."""
    secret_key = os.environ.get('TABLETOP_SECRET_KEY')
    gm_password = os.environ.get('TABLETOP_GM_PASSWORD')
    if not gm_password:
        logging.warning("TABLETOP_GM_PASSWORD not set — using the default GM password 'dm'.")
        gm_password = 'dm'
    return {
        'SECRET_KEY': secret_key or os.urandom(24),
        'GM_PASSWORD': gm_password,
        'SCENES_FOLDER': SCENES_FOLDER,
        'PUBLIC_FOLDER': PUBLIC_FOLDER,
        'UPLOADS_FOLDER': UPLOADS_FOLDER,
        'MUSIC_FOLDER': MUSIC_FOLDER,
        'AUTOSAVE_ENABLED': True,
        'AUTOSAVE_INTERVAL': AUTOSAVE_INTERVAL,
        'MAX_CONTENT_LENGTH': 512 * 1024 * 1024,
    }


def ensure_directories(app_config):
    for key in ('SCENES_FOLDER', 'UPLOADS_FOLDER', 'MUSIC_FOLDER'):
        os.makedirs(app_config[key], exist_ok=True)


# --- LAN IP Detection ---
def get_lan_ip():
    """Return the machine's LAN IP address (best-effort)."""
    try:
        s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        s.settimeout(0.5)
        s.connect(("8.8.8.8", 80))
        ip = s.getsockname()[0]
        s.close()
        return ip
    except Exception:
        return "127.0.0.1"
