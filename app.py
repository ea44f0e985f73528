# app.py
# Entry point for the virtual tabletop server

import sys
import atexit
import logging

from tabletop import config, create_app, start_autosave

app = create_app()
socketio = app.extensions['socketio']


def _shutdown():
    autosave = app.extensions['tabletop'].autosave
    logging.info("Flushing pending scene changes before exit...")
    autosave.stop()


# --- Main Execution ---
if __name__ == '__main__':
    is_frozen = getattr(sys, 'frozen', False)
    lan_ip = config.get_lan_ip()
    start_autosave(app)
    atexit.register(_shutdown)
    print("------------------------------------------")
    print(" Starting tabletop server... ")
    print(f" Scenes stored in:   {app.config['SCENES_FOLDER']}")
    print(f" Uploads stored in:  {app.config['UPLOADS_FOLDER']}")
    print(f" Music stored in:    {app.config['MUSIC_FOLDER']}")
    print("------------------------------------------")
    print(f" GM View (this machine): http://127.0.0.1:{config.PORT}/gm")
    print(f" Player View (LAN):      http://{lan_ip}:{config.PORT}/")
    print("------------------------------------------")

    socketio.run(app, debug=not is_frozen, host='0.0.0.0', port=config.PORT, use_reloader=False,
                 allow_unsafe_werkzeug=True)
