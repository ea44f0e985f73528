# tabletop/autosave.py
# Periodic background flush of dirty scenes

import logging


class AutosaveScheduler:
    def __init__(self, registry, socketio, interval=1.0):
        self.registry = registry
        self.socketio = socketio
        self.interval = interval
        self._running = False
        self._task = None

    @property
    def running(self):
        return self._running

    def start(self):
        if self._running:
            return
        self._running = True
        self._task = self.socketio.start_background_task(self._run)
        logging.info(f"Autosave started (every {self.interval}s).")

    def stop(self):
        """Stop the loop and write anything still pending."""
        self._running = False
        self.tick()
        logging.info("Autosave stopped.")

    def tick(self):
        try:
            saved = self.registry.flush_dirty()
            if saved:
                logging.debug(f"Autosave wrote {saved} scene(s).")
            return saved
        except Exception as e:
            logging.error(f"Autosave sweep failed: {e}", exc_info=True)
            return 0

    def _run(self):
        while self._running:
            self.socketio.sleep(self.interval)
            if self._running:
                self.tick()
