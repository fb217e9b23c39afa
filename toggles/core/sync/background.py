from __future__ import annotations

import threading
import weakref
from typing import Optional

from toggles.core.errors import ToggleError
from toggles.core.logger import get_logger


class BackgroundSync:
    """
    Periodically reloads a ToggleStore on a daemon thread.

    The store is held by weak reference: once the application drops it the
    loop ends on its own. Reload failures are logged (the store records them
    in its LastReload) and retried after `err_interval`.
    """

    def __init__(self, store, *, ok_interval: float = 30.0, err_interval: float = 60.0, logger=None):
        self._store_ref = weakref.ref(store)
        self.ok_interval = float(ok_interval)
        self.err_interval = float(err_interval)
        self.logger = logger or get_logger("sync")

        self._stop = threading.Event()
        self._first_done = threading.Event()
        self._first_ok = False
        # held for the whole of each reload; stop() takes it to fence off new ones
        self._gate = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self.iterations = 0

    def start(self, timeout: Optional[float] = None) -> bool:
        """
        Start the loop and wait for the first reload attempt. Returns True if
        it succeeded, False if it failed or did not finish within `timeout`.

        With a timeout, start() may return while the first attempt is still
        running; callers then serve defaults until it lands. The loop keeps
        going either way.
        """
        if self._thread is not None and self._thread.is_alive():
            return self._first_ok
        self._stop.clear()
        self._first_done.clear()
        self._first_ok = False
        self._thread = threading.Thread(target=self._run, name="toggles-sync", daemon=True)
        self._thread.start()
        if not self._first_done.wait(timeout):
            self.logger.warning(f"First toggle reload did not finish within {timeout}s; continuing in the background")
            return False
        return self._first_ok

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        """
        Ask the loop to exit. A reload already running is not interrupted,
        but no new one starts once this returns.
        """
        self._stop.set()
        if self._gate.acquire(timeout=-1 if timeout is None else timeout):
            self._gate.release()
        t = self._thread
        if t is not None and t.is_alive() and t is not threading.current_thread():
            t.join(timeout=timeout)

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self) -> None:
        self.logger.info("Toggle sync started.")
        try:
            while True:
                with self._gate:
                    if self._stop.is_set():
                        break
                    ok = self._reload_once()
                    if ok is None:
                        self.logger.info("Toggle store was released; sync exiting.")
                        break
                if self._stop.wait(self.ok_interval if ok else self.err_interval):
                    break
        finally:
            self._first_done.set()
            self.logger.info("Toggle sync stopped.")

    def _reload_once(self) -> Optional[bool]:
        store = self._store_ref()
        if store is None:
            return None
        ok = False
        try:
            store.reload()
            ok = True
        except ToggleError as e:
            self.logger.warning(f"Toggle sync reload failed ({e.code}): {e}")
        except Exception as e:  # noqa: BLE001
            self.logger.error(f"Toggle sync reload crashed: {e}")
        finally:
            del store
            self.iterations += 1
        if not self._first_done.is_set():
            self._first_ok = ok
            self._first_done.set()
        return ok
