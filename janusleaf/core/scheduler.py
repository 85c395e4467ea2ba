import logging
import threading
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class PeriodicJob:
    """
    Runs a callable on a fixed interval in a daemon thread.

    A run that raises is logged and the loop keeps going; restart/backoff for
    fatal conditions (e.g. the database being down) is simply the next tick.
    """

    def __init__(self, name: str, interval: float, func: Callable[[], Any]):
        self.name = name
        self.interval = interval
        self.func = func
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name=self.name, daemon=True)
        self._thread.start()
        logger.info(f"Started job '{self.name}' (every {self.interval}s)")

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info(f"Stopped job '{self.name}'")

    def run_once(self) -> Any:
        try:
            return self.func()
        except Exception:
            logger.exception(f"Job '{self.name}' failed")
            return None

    def _loop(self) -> None:
        while not self._stop.wait(self.interval):
            self.run_once()
