# calendar_bridge/client/poller.py
import logging
import threading
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

REFRESH_INTERVAL_SECONDS = 5 * 60


class EventPoller:
    """
    Re-fetches the event list on a fixed interval while the user is signed in.

    The first fetch happens immediately. stop() cancels the timer; it is called
    on sign-out and when the client shuts down. A fetch that raises stops the
    poller only when on_error returns False.
    """

    def __init__(
        self,
        fetch: Callable[[], List[Dict[str, Any]]],
        on_events: Callable[[List[Dict[str, Any]]], None],
        on_error: Optional[Callable[[Exception], bool]] = None,
        interval: float = REFRESH_INTERVAL_SECONDS,
    ):
        self.fetch = fetch
        self.on_events = on_events
        self.on_error = on_error
        self.interval = interval
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="event-poller", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)
        self._thread = None

    def wait(self) -> None:
        """Blocks until the poller stops (or the thread dies)."""
        while self.running:
            self._stop.wait(1)

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                self.on_events(self.fetch())
            except Exception as e:
                logger.error(f"Event refresh failed: {e}")
                keep_going = self.on_error(e) if self.on_error else True
                if not keep_going:
                    self._stop.set()
                    break
            self._stop.wait(self.interval)
