"""
Long-lived event loop for calling async code from Flask request threads.
"""

import asyncio
import logging
import threading
from typing import Any, Awaitable, Optional

logger = logging.getLogger(__name__)


class BackgroundLoop:
    """
    Runs one asyncio event loop in a daemon thread.

    All request threads submit their coroutines to the same loop, so
    in-flight live fetches can be shared between requests.
    """

    def __init__(self):
        self.loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._started = threading.Event()
        self._lock = threading.Lock()

    def start(self):
        """Start the loop thread if it is not running yet."""
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                return

            self._started.clear()
            self._thread = threading.Thread(target=self._run, name="reviews-event-loop", daemon=True)
            self._thread.start()
            self._started.wait()
            logger.debug("Background event loop started")

    def _run(self):
        self.loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self.loop)
        self._started.set()
        try:
            self.loop.run_forever()
        finally:
            self.loop.close()

    def run(self, coro: Awaitable[Any], timeout: Optional[float] = None) -> Any:
        """
        Run ``coro`` on the background loop and wait for its result.

        Args:
            coro: Coroutine to execute
            timeout: Seconds to wait before giving up

        Returns:
            The coroutine's result
        """
        self.start()
        future = asyncio.run_coroutine_threadsafe(coro, self.loop)
        return future.result(timeout)

    def stop(self):
        """Stop the loop and join its thread."""
        with self._lock:
            if self.loop is None or self._thread is None:
                return
            self.loop.call_soon_threadsafe(self.loop.stop)
            self._thread.join(timeout=5)
            self._thread = None
            logger.debug("Background event loop stopped")
