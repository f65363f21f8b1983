import json
import logging
import threading
from typing import Callable, Optional

import requests

logger = logging.getLogger(__name__)

RECONNECT_DELAY = 10  # seconds, fixed back-off after the stream drops


class UsbEventsClient:
    """
    Listens to the /usb-events stream and calls on_change for every change
    signal. When the connection drops, fails or is closed by the server it
    waits a fixed delay and subscribes again.
    """

    def __init__(self, url: str, on_change: Callable[[], None], reconnect_delay: float = RECONNECT_DELAY,
                 session: Optional[requests.Session] = None, connect_timeout: float = 5):
        self.url = url
        self.on_change = on_change
        self.reconnect_delay = reconnect_delay
        self.session = session or requests.Session()
        self.connect_timeout = connect_timeout
        self.connections = 0
        self._stop = threading.Event()

    def stop(self):
        self._stop.set()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def handle_line(self, line: str):
        if not line or not line.startswith('data:'):
            # comments (keep-alive), retry hints and blank separators
            return
        try:
            message = json.loads(line[len('data:'):].strip())
        except ValueError:
            logger.warning(f"Ignoring malformed event: {line!r}")
            return
        if isinstance(message, dict) and message.get('type') == 'change':
            self.on_change()

    def listen_once(self):
        """One connection: returns when the server closes the stream."""
        # No read timeout: the server sends keep-alives, and a dead peer surfaces as an error
        with self.session.get(self.url, stream=True, timeout=(self.connect_timeout, None),
                              headers={'Accept': 'text/event-stream'}) as response:
            response.raise_for_status()
            self.connections += 1
            logger.info(f"Subscribed to {self.url}")
            for line in response.iter_lines(decode_unicode=True):
                if self.stopped:
                    return
                self.handle_line(line)

    def run(self):
        """Blocks until stop() is called."""
        while not self.stopped:
            try:
                self.listen_once()
                if not self.stopped:
                    logger.info("Event stream closed by server")
            except requests.RequestException as e:
                logger.warning(f"Event stream error: {e}")
            if self.stopped:
                break
            logger.info(f"Reconnecting in {self.reconnect_delay}s")
            self._stop.wait(self.reconnect_delay)
