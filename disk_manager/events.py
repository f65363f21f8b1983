"""
events.py
---------
Live "re-fetch now" channel for connected clients.

The server broadcasts a single event type, {"type": "change"}, whenever a
block device is attached or removed. Messages carry no device data: clients
always re-enumerate, so a pushed snapshot can never disagree with /storage.
There is no backlog or replay and no per-client state survives a
disconnect, which makes every reconnect a clean resubscribe.
"""
import json
import logging
import queue
import threading
from typing import Iterator, Optional, Set

import pyudev

logger = logging.getLogger(__name__)

CHANGE_EVENT = {'type': 'change'}
DEFAULT_RECONNECT_DELAY = 10  # seconds
DEFAULT_KEEPALIVE = 30  # seconds


class ChangeNotifier:
    """Fan-out of change signals to every subscribed SSE stream."""

    def __init__(self, reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
                 keepalive: float = DEFAULT_KEEPALIVE, queue_size: int = 16):
        self.reconnect_delay = reconnect_delay
        self.keepalive = keepalive
        self.queue_size = queue_size
        self._subscribers: Set[queue.Queue] = set()
        self._lock = threading.Lock()

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscribe(self) -> queue.Queue:
        q = queue.Queue(maxsize=self.queue_size)
        with self._lock:
            self._subscribers.add(q)
        logger.debug(f"Event subscriber added ({self.subscriber_count} connected)")
        return q

    def unsubscribe(self, q: queue.Queue):
        with self._lock:
            self._subscribers.discard(q)
        logger.debug(f"Event subscriber removed ({self.subscriber_count} connected)")

    def publish(self, event: Optional[dict] = None) -> int:
        """Delivers one change signal to every current subscriber. Returns how many got it."""
        event = event or CHANGE_EVENT
        with self._lock:
            subscribers = list(self._subscribers)

        delivered = 0
        for q in subscribers:
            try:
                q.put_nowait(event)
                delivered += 1
            except queue.Full:
                # A backed-up client already has a pending change to re-fetch on
                logger.debug("Dropping change event for a slow subscriber")
        logger.info(f"Device change broadcast to {delivered} client(s)")
        return delivered

    def stream(self, q: Optional[queue.Queue] = None) -> Iterator[str]:
        """
        Server-Sent Events generator. The first frame sets the client's
        reconnect delay; comment frames keep idle proxies from closing the stream.
        """
        q = q or self.subscribe()
        try:
            yield f"retry: {int(self.reconnect_delay * 1000)}\n\n"
            while True:
                try:
                    event = q.get(timeout=self.keepalive)
                except queue.Empty:
                    yield ":\n\n"
                    continue
                yield f"data: {json.dumps(event)}\n\n"
        finally:
            self.unsubscribe(q)


class HotplugMonitor:
    """Watches udev for block disks coming and going and tells the notifier."""

    ACTIONS = ('add', 'remove')

    def __init__(self, notifier: ChangeNotifier):
        self.notifier = notifier
        self._observer = None

    def handle_event(self, device):
        action = getattr(device, 'action', None)
        if action not in self.ACTIONS:
            return
        # Partitions follow their disk; one signal per physical device is enough
        if device.get('DEVTYPE') != 'disk':
            return
        logger.info(f"Hotplug {action}: {device.device_node}")
        self.notifier.publish()

    def start(self) -> bool:
        if self._observer is not None:
            return True
        try:
            context = pyudev.Context()
            monitor = pyudev.Monitor.from_netlink(context)
            monitor.filter_by(subsystem='block')
            self._observer = pyudev.MonitorObserver(monitor, callback=self.handle_event, name='hotplug-monitor')
            self._observer.daemon = True
            self._observer.start()
        except (OSError, ImportError) as e:
            # libudev missing (containers, non-Linux): clients still re-fetch on reconnect
            logger.warning(f"Hotplug monitor unavailable: {e}")
            self._observer = None
            return False
        logger.info("udev hotplug monitor started")
        return True

    def stop(self):
        if self._observer is not None:
            self._observer.send_stop()
            self._observer = None
