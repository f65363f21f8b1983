import logging
import threading
from contextlib import contextmanager
from typing import Set

from .exceptions import DeviceBusyError

logger = logging.getLogger(__name__)


class DeviceLockRegistry:
    """
    One lock per device name. Acquisition never waits: a second operation on
    a device that is already being mounted, unmounted or formatted is
    rejected so the caller knows right away that nothing was accepted.
    Distinct devices never contend. Only names with an operation in flight
    are tracked, so arbitrary names sent by clients leave nothing behind.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._busy: Set[str] = set()

    def __len__(self):
        with self._guard:
            return len(self._busy)

    def try_acquire(self, name: str) -> bool:
        with self._guard:
            if name in self._busy:
                return False
            self._busy.add(name)
            return True

    def release(self, name: str):
        with self._guard:
            self._busy.discard(name)

    def is_busy(self, name: str) -> bool:
        with self._guard:
            return name in self._busy

    @contextmanager
    def hold(self, name: str):
        if not self.try_acquire(name):
            logger.warning(f"Rejected operation on {name}: another operation is in flight")
            raise DeviceBusyError(f"Device {name} is busy with another operation")
        try:
            yield
        finally:
            self.release(name)
