"""
operations.py
-------------
Mount, unmount and format for removable devices.

Every operation follows the same order:
  validate input -> look the device up in a fresh topology snapshot ->
  safety precondition -> per-device lock -> OS primitive (through sudo)

A missing or rejected password surfaces as PrivilegeRequiredError /
AuthenticationError before anything on the device changed. Nothing here
retries; password resubmission is driven by the caller.
"""
import re
import logging
from typing import List, Optional, Tuple

from .core import DEFAULT_MEDIA_ROOT, mount_dir_for, resolve_target
from .exceptions import (DeviceNotFoundError, InvalidRequestError,
                         OperationFailedError, UnsafeDeviceError,
                         UnsupportedFilesystemError)
from .hardware import SUPPORTED_FILESYSTEMS, HardwareProvider
from .locks import DeviceLockRegistry
from .models import BlockDevice
from .safety import is_eligible, is_protected_path, is_safe_resolved

logger = logging.getLogger(__name__)

DEVICE_NAME_RE = re.compile(r'^[a-z0-9]+$')


def validate_device_name(device) -> str:
    device = (device or '').strip() if isinstance(device, str) else ''
    if not device or not DEVICE_NAME_RE.match(device):
        raise InvalidRequestError('Missing or invalid device name (e.g. sda)')
    return device


def validate_filesystem(filesystem) -> str:
    fs_type = (filesystem or 'exfat').strip().lower() if isinstance(filesystem, str) else ''
    if fs_type not in SUPPORTED_FILESYSTEMS:
        raise UnsupportedFilesystemError(
            f"Unsupported filesystem: {filesystem}. Allowed: {', '.join(SUPPORTED_FILESYSTEMS)}")
    return fs_type


class DeviceOperations:
    """Mount orchestrator and format orchestrator over one hardware provider."""

    def __init__(self, provider: HardwareProvider, locks: Optional[DeviceLockRegistry] = None,
                 media_root: str = DEFAULT_MEDIA_ROOT):
        self.provider = provider
        self.locks = locks or DeviceLockRegistry()
        self.media_root = media_root

    def _eligible_device(self, name: str, disks: Optional[List[BlockDevice]] = None) -> Tuple[BlockDevice, BlockDevice]:
        """Returns (disk, target) or raises before any destructive primitive runs."""
        if disks is None:
            disks = self.provider.list_block_devices()
        disk = next((d for d in disks if d.name == name), None)
        if disk is None:
            raise DeviceNotFoundError(f"Device {name} not found")
        if not is_eligible(disk):
            logger.warning(f"Refusing operation on non-eligible device {name}")
            raise UnsafeDeviceError(f"Refusing to operate on system device {name}")

        target = resolve_target(disk)
        if target is None:
            raise InvalidRequestError(f"No partition found on {name}")
        if not is_safe_resolved(target.mountpoint, target.fstype):
            raise UnsafeDeviceError(f"Refusing to operate on {name}: mounted at a system path")
        return disk, target

    def mount(self, device, password: Optional[str] = None) -> str:
        name = validate_device_name(device)
        with self.locks.hold(name):
            disks = self.provider.list_block_devices()
            disk, target = self._eligible_device(name, disks)
            if target.mountpoint:
                # Already mounted: idempotent success, never a second mount
                return target.mountpoint
            if not target.fstype:
                raise OperationFailedError(f"No filesystem found on /dev/{target.name}; format it first")

            taken = {mp for d in disks for mp in d.mount_points}
            mount_dir = mount_dir_for(self.media_root, target, taken)
            if not mount_dir:
                raise OperationFailedError(f"No free mount directory for /dev/{target.name} under {self.media_root}")
            if is_protected_path(mount_dir):
                raise UnsafeDeviceError(f"Refusing to mount {name} at {mount_dir}")

            logger.info(f"Mounting /dev/{target.name} at {mount_dir}")
            return self.provider.mount(target.name, mount_dir, target.fstype, password)

    def unmount(self, device, password: Optional[str] = None) -> None:
        name = validate_device_name(device)
        with self.locks.hold(name):
            disk, target = self._eligible_device(name)
            if not target.mountpoint:
                return
            self._unmount_target(target, password)

    def _unmount_target(self, target: BlockDevice, password: Optional[str]):
        mountpoint = target.mountpoint
        if is_protected_path(mountpoint):
            raise UnsafeDeviceError(f"Refusing to unmount system path {mountpoint}")

        logger.info(f"Unmounting /dev/{target.name} from {mountpoint}")
        self.provider.unmount(target.name, mountpoint, password)

        # Only clean up directories we own
        media_root = self.media_root.rstrip('/') + '/'
        if mountpoint.startswith(media_root):
            self.provider.remove_mount_dir(mountpoint, password)

    def format(self, device, filesystem, label: str = '', password: Optional[str] = None) -> str:
        """
        Reformats the device's filesystem partition. Irreversible; confirmation
        is the caller's responsibility. The device is left unmounted.
        Returns the formatted device path.
        """
        name = validate_device_name(device)
        fs_type = validate_filesystem(filesystem)
        label = label.strip() if isinstance(label, str) else ''

        with self.locks.hold(name):
            disk, target = self._eligible_device(name)
            if target.mountpoint:
                self._unmount_target(target, password)

            logger.info(f"Formatting /dev/{target.name} as {fs_type}")
            self.provider.format(target.name, fs_type, label, password)
            return f"/dev/{target.name}"
