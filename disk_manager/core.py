import re
import logging
from typing import List, Optional

from utils import format_bytes, get_disk_usage, safe_join, usage_percent
from .exceptions import DiskManagerError
from .hardware import HardwareProvider
from .locks import DeviceLockRegistry
from .models import BlockDevice, RemovableDeviceInfo, RootStorageInfo
from .safety import is_eligible, is_safe_resolved

logger = logging.getLogger(__name__)

PORTABLE_SIZE_THRESHOLD_BYTES = 100 * 1024**3  # 100 GB
DEFAULT_MEDIA_ROOT = '/media/nasberry'

_MOUNT_NAME_RE = re.compile(r'^[A-Za-z0-9_\-. ]+$')


def get_root_storage(path: str = '/') -> Optional[RootStorageInfo]:
    """
    Returns capacity counters for the filesystem holding path, or None when
    they cannot be read (treated as unknown, not as an error).
    """
    usage = get_disk_usage(path)
    if not usage or not usage['total']:
        return None
    return RootStorageInfo(
        total_bytes=usage['total'],
        used_bytes=usage['used'],
        available_bytes=usage['free'],
        used_percent=usage['percent'],
        total_human=format_bytes(usage['total']),
        used_human=format_bytes(usage['used']),
        available_human=format_bytes(usage['free']),
    )


def device_type(model: str, size_bytes: int, threshold: int = PORTABLE_SIZE_THRESHOLD_BYTES) -> str:
    if 'portable' in (model or '').lower() or size_bytes >= threshold:
        return 'portable'
    return 'usb'


def resolve_target(disk: BlockDevice) -> Optional[BlockDevice]:
    """
    The node that actually carries the filesystem: the first partition,
    or the disk itself for superfloppy-style sticks without a partition table.
    """
    if disk.first_partition is not None:
        return disk.first_partition
    if disk.fstype:
        return disk
    return None


def auto_mount_dir(media_root: str, partition: str) -> Optional[str]:
    return safe_join(media_root, partition)


def mount_dir_for(media_root: str, target: BlockDevice, taken=()) -> Optional[str]:
    """
    Mount directory named after the volume label, else the UUID, else the partition.
    Directories in taken (current mountpoints) are skipped so two volumes never
    stack on one path, and so are paths the final safety guard would hide
    (a vfat volume labelled "bootfs"). Returns None when nothing usable is left.
    """
    name = ''
    if target.label and _MOUNT_NAME_RE.match(target.label):
        name = re.sub(r'\s+', '_', target.label)
    elif target.uuid and _MOUNT_NAME_RE.match(target.uuid):
        name = target.uuid

    candidates = []
    if name and name not in ('.', '..'):
        candidates += [name, f"{name}_{target.name}"]
    candidates.append(target.name)

    for candidate in candidates:
        path = safe_join(media_root, candidate)
        if path and path not in taken and is_safe_resolved(path, target.fstype):
            return path
    return None


def build_device_info(disk: BlockDevice, threshold: int = PORTABLE_SIZE_THRESHOLD_BYTES) -> RemovableDeviceInfo:
    """Flattens a disk and its first partition into the client-facing record."""
    first = disk.first_partition or BlockDevice(name='')
    target = resolve_target(disk)

    # The disk's own fields are often empty; the first partition has the filesystem
    label = disk.label or first.label
    uuid = disk.uuid or first.uuid
    fs_type = disk.fstype or first.fstype
    fs_used = disk.fs_used or first.fs_used
    fs_avail = disk.fs_avail or first.fs_avail
    fs_size = disk.fs_size or first.fs_size
    mountpoint = disk.mountpoint or first.mountpoint
    model = disk.model or disk.name

    info = RemovableDeviceInfo(
        name=disk.name,
        size_bytes=disk.size_bytes,
        size_human=format_bytes(disk.size_bytes),
        model=model,
        device_type=device_type(model, disk.size_bytes, threshold),
        mountpoint=mountpoint,
        label=label,
        uuid=uuid,
        fs_type=fs_type,
        partition=target.name if target is not None else '',
    )
    if mountpoint and fs_size:
        info.fs_used_human = format_bytes(fs_used)
        info.fs_avail_human = format_bytes(fs_avail)
        info.fs_size_human = format_bytes(fs_size)
        info.fs_used_percent = usage_percent(fs_used, fs_size)
    elif mountpoint:
        info.fs_used_percent = 0
    return info


def try_auto_mount(provider: HardwareProvider, disk: BlockDevice, media_root: str,
                   locks: Optional[DeviceLockRegistry] = None, taken=()) -> bool:
    """
    Best effort mount of an unmounted disk without a password.
    Failures are logged and swallowed: the device just shows up unmounted.
    """
    if disk.mountpoint or any(c.mountpoint for c in disk.children):
        return False
    target = resolve_target(disk)
    if target is None or not target.fstype:
        return False
    mount_dir = auto_mount_dir(media_root, target.name)
    if not mount_dir or mount_dir in taken or not is_safe_resolved(mount_dir, target.fstype):
        return False

    if locks is not None and not locks.try_acquire(disk.name):
        logger.info(f"Skipping auto-mount of {disk.name}: operation in flight")
        return False
    try:
        provider.mount(target.name, mount_dir, target.fstype, password=None)
        logger.info(f"Auto-mounted /dev/{target.name} at {mount_dir}")
        return True
    except DiskManagerError as e:
        logger.info(f"Auto-mount of /dev/{target.name} skipped: {e}")
        return False
    finally:
        if locks is not None:
            locks.release(disk.name)


def eligible_disks(provider: HardwareProvider) -> List[BlockDevice]:
    return [d for d in provider.list_block_devices() if is_eligible(d)]


def list_removable_devices(provider: HardwareProvider, media_root: str = DEFAULT_MEDIA_ROOT,
                           auto_mount: bool = True, threshold: int = PORTABLE_SIZE_THRESHOLD_BYTES,
                           locks: Optional[DeviceLockRegistry] = None) -> List[RemovableDeviceInfo]:
    """
    Returns every removable device that passed the safety filter.
    Never raises: a failed topology query is logged and yields [].
    """
    try:
        disks = eligible_disks(provider)

        if auto_mount:
            mounted_any = False
            taken = {mp for d in disks for mp in d.mount_points}
            for disk in disks:
                if try_auto_mount(provider, disk, media_root, locks, taken):
                    taken.add(auto_mount_dir(media_root, resolve_target(disk).name))
                    mounted_any = True
            if mounted_any:
                # Pick up the usage counters of the freshly mounted filesystems
                disks = eligible_disks(provider)

        devices = []
        for disk in disks:
            info = build_device_info(disk, threshold)
            if not is_safe_resolved(info.mountpoint, info.fs_type):
                logger.warning(f"Excluding {disk.name}: resolved mountpoint {info.mountpoint} is protected")
                continue
            devices.append(info)
        return devices
    except Exception as e:
        logger.error(f"Error enumerating removable devices: {e}")
        return []
