"""
safety.py
---------
Decides which block devices may ever be shown to a user for mount, unmount
or format. Device metadata coming from firmware is unreliable (enclosures
misreport the removable flag, system disks sit on the same bus as USB
sticks), so the checks are layered and overlap on purpose. Every function
here is pure and total: any input yields True or False, never an exception.

When in doubt, a device is excluded.
"""
from .models import BlockDevice

# Mounts whose loss breaks the host
PROTECTED_MOUNTS = frozenset([
    '/', '/boot', '/boot/efi', '/boot/firmware', '/efi',
    '/home', '/var', '/usr', '/tmp', '/snap', '[SWAP]',
])

# Root and boot family: excluded even on removable-flagged disks
CRITICAL_MOUNTS = frozenset(['/', '/boot', '/boot/efi', '/boot/firmware', '/efi'])

# Sub-mounts of system trees (package caches, snap squashfs, boot subtrees)
PROTECTED_PREFIXES = ('/snap/', '/var/', '/boot/', '/efi/', '/usr/')

VIRTUAL_PREFIXES = ('loop', 'ram', 'zram')
VIRTUAL_TYPES = frozenset(['loop', 'rom'])

# SCSI/USB attached disks show up as sdX even when RM is reported as 0
SECONDARY_STORAGE_PREFIXES = ('sd',)


def _normalise(path) -> str:
    if not path:
        return ''
    path = str(path).strip()
    if len(path) > 1:
        path = path.rstrip('/')
    return path


def is_protected_path(path) -> bool:
    """True if path is a system mountpoint or lives below one."""
    path = _normalise(path)
    if not path:
        return False
    if path in PROTECTED_MOUNTS:
        return True
    return path.startswith(PROTECTED_PREFIXES)


def is_critical_path(path) -> bool:
    path = _normalise(path)
    return path in CRITICAL_MOUNTS or path.startswith(('/boot/', '/efi/'))


def is_virtual(device: BlockDevice) -> bool:
    return device.type in VIRTUAL_TYPES or device.name.startswith(VIRTUAL_PREFIXES)


def is_candidate(device: BlockDevice) -> bool:
    return device.removable or device.name.startswith(SECONDARY_STORAGE_PREFIXES)


def has_hard_protected_mount(device: BlockDevice) -> bool:
    return any(_normalise(mp) in PROTECTED_MOUNTS for mp in device.mount_points)


def has_protected_overlap(device: BlockDevice) -> bool:
    return any(is_protected_path(mp) for mp in device.mount_points)


def has_critical_mount(device: BlockDevice) -> bool:
    return any(is_critical_path(mp) for mp in device.mount_points)


def is_eligible(device: BlockDevice) -> bool:
    """
    Applies the topology rules to a whole disk:
      1. virtual and loopback devices are skipped outright
      2. only removable-flagged or sdX disks are candidates
      3. any partition on a system mount excludes the disk
      4. sub-mount overlaps exclude fixed disks; removable disks are
         re-checked narrowly and only dropped for root/boot mounts
    """
    if not isinstance(device, BlockDevice) or not device.name:
        return False
    if device.type and device.type != 'disk':
        return False
    if is_virtual(device):
        return False
    if not is_candidate(device):
        return False
    if has_hard_protected_mount(device):
        return False
    if has_protected_overlap(device):
        if not device.removable:
            return False
        if has_critical_mount(device):
            return False
    return True


def is_safe_resolved(mountpoint, fstype='') -> bool:
    """
    Final check on the mountpoint a device will be presented with
    (after auto-mount). Catches anything the topology rules let through.
    """
    mountpoint = _normalise(mountpoint)
    if not mountpoint:
        return True
    if is_protected_path(mountpoint):
        return False
    # EFI system partitions are vfat and live under some /boot-ish path
    if (fstype or '').lower() == 'vfat' and '/boot' in mountpoint:
        return False
    return True
