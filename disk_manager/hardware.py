import copy
import logging
import platform
import threading
import uuid
from typing import Callable, Dict, List, Optional

from .exceptions import (AuthenticationError, DeviceNotFoundError,
                         OperationFailedError, PrivilegeRequiredError,
                         UnsupportedFilesystemError)
from .linux_backend import query_block_devices
from .models import BlockDevice
from .privilege import PrivilegedRunner

# Configure logging
logger = logging.getLogger(__name__)

SUPPORTED_FILESYSTEMS = ('exfat', 'vfat', 'ext4', 'ntfs')

# Longest label each mkfs accepts
LABEL_LIMITS = {
    'vfat': 11,
    'ext4': 16,
    'exfat': 15,
    'ntfs': 32,
}

# Filesystems without unix ownership get uid/gid mount options
OWNERLESS_FILESYSTEMS = ('vfat', 'exfat', 'ntfs', 'ntfs3', 'msdos')


def normalize_label(fs_type: str, label: Optional[str]) -> str:
    label = (label or '').strip()[:LABEL_LIMITS.get(fs_type, 11)]
    # FAT labels are stored upper case
    return label.upper() if fs_type == 'vfat' else label


def mkfs_command(fs_type: str, label: str, device_path: str) -> List[str]:
    label = normalize_label(fs_type, label)
    if fs_type == 'vfat':
        cmd = ['mkfs.vfat', '-F', '32']
        if label:
            cmd += ['-n', label]
    elif fs_type == 'ext4':
        cmd = ['mkfs.ext4', '-F']
        if label:
            cmd += ['-L', label]
    elif fs_type == 'exfat':
        cmd = ['mkfs.exfat']
        if label:
            cmd += ['-L', label]
    elif fs_type == 'ntfs':
        cmd = ['mkfs.ntfs', '-f']  # quick format
        if label:
            cmd += ['-L', label]
    else:
        raise UnsupportedFilesystemError(
            f"Unsupported filesystem: {fs_type}. Allowed: {', '.join(SUPPORTED_FILESYSTEMS)}")
    cmd.append(device_path)
    return cmd


def mount_options(fs_type: str, uid: int, gid: int) -> Optional[str]:
    if (fs_type or '').lower() in OWNERLESS_FILESYSTEMS:
        return f"uid={uid},gid={gid},dmask=022,fmask=133"
    return None


def _not_mounted(message: str) -> bool:
    message = (message or '').lower()
    return 'not mounted' in message or 'no mount point specified' in message


class HardwareProvider:
    """Abstract base class for removable device primitives."""

    def list_block_devices(self) -> List[BlockDevice]:
        raise NotImplementedError

    def mount(self, partition: str, mount_dir: str, fs_type: str = '',
              password: Optional[str] = None) -> str:
        """Mounts /dev/<partition> at mount_dir and returns the mountpoint."""
        raise NotImplementedError

    def unmount(self, partition: str, mountpoint: str, password: Optional[str] = None) -> None:
        raise NotImplementedError

    def format(self, partition: str, fs_type: str, label: str = '',
               password: Optional[str] = None) -> None:
        raise NotImplementedError

    def remove_mount_dir(self, path: str, password: Optional[str] = None) -> None:
        """Best effort removal of an empty mount directory."""
        pass


class UnsupportedHardwareProvider(HardwareProvider):
    """Used on hosts without lsblk/udev: nothing is listed, nothing can be changed."""

    def list_block_devices(self) -> List[BlockDevice]:
        return []

    def mount(self, partition, mount_dir, fs_type='', password=None):
        raise OperationFailedError(f"Unsupported OS: {platform.system()}")

    def unmount(self, partition, mountpoint, password=None):
        raise OperationFailedError(f"Unsupported OS: {platform.system()}")

    def format(self, partition, fs_type, label='', password=None):
        raise OperationFailedError(f"Unsupported OS: {platform.system()}")


class LinuxHardwareProvider(HardwareProvider):
    """lsblk for topology, mount/umount/mkfs through sudo."""

    def __init__(self, runner: Optional[PrivilegedRunner] = None, uid: int = 1000, gid: int = 1000,
                 command_timeout: float = 60, format_timeout: float = 300):
        self.runner = runner or PrivilegedRunner(timeout=command_timeout)
        self.uid = uid
        self.gid = gid
        self.command_timeout = command_timeout
        self.format_timeout = format_timeout

    def list_block_devices(self) -> List[BlockDevice]:
        return query_block_devices(timeout=self.command_timeout)

    def mount(self, partition, mount_dir, fs_type='', password=None):
        success, output = self.runner.run(['mkdir', '-p', mount_dir], password)
        if not success:
            raise OperationFailedError(output or 'Failed to create mount directory')

        device_path = f"/dev/{partition}"
        options = mount_options(fs_type, self.uid, self.gid)
        cmd = ['mount'] + (['-o', options] if options else []) + [device_path, mount_dir]
        success, output = self.runner.run(cmd, password)
        if success:
            logger.info(f"Mounted {device_path} at {mount_dir}")
            return mount_dir

        lowered = output.lower()
        if 'already mounted' in lowered:
            return mount_dir
        if options and ('bad option' in lowered or 'unrecognized mount option' in lowered):
            # lsblk may report a stale fstype; let mount detect it
            success, output = self.runner.run(['mount', device_path, mount_dir], password)
            if success:
                logger.info(f"Mounted {device_path} at {mount_dir} without owner options")
                return mount_dir

        self.remove_mount_dir(mount_dir, password)
        raise OperationFailedError(output or 'Mount failed')

    def unmount(self, partition, mountpoint, password=None):
        # Unmount by device node: a path may have another volume stacked on it
        device_path = f"/dev/{partition}"
        success, output = self.runner.run(['umount', device_path], password)
        if not success and not _not_mounted(output):
            logger.warning(f"umount {device_path} failed, retrying lazily: {output}")
            success, output = self.runner.run(['umount', '-l', device_path], password)
        if not success and not _not_mounted(output):
            raise OperationFailedError(output or 'Unmount failed')
        logger.info(f"Unmounted /dev/{partition} from {mountpoint}")

    def format(self, partition, fs_type, label='', password=None):
        device_path = f"/dev/{partition}"
        cmd = mkfs_command(fs_type, label, device_path)

        # Wipe existing filesystem signatures so mkfs does not prompt
        success, output = self.runner.run(['wipefs', '-a', device_path], password,
                                          timeout=self.format_timeout)
        if not success:
            logger.warning(f"wipefs on {device_path} failed: {output}")

        success, output = self.runner.run(cmd, password, timeout=self.format_timeout)
        if not success:
            raise OperationFailedError(output or 'Format failed')
        logger.info(f"Formatted {device_path} as {fs_type}")

    def remove_mount_dir(self, path, password=None):
        try:
            success, output = self.runner.run(['rmdir', path], password)
        except PrivilegeRequiredError:
            logger.info(f"Leaving mount directory {path} in place: no privilege")
            return
        if not success:
            logger.info(f"Could not remove mount directory {path}: {output}")


class MockHardwareProvider(HardwareProvider):
    """
    In-memory simulation of attached disks, sudo and hotplug.
    Used for development (MOCK_HARDWARE) and by the test suite.
    """

    def __init__(self, password: str = 'raspberry', passwordless: bool = False, with_defaults: bool = True):
        self.password = password
        self.passwordless = passwordless
        self.disks: Dict[str, BlockDevice] = {}
        self.usage: Dict[str, int] = {}  # partition name -> used bytes
        self.calls: List[tuple] = []
        self._listeners: List[Callable[[], None]] = []
        self._lock = threading.RLock()
        if with_defaults:
            self._init_mock_data()

    def _init_mock_data(self):
        # SD-card style system disk: boot firmware + root
        sda = BlockDevice(name='sda', type='disk', size_bytes=64 * 1024**3, model='SanDisk SDSSDA', removable=False)
        sda.children.append(BlockDevice(name='sda1', type='part', size_bytes=512 * 1024**2, fstype='vfat',
                                        label='bootfs', uuid='5DF9-E225', mountpoint='/boot/firmware'))
        sda.children.append(BlockDevice(name='sda2', type='part', size_bytes=63 * 1024**3, fstype='ext4',
                                        label='rootfs', uuid='3b614a3f-4a65-4480-876a-8a998e01ac9b', mountpoint='/'))
        self.disks['sda'] = sda

        # 32GB USB stick, not mounted
        self.add_usb_disk('sdb', 32 * 1024**3, model='Cruzer Blade', label='BACKUP', fs_type='exfat',
                          notify=False)

    # ── hotplug simulation ───────────────────────

    def add_hotplug_listener(self, callback: Callable[[], None]):
        self._listeners.append(callback)

    def _notify(self):
        for callback in list(self._listeners):
            callback()

    def attach_disk(self, disk: BlockDevice, notify: bool = True):
        with self._lock:
            self.disks[disk.name] = disk
        logger.info(f"Mock disk attached: {disk.name}")
        if notify:
            self._notify()

    def add_usb_disk(self, name: str, size_bytes: int, model: str = 'USB Flash Disk', label: str = '',
                     fs_type: str = 'vfat', removable: bool = True, used_bytes: int = 0, notify: bool = True):
        disk = BlockDevice(name=name, type='disk', size_bytes=size_bytes, model=model, removable=removable)
        part = BlockDevice(name=f"{name}1", type='part', size_bytes=size_bytes, fstype=fs_type,
                           label=label, uuid=uuid.uuid4().hex[:8].upper())
        disk.children.append(part)
        self.usage[part.name] = used_bytes or size_bytes // 4
        self.attach_disk(disk, notify=notify)
        return disk

    def detach_disk(self, name: str, notify: bool = True) -> bool:
        with self._lock:
            removed = self.disks.pop(name, None)
        if removed is None:
            return False
        logger.info(f"Mock disk detached: {name}")
        if notify:
            self._notify()
        return True

    # ── HardwareProvider ─────────────────────────

    def _authorize(self, password: Optional[str]):
        if self.passwordless:
            return
        if not password:
            raise PrivilegeRequiredError()
        if password != self.password:
            raise AuthenticationError()

    def _find_partition(self, name: str) -> BlockDevice:
        for disk in self.disks.values():
            if disk.name == name:
                return disk
            for part in disk.children:
                if part.name == name:
                    return part
        raise DeviceNotFoundError(f"Device {name} not found")

    def list_block_devices(self) -> List[BlockDevice]:
        with self._lock:
            disks = copy.deepcopy(list(self.disks.values()))
        for disk in disks:
            for node in [disk] + disk.children:
                # lsblk only reports usage counters for mounted filesystems
                if node.mountpoint and node.fstype:
                    used = min(self.usage.get(node.name, 0), node.size_bytes)
                    node.fs_size = node.size_bytes
                    node.fs_used = used
                    node.fs_avail = node.size_bytes - used
        return disks

    def mount(self, partition, mount_dir, fs_type='', password=None):
        self._authorize(password)
        with self._lock:
            part = self._find_partition(partition)
            if not part.fstype:
                raise OperationFailedError(f"mount: /dev/{partition}: wrong fs type, bad option, bad superblock")
            if part.mountpoint:
                return part.mountpoint
            part.mountpoint = mount_dir
            self.calls.append(('mount', partition, mount_dir))
        logger.info(f"Mocked mount of /dev/{partition} at {mount_dir}")
        return mount_dir

    def unmount(self, partition, mountpoint, password=None):
        self._authorize(password)
        with self._lock:
            part = self._find_partition(partition)
            part.mountpoint = ''
            self.calls.append(('unmount', partition, mountpoint))
        logger.info(f"Mocked unmount of /dev/{partition}")

    def format(self, partition, fs_type, label='', password=None):
        mkfs_command(fs_type, label, f"/dev/{partition}")  # validates fs_type
        self._authorize(password)
        with self._lock:
            part = self._find_partition(partition)
            part.fstype = fs_type
            part.label = normalize_label(fs_type, label)
            part.uuid = uuid.uuid4().hex[:8].upper()
            part.mountpoint = ''
            self.usage[part.name] = 0
            self.calls.append(('format', partition, fs_type, part.label))
        logger.info(f"Formatted mocked /dev/{partition} to {fs_type}")


def create_hardware_provider(config) -> HardwareProvider:
    """Picks the provider for this host from a Flask config mapping."""
    if config.get('MOCK_HARDWARE'):
        return MockHardwareProvider(
            password=config.get('MOCK_SUDO_PASSWORD', 'raspberry'),
            passwordless=config.get('MOCK_PASSWORDLESS', False),
        )

    if platform.system() != 'Linux':
        logger.warning(f"Unsupported OS: {platform.system()}. Removable storage features will be unavailable.")
        return UnsupportedHardwareProvider()

    return LinuxHardwareProvider(
        uid=config.get('MOUNT_UID', 1000),
        gid=config.get('MOUNT_GID', 1000),
        command_timeout=config.get('COMMAND_TIMEOUT', 60),
        format_timeout=config.get('FORMAT_TIMEOUT', 300),
    )
