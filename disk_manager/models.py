from dataclasses import dataclass, field
from typing import List, Optional

from utils import parse_size_human


def _text(value) -> str:
    """lsblk prints null for absent columns; normalise everything to a stripped str."""
    if value is None or isinstance(value, (dict, list)):
        return ''
    return str(value).strip()


def _flag(value) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    return _text(value).lower() in ('1', 'true', 'yes')


def _mountpoint(raw: dict) -> str:
    # Newer util-linux prints "mountpoints": [...] instead of "mountpoint"
    mp = _text(raw.get('mountpoint'))
    if mp:
        return mp
    mps = raw.get('mountpoints')
    if isinstance(mps, list):
        for candidate in mps:
            candidate = _text(candidate)
            if candidate:
                return candidate
    return ''


@dataclass
class BlockDevice:
    """One entry of the lsblk topology: a disk or one of its partitions."""
    name: str
    type: str = ''
    size_bytes: int = 0
    model: str = ''
    mountpoint: str = ''
    removable: bool = False
    label: str = ''
    uuid: str = ''
    fstype: str = ''
    fs_used: int = 0
    fs_avail: int = 0
    fs_size: int = 0
    children: List['BlockDevice'] = field(default_factory=list)

    @classmethod
    def from_lsblk(cls, raw, depth: int = 0) -> Optional['BlockDevice']:
        """
        Builds a BlockDevice from one lsblk JSON object.
        Returns None for malformed entries (non-dict, missing name) so callers
        can drop them instead of propagating half-parsed data.
        """
        if not isinstance(raw, dict):
            return None
        name = _text(raw.get('name'))
        if not name:
            return None

        children = []
        if depth == 0 and isinstance(raw.get('children'), list):
            for child in raw['children']:
                parsed = cls.from_lsblk(child, depth=1)
                if parsed is not None:
                    children.append(parsed)

        return cls(
            name=name,
            type=_text(raw.get('type')).lower(),
            size_bytes=parse_size_human(raw.get('size')),
            model=_text(raw.get('model')),
            mountpoint=_mountpoint(raw),
            removable=_flag(raw.get('rm')),
            label=_text(raw.get('label')),
            uuid=_text(raw.get('uuid')),
            fstype=_text(raw.get('fstype')),
            fs_used=parse_size_human(raw.get('fsused')),
            fs_avail=parse_size_human(raw.get('fsavail')),
            fs_size=parse_size_human(raw.get('fssize')),
            children=children,
        )

    @property
    def first_partition(self) -> Optional['BlockDevice']:
        return self.children[0] if self.children else None

    @property
    def mount_points(self) -> List[str]:
        """Every mountpoint on the disk itself and its partitions."""
        points = [self.mountpoint] if self.mountpoint else []
        points.extend(c.mountpoint for c in self.children if c.mountpoint)
        return points


@dataclass
class RootStorageInfo:
    """Capacity of the primary filesystem."""
    total_bytes: int
    used_bytes: int
    available_bytes: int
    used_percent: int
    total_human: str
    used_human: str
    available_human: str

    def to_dict(self):
        return {
            'totalBytes': self.total_bytes,
            'usedBytes': self.used_bytes,
            'availableBytes': self.available_bytes,
            'usedPercent': self.used_percent,
            'totalHuman': self.total_human,
            'usedHuman': self.used_human,
            'availableHuman': self.available_human,
        }


@dataclass
class RemovableDeviceInfo:
    """An eligible removable device as presented to clients."""
    name: str
    size_bytes: int
    size_human: str
    model: str
    device_type: str  # 'usb' or 'portable'
    mountpoint: str = ''
    label: str = ''
    uuid: str = ''
    fs_type: str = ''
    partition: str = ''
    fs_used_human: Optional[str] = None
    fs_avail_human: Optional[str] = None
    fs_size_human: Optional[str] = None
    fs_used_percent: Optional[int] = None
    display_label: Optional[str] = None

    @property
    def mounted(self) -> bool:
        return bool(self.mountpoint)

    def to_dict(self):
        """Helper to serialize to a dictionary for the JSON API."""
        data = {
            'name': self.name,
            'sizeBytes': self.size_bytes,
            'sizeHuman': self.size_human,
            'model': self.model,
            'label': self.label,
            'uuid': self.uuid,
            'fsType': self.fs_type,
            'partition': self.partition,
            'mountpoint': self.mountpoint,
            'deviceType': self.device_type,
            'displayLabel': self.display_label,
        }
        # Usage figures are only meaningful for a mounted filesystem
        if self.mounted:
            data.update({
                'fsUsedHuman': self.fs_used_human,
                'fsAvailHuman': self.fs_avail_human,
                'fsSizeHuman': self.fs_size_human,
                'fsUsedPercent': self.fs_used_percent,
            })
        return data
