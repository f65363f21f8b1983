import json
import logging
from typing import List, Optional

from .models import BlockDevice
from .utils import run_command

logger = logging.getLogger(__name__)

LSBLK_COLUMNS = "NAME,TYPE,SIZE,MODEL,MOUNTPOINT,RM,LABEL,UUID,FSTYPE,FSUSED,FSAVAIL,FSSIZE"


def parse_lsblk_output(output: str) -> List[BlockDevice]:
    """
    Parses `lsblk -J` output into BlockDevice trees (disk -> partitions).
    Malformed entries are dropped; unparsable output yields an empty list.
    """
    try:
        data = json.loads(output)
    except (TypeError, ValueError) as e:
        logger.error(f"Failed to parse lsblk JSON output: {e}")
        return []

    blockdevices = data.get("blockdevices") if isinstance(data, dict) else None
    if not isinstance(blockdevices, list):
        logger.error("lsblk output has no blockdevices list")
        return []

    devices = []
    for raw in blockdevices:
        dev = BlockDevice.from_lsblk(raw)
        if dev is None:
            logger.debug(f"Ignoring malformed lsblk entry: {raw!r}")
            continue
        devices.append(dev)
    return devices


def query_block_devices(timeout: Optional[float] = 10) -> List[BlockDevice]:
    """
    Uses lsblk to get disks and their first-level partitions in Linux,
    including filesystem usage counters in bytes.
    Returns an empty list on any failure; enumeration is always safe to retry.
    """
    cmd = [
        "lsblk",
        "-J",       # JSON output
        "-b",       # Size in bytes
        "-o", LSBLK_COLUMNS
    ]

    success, output = run_command(cmd, timeout=timeout)
    if not success or not output:
        logger.error("Failed to run lsblk or received empty output.")
        return []

    return parse_lsblk_output(output)

