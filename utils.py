import os
import math
import shutil
import logging

logger = logging.getLogger(__name__)

KIB = 1024
SIZE_MULTIPLIERS = {
    'K': KIB,
    'M': KIB ** 2,
    'G': KIB ** 3,
    'T': KIB ** 4,
}


def get_disk_usage(path):
    """
    Returns disk usage statistics for the file system containing path.
    Returns a dictionary with 'total', 'used', 'free' in bytes and 'percent',
    or None when the filesystem cannot be queried.
    """
    try:
        total, used, free = shutil.disk_usage(path)
    except OSError as e:
        logger.error(f"Error getting disk usage for {path}: {e}")
        return None

    return {
        'total': total,
        'used': used,
        'free': free,
        'percent': usage_percent(used, total)
    }


def usage_percent(used, total):
    """Whole-number percentage, rounded half up and clamped to 0..100."""
    if not total or total <= 0:
        return 0
    pct = math.floor(used / total * 100 + 0.5)
    return max(0, min(100, pct))


def format_bytes(num_bytes):
    """Human readable size with one decimal, e.g. 28.9GB."""
    num_bytes = int(num_bytes or 0)
    for suffix, factor in (('TB', KIB ** 4), ('GB', KIB ** 3), ('MB', KIB ** 2), ('KB', KIB)):
        if num_bytes >= factor:
            return f"{num_bytes / factor:.1f}{suffix}"
    return f"{num_bytes}B"


def parse_size_human(value):
    """
    Converts an lsblk size value into bytes.
    Accepts plain integers, numeric strings and suffixed strings such as
    '28.9G' or '512M' (binary multipliers). Anything unparsable yields 0.
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return max(0, int(value))

    s = str(value).strip().upper()
    if not s:
        return 0
    if s.endswith('B'):
        s = s[:-1]
    multiplier = 1
    if s and s[-1] in SIZE_MULTIPLIERS:
        multiplier = SIZE_MULTIPLIERS[s[-1]]
        s = s[:-1]
    try:
        return max(0, round(float(s.replace(',', '.')) * multiplier))
    except ValueError:
        return 0


def safe_join(root, path):
    """
    Safely joins a root directory and a user-provided path to prevent directory traversal.
    Returns the absolute path if safe, or None if unsafe.
    """
    if not path:
        return root

    root = os.path.abspath(root)
    full_path = os.path.abspath(os.path.join(root, path.strip('/')))

    # Ensure the final path is the root itself or lives below it
    if full_path == root or full_path.startswith(root + os.sep):
        return full_path

    return None
