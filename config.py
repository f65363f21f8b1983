import os


def _env_bool(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    BASE_DIR = os.path.abspath(os.path.dirname(__file__))

    # Display labels are the only device metadata kept between requests
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(BASE_DIR, 'nas_devices.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Simulated disks instead of lsblk/mount (development machines)
    MOCK_HARDWARE = _env_bool('MOCK_HARDWARE', False)
    MOCK_SUDO_PASSWORD = os.environ.get('MOCK_SUDO_PASSWORD') or 'raspberry'
    MOCK_PASSWORDLESS = _env_bool('MOCK_PASSWORDLESS', False)

    # Removable devices are mounted below this directory
    MEDIA_ROOT = os.environ.get('MEDIA_ROOT') or '/media/nasberry'
    AUTO_MOUNT = _env_bool('AUTO_MOUNT', True)
    MOUNT_UID = int(os.environ.get('MOUNT_UID', 1000))
    MOUNT_GID = int(os.environ.get('MOUNT_GID', 1000))

    # Disks at or above this size are reported as 'portable' (100 GB)
    PORTABLE_SIZE_THRESHOLD = int(os.environ.get('PORTABLE_SIZE_THRESHOLD', 100 * 1024 ** 3))

    # Filesystem reported as root storage
    ROOT_STORAGE_PATH = os.environ.get('ROOT_STORAGE_PATH') or '/'

    # Seconds; mkfs on a large disk takes a while
    COMMAND_TIMEOUT = int(os.environ.get('COMMAND_TIMEOUT', 60))
    FORMAT_TIMEOUT = int(os.environ.get('FORMAT_TIMEOUT', 300))

    # Push channel
    HOTPLUG_MONITOR = _env_bool('HOTPLUG_MONITOR', True)
    EVENTS_RECONNECT_DELAY = int(os.environ.get('EVENTS_RECONNECT_DELAY', 10))
    EVENTS_KEEPALIVE = int(os.environ.get('EVENTS_KEEPALIVE', 30))

    API_PREFIX = os.environ.get('API_PREFIX', '')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
