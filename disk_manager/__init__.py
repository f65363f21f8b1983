from flask import Blueprint, current_app

from .events import ChangeNotifier, HotplugMonitor
from .hardware import create_hardware_provider
from .locks import DeviceLockRegistry
from .operations import DeviceOperations

disk_manager = Blueprint('disk_manager', __name__)


class DiskManager:
    """Per-application state: provider, device locks, operations and the push channel."""

    def __init__(self, config, provider=None):
        self.config = config
        self.provider = provider or create_hardware_provider(config)
        self.locks = DeviceLockRegistry()
        self.operations = DeviceOperations(self.provider, self.locks, media_root=config['MEDIA_ROOT'])
        self.notifier = ChangeNotifier(
            reconnect_delay=config.get('EVENTS_RECONNECT_DELAY', 10),
            keepalive=config.get('EVENTS_KEEPALIVE', 30),
        )
        self.monitor = None

        # The mock provider simulates hotplug itself
        if hasattr(self.provider, 'add_hotplug_listener'):
            self.provider.add_hotplug_listener(self.notifier.publish)
        elif config.get('HOTPLUG_MONITOR', True):
            self.monitor = HotplugMonitor(self.notifier)
            self.monitor.start()


def init_app(app, provider=None):
    manager = DiskManager(app.config, provider=provider)
    app.extensions['disk_manager'] = manager
    app.register_blueprint(disk_manager, url_prefix=app.config.get('API_PREFIX') or '/')
    return manager


def get_manager() -> DiskManager:
    return current_app.extensions['disk_manager']


from . import routes  # noqa: E402,F401
