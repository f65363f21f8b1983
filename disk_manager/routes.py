import logging

from flask import Response, current_app, jsonify, request

from models import db
from services.label_service import apply_labels, get_labels, set_label
from . import disk_manager, get_manager
from .core import PORTABLE_SIZE_THRESHOLD_BYTES, get_root_storage, list_removable_devices
from .exceptions import DeviceNotFoundError, DiskManagerError, InvalidRequestError
from .operations import validate_device_name, validate_filesystem

logger = logging.getLogger(__name__)


def _json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _password(data):
    password = data.get('password')
    return password if isinstance(password, str) and password else None


def _removable_devices():
    manager = get_manager()
    config = current_app.config
    return list_removable_devices(
        manager.provider,
        media_root=config['MEDIA_ROOT'],
        auto_mount=config.get('AUTO_MOUNT', True),
        threshold=config.get('PORTABLE_SIZE_THRESHOLD', PORTABLE_SIZE_THRESHOLD_BYTES),
        locks=manager.locks,
    )


@disk_manager.errorhandler(DiskManagerError)
def handle_disk_manager_error(error):
    if error.status_code >= 500:
        logger.error(f"{request.path} failed: {error}")
    return jsonify(error.to_dict()), error.status_code


@disk_manager.route('/storage')
def storage():
    root = get_root_storage(current_app.config.get('ROOT_STORAGE_PATH', '/'))
    devices = apply_labels(_removable_devices())
    return jsonify({
        'rootStorage': root.to_dict() if root else None,
        'removable': [d.to_dict() for d in devices]
    })


@disk_manager.route('/mount', methods=['POST'])
def mount():
    data = _json_body()
    mountpoint = get_manager().operations.mount(data.get('device'), _password(data))
    return jsonify({'ok': True, 'mountpoint': mountpoint})


@disk_manager.route('/unmount', methods=['POST'])
def unmount():
    data = _json_body()
    get_manager().operations.unmount(data.get('device'), _password(data))
    return jsonify({'ok': True})


@disk_manager.route('/format', methods=['POST'])
def format_device():
    data = _json_body()
    device_path = get_manager().operations.format(
        data.get('device'),
        data.get('filesystem'),
        data.get('label') or '',
        _password(data),
    )
    return jsonify({'ok': True, 'message': f"Formatted {device_path} as {validate_filesystem(data.get('filesystem'))}"})


@disk_manager.route('/usb-events')
def usb_events():
    notifier = get_manager().notifier
    return Response(
        notifier.stream(),
        mimetype='text/event-stream',
        headers={
            'Cache-Control': 'no-cache',
            'X-Accel-Buffering': 'no',  # nginx must not buffer the stream
        }
    )


@disk_manager.route('/labels')
def list_labels():
    return jsonify({'labels': get_labels()})


@disk_manager.route('/labels', methods=['POST'])
def update_label():
    data = _json_body()
    name = validate_device_name(data.get('device'))
    label = data.get('label')
    if label is not None and not isinstance(label, str):
        raise InvalidRequestError('Label must be a string')

    device = next((d for d in _removable_devices() if d.name == name), None)
    if device is None:
        raise DeviceNotFoundError(f"Device {name} not found")

    try:
        stored = set_label(device, label, db.session)
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    return jsonify({'ok': True, 'device': name, 'displayLabel': stored})
