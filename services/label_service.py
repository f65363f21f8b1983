"""
label_service.py
-----------------
Business logic for user display labels on removable devices.
Routes should call these functions instead of implementing logic inline.
"""
from models import DeviceLabel

MAX_LABEL_LENGTH = 64


def label_key(device):
    """UUID survives replugs; the kernel name is the fallback."""
    return device.uuid or device.name


def get_labels():
    """Returns {key: label} for every stored label."""
    return {row.key: row.label for row in DeviceLabel.query.order_by(DeviceLabel.key).all()}


def apply_labels(devices):
    """Attaches display_label to each RemovableDeviceInfo in place."""
    labels = get_labels()
    for device in devices:
        device.display_label = labels.get(label_key(device)) or labels.get(device.name)
    return devices


def set_label(device, label, db_session):
    """
    Stores (or clears, when label is empty) the display label for a device.
    Raises ValueError for labels that are too long.
    Returns the stored label or None.
    """
    label = (label or '').strip()
    if len(label) > MAX_LABEL_LENGTH:
        raise ValueError(f'Label must be at most {MAX_LABEL_LENGTH} characters.')

    key = label_key(device)
    row = DeviceLabel.query.filter_by(key=key).first()

    if not label:
        if row:
            db_session.delete(row)
            db_session.commit()
        return None

    if row:
        row.label = label
    else:
        db_session.add(DeviceLabel(key=key, label=label))
    db_session.commit()
    return label
