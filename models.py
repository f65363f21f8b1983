from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


class DeviceLabel(db.Model):
    """User-chosen display name for a removable device.
    Keyed by filesystem UUID when the device has one, since kernel names
    (sdb, sdc) change between replugs; otherwise by device name.
    """
    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(128), unique=True, nullable=False)
    label = db.Column(db.String(64), nullable=False)
    updated_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

    def __repr__(self):
        return f'<DeviceLabel {self.key}={self.label}>'
