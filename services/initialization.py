import os
import logging

from models import db

logger = logging.getLogger(__name__)


def ensure_storage_structure(app):
    """
    Ensures the label database exists and reports where removable devices
    will be mounted. This function is idempotent and should be called
    during application startup, inside an app_context.
    """
    db.create_all()

    media_root = app.config['MEDIA_ROOT']
    if os.path.isdir(media_root):
        logger.info(f"Removable devices mount under {media_root}")
    else:
        # Root-owned location; created through sudo on the first mount
        logger.info(f"Mount root {media_root} does not exist yet, it is created on first mount")
