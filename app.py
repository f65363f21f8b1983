import logging

from flask import Flask, jsonify

from config import Config
from models import db
from services.initialization import ensure_storage_structure
import disk_manager


def configure_logging(app):
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def create_app(config_class=Config, provider=None):
    """
    Builds the removable storage API.
    provider overrides the hardware backend picked from the config (tests).
    """
    app = Flask(__name__)
    app.config.from_object(config_class)
    configure_logging(app)

    # Initialize Database
    db.init_app(app)
    with app.app_context():
        ensure_storage_structure(app)

    disk_manager.init_app(app, provider=provider)

    # ─────────────────────────────────────────────
    # Generic error responses stay JSON
    # ─────────────────────────────────────────────

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': 'Not found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'error': 'Method not allowed'}), 405

    app.logger.info(
        f"Removable storage manager ready (mock hardware: {app.config.get('MOCK_HARDWARE')}, "
        f"media root: {app.config['MEDIA_ROOT']})"
    )
    return app


if __name__ == '__main__':
    # threaded: the event stream holds one worker per connected client
    create_app().run(host='0.0.0.0', port=5000, debug=False, threaded=True)
