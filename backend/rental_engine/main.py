import logging
from typing import Any, Dict, Optional

from flask import Flask, jsonify

from rental_engine.api.middleware import register_error_handlers
from rental_engine.api.routes.analytics import analytics_bp
from rental_engine.api.routes.assets import assets_bp
from rental_engine.api.routes.rentals import rentals_bp
from rental_engine.config import settings
from rental_engine.database import init_db
from rental_engine.services.notification_service import NotificationSink, build_notification_sink

logger = logging.getLogger(__name__)


def create_app(
    config_overrides: Optional[Dict[str, Any]] = None,
    notification_sink: Optional[NotificationSink] = None,
    create_tables: Optional[bool] = None,
) -> Flask:
    logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO))

    app = Flask(__name__)
    app.config["SECRET_KEY"] = settings.secret_key
    app.config["NOTIFICATION_SINK"] = notification_sink or build_notification_sink(settings)
    if config_overrides:
        app.config.update(config_overrides)

    # Schema migrations are out of scope; development databases are created on startup
    if create_tables is None:
        create_tables = settings.is_dev()
    if create_tables:
        init_db()

    register_error_handlers(app)

    app.register_blueprint(rentals_bp)
    app.register_blueprint(assets_bp)
    app.register_blueprint(analytics_bp)

    @app.route("/")
    def root():
        return jsonify({"message": "Rental Engine API", "version": "1.0.0"})

    @app.route("/health")
    def health():
        return jsonify({"status": "healthy"})

    logger.info(f"Application started (env={settings.flask_env})")
    return app
