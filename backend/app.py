# Cirrus/backend/app.py

"""Cirrus backend application entrypoint.

This module creates and configures the Flask application and applies
development-time CORS settings for local dashboard frontends.
It then starts the HTTP server using environment-based configuration.
"""

from typing import Optional

from flask import Flask
from flask_cors import CORS

from blueprints.admin.configs_admin import configs_admin_bp
from blueprints.configs.evaluate import evaluate_bp
from blueprints.system.health import health_bp
from errors.handlers import register_error_handlers
from log_config import configure_logging, get_logger
from settings import Settings, load_settings


def create_app(settings: Optional[Settings] = None) -> Flask:
    """Create and configure the Cirrus Flask application instance.

    This factory loads settings from the environment (unless given),
    configures logging, registers blueprints, and applies global error
    handlers.

    Args:
        settings: Explicit settings, mainly for tests.

    Returns:
        Flask: A configured Flask application instance.
    """
    settings = settings or load_settings()
    configure_logging(settings.log_level, settings.log_format)

    app = Flask(__name__)
    app.config["SETTINGS"] = settings

    # Register JSON error handlers (400/404/500, etc.).
    register_error_handlers(app)

    # System & health
    app.register_blueprint(health_bp)          # /health/

    # Config administration
    app.register_blueprint(configs_admin_bp)   # /admin/configs/

    # Evaluation endpoints (SDK + dashboard preview)
    app.register_blueprint(evaluate_bp)        # /evaluate/, /evaluate/preview

    get_logger(__name__).info(
        "app_created",
        default_environment_id=settings.default_environment_id,
    )
    return app


if __name__ == "__main__":
    settings = load_settings()
    app = create_app(settings)

    # Allow local dashboard development frontends to call this API directly.
    # In production, CORS should be enforced at the reverse proxy layer.
    CORS(
        app,
        resources={r"/*": {"origins": list(settings.cors_origins)}},
        supports_credentials=False,
        allow_headers=["Content-Type"],
        methods=["GET", "POST", "DELETE", "OPTIONS"],
    )

    app.run(
        host="0.0.0.0",
        port=settings.backend_port,
        debug=settings.debug,
    )
