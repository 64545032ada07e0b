"""Flask application factory for Jira Moa web interface."""

import logging

from flask import Flask

from jira_moa.config import load_stored_config


def _configure_logging() -> None:
    try:
        level = load_stored_config().log_level
    except ValueError:
        level = "INFO"
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app() -> Flask:
    """Create and configure the Flask application."""
    _configure_logging()
    app = Flask(__name__)

    app.config["SECRET_KEY"] = "jira-moa-local-dev"

    from jira_moa.web.routes import bp
    app.register_blueprint(bp)

    return app
