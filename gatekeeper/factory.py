"""Application factory for the gatekeeper app."""

import logging

from flask import Flask

from . import app_logging
from .routes import ui
from .services import federation, mail, users
from .services.session_store import SessionStore

logger = logging.getLogger(__name__)


def create_web_app() -> Flask:
    """Initialize and configure the gatekeeper application."""
    app = Flask('gatekeeper')
    app.config.from_pyfile('config.py')

    app_logging.setup_logger(int(app.config['LOGLEVEL']))
    if app.config.get('GATEKEEPER_AUTH_DEBUG'):
        app_logging.auth_debug()
        logger.debug("GATEKEEPER_AUTH_DEBUG is set; auth debug logging is on")

    SessionStore.init_app(app)
    users.init_app(app)
    mail.init_app(app)
    federation.init_app(app)

    app.register_blueprint(ui.blueprint)

    if app.config['CREATE_DB']:
        with app.app_context():
            users.create_all()

    return app
