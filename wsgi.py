"""Web Server Gateway Interface entry-point."""

import os
from typing import Any

from gatekeeper.factory import create_web_app

__flask_app__ = None


def application(environ: dict, start_response: Any) -> Any:
    """WSGI application."""
    global __flask_app__
    for key, value in environ.items():
        # ``SERVER_NAME`` stays as configured in config.py; in some
        # deployments the environ carries a container ID here instead.
        if key == 'SERVER_NAME':
            continue
        if isinstance(value, str):
            os.environ[key] = value
    if __flask_app__ is None:
        __flask_app__ = create_web_app()
    return __flask_app__(environ, start_response)
