"""Flask configuration."""
import secrets
import os
import re

#################### General config for app ####################
BASE_SERVER = os.environ.get('BASE_SERVER', 'localhost:8080')
"""Sets base server for use when doman name is needed.

The default configs for `DEFAULT_LOGIN_REDIRECT_URL` and
`DEFAULT_LOGOUT_REDIRECT_URL` will use this. They can be independently
configured if needed.
"""

DEFAULT_LOGIN_REDIRECT_URL = os.environ.get('DEFAULT_LOGIN_REDIRECT_URL',
                                            '/upload')
"""Landing page after a successful sign-in, if no `next_page` was given."""

DEFAULT_LOGOUT_REDIRECT_URL = os.environ.get('DEFAULT_LOGOUT_REDIRECT_URL',
                                             '/')
"""Neutral landing point after logout."""


_relative_urls = r"(^\/(?:[^\/]+\/)*[^\/]*$)"
_absolute_urls = rf"(^https?://([a-zA-Z0-9\-.])*{re.escape(BASE_SERVER)}/.*$)"
LOGIN_REDIRECT_REGEX = os.environ.get('LOGIN_REDIRECT_REGEX',
                                      f"{_relative_urls}|{_absolute_urls}")
"""Regex to check next_page of /login and /register.

Only next_page values that match this regex will be allowed. All
others will go to the DEFAULT_LOGIN_REDIRECT_URL. The default value
for this allows relative URLs and URLs on the BASE_SERVER.
"""



#################### Sessions ####################
REDIS_HOST = os.environ.get('REDIS_HOST', 'localhost')
REDIS_PORT = os.environ.get('REDIS_PORT', '6379')
REDIS_DATABASE = os.environ.get('REDIS_DATABASE', '0')
REDIS_TOKEN = os.environ.get('REDIS_TOKEN', None)
"""This is the token used in the AUTH procedure."""
REDIS_CLUSTER = os.environ.get('REDIS_CLUSTER', '0')

REDIS_FAKE = bool(int(os.environ.get('REDIS_FAKE', '0')))
"""Use the FakeRedis library instead of a redis service.

Useful for testing, dev, beta."""

JWT_SECRET = os.environ.get('JWT_SECRET', secrets.token_urlsafe(16))
"""Signs session cookies and password reset tokens."""

AUTH_SESSION_COOKIE_NAME = os.environ.get('AUTH_SESSION_COOKIE_NAME',
                                          'FILESHARING_SESSION_ID')
AUTH_SESSION_COOKIE_DOMAIN = os.environ.get('AUTH_SESSION_COOKIE_DOMAIN', None)
AUTH_SESSION_COOKIE_SECURE = bool(int(os.environ.get('AUTH_SESSION_COOKIE_SECURE', '1')))

SESSION_DURATION = os.environ.get('SESSION_DURATION', '36000')
"""Lifetime in seconds of a session that is not persistent."""

PERSISTENT_SESSION_DURATION = os.environ.get('PERSISTENT_SESSION_DURATION',
                                             '1209600')
"""Lifetime in seconds of a "remember me" or federated session."""


#################### User directory ####################
SQLALCHEMY_DATABASE_URI = os.environ.get('SQLALCHEMY_DATABASE_URI',
                                         'sqlite:///gatekeeper.db')
SQLALCHEMY_TRACK_MODIFICATIONS = False

CREATE_DB = bool(int(os.environ.get('CREATE_DB', '0')))


#################### Credentials ####################
BCRYPT_ROUNDS = int(os.environ.get('BCRYPT_ROUNDS', '12'))

PASSWORD_MIN_LENGTH = int(os.environ.get('PASSWORD_MIN_LENGTH', '6'))
PASSWORD_REQUIRE_DIGIT = bool(int(os.environ.get('PASSWORD_REQUIRE_DIGIT', '1')))
PASSWORD_REQUIRE_LOWERCASE = bool(int(os.environ.get('PASSWORD_REQUIRE_LOWERCASE', '1')))
PASSWORD_REQUIRE_UPPERCASE = bool(int(os.environ.get('PASSWORD_REQUIRE_UPPERCASE', '1')))
PASSWORD_REQUIRE_NON_ALPHANUMERIC = bool(int(
    os.environ.get('PASSWORD_REQUIRE_NON_ALPHANUMERIC', '1')
))
PASSWORD_REQUIRED_UNIQUE_CHARS = int(os.environ.get('PASSWORD_REQUIRED_UNIQUE_CHARS', '1'))

LOCKOUT_ON_FAILURE = bool(int(os.environ.get('LOCKOUT_ON_FAILURE', '0')))
"""Count failed password attempts toward lockout.

Off in this deployment: failed attempts are not counted, but a lockout set on
the account record is still honored."""

MAX_FAILED_ACCESS_ATTEMPTS = int(os.environ.get('MAX_FAILED_ACCESS_ATTEMPTS', '5'))
LOCKOUT_DURATION = int(os.environ.get('LOCKOUT_DURATION', '300'))
"""Seconds."""

PASSWORD_RESET_TOKEN_LIFETIME = int(os.environ.get('PASSWORD_RESET_TOKEN_LIFETIME',
                                                   '10800'))
"""Seconds that a password reset link remains valid."""


#################### Email ####################
SMTP_HOST = os.environ.get('SMTP_HOST', 'localhost')
SMTP_PORT = int(os.environ.get('SMTP_PORT', '25'))
SMTP_USERNAME = os.environ.get('SMTP_USERNAME', None)
SMTP_PASSWORD = os.environ.get('SMTP_PASSWORD', None)
SMTP_USE_TLS = bool(int(os.environ.get('SMTP_USE_TLS', '0')))
SMTP_TIMEOUT = int(os.environ.get('SMTP_TIMEOUT', '10'))
MAIL_SENDER = os.environ.get('MAIL_SENDER', 'no-reply@filesharing.local')

MAIL_FAKE = bool(int(os.environ.get('MAIL_FAKE', '0')))
"""Keep outgoing mail in memory instead of talking to an SMTP server."""


#################### Federation ####################
GOOGLE_CLIENT_ID = os.environ.get('GOOGLE_CLIENT_ID', '')
GOOGLE_CLIENT_SECRET = os.environ.get('GOOGLE_CLIENT_SECRET', '')
GOOGLE_DISCOVERY_URL = os.environ.get(
    'GOOGLE_DISCOVERY_URL',
    'https://accounts.google.com/.well-known/openid-configuration'
)


#################### Minor configs ##############################
SECRET_KEY = os.environ.get('SECRET_KEY', secrets.token_urlsafe(16))
"""Sets the `Flask` secret key. Authlib keeps the OAuth state here."""

LOGLEVEL = int(os.environ.get('LOGLEVEL', 20))

GATEKEEPER_AUTH_DEBUG = bool(int(os.environ.get('GATEKEEPER_AUTH_DEBUG', '0')))
"""Set the service loggers to DEBUG. Do not leave on in production."""

VERSION = '0.1.0'
"""The application version."""
