"""Helpers for building an application under test."""

import os

from flask import Flask
from mimesis import Person

from .. import domain
from ..factory import create_web_app
from ..services import passwords, users

PASSWORD = 'Passw0rd!'
"""Satisfies the default password policy."""


def create_test_app(db_dir: str, **config: object) -> Flask:
    """
    Create an app backed by a sqlite file in ``db_dir``.

    Sessions and reset markers go to an in-process fake Redis, and mail to an
    in-memory outbox.
    """
    db_uri = f'sqlite:///{os.path.join(db_dir, "gatekeeper.db")}'
    os.environ['SQLALCHEMY_DATABASE_URI'] = db_uri
    os.environ['REDIS_FAKE'] = '1'
    os.environ['MAIL_FAKE'] = '1'
    os.environ['BCRYPT_ROUNDS'] = '4'
    os.environ['AUTH_SESSION_COOKIE_SECURE'] = '0'
    os.environ['JWT_SECRET'] = 'foosecret'
    os.environ['SECRET_KEY'] = 'bazsecret'
    app = create_web_app()
    app.config.update(config)
    with app.app_context():
        users.drop_all()
        users.create_all()
    return app


def random_email() -> str:
    """Generate a plausible email address."""
    return Person().email()


def add_user(email: str, password: str = PASSWORD) -> domain.User:
    """Register a user with a password. Needs an app context."""
    return users.create(email, passwords.hash_password(password))
