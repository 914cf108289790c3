"""
Verifies passwords against the user directory.

The result of :func:`verify` is precise: callers learn whether the account
was missing, locked, or the password wrong. Those distinctions are for logging
and policy only. Anything shown to the person signing in must collapse
``NOT_FOUND``, ``INVALID_CREDENTIALS`` and ``NO_LOCAL_PASSWORD`` into one
message, or the sign-in form becomes an account enumeration oracle.

Lockout is wired but inert in this deployment. ``LOCKOUT_ON_FAILURE`` is off,
so :func:`record_failure` does nothing, but a ``lockout_end`` on the account is
always honored.
"""

from typing import NamedTuple, Optional
from datetime import datetime
from enum import Enum
import logging

from flask import current_app, has_app_context
from pytz import UTC

from .. import domain
from . import passwords, users
from .exceptions import NoSuchUser

logger = logging.getLogger(__name__)


class VerificationStatus(Enum):
    """Outcome of a password check."""

    SUCCESS = 'success'
    NOT_FOUND = 'not_found'
    LOCKED_OUT = 'locked_out'
    INVALID_CREDENTIALS = 'invalid_credentials'
    NO_LOCAL_PASSWORD = 'no_local_password'
    """The account was created by federated sign-in and has no password."""


class Verification(NamedTuple):
    """Result of :func:`verify`."""

    status: VerificationStatus
    user: Optional[domain.User] = None

    @property
    def succeeded(self) -> bool:
        """Whether the credentials were good."""
        return self.status is VerificationStatus.SUCCESS


def verify(email: str, password: str,
           now: Optional[datetime] = None) -> Verification:
    """
    Check a password for the account registered to ``email``.

    Parameters
    ----------
    email : str
    password : str
        Password (as entered).
    now : datetime
        Reference time for the lockout check. Defaults to the current time.

    Returns
    -------
    :class:`Verification`

    """
    try:
        user = users.find_by_email(email)
    except NoSuchUser:
        logger.debug('No such user: %s', email)
        # Same cost as a wrong password.
        passwords.check_password(password, _dummy_hash())
        return Verification(VerificationStatus.NOT_FOUND)

    if user.is_locked_out(now or datetime.now(tz=UTC)):
        logger.debug('User %s is locked out until %s', user.user_id,
                     user.lockout_end)
        return Verification(VerificationStatus.LOCKED_OUT, user)

    if not user.has_password:
        logger.debug('User %s has no local password', user.user_id)
        return Verification(VerificationStatus.NO_LOCAL_PASSWORD, user)

    if not passwords.check_password(password, user.password_hash):
        logger.debug('Incorrect password for user %s', user.user_id)
        record_failure(user)
        return Verification(VerificationStatus.INVALID_CREDENTIALS, user)

    if user.access_failed_count:
        user = users.reset_access_failures(user)
    return Verification(VerificationStatus.SUCCESS, user)


def record_failure(user: domain.User) -> None:
    """
    Count a failed attempt toward lockout, if lockout is enabled.

    With ``LOCKOUT_ON_FAILURE`` off (the default) this does nothing on
    purpose.
    """
    if not has_app_context() \
            or not current_app.config.get('LOCKOUT_ON_FAILURE', False):
        return
    config = current_app.config
    users.record_access_failure(
        user,
        max_attempts=int(config.get('MAX_FAILED_ACCESS_ATTEMPTS', 5)),
        lockout_duration=int(config.get('LOCKOUT_DURATION', 300))
    )


_dummy: Optional[str] = None


def _dummy_hash() -> str:
    global _dummy
    if _dummy is None:
        _dummy = passwords.hash_password('not a real password')
    return _dummy
