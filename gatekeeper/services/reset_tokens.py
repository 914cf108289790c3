"""
Issues and redeems single-use password reset tokens.

A token is a signed JWT naming the user, a random token ID, the issue and
expiry times, and a stamp of the credential it was issued against. Nothing is
stored when a token is issued. Redemption claims the token ID in Redis with
``SET NX``; that write is the single point at which a token is consumed, so of
any number of concurrent redemptions of one token exactly one can win. The
marker expires with the token, after which the signature check rejects the
token on its own.

A token authorizes at most one password change.
"""

from typing import NamedTuple, Optional, Tuple
from datetime import datetime, timedelta
from enum import Enum
import logging
import secrets

import jwt
import redis
from flask import current_app
from pytz import UTC

from .. import domain
from . import passwords, users
from .exceptions import NoSuchUser, TokenStoreUnavailable
from .session_store import get_redis

logger = logging.getLogger(__name__)

AUDIENCE = 'password-reset'
MARKER_PREFIX = 'password-reset:used:'


class ResetStatus(Enum):
    """Outcome of a password reset attempt."""

    SUCCESS = 'success'
    EXPIRED = 'expired'
    ALREADY_USED = 'already_used'
    INVALID_TOKEN = 'invalid_token'
    POLICY_VIOLATION = 'policy_violation'


class ResetResult(NamedTuple):
    """Result of :func:`validate_and_consume`."""

    status: ResetStatus
    errors: Tuple[str, ...] = ()
    user: Optional[domain.User] = None

    @property
    def succeeded(self) -> bool:
        """Whether the password was changed."""
        return self.status is ResetStatus.SUCCESS


def _lifetime() -> int:
    return int(current_app.config.get('PASSWORD_RESET_TOKEN_LIFETIME', 10800))


def _secret() -> str:
    secret: str = current_app.config['JWT_SECRET']
    return secret


def issue(user: domain.User, now: Optional[datetime] = None) \
        -> domain.PasswordResetToken:
    """
    Generate a password reset token bound to ``user``.

    Parameters
    ----------
    user : :class:`domain.User`
    now : datetime
        Issue time. Defaults to the current time.

    Returns
    -------
    :class:`domain.PasswordResetToken`

    """
    issued = now or datetime.now(tz=UTC)
    expires = issued + timedelta(seconds=_lifetime())
    token_id = secrets.token_urlsafe(16)
    value = jwt.encode({
        'sub': user.user_id,
        'jti': token_id,
        'aud': AUDIENCE,
        'iat': int(issued.timestamp()),
        'exp': int(expires.timestamp()),
        'stamp': passwords.stamp(user.password_hash or '')
    }, _secret(), algorithm='HS256')
    logger.debug('Issued reset token %s for user %s', token_id, user.user_id)
    return domain.PasswordResetToken(token_id=token_id, user_id=user.user_id,
                                     issued=issued, expires=expires,
                                     value=value)


def is_consumed(token_id: str) -> bool:
    """Whether a token ID has already been redeemed."""
    try:
        return bool(get_redis().exists(MARKER_PREFIX + token_id))
    except redis.exceptions.RedisError as e:
        raise TokenStoreUnavailable(f'Could not check token: {e}') from e


def validate_and_consume(value: str, email: str,
                         new_password: str) -> ResetResult:
    """
    Redeem a reset token, changing the password of the user it names.

    The token must be authentic and unexpired, name the account registered to
    ``email``, not have been redeemed, and have been issued against the
    account's current credential. ``new_password`` must satisfy the password
    policy. Only then is the token consumed and the credential replaced.

    Parameters
    ----------
    value : str
        The token as handed to the user.
    email : str
    new_password : str

    Returns
    -------
    :class:`ResetResult`

    Raises
    ------
    :class:`TokenStoreUnavailable`
        Raised when Redis cannot be reached.
    :class:`.DirectoryWriteFailed`
        Raised when the new credential cannot be saved. The token is
        released and may be used again.

    """
    try:
        claims = jwt.decode(value, _secret(), algorithms=['HS256'],
                            audience=AUDIENCE,
                            options={'require': ['sub', 'jti', 'exp']})
    except jwt.exceptions.ExpiredSignatureError:
        logger.debug('Reset token is expired')
        return ResetResult(ResetStatus.EXPIRED)
    except jwt.exceptions.InvalidTokenError as e:
        logger.debug('Reset token is invalid: %s', e)
        return ResetResult(ResetStatus.INVALID_TOKEN)

    token_id: str = claims['jti']
    try:
        user = users.find_by_id(claims['sub'])
    except NoSuchUser:
        logger.debug('Reset token names an unknown user')
        return ResetResult(ResetStatus.INVALID_TOKEN)

    if users.normalize_email(user.email) != users.normalize_email(email):
        logger.debug('Reset token %s presented for another address', token_id)
        return ResetResult(ResetStatus.INVALID_TOKEN)

    if is_consumed(token_id):
        logger.debug('Reset token %s was already used', token_id)
        return ResetResult(ResetStatus.ALREADY_USED)

    if claims.get('stamp') != passwords.stamp(user.password_hash or ''):
        # A concurrent redemption of this token may have just landed.
        if is_consumed(token_id):
            return ResetResult(ResetStatus.ALREADY_USED)
        logger.debug('Credential changed since token %s was issued', token_id)
        return ResetResult(ResetStatus.INVALID_TOKEN)

    errors = passwords.check_policy(new_password)
    if errors:
        return ResetResult(ResetStatus.POLICY_VIOLATION, tuple(errors))

    if not _claim(token_id, user.user_id, int(claims['exp'])):
        logger.debug('Lost the race for reset token %s', token_id)
        return ResetResult(ResetStatus.ALREADY_USED)

    try:
        user = users.update_password(user,
                                     passwords.hash_password(new_password))
    except Exception:
        _release(token_id)
        raise
    logger.debug('Password reset for user %s with token %s', user.user_id,
                 token_id)
    return ResetResult(ResetStatus.SUCCESS, user=user)


def _claim(token_id: str, user_id: str, exp: int) -> bool:
    ttl = max(exp - int(datetime.now(tz=UTC).timestamp()), 1)
    try:
        return bool(get_redis().set(MARKER_PREFIX + token_id, user_id,
                                    nx=True, ex=ttl))
    except redis.exceptions.RedisError as e:
        raise TokenStoreUnavailable(f'Could not consume token: {e}') from e


def _release(token_id: str) -> None:
    try:
        get_redis().delete(MARKER_PREFIX + token_id)
    except redis.exceptions.RedisError as e:
        logger.error('Could not release reset token %s: %s', token_id, e)
