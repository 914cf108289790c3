"""Defines the core data structures for the gatekeeper service."""

from typing import Any, Optional, NamedTuple, Callable
from datetime import datetime
from functools import partial
import dateutil.parser
from pytz import UTC


class User(NamedTuple):
    """Represents a registered account."""

    user_id: str
    """Unique identifier for the account."""

    email: str
    """The email address as entered; lookups use its normalized form."""

    username: str
    """Defaults to the email address."""

    password_hash: Optional[str] = None
    """bcrypt hash. ``None`` for accounts created by federated sign-in."""

    lockout_end: Optional[datetime] = None
    """The account may not sign in with a password until this time."""

    access_failed_count: int = 0
    """Consecutive failed password attempts."""

    created: Optional[datetime] = None

    @property
    def has_password(self) -> bool:
        """Whether the account has a local password credential."""
        return bool(self.password_hash)

    def is_locked_out(self, now: Optional[datetime] = None) -> bool:
        """Whether the lockout window is still open."""
        if self.lockout_end is None:
            return False
        if now is None:
            now = datetime.now(tz=UTC)
        return self.lockout_end > now


class Session(NamedTuple):
    """Represents an authenticated session."""

    session_id: str
    """Unique identifier for the session."""

    start_time: datetime
    """The ISO-8601 datetime when the session was created."""

    user: Optional[User] = None
    """The user for which the session was created."""

    persistent: bool = False
    """If true, the session cookie survives the browser session."""

    end_time: Optional[datetime] = None
    """The ISO-8601 datetime when the session ends."""

    nonce: Optional[str] = None
    """A pseudo-random nonce generated when the session was created."""

    @property
    def expired(self) -> bool:
        """Expired if the current time is later than :attr:`.end_time`."""
        return bool(self.end_time is not None
                    and datetime.now(tz=UTC) >= self.end_time)

    @property
    def expires(self) -> Optional[int]:
        """
        Number of seconds until the session expires.

        If the session is already expired, returns 0.
        """
        if self.end_time is None:
            return None
        duration = (self.end_time - datetime.now(tz=UTC)).total_seconds()
        return max(int(duration), 0)


class PasswordResetToken(NamedTuple):
    """A single-use capability to change one user's password."""

    token_id: str
    """Random identifier; the key of the single-use marker."""

    user_id: str
    issued: datetime
    expires: datetime

    value: str = ''
    """The opaque string handed to the user."""


class ExternalAssertion(NamedTuple):
    """Identity claims returned by an external identity provider."""

    email: str
    provider: str
    subject: Optional[str] = None
    email_verified: bool = True


# Helpers and private functions.


def to_dict(obj: tuple) -> dict:
    """
    Generate a dict representation of a NamedTuple instance.

    Child NamedTuple instances are cast recursively, and datetimes are
    rendered as ISO-8601 strings.

    Parameters
    ----------
    obj : tuple
        A NamedTuple instance.

    Returns
    -------
    dict

    """
    if not hasattr(obj, '_asdict'):  # NamedTuple-generated classes have this.
        return {}
    data = obj._asdict()  # type: ignore

    def _cast(value: Any) -> Any:
        if hasattr(value, '_asdict'):
            return to_dict(value)
        if isinstance(value, datetime):
            return value.isoformat()
        if isinstance(value, list):
            return [_cast(o) for o in value]
        return value

    return {key: _cast(value) for key, value in data.items()}


def from_dict(cls: type, data: dict) -> Any:
    """
    Generate a NamedTuple instance from a dict, with recursion.

    This is the inverse of :func:`to_dict`.

    Parameters
    ----------
    cls: type
        Any NamedTuple class.
    data: dict
        Data with which to instantiate ``cls`` and its children.

    Returns
    -------
    NamedTuple
        An instance of ``cls``.

    """
    _data = {}
    for field, field_type in cls.__annotations__.items():
        if field not in data:
            continue
        value = data[field]
        target_type = _get_cast_type(field_type, value)
        if target_type:
            value = target_type(value)
        _data[field] = value
    return cls(**_data)


def _is_a_namedtuple(field_type: Any) -> bool:
    return hasattr(field_type, '_fields')


def _members(field_type: Any) -> tuple:
    """Unpack ``Optional[X]`` and friends into their member types."""
    return getattr(field_type, '__args__', None) or (field_type,)


def _get_cast_type(field_type: Any, value: Any) -> Optional[Callable]:
    """Get a casting callable for a field type/value."""
    if type(value) is dict:
        for member in _members(field_type):
            if _is_a_namedtuple(member):
                return partial(from_dict, member)
    elif type(value) is str:
        if datetime in _members(field_type):
            return dateutil.parser.parse
    return None
