"""
Integration with the user directory.

The directory owns account records. Accounts are looked up by email address
using case-insensitive equality on the normalized address; the normalized
address carries a unique constraint, so two concurrent attempts to create the
same account cannot both succeed. The loser gets :class:`.UserExists`, which
callers may resolve by fetching the account that won.
"""

from typing import Callable, Generator, Optional
from contextlib import contextmanager
from datetime import datetime, timedelta
import logging
import uuid

from flask import Flask
from pytz import UTC
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm.session import Session

from ... import domain
from ..exceptions import UserExists, NoSuchUser, DirectoryWriteFailed
from .models import db, DBUser

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    """Get the form of an email address used for lookups."""
    return email.strip().lower()


@contextmanager
def transaction() -> Generator[Session, None, None]:
    """Context manager for database transaction."""
    try:
        yield db.session
        # The caller may have explicitly committed already. We only want to
        # commit here if there is anything remaining that is not flushed.
        if db.session.new or db.session.dirty or db.session.deleted:
            db.session.commit()
    except Exception as e:
        logger.error('Commit failed, rolling back: %s', str(e))
        db.session.rollback()
        raise


def init_app(app: Flask) -> None:
    """Attach the database session to the application."""
    db.init_app(app)


def create_all() -> None:
    """Create all tables in the database."""
    db.create_all()


def drop_all() -> None:
    """Drop all tables in the database."""
    db.drop_all()


def find_by_email(email: str) -> domain.User:
    """
    Retrieve an account by email address.

    Parameters
    ----------
    email : str

    Returns
    -------
    :class:`domain.User`

    Raises
    ------
    :class:`NoSuchUser`
        Raised when no account uses the address.

    """
    with transaction() as session:
        db_user: Optional[DBUser] = session.query(DBUser) \
            .filter(DBUser.normalized_email == normalize_email(email)) \
            .first()
        user = _to_domain(db_user) if db_user is not None else None
    if user is None:
        raise NoSuchUser('User does not exist')
    return user


def find_by_id(user_id: str) -> domain.User:
    """Retrieve an account by its ID."""
    with transaction() as session:
        db_user: Optional[DBUser] = session.get(DBUser, user_id)
        user = _to_domain(db_user) if db_user is not None else None
    if user is None:
        raise NoSuchUser('User does not exist')
    return user


def create(email: str, password_hash: Optional[str] = None,
           username: Optional[str] = None) -> domain.User:
    """
    Create a new account.

    Parameters
    ----------
    email : str
    password_hash : str or None
        ``None`` creates an account with no local password, as for federated
        sign-in.
    username : str or None
        Defaults to ``email``.

    Returns
    -------
    :class:`domain.User`

    Raises
    ------
    :class:`UserExists`
        Raised when an account with the same normalized address exists.
    :class:`DirectoryWriteFailed`
        Raised when the datastore cannot persist the account.

    """
    email = email.strip()
    db_user = DBUser(
        user_id=str(uuid.uuid4()),
        email=email,
        normalized_email=normalize_email(email),
        username=username or email,
        password_hash=password_hash,
        access_failed_count=0,
        created=datetime.now(tz=UTC)
    )
    try:
        with transaction() as session:
            session.add(db_user)
            session.commit()
            user = _to_domain(db_user)
    except IntegrityError as e:
        logger.debug('Account already exists for %s', email)
        raise UserExists('An account with that email already exists') from e
    except SQLAlchemyError as e:
        raise DirectoryWriteFailed(f'Could not create user: {e}') from e
    logger.debug('Created user %s', user.user_id)
    return user


def update_password(user: domain.User, password_hash: str) -> domain.User:
    """Replace the stored credential hash for ``user``."""
    def _update(db_user: DBUser) -> None:
        db_user.password_hash = password_hash
    return _update_user(user.user_id, _update)


def record_access_failure(user: domain.User, max_attempts: int,
                          lockout_duration: int) -> domain.User:
    """Count a failed password attempt, locking the account at the limit."""
    def _update(db_user: DBUser) -> None:
        db_user.access_failed_count = (db_user.access_failed_count or 0) + 1
        if db_user.access_failed_count >= max_attempts:
            db_user.lockout_end = datetime.now(tz=UTC) \
                + timedelta(seconds=lockout_duration)
            db_user.access_failed_count = 0
            logger.debug('Locked out user %s', db_user.user_id)
    return _update_user(user.user_id, _update)


def reset_access_failures(user: domain.User) -> domain.User:
    """Clear the failed attempt counter."""
    def _update(db_user: DBUser) -> None:
        db_user.access_failed_count = 0
    return _update_user(user.user_id, _update)


def set_lockout(user: domain.User, lockout_end: Optional[datetime]) \
        -> domain.User:
    """Lock the account until ``lockout_end``, or unlock it with ``None``."""
    def _update(db_user: DBUser) -> None:
        db_user.lockout_end = lockout_end
    return _update_user(user.user_id, _update)


def _update_user(user_id: str, update: Callable[[DBUser], None]) \
        -> domain.User:
    try:
        with transaction() as session:
            db_user: Optional[DBUser] = session.get(DBUser, user_id)
            if db_user is None:
                raise NoSuchUser('User does not exist')
            update(db_user)
            session.commit()
            return _to_domain(db_user)
    except SQLAlchemyError as e:
        raise DirectoryWriteFailed(f'Could not update user: {e}') from e


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _to_domain(db_user: DBUser) -> domain.User:
    return domain.User(
        user_id=db_user.user_id,
        email=db_user.email,
        username=db_user.username,
        password_hash=db_user.password_hash,
        lockout_end=_aware(db_user.lockout_end),
        access_failed_count=db_user.access_failed_count or 0,
        created=_aware(db_user.created)
    )
