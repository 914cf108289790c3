"""
Internal service API for the distributed session store.

Used to establish and terminate user sessions. The session record lives in
Redis, keyed by session ID and signed as a JWT; the browser holds a separate
signed cookie carrying the session ID and a nonce, which must match the
stored record for the session to load.
"""

from typing import Optional, Union
from datetime import datetime, timedelta
import logging
import random
import uuid

import dateutil.parser
import fakeredis
import jwt
import redis
from flask import Flask, current_app, g
from pytz import UTC

from .. import domain
from .exceptions import SessionCreationFailed, SessionDeletionFailed, \
    SessionLoadFailed, InvalidSessionToken, UnknownSession

logger = logging.getLogger(__name__)


def _generate_nonce(length: int = 8) -> str:
    return ''.join([str(random.randint(0, 9)) for i in range(length)])


class SessionStore(object):
    """
    Manages a connection to Redis.

    In fact, the Redis client is thread safe and connections are attached at
    the time a command is executed. This class simply provides a container for
    configuration.
    """

    def __init__(self, r: 'redis.Redis', secret: str, duration: int = 36000,
                 persistent_duration: int = 1209600) -> None:
        self.r = r
        self._secret = secret
        self._duration = duration
        self._persistent_duration = persistent_duration

    def create(self, user: domain.User, persistent: bool = False,
               ip_address: Optional[str] = None) -> domain.Session:
        """
        Establish a new session for an authenticated user.

        Parameters
        ----------
        user : :class:`domain.User`
        persistent : bool
            Persistent sessions outlive the browser session and last
            ``PERSISTENT_SESSION_DURATION`` seconds.
        ip_address : str

        Returns
        -------
        :class:`.Session`

        Raises
        ------
        :class:`SessionCreationFailed`

        """
        session_id = str(uuid.uuid4())
        duration = self._persistent_duration if persistent else self._duration
        start_time = datetime.now(tz=UTC)
        end_time = start_time + timedelta(seconds=duration)
        session = domain.Session(
            session_id=session_id,
            start_time=start_time,
            user=user._replace(password_hash=None),
            persistent=persistent,
            end_time=end_time,
            nonce=_generate_nonce()
        )
        try:
            self.r.set(session_id, self._encode(domain.to_dict(session)),
                       ex=duration)
        except redis.exceptions.ConnectionError as e:
            raise SessionCreationFailed(f'Connection failed: {e}') from e
        except Exception as e:
            raise SessionCreationFailed(f'Failed to create: {e}') from e
        logger.debug('Created session %s for user %s from %s', session_id,
                     user.user_id, ip_address)
        return session

    def generate_cookie(self, session: domain.Session) -> str:
        """Generate a cookie from a :class:`domain.Session`."""
        assert session.user is not None and session.end_time is not None
        return self._pack_cookie({
            'user_id': session.user.user_id,
            'session_id': session.session_id,
            'nonce': session.nonce,
            'expires': session.end_time.isoformat()
        })

    def delete(self, cookie: str) -> None:
        """
        Terminate the session identified by a cookie.

        Terminating a session that is already gone is not an error. A cookie
        that cannot be unpacked identifies no session, so there is nothing to
        terminate.

        Parameters
        ----------
        cookie : str

        Raises
        ------
        :class:`SessionDeletionFailed`
            Raised only when the store itself cannot be reached.

        """
        try:
            cookie_data = self._unpack_cookie(cookie)
        except InvalidSessionToken as e:
            logger.debug('Nothing to delete: %s', e)
            return
        self.delete_by_id(cookie_data['session_id'])

    def delete_by_id(self, session_id: str) -> None:
        """
        Delete a session in the key-value store by ID.

        Parameters
        ----------
        session_id : str

        """
        try:
            self.r.delete(session_id)
        except redis.exceptions.ConnectionError as e:
            raise SessionDeletionFailed(f'Connection failed: {e}') from e
        except Exception as e:
            raise SessionDeletionFailed(f'Failed to delete: {e}') from e

    def validate_session_against_cookie(self, session: domain.Session,
                                        cookie: str) -> None:
        """
        Validate session data against a cookie.

        Raises
        ------
        :class:`InvalidSessionToken`
            Raised if the data in the cookie does not match the session data.

        """
        cookie_data = self._unpack_cookie(cookie)
        if session.user is None or cookie_data['nonce'] != session.nonce \
                or session.user.user_id != cookie_data['user_id']:
            raise InvalidSessionToken('Invalid token; likely a forgery')

    def load(self, cookie: str) -> domain.Session:
        """Load a session using a session cookie."""
        try:
            cookie_data = self._unpack_cookie(cookie)
            expires = dateutil.parser.parse(cookie_data['expires'])
        except (KeyError, ValueError) as e:
            raise InvalidSessionToken('Token payload malformed') from e

        if expires <= datetime.now(tz=UTC):
            raise InvalidSessionToken('Session has expired')

        session = self.load_by_id(cookie_data['session_id'])
        if session.expired:
            raise InvalidSessionToken('Session has expired')
        self.validate_session_against_cookie(session, cookie)
        return session

    def load_by_id(self, session_id: str) -> domain.Session:
        """
        Get session data by session ID.

        Raises
        ------
        :class:`UnknownSession`
            Raised if there is no such session.
        :class:`SessionLoadFailed`
            Raised if the store cannot be read.

        """
        try:
            session_jwt: Union[bytes, str, None] = self.r.get(session_id)
        except redis.exceptions.RedisError as e:
            raise SessionLoadFailed(f'Failed to load: {e}') from e
        if not session_jwt:
            logger.debug('No such session: %s', session_id)
            raise UnknownSession(f'Failed to find session {session_id}')
        return self._decode(session_jwt)

    def _encode(self, session_data: dict) -> str:
        return jwt.encode(session_data, self._secret, algorithm='HS256')

    def _decode(self, session_jwt: Union[bytes, str]) -> domain.Session:
        if isinstance(session_jwt, bytes):
            session_jwt = session_jwt.decode('ascii')
        try:
            data = jwt.decode(session_jwt, self._secret, algorithms=['HS256'])
        except jwt.exceptions.InvalidTokenError as e:
            raise InvalidSessionToken('Invalid or corrupted session token') \
                from e
        session: domain.Session = domain.from_dict(domain.Session, data)
        return session

    def _unpack_cookie(self, cookie: str) -> dict:
        try:
            data = dict(jwt.decode(cookie, self._secret,
                                   algorithms=['HS256']))
        except jwt.exceptions.InvalidTokenError as e:
            raise InvalidSessionToken('Session cookie is malformed') from e
        if 'session_id' not in data:
            raise InvalidSessionToken('Session cookie is malformed')
        return data

    def _pack_cookie(self, cookie_data: dict) -> str:
        return jwt.encode(cookie_data, self._secret, algorithm='HS256')

    @classmethod
    def init_app(cls, app: Flask) -> None:
        """Set default configuration parameters for an application instance."""
        config = app.config
        config.setdefault('REDIS_HOST', 'localhost')
        config.setdefault('REDIS_PORT', '6379')
        config.setdefault('REDIS_DATABASE', '0')
        config.setdefault('REDIS_TOKEN', None)
        config.setdefault('REDIS_CLUSTER', '0')
        config.setdefault('REDIS_FAKE', False)
        config.setdefault('JWT_SECRET', 'foosecret')
        config.setdefault('SESSION_DURATION', '36000')
        config.setdefault('PERSISTENT_SESSION_DURATION', '1209600')

    @classmethod
    def current_session(cls) -> 'SessionStore':
        """Get/create :class:`.SessionStore` for this context."""
        if 'sessions' not in g:
            config = current_app.config
            g.sessions = cls(
                get_redis(),
                config['JWT_SECRET'],
                duration=int(config.get('SESSION_DURATION', '36000')),
                persistent_duration=int(
                    config.get('PERSISTENT_SESSION_DURATION', '1209600')
                )
            )
        return g.sessions  # type: ignore


def get_redis() -> 'redis.Redis':
    """
    Get a Redis client for the current application.

    With ``REDIS_FAKE`` set, every client for the same application shares one
    in-process fake server, so data written during one request is visible to
    the next.
    """
    config = current_app.config
    if config.get('REDIS_FAKE'):
        if 'gatekeeper.fake_redis' not in current_app.extensions:
            current_app.extensions['gatekeeper.fake_redis'] = \
                fakeredis.FakeServer()
        server = current_app.extensions['gatekeeper.fake_redis']
        return fakeredis.FakeStrictRedis(server=server)
    host = config.get('REDIS_HOST', 'localhost')
    port = int(config.get('REDIS_PORT', '6379'))
    token = config.get('REDIS_TOKEN', None)
    if str(config.get('REDIS_CLUSTER', '0')) == '1':
        logger.debug('New Redis cluster connection at %s, port %s', host, port)
        return redis.RedisCluster(host=host, port=port,
                                  password=token)
    logger.debug('New Redis connection at %s, port %s', host, port)
    return redis.StrictRedis(host=host, port=port,
                             db=int(config.get('REDIS_DATABASE', '0')),
                             password=token)
