"""
Controllers for signing in and out.

When a user signs in, they are issued a session key that is stored as a
cookie in their browser. The session itself is registered in the distributed
keystore.

Failed sign-ins are reported with one message whether the account is missing,
has no local password, or the password is wrong, so that the form cannot be
used to discover which addresses have accounts. A locked account gets its own
message.
"""

from typing import Any, Dict, Optional, Tuple
from http import HTTPStatus as status
import logging

from werkzeug.datastructures import MultiDict
from werkzeug.exceptions import InternalServerError

from .. import domain
from ..next_page import good_next_page
from ..services import credentials
from ..services.credentials import VerificationStatus
from ..services.exceptions import SessionCreationFailed, \
    SessionDeletionFailed
from ..services.session_store import SessionStore
from .forms import LoginForm

logger = logging.getLogger(__name__)

ResponseData = Tuple[dict, int, dict]

INVALID_LOGIN = 'Invalid login attempt.'
LOCKED_OUT = 'This account is locked, please try again later.'


def login(method: str, form_data: MultiDict, ip: Optional[str],
          next_page: str) -> ResponseData:
    """
    Provide the sign in form, and sign the user in.

    Parameters
    ----------
    method : str
    form_data : MultiDict
        Should include `email`, `password`, and optionally `remember_me`.
    ip : str
        IP or hostname of client.
    next_page : str
        Page to which the user should be redirected upon sign in.

    Returns
    -------
    dict
        Additional data to add to the response.
    int
        Status code. This should be 303 (See Other) if all goes well.
    dict
        Headers to add to the response.

    """
    if method == 'GET':
        logger.debug('Request for login form')
        return {'form': LoginForm(), 'next_page': next_page}, status.OK, {}

    logger.debug('Login form submitted')
    form = LoginForm(form_data)
    data: Dict[str, Any] = {'form': form, 'next_page': next_page}
    if not form.validate():
        logger.debug('Form data is not valid')
        return data, status.BAD_REQUEST, {}

    result = credentials.verify(form.email.data, form.password.data)
    if result.status is VerificationStatus.LOCKED_OUT:
        data.update({'error': LOCKED_OUT})
        return data, status.BAD_REQUEST, {}
    if not result.succeeded or result.user is None:
        logger.debug('Authentication failed for %s: %s', form.email.data,
                     result.status.value)
        data.update({'error': INVALID_LOGIN})
        return data, status.BAD_REQUEST, {}

    data.update(establish(result.user, bool(form.remember_me.data), ip))
    return data, status.SEE_OTHER, {'Location': good_next_page(next_page)}


def establish(user: domain.User, persistent: bool,
              ip: Optional[str]) -> Dict[str, Any]:
    """
    Create a session for an authenticated user.

    Returns
    -------
    dict
        Response data carrying the session cookie. The UI route should use
        this to set cookies on the response.

    """
    sessions = SessionStore.current_session()
    try:
        session = sessions.create(user, persistent=persistent, ip_address=ip)
        cookie = sessions.generate_cookie(session)
    except SessionCreationFailed as e:
        logger.info('Could not create session: %s', e)
        raise InternalServerError('Cannot log in') from e
    logger.debug('Created session: %s', session.session_id)
    # A cookie with no max age lasts as long as the browser session.
    max_age = session.expires if session.persistent else None
    return {
        'cookies': {'auth_session_cookie': (cookie, max_age)},
        'user_id': user.user_id
    }


def logout(session_cookie: Optional[str], next_page: str) -> ResponseData:
    """
    Sign the user out, and redirect to a neutral landing page.

    Parameters
    ----------
    session_cookie : str or None
        If not None, terminates the session.
    next_page : str
        Page to which the user should be redirected upon logout.

    Returns
    -------
    dict
        Additional data to add to the response.
    int
        Status code. This is always 303 (See Other).
    dict
        Headers to add to the response.

    """
    logger.debug('Request to log out')
    if session_cookie:
        sessions = SessionStore.current_session()
        try:
            sessions.delete(session_cookie)
        except SessionDeletionFailed as e:
            logger.error('Logout failed: %s', e)

    data = {'cookies': {'auth_session_cookie': ('', 0)}}
    return data, status.SEE_OTHER, {'Location': next_page}
