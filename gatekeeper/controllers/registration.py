"""
Controller for registration.

A new account is signed in straight away, by checking the credentials that
were just supplied and issuing a session, so the user does not have to sign
in a second time.
"""

from typing import Any, Dict, Optional, Tuple
from http import HTTPStatus as status
import logging

from werkzeug.datastructures import MultiDict
from werkzeug.exceptions import InternalServerError

from ..next_page import good_next_page
from ..services import credentials, passwords, users
from ..services.exceptions import DirectoryWriteFailed, UserExists
from .authentication import establish
from .forms import RegistrationForm

logger = logging.getLogger(__name__)

ResponseData = Tuple[dict, int, dict]


def register(method: str, params: MultiDict, ip: Optional[str],
             next_page: str) -> ResponseData:
    """Handle requests for the registration view."""
    if method == 'GET':
        return {'form': RegistrationForm(), 'next_page': next_page}, \
            status.OK, {}

    logger.debug('Registration form submitted')
    form = RegistrationForm(params)
    data: Dict[str, Any] = {'form': form, 'next_page': next_page}
    if not form.validate():
        logger.debug('Registration form not valid')
        return data, status.BAD_REQUEST, {}

    email = form.email.data
    password = form.password.data
    try:
        user = users.create(email, passwords.hash_password(password))
    except UserExists:
        form.email.errors.append(f"Email '{email}' is already taken.")
        return data, status.BAD_REQUEST, {}
    except DirectoryWriteFailed as e:
        raise InternalServerError('Registration failed') from e
    logger.debug('Registered user %s', user.user_id)

    result = credentials.verify(email, password)
    if not result.succeeded or result.user is None:
        logger.error('Sign-in right after registration failed for %s: %s',
                     user.user_id, result.status.value)
        data['error'] = 'Your account was created, but you could not be' \
                        ' signed in. Please try signing in.'
        return data, status.BAD_REQUEST, {}

    data.update(establish(result.user, False, ip))
    return data, status.SEE_OTHER, {'Location': good_next_page(next_page)}
