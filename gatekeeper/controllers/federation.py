"""
Controllers for signing in with an external identity provider.

A federated sign-in moves from unauthenticated, to waiting on the provider
(:func:`login` sends the browser away), to waiting on the callback, to
reconciled (:func:`callback` authenticates the provider's answer, finds or
creates the local account, and issues a persistent session). A failure at any
step ends that attempt with a bad request that says little about why.
"""

from typing import Optional, Tuple
from http import HTTPStatus as status
import logging

from flask import Response, current_app
from werkzeug.exceptions import BadRequest

from ..services import federation
from ..services.exceptions import AssertionRejected, CreateFailed, \
    MissingClaim
from .authentication import establish

logger = logging.getLogger(__name__)

ResponseData = Tuple[dict, int, dict]


def login(callback_url: str) -> Response:
    """Send the browser to the identity provider."""
    return federation.challenge(callback_url)


def callback(ip: Optional[str]) -> ResponseData:
    """
    Complete a federated sign-in.

    Returns
    -------
    dict
        Response data carrying the session cookie.
    int
        Status code. This should be 303 (See Other).
    dict
        Headers to add to the response.

    Raises
    ------
    :class:`BadRequest`
        Raised when the provider's answer is rejected, carries no email
        address, or no local account can be had for it.

    """
    try:
        assertion = federation.authenticate()
    except AssertionRejected as e:
        logger.info('Federated sign-in rejected: %s', e)
        raise BadRequest() from e
    except MissingClaim as e:
        logger.info('Federated sign-in without usable email: %s', e)
        raise BadRequest('Email claim not found.') from e

    try:
        user = federation.reconcile(assertion)
    except CreateFailed as e:
        logger.error('Could not create account for %s: %s',
                     assertion.email, e)
        raise BadRequest('Could not create an account.') from e

    data = establish(user, True, ip)
    location = current_app.config['DEFAULT_LOGIN_REDIRECT_URL']
    return data, status.SEE_OTHER, {'Location': location}
