"""
Integration with the external identity provider.

Google is registered as an OpenID Connect client with Authlib. The provider
side of federated sign-in is two steps: send the browser to the provider with
a callback address, then exchange what the provider hands back for an
authenticated set of claims. Only a verified email address is required of
those claims. The asserted address is then reconciled with the user directory,
finding or creating the local account.
"""

from typing import Any, Optional
import logging

from authlib.common.errors import AuthlibBaseError
from authlib.integrations.flask_client import OAuth
from flask import Flask, Response, current_app
from requests.exceptions import RequestException

from .. import domain
from . import users
from .exceptions import AssertionRejected, MissingClaim, CreateFailed, \
    NoSuchUser, UserExists, DirectoryWriteFailed

logger = logging.getLogger(__name__)

PROVIDER = 'google'


def init_app(app: Flask) -> None:
    """Register the provider client with the application."""
    app.config.setdefault('GOOGLE_CLIENT_ID', '')
    app.config.setdefault('GOOGLE_CLIENT_SECRET', '')
    app.config.setdefault(
        'GOOGLE_DISCOVERY_URL',
        'https://accounts.google.com/.well-known/openid-configuration'
    )
    oauth = OAuth(app)
    oauth.register(
        name=PROVIDER,
        client_id=app.config['GOOGLE_CLIENT_ID'],
        client_secret=app.config['GOOGLE_CLIENT_SECRET'],
        server_metadata_url=app.config['GOOGLE_DISCOVERY_URL'],
        client_kwargs={'scope': 'openid email profile'}
    )
    app.extensions['gatekeeper.oauth'] = oauth


def get_client() -> Any:
    """Get the registered provider client."""
    return current_app.extensions['gatekeeper.oauth'].create_client(PROVIDER)


def challenge(callback_url: str) -> Response:
    """Redirect the browser to the provider, to come back to ``callback_url``."""
    logger.debug('Redirecting to %s, callback %s', PROVIDER, callback_url)
    response: Response = get_client().authorize_redirect(callback_url)
    return response


def authenticate() -> domain.ExternalAssertion:
    """
    Authenticate the provider's callback and extract the asserted identity.

    Must be called while handling the callback request.

    Returns
    -------
    :class:`domain.ExternalAssertion`

    Raises
    ------
    :class:`AssertionRejected`
        Raised when the callback cannot be authenticated against the provider.
    :class:`MissingClaim`
        Raised when no verified email address was asserted.

    """
    client = get_client()
    try:
        token = client.authorize_access_token()
        claims: Optional[dict] = token.get('userinfo')
        if claims is None:
            claims = client.userinfo(token=token)
    except (AuthlibBaseError, RequestException, ValueError) as e:
        logger.debug('Provider response rejected: %s', e)
        raise AssertionRejected('Could not authenticate provider response') \
            from e

    email = (claims or {}).get('email')
    if not email:
        raise MissingClaim('Email claim not found.')
    # An explicit false means the provider knows the address but has not
    # verified it.
    if claims.get('email_verified') is False:
        raise MissingClaim('Email claim is not verified.')
    return domain.ExternalAssertion(email=email, provider=PROVIDER,
                                    subject=claims.get('sub'),
                                    email_verified=True)


def reconcile(assertion: domain.ExternalAssertion) -> domain.User:
    """
    Find the local account for an asserted identity, creating it if needed.

    Accounts created here have no local password.

    Raises
    ------
    :class:`CreateFailed`
        Raised when no account exists and one cannot be created.

    """
    try:
        return users.find_by_email(assertion.email)
    except NoSuchUser:
        logger.debug('First %s sign-in for %s', assertion.provider,
                     assertion.email)
    try:
        return users.create(assertion.email, password_hash=None)
    except UserExists:
        # A concurrent first sign-in created it.
        try:
            return users.find_by_email(assertion.email)
        except NoSuchUser as e:
            raise CreateFailed('Account vanished after conflict') from e
    except DirectoryWriteFailed as e:
        raise CreateFailed(f'Could not create account: {e}') from e
