"""
Controllers for self-service password reset.

Asking for a reset link always ends in the same confirmation, whether or not
the address belongs to an account; a link is only issued and mailed when it
does. Redeeming a link never reveals that an address has no account either,
and every token failure gets the same message.
"""

from typing import Any, Dict, Tuple
from http import HTTPStatus as status
import logging

from flask import url_for
from werkzeug.datastructures import MultiDict
from werkzeug.exceptions import InternalServerError

from .. import domain
from ..services import mail, reset_tokens, users
from ..services.exceptions import DeliveryFailed, DirectoryWriteFailed, \
    NoSuchUser, TokenStoreUnavailable
from ..services.reset_tokens import ResetStatus
from .forms import PasswordResetRequestForm, ResetPasswordForm

logger = logging.getLogger(__name__)

ResponseData = Tuple[dict, int, dict]

EMAIL_SUBJECT = 'Password Reset From FileSharing'
EMAIL_TEMPLATE = 'mail/password_reset.html'
INVALID_TOKEN = 'Invalid or expired password reset link.'


def request_reset(method: str, params: MultiDict) -> ResponseData:
    """
    Handle requests for a password reset link.

    Parameters
    ----------
    method : str
    params : MultiDict
        Should include `email`.

    Returns
    -------
    dict
        Additional data to add to the response. `confirmation` is True once
        the request has been accepted.
    int
        Status code.
    dict
        Headers to add to the response.

    """
    if method == 'GET':
        return {'form': PasswordResetRequestForm()}, status.OK, {}

    form = PasswordResetRequestForm(params)
    data: Dict[str, Any] = {'form': form}
    if not form.validate():
        return data, status.BAD_REQUEST, {}

    email = form.email.data
    try:
        user = users.find_by_email(email)
    except NoSuchUser:
        logger.debug('Reset requested for unknown address %s', email)
        data['confirmation'] = True
        return data, status.OK, {}

    send_reset_link(user, email)
    data['confirmation'] = True
    return data, status.OK, {}


def send_reset_link(user: domain.User, email: str) -> None:
    """
    Issue a reset token for ``user`` and mail them a link that redeems it.

    Delivery is attempted once; a failure is the caller's problem.
    """
    token = reset_tokens.issue(user)
    reset_url = url_for('ui.reset_password', token=token.value, email=email,
                        _external=True)
    html = mail.render(EMAIL_TEMPLATE, username=email, reset_url=reset_url)
    try:
        mail.send(user.email, EMAIL_SUBJECT, html)
    except DeliveryFailed as e:
        logger.error('Could not send reset link to user %s: %s',
                     user.user_id, e)
        raise InternalServerError('Could not send password reset email') \
            from e
    logger.debug('Sent reset link to user %s', user.user_id)


def reset_password(method: str, params: MultiDict) -> ResponseData:
    """
    Handle requests to set a new password with a reset token.

    Parameters
    ----------
    method : str
    params : MultiDict
        Query parameters for GET (`token`, `email`), form data for POST
        (`token`, `email`, `password`, `confirm_password`).

    Returns
    -------
    dict
        Additional data to add to the response.
    int
        Status code. 303 (See Other) to the confirmation page when done.
    dict
        Headers to add to the response.

    """
    if method == 'GET':
        token = params.get('token')
        email = params.get('email')
        if not token or not email:
            return {'error': 'A token and an email address are required.'}, \
                status.BAD_REQUEST, {}
        form = ResetPasswordForm(MultiDict({'token': token, 'email': email}))
        return {'form': form}, status.OK, {}

    form = ResetPasswordForm(params)
    data: Dict[str, Any] = {'form': form}
    if not form.validate():
        return data, status.BAD_REQUEST, {}

    confirmation = {'Location': url_for('ui.reset_password_confirmation')}
    try:
        users.find_by_email(form.email.data)
    except NoSuchUser:
        logger.debug('Reset attempted for unknown address')
        return data, status.SEE_OTHER, confirmation

    try:
        result = reset_tokens.validate_and_consume(form.token.data,
                                                   form.email.data,
                                                   form.password.data)
    except (TokenStoreUnavailable, DirectoryWriteFailed) as e:
        logger.error('Password reset failed: %s', e)
        raise InternalServerError('Could not reset password') from e

    if result.succeeded:
        return data, status.SEE_OTHER, confirmation
    if result.status is ResetStatus.POLICY_VIOLATION:
        form.password.errors.extend(result.errors)
        return data, status.BAD_REQUEST, {}
    logger.debug('Reset token rejected: %s', result.status.value)
    data['error'] = INVALID_TOKEN
    return data, status.BAD_REQUEST, {}
