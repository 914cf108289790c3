"""Provides Flask integration for the external user interface."""

from typing import Any, Callable, Optional
from functools import wraps
from http import HTTPStatus as status
import logging

from flask import Blueprint, render_template, url_for, request, \
    make_response, redirect, current_app, Response

from .. import domain
from ..controllers import authentication, federation, password_reset, \
    registration
from ..services.exceptions import InvalidSessionToken, SessionLoadFailed, \
    UnknownSession
from ..services.session_store import SessionStore

logger = logging.getLogger(__name__)
blueprint = Blueprint('ui', __name__, url_prefix='')


@blueprint.before_request
def load_session() -> None:
    """Attach the authenticated session, if any, to the request."""
    cookie_name = current_app.config['AUTH_SESSION_COOKIE_NAME']
    cookie = request.cookies.get(cookie_name)
    auth: Optional[domain.Session] = None
    if cookie:
        try:
            auth = SessionStore.current_session().load(cookie)
        except (InvalidSessionToken, UnknownSession) as e:
            logger.debug('No valid session: %s', e)
        except SessionLoadFailed as e:
            logger.error('Could not load session: %s', e)
    request.auth = auth  # type: ignore


def anonymous_only(func: Callable) -> Callable:
    """Redirect signed-in users to the landing page."""
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        if getattr(request, 'auth', None):
            next_page = current_app.config['DEFAULT_LOGIN_REDIRECT_URL']
            return make_response(redirect(next_page, code=status.SEE_OTHER))
        return func(*args, **kwargs)
    return wrapper


def set_cookies(response: Response, data: dict) -> None:
    """
    Update a :class:`.Response` with cookies in controller data.

    Controllers seeking to update cookies must include a 'cookies' key
    in their response data. A max age of ``None`` sets a cookie that lasts
    for the browser session.
    """
    cookies = data.pop('cookies', None)
    if cookies is None:
        return None
    for cookie_key, (cookie_value, max_age) in cookies.items():
        cookie_name = current_app.config[f'{cookie_key.upper()}_NAME']
        logger.debug('Set cookie %s, max_age %s', cookie_name, max_age)
        params = dict(httponly=True,
                      domain=current_app.config.get('AUTH_SESSION_COOKIE_DOMAIN'),
                      samesite='Lax')
        if current_app.config['AUTH_SESSION_COOKIE_SECURE']:
            params.update({'secure': True})
        response.set_cookie(cookie_name, cookie_value, max_age=max_age,
                            **params)


def _respond(template: str, data: dict, code: int, headers: dict) -> Response:
    # Flask puts cookie-setting methods on the response, so we do that here
    # instead of in the controller.
    if code == status.SEE_OTHER:
        response = make_response(redirect(headers['Location'], code=code))
        set_cookies(response, data)
        return response
    data.pop('cookies', None)
    return make_response(render_template(template, **data), code)


@blueprint.after_request
def apply_response_headers(response: Response) -> Response:
    """Prevent UI redress attacks."""
    response.headers['Content-Security-Policy'] = "frame-ancestors 'none'"
    response.headers['X-Frame-Options'] = 'DENY'
    return response


@blueprint.route('/register', methods=['GET', 'POST'])
@anonymous_only
def register() -> Response:
    """Interface for creating new accounts."""
    default_next_page = current_app.config['DEFAULT_LOGIN_REDIRECT_URL']
    next_page = request.args.get('next_page', default_next_page)
    data, code, headers = registration.register(request.method, request.form,
                                                request.remote_addr,
                                                next_page)
    return _respond('gatekeeper/register.html', data, code, headers)


@blueprint.route('/login', methods=['GET', 'POST'])
@anonymous_only
def login() -> Response:
    """User can sign in with email and password."""
    default_next_page = current_app.config['DEFAULT_LOGIN_REDIRECT_URL']
    next_page = request.args.get('next_page', default_next_page)
    logger.debug('Request to log in, then redirect to %s', next_page)
    data, code, headers = authentication.login(request.method, request.form,
                                               request.remote_addr,
                                               next_page)
    data.update({'pagetitle': 'Sign in'})
    return _respond('gatekeeper/login.html', data, code, headers)


@blueprint.route('/logout', methods=['POST'])
def logout() -> Response:
    """
    Sign out.

    Anti-forgery checks on this route belong to the deployment's request
    filters.
    """
    cookie_name = current_app.config['AUTH_SESSION_COOKIE_NAME']
    session_cookie = request.cookies.get(cookie_name, None)
    next_page = current_app.config['DEFAULT_LOGOUT_REDIRECT_URL']
    data, code, headers = authentication.logout(session_cookie, next_page)
    return _respond('', data, code, headers)


@blueprint.route('/forgot-password', methods=['GET', 'POST'])
def request_password_reset() -> Response:
    """Ask for a password reset link."""
    data, code, headers = password_reset.request_reset(request.method,
                                                       request.form)
    if data.get('confirmation'):
        template = 'gatekeeper/password_reset_request_confirmation.html'
    else:
        template = 'gatekeeper/request_password_reset.html'
    return _respond(template, data, code, headers)


@blueprint.route('/reset-password', methods=['GET', 'POST'])
def reset_password() -> Response:
    """Set a new password with a reset token."""
    params = request.args if request.method == 'GET' else request.form
    data, code, headers = password_reset.reset_password(request.method,
                                                        params)
    return _respond('gatekeeper/reset_password.html', data, code, headers)


@blueprint.route('/reset-password/confirmation', methods=['GET'])
def reset_password_confirmation() -> Response:
    """The password has been reset, or there was nothing to reset."""
    return make_response(
        render_template('gatekeeper/reset_password_confirmation.html')
    )


@blueprint.route('/login/google', methods=['GET'])
def google_login() -> Response:
    """Start a sign-in with Google."""
    callback_url = url_for('ui.google_callback', _external=True)
    return federation.login(callback_url)


@blueprint.route('/login/google/callback', methods=['GET'])
def google_callback() -> Response:
    """Google sends the browser back here."""
    data, code, headers = federation.callback(request.remote_addr)
    return _respond('', data, code, headers)


@blueprint.route('/auth_status', methods=['GET'])
def auth_status() -> Response:
    """Get if the app is running."""
    return make_response("OK")
