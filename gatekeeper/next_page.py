"""Guards the post sign-in redirect."""
import re

from flask import current_app

MAX_NEXT_PAGE_LENGTH = 300


def good_next_page(next_page: str) -> str:
    """
    Get where to send the browser after sign-in.

    ``next_page`` is used only if it matches ``LOGIN_REDIRECT_REGEX``; any
    other value gets ``DEFAULT_LOGIN_REDIRECT_URL``.
    """
    config = current_app.config
    default: str = config['DEFAULT_LOGIN_REDIRECT_URL']
    if not next_page or len(next_page) >= MAX_NEXT_PAGE_LENGTH:
        return default
    if next_page == default:
        return next_page
    pattern = config.get('LOGIN_REDIRECT_REGEX')
    if pattern and re.match(pattern, next_page):
        return next_page
    return default
