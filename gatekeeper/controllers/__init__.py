"""Request controllers for the gatekeeper application."""

from . import authentication, federation, password_reset, registration
