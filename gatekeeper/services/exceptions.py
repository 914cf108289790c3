"""Provides exceptions occurring with backing stores and external services."""


class UserExists(RuntimeError):
    """An account with that email address already exists."""


class NoSuchUser(RuntimeError):
    """User does not exist."""


class DirectoryWriteFailed(RuntimeError):
    """The user datastore could not persist a change."""


class SessionCreationFailed(RuntimeError):
    """Failed to create a session in the session store."""


class SessionDeletionFailed(RuntimeError):
    """Failed to delete a session in the session store."""


class InvalidSessionToken(RuntimeError):
    """The session cookie is malformed, forged, or expired."""


class UnknownSession(RuntimeError):
    """Failed to locate a session in the session store."""


class TokenStoreUnavailable(RuntimeError):
    """The password reset token store could not be reached."""


class DeliveryFailed(RuntimeError):
    """Email could not be handed to the mail server."""


class AssertionRejected(RuntimeError):
    """The identity provider's response could not be authenticated."""


class MissingClaim(RuntimeError):
    """The identity provider did not assert a verified email address."""


class CreateFailed(RuntimeError):
    """Could not create a local account for a federated identity."""


class SessionLoadFailed(RuntimeError):
    """The session store could not be read."""
