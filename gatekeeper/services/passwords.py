"""Password hashing and the credential-strength policy."""

from typing import List, NamedTuple
import hashlib
import logging

import bcrypt
from flask import current_app, has_app_context

logger = logging.getLogger(__name__)

MAX_PASSWORD_BYTES = 72
"""bcrypt ignores anything past this."""


class PasswordPolicy(NamedTuple):
    """Requirements that a new password must satisfy."""

    min_length: int = 6
    require_digit: bool = True
    require_lowercase: bool = True
    require_uppercase: bool = True
    require_non_alphanumeric: bool = True
    required_unique_chars: int = 1

    @classmethod
    def from_config(cls) -> 'PasswordPolicy':
        """Load the policy for the current application."""
        if not has_app_context():
            return cls()
        config = current_app.config
        return cls(
            min_length=int(config.get('PASSWORD_MIN_LENGTH', 6)),
            require_digit=bool(config.get('PASSWORD_REQUIRE_DIGIT', True)),
            require_lowercase=bool(config.get('PASSWORD_REQUIRE_LOWERCASE', True)),
            require_uppercase=bool(config.get('PASSWORD_REQUIRE_UPPERCASE', True)),
            require_non_alphanumeric=bool(
                config.get('PASSWORD_REQUIRE_NON_ALPHANUMERIC', True)
            ),
            required_unique_chars=int(config.get('PASSWORD_REQUIRED_UNIQUE_CHARS', 1))
        )

    def check(self, password: str) -> List[str]:
        """
        Get the ways in which ``password`` fails this policy.

        Returns
        -------
        list
            Human-readable messages. Empty if the password is acceptable.

        """
        errors = []
        if len(password) < self.min_length:
            errors.append(f'Passwords must be at least {self.min_length}'
                          ' characters.')
        if len(password.encode('utf-8')) > MAX_PASSWORD_BYTES:
            errors.append(f'Passwords must be at most {MAX_PASSWORD_BYTES}'
                          ' bytes long.')
        if self.require_non_alphanumeric \
                and all(c.isalnum() for c in password):
            errors.append('Passwords must have at least one non alphanumeric'
                          ' character.')
        if self.require_digit and not any(c.isdigit() for c in password):
            errors.append("Passwords must have at least one digit ('0'-'9').")
        if self.require_lowercase and not any(c.islower() for c in password):
            errors.append("Passwords must have at least one lowercase"
                          " ('a'-'z').")
        if self.require_uppercase and not any(c.isupper() for c in password):
            errors.append("Passwords must have at least one uppercase"
                          " ('A'-'Z').")
        if len(set(password)) < self.required_unique_chars:
            errors.append('Passwords must use at least'
                          f' {self.required_unique_chars} different'
                          ' characters.')
        return errors


def check_policy(password: str) -> List[str]:
    """Check ``password`` against the configured policy."""
    return PasswordPolicy.from_config().check(password)


def _rounds() -> int:
    if has_app_context():
        return int(current_app.config.get('BCRYPT_ROUNDS', 12))
    return 12


def hash_password(password: str) -> str:
    """Generate a salted bcrypt hash of a password."""
    salt = bcrypt.gensalt(rounds=_rounds())
    return bcrypt.hashpw(password.encode('utf-8'), salt).decode('ascii')


def check_password(password: str, encrypted: str) -> bool:
    """Check a password against a bcrypt hash, in constant time."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'),
                              encrypted.encode('ascii'))
    except ValueError as e:
        logger.error('Stored password hash is malformed: %s', e)
        return False


def stamp(password_hash: str) -> str:
    """
    Get a short fingerprint of a stored credential.

    Changes whenever the credential changes, so it can bind a token to the
    credential it was issued against without revealing the hash.
    """
    return hashlib.sha256((password_hash or '').encode('utf-8')).hexdigest()[:16]
