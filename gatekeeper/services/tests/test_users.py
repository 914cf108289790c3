"""Tests for :mod:`gatekeeper.services.users`."""

from unittest import TestCase
from datetime import datetime, timedelta
import tempfile

from pytz import UTC

from ...tests.util import create_test_app
from .. import users
from ..exceptions import NoSuchUser, UserExists


class TestCreateUser(TestCase):
    """Accounts are created with a unique, normalized email address."""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.app = create_test_app(self.tmp.name)

    def test_create(self):
        """A new account gets an ID, and the username defaults to email."""
        with self.app.app_context():
            user = users.create('alice@example.com', 'somehash')
        self.assertTrue(bool(user.user_id))
        self.assertEqual(user.email, 'alice@example.com')
        self.assertEqual(user.username, 'alice@example.com')
        self.assertEqual(user.password_hash, 'somehash')
        self.assertEqual(user.access_failed_count, 0)
        self.assertIsNotNone(user.created)

    def test_create_without_password(self):
        """Accounts may have no local password."""
        with self.app.app_context():
            user = users.create('bob@example.com')
        self.assertIsNone(user.password_hash)
        self.assertFalse(user.has_password)

    def test_duplicate_differs_in_case(self):
        """Addresses that differ only in case belong to the same account."""
        with self.app.app_context():
            users.create('carol@example.com', 'somehash')
            with self.assertRaises(UserExists):
                users.create('Carol@Example.COM', 'otherhash')

    def test_directory_usable_after_conflict(self):
        """A failed create does not poison later work."""
        with self.app.app_context():
            users.create('dave@example.com')
            with self.assertRaises(UserExists):
                users.create('dave@example.com')
            other = users.create('erin@example.com')
            self.assertEqual(users.find_by_id(other.user_id).email,
                             'erin@example.com')


class TestFindUser(TestCase):
    """Accounts are looked up by normalized address or by ID."""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.app = create_test_app(self.tmp.name)
        with self.app.app_context():
            self.user = users.create('Frank@Example.com', 'somehash')

    def test_find_by_email_ignores_case(self):
        """Lookup uses case-insensitive equality."""
        with self.app.app_context():
            found = users.find_by_email('  frank@example.COM ')
        self.assertEqual(found.user_id, self.user.user_id)
        self.assertEqual(found.email, 'Frank@Example.com',
                         'The address is kept as entered')

    def test_find_by_email_missing(self):
        """:class:`.NoSuchUser` is raised for an unknown address."""
        with self.app.app_context():
            with self.assertRaises(NoSuchUser):
                users.find_by_email('nobody@example.com')

    def test_find_by_id(self):
        """An account can be fetched by ID."""
        with self.app.app_context():
            found = users.find_by_id(self.user.user_id)
            self.assertEqual(found, users.find_by_email('frank@example.com'))
            with self.assertRaises(NoSuchUser):
                users.find_by_id('not-an-id')


class TestUpdateUser(TestCase):
    """Credential and lockout state can be changed."""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.app = create_test_app(self.tmp.name)
        with self.app.app_context():
            self.user = users.create('grace@example.com', 'somehash')

    def test_update_password(self):
        """The stored hash is replaced."""
        with self.app.app_context():
            updated = users.update_password(self.user, 'newhash')
            self.assertEqual(updated.password_hash, 'newhash')
            self.assertEqual(users.find_by_id(self.user.user_id).password_hash,
                             'newhash')

    def test_set_lockout(self):
        """The lockout end is stored as an aware UTC datetime."""
        until = datetime.now(tz=UTC) + timedelta(minutes=5)
        with self.app.app_context():
            users.set_lockout(self.user, until)
            locked = users.find_by_id(self.user.user_id)
        self.assertTrue(locked.is_locked_out())
        self.assertEqual(locked.lockout_end.tzinfo, UTC)

        with self.app.app_context():
            unlocked = users.set_lockout(locked, None)
        self.assertFalse(unlocked.is_locked_out())

    def test_record_access_failure(self):
        """Reaching the limit locks the account and restarts the count."""
        with self.app.app_context():
            first = users.record_access_failure(self.user, 2, 300)
            self.assertEqual(first.access_failed_count, 1)
            self.assertFalse(first.is_locked_out())

            second = users.record_access_failure(self.user, 2, 300)
            self.assertEqual(second.access_failed_count, 0)
            self.assertTrue(second.is_locked_out())

    def test_reset_access_failures(self):
        """The failure count can be cleared."""
        with self.app.app_context():
            users.record_access_failure(self.user, 5, 300)
            cleared = users.reset_access_failures(self.user)
        self.assertEqual(cleared.access_failed_count, 0)

    def test_update_missing_user(self):
        """Updating an account that does not exist fails."""
        with self.app.app_context():
            ghost = self.user._replace(user_id='not-an-id')
            with self.assertRaises(NoSuchUser):
                users.update_password(ghost, 'newhash')
