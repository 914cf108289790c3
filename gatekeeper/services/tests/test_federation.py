"""Tests for :mod:`gatekeeper.services.federation`."""

from unittest import TestCase, mock
import tempfile

from authlib.integrations.base_client import OAuthError
from requests.exceptions import ConnectionError

from ... import domain
from ...tests.util import create_test_app
from .. import federation, users
from ..exceptions import AssertionRejected, CreateFailed, \
    DirectoryWriteFailed, MissingClaim, NoSuchUser, UserExists


class TestAuthenticate(TestCase):
    """The provider's callback is turned into an identity assertion."""

    @mock.patch('gatekeeper.services.federation.get_client')
    def test_userinfo_in_token(self, mock_get_client):
        """Claims are read from the ID token when present."""
        client = mock_get_client.return_value
        client.authorize_access_token.return_value = {
            'userinfo': {'email': 'peggy@example.com',
                         'email_verified': True, 'sub': '1234'}
        }
        assertion = federation.authenticate()
        self.assertIsInstance(assertion, domain.ExternalAssertion)
        self.assertEqual(assertion.email, 'peggy@example.com')
        self.assertEqual(assertion.provider, 'google')
        self.assertEqual(assertion.subject, '1234')
        self.assertEqual(client.userinfo.call_count, 0)

    @mock.patch('gatekeeper.services.federation.get_client')
    def test_userinfo_endpoint(self, mock_get_client):
        """Claims are fetched from the provider when not in the token."""
        client = mock_get_client.return_value
        client.authorize_access_token.return_value = {'access_token': 'x'}
        client.userinfo.return_value = {'email': 'peggy@example.com'}
        assertion = federation.authenticate()
        self.assertEqual(assertion.email, 'peggy@example.com')

    @mock.patch('gatekeeper.services.federation.get_client')
    def test_rejected(self, mock_get_client):
        """A callback the provider will not honor is rejected."""
        client = mock_get_client.return_value
        client.authorize_access_token.side_effect = \
            OAuthError(error='access_denied')
        with self.assertRaises(AssertionRejected):
            federation.authenticate()

    @mock.patch('gatekeeper.services.federation.get_client')
    def test_provider_unreachable(self, mock_get_client):
        """Failing to reach the provider rejects the assertion."""
        client = mock_get_client.return_value
        client.authorize_access_token.side_effect = ConnectionError()
        with self.assertRaises(AssertionRejected):
            federation.authenticate()

    @mock.patch('gatekeeper.services.federation.get_client')
    def test_no_email(self, mock_get_client):
        """An assertion without an email address is refused."""
        client = mock_get_client.return_value
        client.authorize_access_token.return_value = {
            'userinfo': {'sub': '1234'}
        }
        with self.assertRaises(MissingClaim):
            federation.authenticate()

    @mock.patch('gatekeeper.services.federation.get_client')
    def test_unverified_email(self, mock_get_client):
        """An address the provider has not verified is refused."""
        client = mock_get_client.return_value
        client.authorize_access_token.return_value = {
            'userinfo': {'email': 'peggy@example.com',
                         'email_verified': False}
        }
        with self.assertRaises(MissingClaim):
            federation.authenticate()


class TestReconcile(TestCase):
    """An asserted identity is matched to a local account."""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.app = create_test_app(self.tmp.name)
        self.assertion = domain.ExternalAssertion(email='Victor@Example.com',
                                                  provider='google')

    def test_registered_client(self):
        """The provider client is registered with the application."""
        with self.app.app_context():
            self.assertEqual(federation.get_client().name, 'google')

    def test_first_sign_in_creates_account(self):
        """The first sign-in creates an account with no password."""
        with self.app.app_context():
            user = federation.reconcile(self.assertion)
            self.assertIsNone(user.password_hash)
            self.assertEqual(users.find_by_email('victor@example.com'), user)

    def test_later_sign_in_reuses_account(self):
        """Later sign-ins find the same account."""
        with self.app.app_context():
            first = federation.reconcile(self.assertion)
            second = federation.reconcile(
                self.assertion._replace(email='victor@example.com')
            )
        self.assertEqual(first.user_id, second.user_id)

    def test_existing_password_account(self):
        """An account registered with a password is reused as-is."""
        with self.app.app_context():
            existing = users.create('victor@example.com', 'somehash')
            user = federation.reconcile(self.assertion)
        self.assertEqual(user.user_id, existing.user_id)
        self.assertEqual(user.password_hash, 'somehash')

    @mock.patch('gatekeeper.services.federation.users')
    def test_concurrent_first_sign_in(self, mock_users):
        """Losing a race to create the account yields the winner's account."""
        winner = domain.User(user_id='1', email='victor@example.com',
                             username='victor@example.com')
        mock_users.find_by_email.side_effect = [NoSuchUser(), winner]
        mock_users.create.side_effect = UserExists()
        self.assertEqual(federation.reconcile(self.assertion), winner)

    @mock.patch('gatekeeper.services.federation.users')
    def test_create_failed(self, mock_users):
        """:class:`.CreateFailed` is raised if no account can be had."""
        mock_users.find_by_email.side_effect = NoSuchUser()
        mock_users.create.side_effect = DirectoryWriteFailed()
        with self.assertRaises(CreateFailed):
            federation.reconcile(self.assertion)
