"""End-to-end tests, via requests to the user interface."""

from unittest import TestCase, mock
from http import HTTPStatus as status
import re
import tempfile

from redis.exceptions import ConnectionError

from ..services import mail
from .util import create_test_app, add_user, PASSWORD

COOKIE_NAME = 'FILESHARING_SESSION_ID'


def _parse_cookies(cookie_data):
    cookies = {}
    for cdata in cookie_data:
        parts = cdata.split('; ')
        data = parts[0]
        key, value = data[:data.index('=')], data[data.index('=') + 1:]
        extra = {
            part[:part.index('=')]: part[part.index('=') + 1:]
            for part in parts[1:] if '=' in part
        }
        cookies[key] = dict(value=value, **extra)
    return cookies


class TestRegisterLoginLogout(TestCase):
    """Test registering, signing in and signing out."""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.app = create_test_app(self.tmp.name)
        self.client = self.app.test_client()

    def test_auth_status(self):
        """The health check answers."""
        response = self.client.get('/auth_status')
        self.assertEqual(response.status_code, status.OK)
        self.assertEqual(response.data, b'OK')

    def test_frame_headers(self):
        """Pages may not be framed."""
        response = self.client.get('/login')
        self.assertEqual(response.headers['X-Frame-Options'], 'DENY')
        self.assertIn("frame-ancestors 'none'",
                      response.headers['Content-Security-Policy'])

    def test_register_then_logout_then_login(self):
        """A new account is signed in, can sign out, and sign in again."""
        form_data = {'email': 'rupert@example.com', 'password': PASSWORD,
                     'confirm_password': PASSWORD}
        response = self.client.post('/register', data=form_data)
        self.assertEqual(response.status_code, status.SEE_OTHER)
        cookies = _parse_cookies(response.headers.getlist('Set-Cookie'))
        self.assertIn(COOKIE_NAME, cookies)
        self.assertIn('HttpOnly', response.headers['Set-Cookie'])
        self.assertNotIn('Expires', cookies[COOKIE_NAME],
                         'Registration gives a browser-session cookie')

        response = self.client.get('/login')
        self.assertEqual(response.status_code, status.SEE_OTHER,
                         'Signed-in users are sent on from the sign-in page')

        response = self.client.post('/logout')
        self.assertEqual(response.status_code, status.SEE_OTHER)
        self.assertEqual(response.headers['Location'], '/')
        cookies = _parse_cookies(response.headers.getlist('Set-Cookie'))
        self.assertEqual(cookies[COOKIE_NAME]['value'], '')

        response = self.client.get('/login')
        self.assertEqual(response.status_code, status.OK)

        response = self.client.post('/login', data={
            'email': 'Rupert@Example.com', 'password': PASSWORD,
            'remember_me': 'y'
        })
        self.assertEqual(response.status_code, status.SEE_OTHER)
        cookies = _parse_cookies(response.headers.getlist('Set-Cookie'))
        self.assertIn('Max-Age', cookies[COOKIE_NAME],
                      'A remembered sign-in outlives the browser session')

    def test_signed_in_users_skip_entry_pages(self):
        """Signed-in users asking for sign-in or registration go on."""
        form_data = {'email': 'ursula@example.com', 'password': PASSWORD,
                     'confirm_password': PASSWORD}
        response = self.client.post('/register', data=form_data)
        self.assertEqual(response.status_code, status.SEE_OTHER)

        landing = self.app.config['DEFAULT_LOGIN_REDIRECT_URL']
        for page in ['/login', '/register']:
            response = self.client.get(page)
            self.assertEqual(response.status_code, status.SEE_OTHER)
            self.assertEqual(response.headers['Location'], landing)
            self.assertNotIn('Set-Cookie', response.headers)

    def test_logout_with_session_store_down(self):
        """Signing out still redirects and clears the cookie."""
        with self.app.app_context():
            add_user('tobias@example.com')
        response = self.client.post('/login', data={
            'email': 'tobias@example.com', 'password': PASSWORD
        })
        self.assertEqual(response.status_code, status.SEE_OTHER)

        down = mock.MagicMock()
        down.get.side_effect = ConnectionError('down')
        down.delete.side_effect = ConnectionError('down')
        with mock.patch('gatekeeper.services.session_store.get_redis',
                        return_value=down):
            response = self.client.post('/logout')
            self.assertEqual(response.status_code, status.SEE_OTHER)
            self.assertEqual(response.headers['Location'], '/')
            cookies = _parse_cookies(response.headers.getlist('Set-Cookie'))
            self.assertEqual(cookies[COOKIE_NAME]['value'], '')

            response = self.client.get('/auth_status')
            self.assertEqual(response.status_code, status.OK)

    def test_logout_twice(self):
        """Signing out when already signed out is harmless."""
        self.assertEqual(self.client.post('/logout').status_code,
                         status.SEE_OTHER)
        self.assertEqual(self.client.post('/logout').status_code,
                         status.SEE_OTHER)

    def test_bad_login(self):
        """A failed sign-in shows the generic message."""
        with self.app.app_context():
            add_user('sybil@example.com')
        for email, password in [('sybil@example.com', 'Wr0ng!pass'),
                                ('nobody@example.com', PASSWORD)]:
            response = self.client.post('/login', data={'email': email,
                                                        'password': password})
            self.assertEqual(response.status_code, status.BAD_REQUEST)
            self.assertIn(b'Invalid login attempt.', response.data)
            self.assertNotIn('Set-Cookie', response.headers)

    def test_forged_cookie(self):
        """A cookie that does not check out is ignored."""
        self.client.set_cookie(COOKIE_NAME, 'not-a-real-session')
        response = self.client.get('/login')
        self.assertEqual(response.status_code, status.OK)


class TestPasswordReset(TestCase):
    """Test the forgotten password flow."""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.app = create_test_app(self.tmp.name)
        self.client = self.app.test_client()
        with self.app.app_context():
            add_user('walter@example.com')

    def _outbox(self) -> list:
        with self.app.app_context():
            return mail.current_session().outbox

    def test_same_response_for_any_address(self):
        """The confirmation does not reveal whether an account exists."""
        known = self.client.post('/forgot-password',
                                 data={'email': 'walter@example.com'})
        unknown = self.client.post('/forgot-password',
                                   data={'email': 'ghost@example.com'})
        self.assertEqual(known.status_code, status.OK)
        self.assertEqual(unknown.status_code, status.OK)
        self.assertEqual(known.data, unknown.data)
        self.assertEqual(len(self._outbox()), 1)

    def test_reset_link_without_token(self):
        """Opening the reset page without a token is a bad request."""
        response = self.client.get('/reset-password')
        self.assertEqual(response.status_code, status.BAD_REQUEST)

    def test_reset_flow(self):
        """A user resets their password from the emailed link."""
        self.client.post('/forgot-password',
                         data={'email': 'walter@example.com'})
        outbox = self._outbox()
        self.assertEqual(len(outbox), 1)
        token = re.search(r'token=([\w.\-]+)', outbox[0].html).group(1)

        response = self.client.get('/reset-password', query_string={
            'token': token, 'email': 'walter@example.com'
        })
        self.assertEqual(response.status_code, status.OK)
        self.assertIn(token.encode('ascii'), response.data)

        form_data = {'token': token, 'email': 'walter@example.com',
                     'password': 'N3w-Passw0rd',
                     'confirm_password': 'N3w-Passw0rd'}
        response = self.client.post('/reset-password', data=form_data)
        self.assertEqual(response.status_code, status.SEE_OTHER)
        self.assertTrue(response.headers['Location']
                        .endswith('/reset-password/confirmation'))

        response = self.client.get('/reset-password/confirmation')
        self.assertEqual(response.status_code, status.OK)

        response = self.client.post('/reset-password', data=form_data)
        self.assertEqual(response.status_code, status.BAD_REQUEST,
                         'The link works once')

        response = self.client.post('/login', data={
            'email': 'walter@example.com', 'password': PASSWORD
        })
        self.assertEqual(response.status_code, status.BAD_REQUEST)

        response = self.client.post('/login', data={
            'email': 'walter@example.com', 'password': 'N3w-Passw0rd'
        })
        self.assertEqual(response.status_code, status.SEE_OTHER)
