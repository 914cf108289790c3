"""Renders and sends account email."""

from typing import Any, List, NamedTuple, Optional
from email.message import EmailMessage
import logging
import smtplib

from flask import Flask, current_app, g, render_template

from .exceptions import DeliveryFailed

logger = logging.getLogger(__name__)


class SentMessage(NamedTuple):
    """A message held by :class:`FakeMailSession`."""

    to: str
    subject: str
    html: str


class MailSession(object):
    """An open session with an SMTP service."""

    def __init__(self, host: str = '', port: int = 0, sender: str = '',
                 username: Optional[str] = None,
                 password: Optional[str] = None, use_tls: bool = False,
                 timeout: int = 10) -> None:
        self._host = host
        self._port = port
        self._sender = sender
        self._username = username
        self._password = password
        self._use_tls = use_tls
        self._timeout = timeout

    def _new_connection(self) -> smtplib.SMTP:
        conn = smtplib.SMTP(host=self._host, port=self._port,
                            timeout=self._timeout)
        if self._use_tls:
            conn.starttls()
        if self._username:
            conn.login(self._username, self._password or '')
        return conn

    def send(self, to: str, subject: str, html: str) -> None:
        """
        Deliver an HTML message in a single attempt.

        Raises
        ------
        :class:`DeliveryFailed`
            Raised if the server cannot be reached or refuses the message.

        """
        message = EmailMessage()
        message['From'] = self._sender
        message['To'] = to
        message['Subject'] = subject
        message.set_content('This message requires an HTML-capable client.')
        message.add_alternative(html, subtype='html')
        try:
            with self._new_connection() as conn:
                conn.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            raise DeliveryFailed(f'Could not send to {to}: {e}') from e
        logger.debug('Sent "%s" to %s', subject, to)


class FakeMailSession(object):
    """Keeps messages in memory instead of sending them."""

    def __init__(self) -> None:
        self.outbox: List[SentMessage] = []

    def send(self, to: str, subject: str, html: str) -> None:
        """Add a message to :attr:`outbox`."""
        self.outbox.append(SentMessage(to, subject, html))
        logger.debug('Queued "%s" to %s in fake outbox', subject, to)


def init_app(app: Flask) -> None:
    """Set default configuration parameters for an application instance."""
    app.config.setdefault('SMTP_HOST', 'localhost')
    app.config.setdefault('SMTP_PORT', 25)
    app.config.setdefault('MAIL_SENDER', 'no-reply@filesharing.local')
    app.config.setdefault('MAIL_FAKE', False)
    if app.config['MAIL_FAKE']:
        app.extensions['gatekeeper.fake_mail'] = FakeMailSession()


def current_session() -> Any:
    """Get the mail session for this context."""
    fake = current_app.extensions.get('gatekeeper.fake_mail')
    if fake is not None:
        return fake
    if 'mail' not in g:
        config = current_app.config
        g.mail = MailSession(
            host=config['SMTP_HOST'],
            port=int(config['SMTP_PORT']),
            sender=config['MAIL_SENDER'],
            username=config.get('SMTP_USERNAME'),
            password=config.get('SMTP_PASSWORD'),
            use_tls=bool(config.get('SMTP_USE_TLS', False)),
            timeout=int(config.get('SMTP_TIMEOUT', 10))
        )
    return g.mail


def render(template_name: str, **model: Any) -> str:
    """Render an email body from a template."""
    return render_template(template_name, **model)


def send(to: str, subject: str, html: str) -> None:
    """Send an HTML message with the mail session for this context."""
    current_session().send(to, subject, html)
