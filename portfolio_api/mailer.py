"""
Contact form mailer
Relays portfolio contact messages through SMTP
"""

import html
import logging
import smtplib
import ssl
from email.message import EmailMessage
from email.utils import formataddr
from typing import Any, Dict

from .errors import MailerError

logger = logging.getLogger(__name__)


class Mailer:
    def __init__(self, settings, timeout: float = 30):
        self.settings = settings
        self.timeout = timeout

    def is_configured(self) -> bool:
        """Check if SMTP host and recipient are set"""
        return bool(self.settings.smtp_host and self.settings.contact_email)

    def build_message(self, name: str, email: str, message: str) -> EmailMessage:
        contact_email = self.settings.contact_email

        msg = EmailMessage()
        msg['From'] = formataddr((self.settings.from_name or '', contact_email))
        msg['Reply-To'] = formataddr((name, email))
        msg['To'] = contact_email
        msg['Subject'] = f"New message from {name}"
        msg.set_content(f"From: {name} <{email}>\n\n{message}")
        msg.add_alternative(
            f"<p><strong>From:</strong> {html.escape(name)} &lt;{html.escape(email)}&gt;</p>"
            f"<p>{html.escape(message)}</p>",
            subtype='html'
        )
        return msg

    def send(self, name: str, email: str, message: str) -> Dict[str, Any]:
        """
        Send one contact message
        Returns the recipients the server refused, empty on full success
        """
        if not self.is_configured():
            raise MailerError('Mailer is not configured: SMTP_HOST and CONTACT_EMAIL are required')

        msg = self.build_message(name, email, message)
        settings = self.settings

        try:
            if settings.smtp_secure:
                smtp = smtplib.SMTP_SSL(settings.smtp_host, settings.smtp_port,
                                        timeout=self.timeout, context=ssl.create_default_context())
            else:
                smtp = smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=self.timeout)

            with smtp:
                if not settings.smtp_secure:
                    smtp.ehlo()
                    if smtp.has_extn('starttls'):
                        smtp.starttls(context=ssl.create_default_context())
                        smtp.ehlo()
                if settings.smtp_user:
                    smtp.login(settings.smtp_user, settings.smtp_pass or '')
                refused = smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"❌ SMTP Error: {e}")
            raise MailerError(str(e) or e.__class__.__name__)

        if refused:
            logger.warning(f"Recipients refused: {refused}")

        logger.info(f"✅ Email sent from {email} to {settings.contact_email}")
        return refused
