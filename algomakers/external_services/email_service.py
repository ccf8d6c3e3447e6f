import smtplib
import ssl
import logging
from email.mime.text import MIMEText
from email.utils import formataddr, parseaddr
from typing import Optional
from algomakers.core.config import settings

logger = logging.getLogger(__name__)

class EmailClient:
    def __init__(self):
        self.smtp_host = settings.SMTP_HOST
        self.smtp_port = settings.SMTP_PORT
        self.smtp_user = settings.SMTP_USER
        self.smtp_password = settings.SMTP_PASSWORD
        self.use_tls = settings.SMTP_TLS
        self.from_email = settings.EMAILS_FROM_EMAIL or settings.SMTP_USER
        self.from_name = settings.EMAILS_FROM_NAME

    @property
    def is_configured(self) -> bool:
        return bool(self.smtp_host and self.from_email)

    def _validate_email(self, email: str) -> bool:
        parsed = parseaddr(email)[1]
        return '@' in parsed and '.' in parsed.split('@')[1]

    def send_email(self, to_email: str, subject: str, body: str) -> bool:
        """
        Send a plain-text email.
        Returns True if the email was sent, False otherwise.
        """
        if not self.is_configured:
            logger.warning(f"SMTP is not configured, skipping email to {to_email}: {subject}")
            return False

        if not to_email or not subject or not body:
            logger.error("Email parameters cannot be empty")
            return False

        if not self._validate_email(to_email):
            logger.error(f"Invalid email address: {to_email}")
            return False

        msg = MIMEText(body)
        msg['Subject'] = subject
        msg['From'] = formataddr((self.from_name or "", self.from_email))
        msg['To'] = to_email

        try:
            if self.smtp_port == 465:
                context = ssl.create_default_context()
                with smtplib.SMTP_SSL(self.smtp_host, self.smtp_port, context=context) as server:
                    if self.smtp_user:
                        server.login(self.smtp_user, self.smtp_password)
                    server.send_message(msg)
            else:
                with smtplib.SMTP(self.smtp_host, self.smtp_port) as server:
                    if self.use_tls:
                        server.starttls()
                    if self.smtp_user:
                        server.login(self.smtp_user, self.smtp_password)
                    server.send_message(msg)

            logger.info(f"Email sent successfully to {to_email}")
            return True

        except smtplib.SMTPAuthenticationError as e:
            logger.error(f"SMTP authentication failed: {e}")
            return False
        except smtplib.SMTPRecipientsRefused as e:
            logger.error(f"Recipients refused: {e}")
            return False
        except smtplib.SMTPException as e:
            logger.error(f"SMTP error occurred: {e}")
            return False
        except OSError as e:
            logger.error(f"Could not reach SMTP server {self.smtp_host}: {e}")
            return False

    def send_payment_confirmation(
        self,
        to_email: str,
        name: Optional[str],
        order_id: str,
        amount: float,
        currency: Optional[str],
        pair_symbols: list,
    ) -> bool:
        subject = "AlgoMakers.Ai - Payment confirmed"
        body = (
            f"Hi {name or 'there'},\n\n"
            f"We received your payment of {amount} {(currency or 'USDT').upper()} for order {order_id}.\n"
            f"Subscriptions: {', '.join(pair_symbols) or '-'}\n\n"
            "Your TradingView invite will be sent shortly.\n\n"
            "AlgoMakers.Ai"
        )
        return self.send_email(to_email, subject, body)
