"""
Outgoing email: welcome messages and password reset codes
"""

import logging
import smtplib
from email.message import EmailMessage

from fastapi import Request

from config import Settings

logger = logging.getLogger(__name__)


class MailerError(Exception):
    """Raised when a message cannot be handed to the SMTP server"""


class Mailer:
    def __init__(self, settings: Settings):
        self.host = settings.SMTP_HOST
        self.port = settings.SMTP_PORT
        self.user = settings.SMTP_USER
        self.password = settings.SMTP_PASSWORD
        self.sender = settings.EMAIL_FROM
        self.otp_minutes = settings.OTP_EXPIRE_MINUTES

    @property
    def configured(self) -> bool:
        return bool(self.host)

    def send(self, to: str, subject: str, html: str):
        if not self.configured:
            raise MailerError("SMTP_HOST is not configured")

        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content("This message requires an HTML capable mail client.")
        message.add_alternative(html, subtype="html")

        try:
            with smtplib.SMTP(self.host, self.port, timeout=10) as smtp:
                smtp.starttls()
                if self.user:
                    smtp.login(self.user, self.password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            raise MailerError(f"Failed to send email to {to}: {e}") from e
        logger.info(f"Email '{subject}' sent to {to}")

    def send_welcome(self, to: str, username: str):
        html = (
            f"<h2>Welcome to Finaxial, {username}!</h2>"
            "<p>Create a workspace, upload your financial data and get "
            "AI-powered summaries, insights and recommendations.</p>"
        )
        self.send(to, "Welcome to Finaxial", html)

    def send_otp(self, to: str, otp: str):
        html = (
            "<h2>Password Reset Request</h2>"
            f"<p>Your code for resetting your password is: <strong>{otp}</strong></p>"
            f"<p>This code expires in {self.otp_minutes} minutes.</p>"
            "<p>If you didn't request a password reset, please ignore this email.</p>"
        )
        self.send(to, "Password Reset OTP", html)


def get_mailer(request: Request) -> Mailer:
    return request.app.state.mailer
