from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formataddr
from functools import lru_cache
from html import escape
from typing import Optional, Protocol
from config.settings import settings
import logging
import smtplib

logger = logging.getLogger(__name__)

@dataclass
class OutgoingEmail:
    to: str
    subject: str
    text: str
    html: Optional[str] = None

class Mailer(Protocol):
    def send(self, email: OutgoingEmail) -> bool:
        ...

class SmtpMailer:
    """
    Sends mail through an SMTP relay (STARTTLS by default).
    Delivery is best-effort: failures are logged and reported as False.
    """

    def __init__(
        self,
        host: str,
        port: int,
        username: Optional[str],
        password: Optional[str],
        use_tls: bool = True,
        from_name: str = "Learning Management System",
        timeout: float = 10.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.from_name = from_name
        self.timeout = timeout

    def _build(self, email: OutgoingEmail) -> EmailMessage:
        message = EmailMessage()
        message["From"] = formataddr((self.from_name, self.username or ""))
        message["To"] = email.to
        message["Subject"] = email.subject
        message.set_content(email.text)
        if email.html:
            message.add_alternative(email.html, subtype="html")
        return message

    def send(self, email: OutgoingEmail) -> bool:
        if not self.username or not self.password:
            logger.error("SMTP credentials are not configured; email not sent")
            return False
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                if self.use_tls:
                    smtp.starttls()
                smtp.login(self.username, self.password)
                smtp.send_message(self._build(email))
            logger.info(f"📧 Email sent to {email.to}: {email.subject}")
            return True
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"❌ Email sending failed for {email.to}: {str(e)}")
            return False

class NoopMailer:
    """Used when email is disabled. Logs instead of sending."""

    def send(self, email: OutgoingEmail) -> bool:
        logger.info(f"Email disabled, skipped message to {email.to}: {email.subject}")
        return False

@lru_cache
def get_mailer() -> Mailer:
    """Dependency returning the process-wide mailer built from settings."""
    if not settings.EMAIL_ENABLED:
        return NoopMailer()
    return SmtpMailer(
        host=settings.SMTP_HOST,
        port=settings.SMTP_PORT,
        username=settings.SMTP_USER,
        password=settings.SMTP_PASSWORD,
        use_tls=settings.SMTP_USE_TLS,
        from_name=settings.MAIL_FROM_NAME,
    )

# ============ Templates ============

def setup_link(token: str) -> str:
    return f"{settings.FRONTEND_URL.rstrip('/')}/employee/set-password?token={token}"

def reset_link(token: str) -> str:
    return f"{settings.FRONTEND_URL.rstrip('/')}/reset-password?token={token}"

def welcome_email(to: str, employee_name: str, company_name: str, token: str) -> OutgoingEmail:
    """Employee invitation carrying the password setup link."""
    url = setup_link(token)
    days = settings.SETUP_TOKEN_EXPIRE_DAYS
    text = (
        f"Dear {employee_name},\n\n"
        f"Your account has been created in the Learning Management System by the HR team at {company_name}.\n\n"
        f"Please visit this link to set your password: {url}\n\n"
        f"This password setup link will expire in {days} days. "
        f"If it expires, please contact your HR department for a new one.\n\n"
        f"Best regards,\nThe Learning Management System Team\n{company_name}\n"
    )
    html = f"""
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
  <h1 style="text-align: center;">Welcome to the Learning Management System!</h1>
  <p>Dear <strong>{escape(employee_name)}</strong>,</p>
  <p>Your account has been created by the HR team at <strong>{escape(company_name)}</strong>.
     Click the button below to set your password and activate your account:</p>
  <div style="text-align: center; margin: 30px 0;">
    <a href="{url}" style="background-color: #4F46E5; color: white; padding: 12px 30px; text-decoration: none; border-radius: 5px;">Set My Password</a>
  </div>
  <p>Or copy and paste this link in your browser:</p>
  <p style="word-break: break-all; color: #007bff;">{url}</p>
  <p><strong>This link will expire in {days} days.</strong></p>
</div>
"""
    return OutgoingEmail(
        to=to,
        subject="Welcome to the Learning Management System - Set Your Password",
        text=text,
        html=html,
    )

def password_reset_email(to: str, token: str) -> OutgoingEmail:
    """HR password reset link."""
    url = reset_link(token)
    hours = settings.RESET_TOKEN_EXPIRE_HOURS
    text = (
        "Hello,\n\n"
        "You have requested to reset your password for your Learning Management System account.\n\n"
        f"Reset your password here: {url}\n\n"
        f"This link will expire in {hours} hour(s).\n"
        "If you did not request this password reset, please ignore this email.\n"
    )
    html = f"""
<div style="max-width: 600px; margin: 0 auto; padding: 20px; font-family: Arial, sans-serif;">
  <h2 style="text-align: center;">Password Reset Request</h2>
  <p>You have requested to reset your password. Click the button below to reset it:</p>
  <div style="text-align: center; margin: 30px 0;">
    <a href="{url}" style="background-color: #007bff; color: white; padding: 12px 30px; text-decoration: none; border-radius: 5px;">Reset Password</a>
  </div>
  <p style="word-break: break-all; color: #007bff;">{url}</p>
  <p><strong>This link will expire in {hours} hour(s).</strong></p>
  <p>If you did not request this password reset, please ignore this email.</p>
</div>
"""
    return OutgoingEmail(
        to=to,
        subject="Password Reset Request - Learning Management System",
        text=text,
        html=html,
    )
