"""Outbound account notifications (verification, password reset, password changed)."""

from __future__ import annotations

import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional, Protocol

from authcore.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    def notify_verification(self, email: str, token: str) -> None: ...

    def notify_password_reset(self, email: str, token: str) -> None: ...

    def notify_password_changed(self, email: str) -> None: ...


def redact_email(email: str) -> str:
    """Redact an email address for logging."""
    if "@" not in email:
        return "redacted"
    local, domain = email.split("@", 1)
    return f"{local[:2]}***@{domain}"


class NotificationService:
    """Email notifications over SMTP.

    Without SMTP_HOST and EMAIL_FROM the message is logged instead of sent
    (development mode). Delivery errors are raised; callers decide whether a
    failed notification matters.
    """

    def __init__(self, config: Optional[Settings] = None) -> None:
        self.config = config or default_settings

    @property
    def is_configured(self) -> bool:
        return bool(self.config.SMTP_HOST and self.config.EMAIL_FROM)

    def _link(self, path: str, token: str) -> str:
        return f"{self.config.FRONTEND_URL.rstrip('/')}/{path}?token={token}"

    def _send(self, to_email: str, subject: str, text_body: str) -> None:
        if not self.is_configured:
            logger.info(
                "[dev-mode email] to=%s subject=%s body=%s",
                redact_email(to_email),
                subject,
                text_body[:200],
            )
            return

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{self.config.EMAIL_FROM_NAME} <{self.config.EMAIL_FROM}>"
        msg["To"] = to_email
        msg.attach(MIMEText(text_body, "plain"))

        context = ssl.create_default_context()
        if self.config.SMTP_USE_TLS:
            with smtplib.SMTP(self.config.SMTP_HOST, self.config.SMTP_PORT, timeout=30) as server:
                server.starttls(context=context)
                if self.config.SMTP_USER and self.config.SMTP_PASSWORD:
                    server.login(self.config.SMTP_USER, self.config.SMTP_PASSWORD)
                server.sendmail(self.config.EMAIL_FROM, to_email, msg.as_string())
        else:
            with smtplib.SMTP_SSL(
                self.config.SMTP_HOST, self.config.SMTP_PORT, context=context, timeout=30
            ) as server:
                if self.config.SMTP_USER and self.config.SMTP_PASSWORD:
                    server.login(self.config.SMTP_USER, self.config.SMTP_PASSWORD)
                server.sendmail(self.config.EMAIL_FROM, to_email, msg.as_string())

        logger.info("Email sent to %s: %s", redact_email(to_email), subject)

    def notify_verification(self, email: str, token: str) -> None:
        link = self._link("verify-email", token)
        self._send(
            email,
            "Verify your email address",
            f"Confirm your email address by opening this link (valid "
            f"{self.config.EMAIL_VERIFICATION_EXPIRE_HOURS} hours):\n\n{link}\n",
        )

    def notify_password_reset(self, email: str, token: str) -> None:
        link = self._link("reset-password", token)
        self._send(
            email,
            "Reset your password",
            f"Reset your password with this link (valid "
            f"{self.config.PASSWORD_RESET_EXPIRE_HOURS} hour(s)):\n\n{link}\n\n"
            "If you did not request a reset, ignore this email.",
        )

    def notify_password_changed(self, email: str) -> None:
        self._send(
            email,
            "Your password was changed",
            "Your password has been changed and all other sign-ins were ended. "
            "If you did not make this change, contact support immediately.",
        )
