# Overview: Outgoing email for verification and password-reset links.

"""
Mail delivery over SMTP.

Settings come from the app config (MAIL_*). With MAIL_SUPPRESS_SEND enabled
messages are logged instead of sent, which is what tests and local
development use.
"""

from __future__ import annotations

import smtplib
from email.message import EmailMessage
from urllib.parse import urlencode

from flask import current_app


class MailDeliveryError(RuntimeError):
    """SMTP transport failed."""


def send_email(to: str, subject: str, html: str, text: str) -> None:
    config = current_app.config

    msg = EmailMessage()
    msg["From"] = config.get("MAIL_DEFAULT_SENDER", "noreply@storefront.local")
    msg["To"] = to
    msg["Subject"] = subject
    msg.set_content(text)
    msg.add_alternative(html, subtype="html")

    if config.get("MAIL_SUPPRESS_SEND"):
        current_app.logger.info("MAIL_SUPPRESSED to=%s subject=%s", to, subject)
        return

    try:
        with smtplib.SMTP(config["MAIL_SERVER"], config["MAIL_PORT"], timeout=30) as smtp:
            if config.get("MAIL_USE_TLS"):
                smtp.starttls()
            if config.get("MAIL_USERNAME"):
                smtp.login(config["MAIL_USERNAME"], config.get("MAIL_PASSWORD") or "")
            smtp.send_message(msg)
    except (smtplib.SMTPException, OSError) as exc:
        raise MailDeliveryError(f"Failed to send email to {to}") from exc

    current_app.logger.info("MAIL_SENT to=%s subject=%s", to, subject)


def build_link(path: str, token: str) -> str:
    base_url = current_app.config.get("APP_BASE_URL", "http://localhost:3000").rstrip("/")
    return f"{base_url}{path}?{urlencode({'token': token})}"


def send_verification_email(email: str, token: str) -> None:
    url = build_link("/verify-email", token)
    hours = current_app.config.get("EMAIL_VERIFICATION_TTL_HOURS", 24)
    html = (
        "<h2>Verify your email address</h2>"
        "<p>Thanks for signing up. Confirm your email address by clicking the link below:</p>"
        f'<p><a href="{url}">Verify Email</a></p>'
        f"<p>This link will expire in {hours} hours.</p>"
        "<p>If you didn't create an account, you can safely ignore this email.</p>"
    )
    text = f"Verify your email by opening this link: {url}"
    send_email(email, "Verify your email address", html, text)


def send_password_reset_email(email: str, token: str) -> None:
    url = build_link("/reset-password", token)
    hours = current_app.config.get("PASSWORD_RESET_TTL_HOURS", 1)
    html = (
        "<h2>Reset your password</h2>"
        "<p>We received a request to reset your password. Click the link below to choose a new one:</p>"
        f'<p><a href="{url}">Reset Password</a></p>'
        f"<p>This link will expire in {hours} hour{'s' if hours != 1 else ''}.</p>"
        "<p>If you didn't request a password reset, you can safely ignore this email.</p>"
    )
    text = f"Reset your password by opening this link: {url}"
    send_email(email, "Reset your password", html, text)
